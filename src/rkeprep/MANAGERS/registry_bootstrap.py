# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Deployment of a single-container private registry with docker.
"""
import logging
from typing import Callable, List, Optional

import click

from ..exceptions import CommandError
from ..MODELS.settings import RegistrySettings
from ..RUNNERS.process_runner import CommandResult, ProcessRunner
from .dependency_manager import DependencyManager

_LOGGER = logging.getLogger(__name__)

CONTAINER_PORT = 5000
CONTAINER_DATA_DIR = "/var/lib/registry"


class RegistryBootstrap:
    """
    Replaces any container of the same name with a fresh, always-restarting
    registry bound to a fixed host port and data directory.
    """

    def __init__(self,
                 settings: RegistrySettings,
                 runner: Optional[ProcessRunner] = None,
                 dependencies: Optional[DependencyManager] = None,
                 echo: Callable[[str], None] = click.echo):
        self.settings = settings
        self.runner = runner or ProcessRunner(name="docker")
        self.dependencies = dependencies or DependencyManager()
        self.echo = echo

    def _docker(self, *args: str, capture: bool = False) -> CommandResult:
        return self.runner.run([self.settings.docker_binary, *args], capture=capture)

    def _check(self, result: CommandResult, action: str) -> CommandResult:
        if not result.ok:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise CommandError(f"Failed to {action}: {detail}")
        return result

    def run_command(self) -> List[str]:
        """The ``docker run`` invocation for the registry container."""
        s = self.settings
        return [
            s.docker_binary, "run", "-d",
            "--name", s.name,
            "--restart=always",
            "-p", f"{s.port}:{CONTAINER_PORT}",
            "-v", f"{s.data_dir}:{CONTAINER_DATA_DIR}",
            "-e", f"REGISTRY_HTTP_ADDR=0.0.0.0:{CONTAINER_PORT}",
            s.image,
        ]

    def container_exists(self) -> bool:
        result = self._check(
            self._docker("ps", "-a", "--format", "{{.Names}}", capture=True),
            "list containers",
        )
        return self.settings.name in result.stdout.split()

    def deploy(self) -> None:
        """
        Installs docker if needed and (re)starts the registry container.

        Raises:
            DependencyMissingError: If docker is unavailable and cannot be installed.
            CommandError: If a docker step fails.
        """
        s = self.settings
        self.echo("[*] Verifying Docker is installed...")
        self.dependencies.ensure([s.docker_binary])

        self.echo(f"[*] Creating data directory at {s.data_dir} (if needed)...")
        try:
            s.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CommandError(f"Failed to create {s.data_dir}: {e}") from e

        self.echo(f"[*] Pulling latest registry image: {s.image}...")
        self._check(self._docker("pull", s.image), f"pull {s.image}")

        if self.container_exists():
            self.echo(f"[*] Existing container '{s.name}' detected. Stopping and removing...")
            # Failures are ignored; the run below reports any real conflict.
            self._docker("stop", s.name, capture=True)
            self._docker("rm", s.name, capture=True)

        self.echo(f"[*] Starting registry container '{s.name}' on {s.url}...")
        self._check(self.runner.run(self.run_command(), capture=True), f"start {s.name}")

        self.echo("")
        self.echo("[*] Docker registry is starting.")
        self.echo(f"    Container name : {s.name}")
        self.echo(f"    Image          : {s.image}")
        self.echo(f"    Data dir       : {s.data_dir}")
        self.echo(f"    URL            : {s.url}")
        self.echo("")
        self.echo("NOTE:")
        self.echo(f" - Make sure DNS or /etc/hosts maps '{s.host}' to this host's IP.")
        self.echo(f" - This is plain HTTP on the container side; port {s.port} is mapped directly.")
        self.echo(" - For TLS, front this with a reverse proxy or configure REGISTRY_HTTP_TLS_* env vars.")
