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
Detection and installation of the external tools the commands rely on.
"""
import logging
import shutil
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

import click
from dotenv import dotenv_values

from ..exceptions import CommandError, DependencyMissingError
from ..RUNNERS.process_runner import ProcessRunner

_LOGGER = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")

DEBIAN_FAMILY = ("ubuntu", "debian")
RHEL_FAMILY = ("rhel", "centos", "fedora", "rocky", "almalinux")

DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
]


def read_os_release(path: Union[str, Path] = OS_RELEASE) -> Dict[str, str]:
    """Reads the key/value pairs of an os-release file."""
    path = Path(path)
    if not path.is_file():
        return {}
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


def os_family(os_id: str) -> Optional[str]:
    if os_id in DEBIAN_FAMILY:
        return "debian"
    if os_id in RHEL_FAMILY:
        return "rhel"
    return None


def _docker_apt_commands(os_release: Dict[str, str]) -> List[List[str]]:
    os_id = os_release.get("ID", "")
    codename = os_release.get("VERSION_CODENAME", "")
    repo = f"https://download.docker.com/linux/{os_id}"
    return [
        ["sudo", "apt-get", "update"],
        ["sudo", "apt-get", "install", "-y", "ca-certificates", "curl", "gnupg"],
        ["sudo", "install", "-m", "0755", "-d", "/etc/apt/keyrings"],
        ["sudo", "sh", "-c",
         f"curl -fsSL {repo}/gpg | gpg --dearmor --yes -o /etc/apt/keyrings/docker.gpg"],
        ["sudo", "chmod", "a+r", "/etc/apt/keyrings/docker.gpg"],
        ["sudo", "sh", "-c",
         f'echo "deb [arch=$(dpkg --print-architecture) '
         f'signed-by=/etc/apt/keyrings/docker.gpg] {repo} {codename} stable" '
         f"> /etc/apt/sources.list.d/docker.list"],
        ["sudo", "apt-get", "update"],
        ["sudo", "apt-get", "install", "-y", *DOCKER_PACKAGES],
    ]


def _docker_yum_commands() -> List[List[str]]:
    return [
        ["sudo", "yum", "install", "-y", "yum-utils"],
        ["sudo", "yum-config-manager", "--add-repo",
         "https://download.docker.com/linux/centos/docker-ce.repo"],
        ["sudo", "yum", "install", "-y", *DOCKER_PACKAGES],
        ["sudo", "systemctl", "start", "docker"],
        ["sudo", "systemctl", "enable", "docker"],
    ]


class DependencyManager:
    """
    Checks for required tools and offers to install missing ones with the
    system package manager.
    """

    def __init__(self,
                 confirm: Callable[[str], bool] = click.confirm,
                 runner: Optional[ProcessRunner] = None,
                 os_release_path: Union[str, Path] = OS_RELEASE,
                 which: Callable[[str], Optional[str]] = shutil.which,
                 echo: Callable[[str], None] = click.echo):
        self.confirm = confirm
        self.runner = runner or ProcessRunner(name="install")
        self.os_release_path = Path(os_release_path)
        self.which = which
        self.echo = echo

    def missing(self, tools: Iterable[str]) -> List[str]:
        """Tools that cannot be found on PATH."""
        return [tool for tool in tools if self.which(tool) is None]

    def ensure(self, tools: Iterable[str]) -> None:
        """
        Makes sure every tool is installed, installing missing ones with consent.

        Raises:
            DependencyMissingError: If a tool is still missing afterwards.
        """
        missing = self.missing(tools)
        if not missing:
            return

        self.echo(f"Missing dependencies detected: {', '.join(missing)}")
        if not self.confirm("Would you like to install missing dependencies now?"):
            raise DependencyMissingError(missing, "installation declined, install them manually")

        os_release = read_os_release(self.os_release_path)
        if not os_release:
            raise DependencyMissingError(missing, "cannot detect OS, install them manually")

        os_id = os_release.get("ID", "")
        family = os_family(os_id)
        if family is None:
            raise DependencyMissingError(missing, f"unsupported OS {os_id!r}, install them manually")

        self.echo("Installing dependencies...")
        for command in self.install_commands(family, missing, os_release):
            result = self.runner.run(command)
            if not result.ok:
                _LOGGER.warning("Install step failed (%d): %s", result.returncode, " ".join(command))

        still_missing = self.missing(missing)
        if still_missing:
            raise DependencyMissingError(still_missing, "installation failed")
        self.echo("Dependencies installed successfully!")

    def install_commands(self,
                         family: str,
                         tools: List[str],
                         os_release: Dict[str, str]) -> List[List[str]]:
        """Package manager commands installing ``tools`` on an OS family."""
        commands: List[List[str]] = []
        packages = [tool for tool in tools if tool != "docker"]
        if family == "debian":
            if packages:
                commands.append(["sudo", "apt-get", "update"])
                commands.append(["sudo", "apt-get", "install", "-y", *packages])
            if "docker" in tools:
                commands.extend(_docker_apt_commands(os_release))
        elif family == "rhel":
            if packages:
                # dnf first; yum only where dnf is unavailable.
                manager = "dnf" if self.which("dnf") else "yum"
                commands.append(["sudo", manager, "install", "-y", *packages])
            if "docker" in tools:
                commands.extend(_docker_yum_commands())
        else:
            raise CommandError(f"No install commands for OS family {family!r}")
        return commands
