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
Image transfers with skopeo.
"""
import base64
import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from ..MODELS.credentials import Credentials
from ..UTILS.naming import normalize_registry_url
from .process_runner import ProcessRunner

_LOGGER = logging.getLogger(__name__)


@contextmanager
def temporary_authfile(
    registry_url: str, credentials: Optional[Credentials]
) -> Iterator[Optional[Path]]:
    """
    Writes credentials to a private containers-auth.json for the duration of a batch.

    The secret never appears on a command line. The file is readable only by
    the current user and is removed on exit, whether or not the batch failed.
    Yields None when there are no credentials.
    """
    if credentials is None:
        yield None
        return

    token = base64.b64encode(
        f"{credentials.username}:{credentials.secret.get_secret_value()}".encode()
    ).decode()
    auth = {"auths": {normalize_registry_url(registry_url): {"auth": token}}}

    tmp_dir = tempfile.mkdtemp(prefix="rkeprep-auth-")
    try:
        path = Path(tmp_dir) / "auth.json"
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(auth, f)
        yield path
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)


class SkopeoEngine:
    """
    Copies images between registries and local directories with ``skopeo copy``.
    """

    def __init__(self,
                 binary: str = "skopeo",
                 timeout: Optional[float] = None,
                 runner: Optional[ProcessRunner] = None):
        """
        Args:
            binary: skopeo executable name or path
            timeout: Seconds allowed per copy; None or 0 waits indefinitely
            runner: Process runner, replaceable in tests
        """
        self.binary = binary
        self.runner = runner or ProcessRunner(name="skopeo", timeout=timeout)

    def build_command(self,
                      source: str,
                      destination: str,
                      arch: str,
                      authfile: Optional[Path] = None) -> List[str]:
        command = [self.binary, "copy", "--override-arch", arch]
        if authfile is not None:
            command += ["--dest-authfile", str(authfile)]
        command += [source, destination]
        return command

    def copy(self,
             source: str,
             destination: str,
             arch: str,
             authfile: Optional[Path] = None) -> int:
        """
        Copies one image.

        Args:
            source: Source in skopeo transport form (``docker://...`` or ``dir:...``)
            destination: Destination in skopeo transport form
            arch: Architecture to select regardless of the host's
            authfile: Credentials file for the destination registry

        Returns:
            The skopeo exit status; non-zero on any failure.
        """
        result = self.runner.run(self.build_command(source, destination, arch, authfile))
        return result.returncode
