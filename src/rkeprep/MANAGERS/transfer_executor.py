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
Sequential image transfer batches between a registry and the local store.
"""
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

import click

from ..exceptions import PerImageTransferError, ValidationError
from ..MODELS.credentials import Credentials
from ..MODELS.manifest import ImageManifest
from ..MODELS.transfer import TransferDirection, TransferResult
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.image_store import LocalImageStore
from ..RUNNERS.skopeo import SkopeoEngine, temporary_authfile
from ..UTILS.naming import to_remote_reference

_LOGGER = logging.getLogger(__name__)


class TransferExecutor:
    """
    Runs a pull or push batch over a manifest, one image at a time.

    A failing image is counted and reported but never stops the batch.
    """

    def __init__(self,
                 engine: SkopeoEngine,
                 store: LocalImageStore,
                 arch: str = "amd64",
                 echo: Callable[[str], None] = click.echo):
        """
        Args:
            engine: Transfer engine performing each copy.
            store: Local image store the batch reads from or writes to.
            arch: Architecture forced on every copy.
            echo: Output function for progress lines.
        """
        self.engine = engine
        self.store = store
        self.arch = arch
        self.echo = echo

    def execute(self,
                manifest: ImageManifest,
                direction: TransferDirection,
                registry_url: Optional[str] = None,
                credentials: Optional[Credentials] = None) -> TransferResult:
        """
        Transfers every image in manifest order.

        Args:
            manifest: Images to transfer.
            direction: PULL into the local store or PUSH to ``registry_url``.
            registry_url: Destination registry, required for PUSH.
            credentials: Destination registry credentials, only used for PUSH.
                They reach skopeo through a temporary auth file removed when
                the batch ends.

        Returns:
            TransferResult: Aggregate counts for the batch.
        """
        direction = TransferDirection(direction)
        if direction is TransferDirection.PUSH and not registry_url:
            raise ValidationError("A registry URL is required to push images")

        if direction is TransferDirection.PULL:
            self.store.create()
            credentials = None

        with temporary_authfile(registry_url or "", credentials) as authfile:
            return self._run(manifest, direction, registry_url, authfile)

    def _run(self,
             manifest: ImageManifest,
             direction: TransferDirection,
             registry_url: Optional[str],
             authfile: Optional[Path]) -> TransferResult:
        result = TransferResult()
        total = len(manifest)
        for position, image in enumerate(manifest.images, start=1):
            prefix = f"[{position}/{total}]"
            try:
                ref = ImageReference.parse(image)
                if direction is TransferDirection.PULL:
                    self._pull(ref, prefix)
                else:
                    self._push(ref, prefix, registry_url, authfile)
            except (PerImageTransferError, ValueError) as e:
                result.record_failure()
                _LOGGER.warning("Transfer failed: %s", e)
                continue
            result.record_success()
        return result

    def _pull(self, ref: ImageReference, prefix: str) -> None:
        entry = self.store.entry_for(ref)
        self.echo(f"{prefix} Downloading: {ref.full_name}")
        if self.engine.copy(ref.transport, entry.transport, self.arch) != 0:
            self.echo(f"  ✗ Failed to download: {ref.full_name}")
            self._discard(ref, entry.local_directory_path)
            raise PerImageTransferError(ref.full_name, "download failed")
        try:
            self.store.record(ref)
        except OSError as e:
            _LOGGER.warning("Could not update image index for %s: %s", ref.full_name, e)
        self.echo(f"  ✓ Successfully downloaded to: {entry.local_directory_path}")

    def _discard(self, ref: ImageReference, path: Path) -> None:
        # A failed copy can leave a partial directory behind
        shutil.rmtree(path, ignore_errors=True)
        try:
            self.store.forget(ref)
        except OSError as e:
            _LOGGER.warning("Could not update image index for %s: %s", ref.full_name, e)

    def _push(self,
              ref: ImageReference,
              prefix: str,
              registry_url: str,
              authfile: Optional[Path]) -> None:
        entry = self.store.entry_for(ref)
        if not entry.exists:
            self.echo(f"{prefix} Skipping (not downloaded): {ref.full_name}")
            raise PerImageTransferError(ref.full_name, "not downloaded")
        if not self.store.verify(ref):
            recorded = self.store.recorded_reference(ref)
            self.echo(f"{prefix} Skipping (directory holds {recorded}): {ref.full_name}")
            raise PerImageTransferError(ref.full_name, f"directory holds {recorded}")

        target = to_remote_reference(ref, registry_url)
        self.echo(f"{prefix} Pushing: {ref.full_name}")
        self.echo(f"  Source: {entry.local_directory_path}")
        self.echo(f"  Target: {target}")
        if self.engine.copy(entry.transport, f"docker://{target}", self.arch, authfile) != 0:
            self.echo("  ✗ Failed to push")
            raise PerImageTransferError(ref.full_name, "push failed")
        self.echo("  ✓ Successfully pushed")
