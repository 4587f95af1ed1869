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
Local image store management.
Tracks downloaded image directories and the manifest snapshot they came from.
"""

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import yaml

from ..exceptions import ValidationError
from ..MODELS.manifest import ImageManifest, LocalImageEntry
from ..UTILS.naming import ImageLike, local_name, to_local_path
from .image_reference import ImageReference

_LOGGER = logging.getLogger(__name__)

INDEX_FILE = "index.json"
MANIFEST_FILE = "manifest.yaml"


@contextmanager
def atomic_write(path: Path, mode: str = "w") -> Iterator[Any]:
    """
    Writes to a temporary file next to ``path`` and moves it into place.

    The file ends up with mode 0644, not the owner-only mode of mkstemp.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, mode) as f:
            yield f
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)


def save_manifest(manifest: ImageManifest, path: Union[str, Path]) -> Path:
    """Writes a manifest snapshot as YAML."""
    path = Path(path)
    with atomic_write(path) as f:
        yaml.safe_dump(manifest.model_dump(), f, sort_keys=False)
    _LOGGER.debug("Wrote manifest snapshot %s", path)
    return path


def load_manifest(path: Union[str, Path]) -> ImageManifest:
    """
    Reads a manifest snapshot written by save_manifest.

    Raises:
        ValidationError: If the snapshot cannot be read or is malformed
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return ImageManifest.model_validate(data)
    except (OSError, yaml.YAMLError, ValueError) as e:
        raise ValidationError(f"Manifest snapshot {path} is invalid: {e}") from e


class LocalImageStore:
    """
    Manages the download directory.

    Each image lives in its own directory named by the naming transform. An
    index maps those names back to the references they were downloaded
    from, so a directory left over from another release can be told apart
    from a current one.
    """

    def __init__(self, base_dir: Union[str, Path]):
        """
        Initialize the store.

        Args:
            base_dir: Directory holding downloaded images
        """
        self.base_dir = Path(base_dir)
        self.index_file = self.base_dir / INDEX_FILE
        self.manifest_file = self.base_dir / MANIFEST_FILE
        self._index = self._load_index()

    def _load_index(self) -> Dict[str, Any]:
        """Load the store index from disk."""
        if self.index_file.exists():
            try:
                with open(self.index_file, "r") as f:
                    index = json.load(f)
                if isinstance(index.get("images"), dict):
                    return index
            except (json.JSONDecodeError, IOError, AttributeError) as e:
                _LOGGER.warning("Ignoring unreadable index %s: %s", self.index_file, e)
        return {"images": {}}

    def _save_index(self) -> None:
        """Save the store index to disk."""
        with atomic_write(self.index_file) as f:
            json.dump(self._index, f, indent=2)

    def create(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def entry_for(self, ref: ImageLike) -> LocalImageEntry:
        """Local entry for an image, whether or not it was downloaded."""
        if not isinstance(ref, ImageReference):
            ref = ImageReference.parse(ref)
        return LocalImageEntry(
            image_reference=ref,
            local_directory_path=to_local_path(ref, self.base_dir),
        )

    def exists(self, ref: ImageLike) -> bool:
        return self.entry_for(ref).exists

    def recorded_reference(self, ref: ImageLike) -> Optional[str]:
        """Reference recorded in the index for the directory of ``ref``."""
        info = self._index["images"].get(local_name(ref))
        return info.get("reference") if info else None

    def verify(self, ref: ImageLike) -> bool:
        """
        Checks that the directory for ``ref`` holds ``ref`` and not another image.

        Directories without an index record are trusted by name.
        """
        if not isinstance(ref, ImageReference):
            ref = ImageReference.parse(ref)
        recorded = self.recorded_reference(ref)
        return recorded is None or recorded == ref.full_name

    def record(self, ref: ImageLike) -> None:
        """Records a successful download of ``ref``."""
        if not isinstance(ref, ImageReference):
            ref = ImageReference.parse(ref)
        self._index["images"][local_name(ref)] = {
            "reference": ref.full_name,
            "downloaded_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        self._save_index()

    def forget(self, ref: ImageLike) -> None:
        """Drops the index record for the directory of ``ref``, if any."""
        if self._index["images"].pop(local_name(ref), None) is not None:
            self._save_index()

    def save_manifest(self, manifest: ImageManifest) -> Path:
        """Persist the manifest snapshot used by later pushes."""
        return save_manifest(manifest, self.manifest_file)

    def load_manifest(self) -> Optional[ImageManifest]:
        """
        Load the manifest snapshot, if one was saved.

        Raises:
            ValidationError: If the snapshot exists but cannot be read
        """
        if not self.manifest_file.exists():
            return None
        return load_manifest(self.manifest_file)
