"""
Models for the ordered list of images processed by a run.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..REGISTRY.image_reference import ImageReference
from ..UTILS.naming import local_name


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ImageManifest(BaseModel):
    """
    Ordered image references for one RKE2 release and one CNI plugins release.

    Order is insertion order: the RKE2 image list first, the synthesized CNI
    plugins image last. Duplicates are kept and processed as many times as
    they appear.
    """
    rke2_version: str
    cni_version: str
    images: List[str] = []
    created_at: str = Field(default_factory=_utcnow)

    def __len__(self) -> int:
        return len(self.images)

    @property
    def rke2_images(self) -> List[str]:
        return self.images[:-1]

    @property
    def cni_image(self) -> Optional[str]:
        return self.images[-1] if self.images else None

    def find_collisions(self) -> Dict[str, List[str]]:
        """
        Finds distinct references that map to the same local directory name.

        Returns:
            Mapping of local directory name to the distinct references sharing it.
            Unparsable entries are left to fail on their own during transfer.
        """
        seen: Dict[str, List[str]] = {}
        for image in self.images:
            try:
                ref = ImageReference.parse(image)
            except ValueError:
                continue
            names = seen.setdefault(local_name(ref), [])
            if ref.full_name not in names:
                names.append(ref.full_name)
        return {name: refs for name, refs in seen.items() if len(refs) > 1}


@dataclass(frozen=True)
class LocalImageEntry:
    """
    An image reference and the directory holding its downloaded copy.
    """

    image_reference: ImageReference
    local_directory_path: Path

    @property
    def exists(self) -> bool:
        return self.local_directory_path.is_dir()

    @property
    def transport(self) -> str:
        """Directory reference in the form the transfer engine expects."""
        return f"dir:{self.local_directory_path}"
