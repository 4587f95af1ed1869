"""
Mapping of image references to local directory names and registry targets.

Download and push both recompute these names, so the functions must stay
pure: the same reference always yields the same path and target.
"""
from pathlib import Path
from typing import Union

from ..REGISTRY.image_reference import ImageReference

SAFE_CHAR = "_"
_UNSAFE = ("/", ":", "@")

ImageLike = Union[ImageReference, str]


def _as_reference(ref: ImageLike) -> ImageReference:
    if isinstance(ref, ImageReference):
        return ref
    return ImageReference.parse(ref)


def local_name(ref: ImageLike) -> str:
    """
    Filesystem-safe directory name for an image.

    A leading default registry host is dropped and path, tag and digest
    separators are replaced, e.g. ``docker.io/acme/foo:1.0`` -> ``acme_foo_1.0``.
    Nothing is added: ``busybox:1.36`` -> ``busybox_1.36``.
    """
    name = _as_reference(ref).stripped_name
    for char in _UNSAFE:
        name = name.replace(char, SAFE_CHAR)
    return name


def to_local_path(ref: ImageLike, base_dir: Union[str, Path]) -> Path:
    """Directory under ``base_dir`` holding the downloaded copy of ``ref``."""
    return Path(base_dir) / local_name(ref)


def normalize_registry_url(registry_url: str) -> str:
    """Strips a URL scheme and trailing slashes from a registry address."""
    url = registry_url.strip()
    if "://" in url:
        url = url.split("://", 1)[1]
    return url.rstrip("/")


def to_remote_reference(ref: ImageLike, registry_url: str) -> str:
    """
    Reference of ``ref`` inside the private registry at ``registry_url``.

    The result is not validated; a malformed registry address surfaces as a
    transfer failure.
    """
    return f"{normalize_registry_url(registry_url)}/{_as_reference(ref).stripped_name}"
