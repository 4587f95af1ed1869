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
Image reference parsing and handling.
Parses image references like 'docker.io/rancher/hardened-etcd:v3.5.21-k3s1-build20250612'.
"""

from typing import Optional
from dataclasses import dataclass, field


@dataclass(frozen=True, eq=False)
class ImageReference:
    """
    Parsed container image reference.

    Examples:
        - nginx -> docker.io/library/nginx:latest
        - rancher/rke2-runtime:v1.34.1-rke2r1 -> docker.io/rancher/rke2-runtime:v1.34.1-rke2r1
        - registry.k8s.io/pause:3.9 -> registry.k8s.io/pause:3.9
        - localhost:5000/myimage@sha256:abc123 -> localhost:5000/myimage@sha256:abc123

    Two references are equal when their canonical ``full_name`` is equal.
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None
    # Reference exactly as written, before defaults were filled in
    given: Optional[str] = field(default=None, repr=False)

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'docker.io/rancher/foo:v1')

        Returns:
            Parsed ImageReference object.

        Raises:
            ValueError: If the reference is empty or has no repository.
        """
        reference = reference.strip() if reference else ""
        given = reference
        if not reference:
            raise ValueError("Empty image reference")
        if any(c.isspace() for c in reference):
            raise ValueError(f"Invalid image reference: {reference!r}")

        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)

        # A colon after the last slash separates the tag; any earlier colon
        # belongs to a registry port (e.g. localhost:5000/image).
        tag = None
        last_colon = reference.rfind(":")
        if last_colon > reference.rfind("/"):
            tag = reference[last_colon + 1 :]
            reference = reference[:last_colon]
            if not tag:
                raise ValueError(f"Empty tag in image reference: {reference!r}")

        parts = reference.split("/")
        if not all(parts):
            raise ValueError(f"Invalid image reference: {reference!r}")

        if len(parts) == 1:
            registry = cls.DEFAULT_REGISTRY
            repository = f"library/{parts[0]}"
        else:
            first_part = parts[0]
            if "." in first_part or ":" in first_part or first_part == "localhost":
                registry = first_part
                repository = "/".join(parts[1:])
            else:
                registry = cls.DEFAULT_REGISTRY
                repository = reference

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest, given=given)

    @property
    def path(self) -> str:
        """Repository path plus tag and digest, without the registry host."""
        name = self.repository
        if self.tag:
            name = f"{name}:{self.tag}"
        if self.digest:
            name = f"{name}@{self.digest}"
        return name

    @property
    def full_name(self) -> str:
        """Get the canonical image name with registry."""
        return f"{self.registry}/{self.path}"

    @property
    def short_name(self) -> str:
        """Get the image name without the registry when it is the default one."""
        if self.is_default_registry:
            return self.path
        return self.full_name

    @property
    def stripped_name(self) -> str:
        """
        Reference as written with only a leading default registry host removed.

        Unlike short_name, no 'library/' namespace or default tag is added,
        e.g. 'busybox:1.36' stays 'busybox:1.36'.
        """
        if self.given is None:
            return self.short_name
        prefix = f"{self.DEFAULT_REGISTRY}/"
        if self.given.startswith(prefix):
            return self.given[len(prefix):]
        return self.given

    @property
    def is_default_registry(self) -> bool:
        return self.registry == self.DEFAULT_REGISTRY

    @property
    def transport(self) -> str:
        """Reference in the form the transfer engine expects for a registry source."""
        return f"docker://{self.full_name}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageReference):
            return NotImplemented
        return self.full_name == other.full_name

    def __hash__(self) -> int:
        return hash(self.full_name)

    def __str__(self) -> str:
        return self.full_name

    def __repr__(self) -> str:
        return f"ImageReference({self.full_name})"
