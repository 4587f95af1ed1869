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
Shared fixtures: fake release discovery and a fake transfer engine.
"""
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from rkeprep.exceptions import DiscoveryError, ManifestFetchError
from rkeprep.MODELS.release import ReleaseDescriptor
from rkeprep.MODELS.settings import PrepSettings

RKE2_VERSION = "v1.34.1+rke2r1"
CNI_VERSION = "v1.7.1-build20250611"

RKE2_IMAGES = [
    "docker.io/rancher/hardened-etcd:v3.5.21-k3s1-build20250612",
    "docker.io/rancher/rke2-runtime:v1.34.1-rke2r1",
    "docker.io/rancher/mirrored-pause:3.6",
]


class FakeReleaseClient:
    """Release client answering from in-memory data."""

    def __init__(self,
                 versions: Optional[Dict[str, Optional[str]]] = None,
                 images: Optional[List[str]] = None,
                 fetch_error: bool = False):
        self.versions = versions if versions is not None else {
            "rke2": RKE2_VERSION,
            "cni-plugins": CNI_VERSION,
        }
        self.images = RKE2_IMAGES if images is None else images
        self.fetch_error = fetch_error
        self.fetched_urls: List[str] = []

    def latest_release(self, source_name: str, api_url: str) -> ReleaseDescriptor:
        version = self.versions.get(source_name)
        if not version:
            raise DiscoveryError(source_name, "response has no tag_name")
        return ReleaseDescriptor(source_name=source_name, version_tag=version)

    def fetch_text(self, url: str) -> str:
        self.fetched_urls.append(url)
        if self.fetch_error:
            raise ManifestFetchError(url, "HTTP 404")
        return "\n".join(self.images) + "\n"


class FakeEngine:
    """
    Transfer engine that writes destinations like skopeo's dir transport.

    The destination directory and its version file are created before the
    copy can fail, so a failed pull leaves a partial directory behind.
    """

    def __init__(self, fail: Optional[Set[str]] = None):
        self.fail = fail or set()
        self.calls: List[tuple] = []

    def copy(self, source: str, destination: str, arch: str, authfile=None) -> int:
        self.calls.append((source, destination, arch, authfile))
        path = None
        if destination.startswith("dir:"):
            path = Path(destination[len("dir:"):])
            path.mkdir(parents=True, exist_ok=True)
            (path / "version").write_text("Directory Transport Version: 1.1\n")
        if any(name in source or name in destination for name in self.fail):
            return 1
        if path is not None:
            (path / "manifest.json").write_text("{}")
        return 0


class FakeDependencies:
    """Dependency manager that reports everything as installed."""

    def __init__(self):
        self.ensured: List[List[str]] = []

    def ensure(self, tools) -> None:
        self.ensured.append(list(tools))


@pytest.fixture
def settings(tmp_path):
    return PrepSettings(
        download_dir=tmp_path / "downloads",
        registry_config_path=tmp_path / "registries.yaml",
    )


@pytest.fixture
def release_client():
    return FakeReleaseClient()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def make_client():
    return FakeReleaseClient


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def dependencies():
    return FakeDependencies()
