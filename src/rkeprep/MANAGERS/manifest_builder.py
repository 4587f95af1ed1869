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
Builds the image manifest for the latest RKE2 and CNI plugins releases.
"""
import logging
from typing import List, Optional

from ..MODELS.manifest import ImageManifest
from ..MODELS.settings import PrepSettings
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.release_client import ReleaseClient

_LOGGER = logging.getLogger(__name__)

RKE2_SOURCE = "rke2"
CNI_SOURCE = "cni-plugins"


def parse_image_list(text: str) -> List[str]:
    """
    Parses a plaintext image list, one reference per line.

    Blank lines are skipped; duplicates and order are kept.
    """
    return [line.strip() for line in text.splitlines() if line.strip()]


class ManifestBuilder:
    """
    Resolves the latest releases and assembles the ordered image list.
    """

    def __init__(self, settings: PrepSettings, client: Optional[ReleaseClient] = None):
        """
        Args:
            settings: Discovery URLs, architecture and CNI image repository.
            client: Release client; one is built from ``settings`` if omitted.
        """
        self.settings = settings
        self.client = client or ReleaseClient(
            timeout=settings.http_timeout,
            retries=settings.http_retries,
            token=settings.github_token,
        )

    def build_manifest(self) -> ImageManifest:
        """
        Discovers both releases and returns the combined manifest.

        Raises:
            DiscoveryError: If either release has no resolvable version.
            ManifestFetchError: If the RKE2 image list cannot be downloaded.
        """
        rke2 = self.client.latest_release(RKE2_SOURCE, self.settings.rke2_release_api)
        _LOGGER.info("Latest stable RKE2 version: %s", rke2.version_tag)

        images_url = self.settings.images_url(rke2.version_tag)
        _LOGGER.info("Downloading %s images list from %s", self.settings.arch, images_url)
        images = parse_image_list(self.client.fetch_text(images_url))

        cni = self.client.latest_release(CNI_SOURCE, self.settings.cni_release_api)
        _LOGGER.info("Latest stable CNI plugins version: %s", cni.version_tag)

        # The CNI plugins image is multi-arch and never arch-suffixed.
        cni_image = ImageReference.parse(f"{self.settings.cni_image}:{cni.version_tag}")
        images.append(cni_image.full_name)

        manifest = ImageManifest(
            rke2_version=rke2.version_tag,
            cni_version=cni.version_tag,
            images=images,
        )
        for name, refs in manifest.find_collisions().items():
            _LOGGER.warning(
                "Images share the local directory %s: %s", name, ", ".join(refs)
            )
        return manifest
