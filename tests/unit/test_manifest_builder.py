"""
Unit tests for manifest discovery.
"""
import pytest

from rkeprep.exceptions import DiscoveryError, ManifestFetchError
from rkeprep.MANAGERS.manifest_builder import ManifestBuilder, parse_image_list
from rkeprep.MODELS.manifest import ImageManifest

RKE2_VERSION = "v1.34.1+rke2r1"
CNI_VERSION = "v1.7.1-build20250611"
RKE2_IMAGES = [
    "docker.io/rancher/hardened-etcd:v3.5.21-k3s1-build20250612",
    "docker.io/rancher/rke2-runtime:v1.34.1-rke2r1",
    "docker.io/rancher/mirrored-pause:3.6",
]


def test_build_manifest(settings, release_client):
    manifest = ManifestBuilder(settings, client=release_client).build_manifest()
    assert manifest.rke2_version == RKE2_VERSION
    assert manifest.cni_version == CNI_VERSION
    assert manifest.images == RKE2_IMAGES + [
        f"docker.io/rancher/hardened-cni-plugins:{CNI_VERSION}"
    ]
    assert manifest.cni_image.endswith(CNI_VERSION)


def test_images_url_uses_version_and_arch(settings, release_client):
    ManifestBuilder(settings, client=release_client).build_manifest()
    assert release_client.fetched_urls == [
        "https://github.com/rancher/rke2/releases/download/"
        f"{RKE2_VERSION}/rke2-images-all.linux-amd64.txt"
    ]


def test_blank_lines_skipped_duplicates_kept(settings, make_client):
    client = make_client(images=["a/b:1", "", "  ", "a/b:1", "c/d:2"])
    manifest = ManifestBuilder(settings, client=client).build_manifest()
    assert manifest.images[:3] == ["a/b:1", "a/b:1", "c/d:2"]
    assert len(manifest) == 4


def test_missing_primary_version(settings, make_client):
    client = make_client(versions={"rke2": None, "cni-plugins": CNI_VERSION})
    with pytest.raises(DiscoveryError) as err:
        ManifestBuilder(settings, client=client).build_manifest()
    assert err.value.source == "rke2"
    assert client.fetched_urls == []


def test_missing_plugins_version(settings, make_client):
    client = make_client(versions={"rke2": RKE2_VERSION})
    with pytest.raises(DiscoveryError) as err:
        ManifestBuilder(settings, client=client).build_manifest()
    assert err.value.source == "cni-plugins"


def test_fetch_failure(settings, make_client):
    with pytest.raises(ManifestFetchError):
        ManifestBuilder(settings, client=make_client(fetch_error=True)).build_manifest()


def test_parse_image_list():
    assert parse_image_list("a:1\r\n\n b:2 \n") == ["a:1", "b:2"]


def test_find_collisions():
    manifest = ImageManifest(
        rke2_version="v1",
        cni_version="v2",
        images=["docker.io/a/b_c:1", "docker.io/a_b/c:1", "docker.io/a/b_c:1"],
    )
    assert manifest.find_collisions() == {
        "a_b_c_1": ["docker.io/a/b_c:1", "docker.io/a_b/c:1"]
    }
