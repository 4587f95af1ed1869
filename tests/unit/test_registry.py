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
Unit tests for image references and the naming transform.
"""
from pathlib import Path

import pytest
from rkeprep.REGISTRY.image_reference import ImageReference
from rkeprep.UTILS.naming import local_name, to_local_path, to_remote_reference


class TestImageReference:
    """Tests for ImageReference parsing."""

    def test_parse_simple_name(self):
        """Test parsing a simple image name."""
        ref = ImageReference.parse("nginx")
        assert ref.registry == "docker.io"
        assert ref.repository == "library/nginx"
        assert ref.tag == "latest"

    def test_parse_rke2_image(self):
        """Test parsing a fully qualified image from an RKE2 image list."""
        ref = ImageReference.parse("docker.io/rancher/rke2-runtime:v1.34.1-rke2r1")
        assert ref.registry == "docker.io"
        assert ref.repository == "rancher/rke2-runtime"
        assert ref.tag == "v1.34.1-rke2r1"

    def test_parse_user_image(self):
        """Test parsing user/image format."""
        ref = ImageReference.parse("rancher/hardened-cni-plugins:v1.7.1")
        assert ref.registry == "docker.io"
        assert ref.repository == "rancher/hardened-cni-plugins"

    def test_parse_numeric_tag(self):
        """A purely numeric tag is not mistaken for a registry port."""
        ref = ImageReference.parse("docker.io/rancher/mirrored-pause:3")
        assert ref.repository == "rancher/mirrored-pause"
        assert ref.tag == "3"

    def test_parse_registry_with_port(self):
        """Test parsing a registry with a port and no tag."""
        ref = ImageReference.parse("localhost:5000/myimage")
        assert ref.registry == "localhost:5000"
        assert ref.repository == "myimage"
        assert ref.tag == "latest"

    def test_parse_nested_repository(self):
        ref = ImageReference.parse("registry.k8s.io/sig-storage/csi-attacher:v4.6.1")
        assert ref.registry == "registry.k8s.io"
        assert ref.repository == "sig-storage/csi-attacher"

    def test_parse_with_digest(self):
        """Test parsing image with digest."""
        ref = ImageReference.parse("nginx@sha256:abc123")
        assert ref.digest == "sha256:abc123"
        assert ref.tag is None

    @pytest.mark.parametrize("value", ["", "   ", "docker.io//foo:1", "foo:", "foo bar:1"])
    def test_invalid_reference_raises(self, value):
        with pytest.raises(ValueError):
            ImageReference.parse(value)

    def test_equality_on_canonical_form(self):
        assert ImageReference.parse("rancher/foo:1") == ImageReference.parse("docker.io/rancher/foo:1")
        assert ImageReference.parse("rancher/foo:1") != ImageReference.parse("rancher/foo:2")
        assert len({ImageReference.parse("rancher/foo:1"), ImageReference.parse("docker.io/rancher/foo:1")}) == 1

    def test_immutable(self):
        ref = ImageReference.parse("rancher/foo:1")
        with pytest.raises(AttributeError):
            ref.tag = "2"

    def test_full_name_and_transport(self):
        ref = ImageReference.parse("rancher/foo:1.0")
        assert ref.full_name == "docker.io/rancher/foo:1.0"
        assert ref.transport == "docker://docker.io/rancher/foo:1.0"
        assert str(ref) == "docker.io/rancher/foo:1.0"


class TestNaming:
    """Tests for local directory names and registry targets."""

    def test_default_registry_example(self, tmp_path):
        ref = ImageReference.parse("docker.io/acme/foo:1.0")
        assert to_local_path(ref, tmp_path) == tmp_path / "acme_foo_1.0"
        assert to_remote_reference(ref, "reg.example:5000") == "reg.example:5000/acme/foo:1.0"

    def test_accepts_strings(self, tmp_path):
        assert to_local_path("docker.io/acme/foo:1.0", tmp_path) == tmp_path / "acme_foo_1.0"
        assert to_remote_reference("docker.io/acme/foo:1.0", "reg.example:5000") == \
            "reg.example:5000/acme/foo:1.0"

    def test_default_prefix_stripped_consistently(self):
        """Both transforms drop the default host the same way."""
        ref = ImageReference.parse("docker.io/rancher/hardened-etcd:v3.5.21-k3s1")
        remote = to_remote_reference(ref, "reg.example:5000")
        assert "docker.io" not in local_name(ref)
        assert "docker.io" not in remote
        assert remote.split("/", 1)[1].replace("/", "_").replace(":", "_") == local_name(ref)

    def test_single_name_gets_no_namespace(self, tmp_path):
        ref = ImageReference.parse("busybox:1.36")
        assert ref.full_name == "docker.io/library/busybox:1.36"
        assert ref.stripped_name == "busybox:1.36"
        assert to_local_path(ref, tmp_path) == tmp_path / "busybox_1.36"
        assert to_remote_reference(ref, "reg.example:5000") == "reg.example:5000/busybox:1.36"

    def test_untagged_gets_no_default_tag(self, tmp_path):
        assert to_local_path("rancher/foo", tmp_path) == tmp_path / "rancher_foo"
        assert to_remote_reference("rancher/foo", "reg.example:5000") == "reg.example:5000/rancher/foo"
        assert to_remote_reference("docker.io/rancher/foo", "reg.example:5000") == \
            "reg.example:5000/rancher/foo"

    def test_constructed_reference_uses_short_name(self):
        ref = ImageReference(registry="docker.io", repository="acme/foo", tag="1.0")
        assert ref.stripped_name == "acme/foo:1.0"
        assert local_name(ref) == "acme_foo_1.0"

    def test_other_registry_keeps_host(self, tmp_path):
        ref = ImageReference.parse("registry.k8s.io/pause:3.9")
        assert local_name(ref) == "registry.k8s.io_pause_3.9"
        assert to_remote_reference(ref, "reg.example:5000") == "reg.example:5000/registry.k8s.io/pause:3.9"

    def test_digest_is_path_safe(self):
        name = local_name("docker.io/rancher/foo@sha256:abc")
        assert "/" not in name and ":" not in name and "@" not in name

    def test_local_path_is_stable(self, tmp_path):
        ref = "docker.io/rancher/rke2-runtime:v1.34.1-rke2r1"
        assert to_local_path(ref, tmp_path) == to_local_path(ref, tmp_path)
        assert to_local_path(ref, str(tmp_path)) == to_local_path(ref, Path(tmp_path))

    @pytest.mark.parametrize("registry", [
        "reg.example:5000/",
        "https://reg.example:5000",
        " reg.example:5000 ",
    ])
    def test_registry_url_normalized(self, registry):
        assert to_remote_reference("acme/foo:1.0", registry) == "reg.example:5000/acme/foo:1.0"
