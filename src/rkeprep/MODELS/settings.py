"""
Runtime settings for discovery, transfer and the bootstrap registry.
"""
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError

ENV_PREFIX = "RKEPREP_"


class PrepSettings(BaseModel):
    """
    Settings shared by the prep, download and push commands.

    Every field can be overridden with an ``RKEPREP_<FIELD>`` environment
    variable or the same key in a ``.env`` file.
    """
    model_config = ConfigDict(frozen=True)

    rke2_release_api: str = "https://api.github.com/repos/rancher/rke2/releases/latest"
    rke2_download_url: str = "https://github.com/rancher/rke2/releases/download"
    images_file_template: str = "rke2-images-all.linux-{arch}.txt"
    cni_release_api: str = (
        "https://api.github.com/repos/rancher/image-build-cni-plugins/releases/latest"
    )
    cni_image: str = "docker.io/rancher/hardened-cni-plugins"
    arch: str = "amd64"

    download_dir: Path = Path("./downloads")
    registry_config_path: Path = Path("registries.yaml")

    http_timeout: float = Field(default=30.0, gt=0)
    http_retries: int = Field(default=3, ge=1)
    # 0 disables the per-image timeout.
    transfer_timeout: float = Field(default=1800.0, ge=0)

    skopeo_binary: str = "skopeo"
    github_token: Optional[str] = Field(default=None, repr=False)

    def images_url(self, version: str) -> str:
        """Download URL of the image list asset for an RKE2 release."""
        filename = self.images_file_template.format(arch=self.arch)
        return f"{self.rke2_download_url.rstrip('/')}/{version}/{filename}"

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = ".env",
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "PrepSettings":
        """
        Builds settings from a ``.env`` file, the environment and explicit overrides.

        Later sources win: ``.env`` < environment < ``overrides``.

        Raises:
            ValidationError: If a value cannot be converted.
        """
        return _load(cls, env_file, environ, overrides)


class RegistrySettings(BaseModel):
    """
    Settings for the single-container bootstrap registry.
    """
    model_config = ConfigDict(frozen=True)

    image: str = "registry:2"
    name: str = "altregistry"
    host: str = "altregistry.dev.kube"
    port: int = Field(default=8443, gt=0, lt=65536)
    data_dir: Path = Path("/opt/altregistry/data")
    docker_binary: str = "docker"

    @property
    def url(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = ".env",
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "RegistrySettings":
        return _load(cls, env_file, environ, overrides, prefix=f"{ENV_PREFIX}REGISTRY_")


def _collect(values: Mapping[str, Optional[str]], prefix: str, fields) -> Dict[str, Any]:
    collected = {}
    for key, value in values.items():
        if value is None or not key.upper().startswith(prefix):
            continue
        name = key[len(prefix):].lower()
        if name in fields:
            collected[name] = value
    return collected


def _load(cls, env_file, environ, overrides, prefix: str = ENV_PREFIX):
    fields = cls.model_fields
    data: Dict[str, Any] = {}
    if env_file and os.path.isfile(env_file):
        data.update(_collect(dotenv_values(env_file), prefix, fields))
    data.update(_collect(os.environ if environ is None else environ, prefix, fields))
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return cls(**data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid settings: {e}") from e
