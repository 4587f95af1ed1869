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
Generation of the RKE2 registry mirror configuration (registries.yaml).
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..exceptions import ConfigWriteError
from ..MODELS.credentials import Credentials
from ..UTILS.naming import normalize_registry_url
from .image_reference import ImageReference

_LOGGER = logging.getLogger(__name__)

PASSWORD_PLACEHOLDER = "<REPLACE_WITH_PASSWORD>"
WILDCARD_MIRROR = "*"


class RegistryConfigEmitter:
    """
    Builds and writes the mirror configuration copied to every RKE2 node.

    Pulls for the default registry and, as a fallback, for any registry are
    redirected to the private registry. The password is never written; the
    operator fills in the placeholder on the nodes.
    """

    def endpoint(self, registry_url: str) -> str:
        if "://" in registry_url:
            return registry_url.strip().rstrip("/")
        return f"https://{normalize_registry_url(registry_url)}"

    def build(self,
              registry_url: str,
              credentials: Optional[Credentials] = None) -> Dict[str, Any]:
        """
        Builds the configuration document.

        Args:
            registry_url: Address of the private registry.
            credentials: Push credentials; adds an auth block with the username only.

        Returns:
            The document as a dictionary ready for YAML serialization.
        """
        endpoint = self.endpoint(registry_url)
        document: Dict[str, Any] = {
            "mirrors": {
                ImageReference.DEFAULT_REGISTRY: {"endpoint": [endpoint]},
                WILDCARD_MIRROR: {"endpoint": [endpoint]},
            }
        }
        if credentials is not None:
            document["configs"] = {
                normalize_registry_url(registry_url): {
                    "auth": {
                        "username": credentials.username,
                        "password": PASSWORD_PLACEHOLDER,
                    }
                }
            }
        return document

    def render(self,
               registry_url: str,
               credentials: Optional[Credentials] = None) -> str:
        return yaml.safe_dump(
            self.build(registry_url, credentials),
            sort_keys=False,
            default_flow_style=False,
        )

    def emit(self,
             registry_url: str,
             credentials: Optional[Credentials] = None,
             path: Union[str, Path] = "registries.yaml") -> Path:
        """
        Writes the configuration document.

        Returns:
            Path of the written file.

        Raises:
            ConfigWriteError: If the file cannot be written.
        """
        path = Path(path)
        content = self.render(registry_url, credentials)
        try:
            path.write_text(content)
        except OSError as e:
            raise ConfigWriteError(f"Could not write {path}: {e}") from e
        _LOGGER.debug("Wrote registry mirror configuration to %s", path)
        return path
