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
Client for the release-discovery API and release asset downloads.
Implements the small part of the GitHub releases API the tool needs.
"""

import json
import logging
import socket
from http.client import HTTPException
from typing import Any, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .. import __version__
from ..exceptions import DiscoveryError, ManifestFetchError
from ..MODELS.release import ReleaseDescriptor

_LOGGER = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"


def _is_transient(error: BaseException) -> bool:
    """Network errors and server side failures are worth another attempt."""
    if isinstance(error, HTTPError):
        return error.code >= 500 or error.code == 429
    return isinstance(
        error, (URLError, HTTPException, socket.timeout, TimeoutError, ConnectionError)
    )


class ReleaseClient:
    """
    Fetches "latest release" descriptors and plaintext release assets.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        retries: int = 3,
        token: Optional[str] = None,
        backoff: float = 0.5,
    ):
        """
        Initialize the release client.

        Args:
            timeout: Seconds to wait for each HTTP request
            retries: Attempts per request for transient failures
            token: Optional API token sent as a bearer token
            backoff: Base seconds of the exponential wait between attempts
        """
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self._token = token

    def _request(self, url: str, accept: Optional[str] = None) -> bytes:
        """Make a request, retrying transient failures."""

        @retry(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=self.backoff, max=8),
            reraise=True,
        )
        def _do_request() -> bytes:
            request = Request(url)
            request.add_header("User-Agent", f"rkeprep/{__version__}")
            if accept:
                request.add_header("Accept", accept)
            if self._token:
                request.add_header("Authorization", f"Bearer {self._token}")
            _LOGGER.debug("GET %s", url)
            with urlopen(request, timeout=self.timeout) as response:
                return response.read()

        return _do_request()

    def latest_release(self, source_name: str, api_url: str) -> ReleaseDescriptor:
        """
        Get the latest stable release of a project.

        Args:
            source_name: Name used in diagnostics (e.g. 'rke2')
            api_url: URL of the project's latest release endpoint

        Returns:
            ReleaseDescriptor with the release's tag name

        Raises:
            DiscoveryError: If the API is unreachable or returns no tag name
        """
        try:
            content = self._request(api_url, accept=GITHUB_ACCEPT)
        except HTTPError as e:
            raise DiscoveryError(source_name, f"HTTP {e.code} from {api_url}") from e
        except (URLError, OSError, HTTPException) as e:
            raise DiscoveryError(source_name, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise DiscoveryError(source_name, f"invalid URL {api_url!r}: {e}") from e

        try:
            data: Dict[str, Any] = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DiscoveryError(source_name, "response is not valid JSON") from e

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not isinstance(tag, str) or not tag.strip():
            raise DiscoveryError(source_name, "response has no tag_name")

        release = ReleaseDescriptor(source_name=source_name, version_tag=tag.strip())
        _LOGGER.debug("Latest %s release: %s", source_name, release.version_tag)
        return release

    def fetch_text(self, url: str) -> str:
        """
        Download a plaintext release asset.

        Raises:
            ManifestFetchError: If the download fails
        """
        try:
            content = self._request(url)
        except HTTPError as e:
            raise ManifestFetchError(url, f"HTTP {e.code}") from e
        except (URLError, OSError, HTTPException) as e:
            raise ManifestFetchError(url, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ManifestFetchError(url, f"invalid URL: {e}") from e
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestFetchError(url, "asset is not UTF-8 text") from e
