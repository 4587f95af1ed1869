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
Exceptions raised by rkeprep.
"""

from typing import Iterable, Optional

__all__ = [
    "PrepException",
    "DiscoveryError",
    "ManifestFetchError",
    "DependencyMissingError",
    "ValidationError",
    "CredentialFileError",
    "PerImageTransferError",
    "ConfigWriteError",
    "CommandError",
]


class PrepException(Exception):
    """Generic base exception used for this library."""


class DiscoveryError(PrepException):
    """Raised when the latest release of a source cannot be determined."""

    def __init__(self, source: str, detail: Optional[str] = None) -> None:
        message = f"Could not determine latest {source} version"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.source = source
        self.detail = detail


class ManifestFetchError(PrepException):
    """Raised when the image list asset for a release cannot be downloaded."""

    def __init__(self, url: str, detail: Optional[str] = None) -> None:
        message = f"Failed to download images list from {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.url = url
        self.detail = detail


class DependencyMissingError(PrepException):
    """Raised when a required external tool is not available."""

    def __init__(self, tools: Iterable[str], detail: Optional[str] = None) -> None:
        self.tools = list(tools)
        message = f"Required dependencies not available: {', '.join(self.tools)}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ValidationError(PrepException):
    """Raised when command line input or configuration is invalid."""


class CredentialFileError(PrepException):
    """Raised when a password file is missing or cannot be decoded."""


class PerImageTransferError(PrepException):
    """Raised for a single failed image copy; never escapes a batch."""

    def __init__(self, image: str, reason: str) -> None:
        super().__init__(f"{image}: {reason}")
        self.image = image
        self.reason = reason


class ConfigWriteError(PrepException):
    """Raised when the registry mirror configuration cannot be written."""


class CommandError(PrepException):
    """Raised when an external command outside a transfer batch fails."""
