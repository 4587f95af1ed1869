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
Resolution of destination registry credentials.
"""
import base64
import binascii
import logging
from pathlib import Path
from typing import Callable, Optional, Union

import click
from pydantic import SecretStr

from ..exceptions import CredentialFileError, ValidationError
from ..MODELS.credentials import Credentials

_LOGGER = logging.getLogger(__name__)


def read_password_file(path: Union[str, Path]) -> str:
    """
    Decodes a base64-encoded password file.

    The encoding is not encryption: the decoded value is as sensitive as a
    plaintext password.

    Raises:
        CredentialFileError: If the file is missing or not valid base64 text.
    """
    path = Path(path)
    if not path.is_file():
        raise CredentialFileError(f"Password file not found: {path}")
    try:
        encoded = "".join(path.read_text().split())
        secret = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise CredentialFileError(f"Password file {path} is not valid base64 text") from e
    except OSError as e:
        raise CredentialFileError(f"Cannot read password file {path}: {e}") from e
    secret = secret.rstrip("\r\n")
    if not secret:
        raise CredentialFileError(f"Password file {path} is empty")
    return secret


class CredentialResolver:
    """
    Determines push credentials from exactly one source: none, a password file
    or an interactive prompt.
    """

    def __init__(self, prompt: Callable[..., str] = click.prompt):
        """
        Args:
            prompt: Prompt function with the ``click.prompt`` signature.
        """
        self.prompt = prompt

    def resolve(self,
                no_auth: bool = False,
                password_file: Optional[Union[str, Path]] = None,
                username: Optional[str] = None) -> Optional[Credentials]:
        """
        Resolves the credentials for a push.

        Args:
            no_auth: The registry needs no authentication; other inputs are ignored.
            password_file: Base64-encoded password file. The username is still prompted.
            username: Username to use instead of prompting for it.

        Returns:
            Credentials, or None when authentication is disabled.
        """
        if no_auth:
            _LOGGER.debug("Registry authentication disabled")
            return None

        secret = read_password_file(password_file) if password_file else None

        if not username:
            username = self.prompt("Registry username").strip()
        if not username:
            raise ValidationError("A registry username is required")

        if secret is None:
            secret = self.prompt("Registry password", hide_input=True)

        _LOGGER.debug(
            "Resolved credentials for %s from %s",
            username,
            "password file" if password_file else "prompt",
        )
        return Credentials(username=username, secret=SecretStr(secret))
