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
Execution of external tools with optional output capture and timeouts.
"""
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

_LOGGER = logging.getLogger(__name__)

# Exit status reported when a command cannot be started or times out,
# matching the shell conventions for "not found" and "timed out".
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class CommandResult:
    """Outcome of a finished command."""
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """
    Runs external commands synchronously, one at a time.
    """
    def __init__(self, name: str = "rkeprep", timeout: Optional[float] = None):
        """
        Initializes the process runner.

        Args:
            name (str): Identifier used in log messages.
            timeout (Optional[float]): Default seconds before a command is killed.
                None or 0 waits indefinitely.
        """
        self.name = name
        self.timeout = timeout or None

    def run(self,
            command: List[str],
            env: Optional[Dict[str, str]] = None,
            capture: bool = False,
            timeout: Optional[float] = None) -> CommandResult:
        """
        Runs a command and waits for it to finish.

        Args:
            command (List[str]): Command and arguments to execute.
            env (Optional[Dict[str, str]]): Extra environment variables for the child only.
            capture (bool): Capture stdout/stderr instead of inheriting the terminal.
            timeout (Optional[float]): Overrides the default timeout for this call.

        Returns:
            CommandResult: The exit status and any captured output.
        """
        timeout = timeout if timeout is not None else self.timeout
        child_env = {**os.environ, **env} if env else None
        _LOGGER.debug("[%s] Running command: %s", self.name, shlex.join(command))

        try:
            completed = subprocess.run(
                command,
                env=child_env,
                capture_output=capture,
                text=True,
                timeout=timeout or None,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False,
            )
        except FileNotFoundError:
            _LOGGER.error("[%s] Command not found: %s", self.name, command[0])
            return CommandResult(command, EXIT_NOT_FOUND, stderr=f"{command[0]}: not found")
        except subprocess.TimeoutExpired:
            _LOGGER.error("[%s] Command timed out after %ss: %s", self.name, timeout, command[0])
            return CommandResult(command, EXIT_TIMEOUT, stderr=f"timed out after {timeout}s")

        result = CommandResult(
            command,
            completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if not result.ok:
            _LOGGER.debug("[%s] Command exited with %d", self.name, result.returncode)
        return result
