"""Subprocess execution service for Conplicity."""

import os
import subprocess
from typing import Dict, List, Optional

from conplicity.errors import CommandFailedError, CommandTimeoutError, ConnectivityError


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None, subprocess_module=subprocess):
        self.logger = logger
        self.default_timeout = default_timeout
        self.subprocess = subprocess_module

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        merge_stderr: bool = False,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        child_env = None
        if env:
            child_env = dict(os.environ)
            child_env.update(env)

        if merge_stderr:
            streams = {"stdout": self.subprocess.PIPE, "stderr": self.subprocess.STDOUT}
        else:
            streams = {"capture_output": capture_output}

        try:
            result = self.subprocess.run(
                cmd,
                text=True,
                timeout=effective_timeout,
                env=child_env,
                **streams,
            )
        except FileNotFoundError as exc:
            raise ConnectivityError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except self.subprocess.TimeoutExpired as exc:
            raise CommandTimeoutError(
                f"Command timed out after {effective_timeout}s: {cmd_str}"
            ) from exc
        except OSError as exc:
            raise ConnectivityError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise CommandFailedError(message, result.returncode, stderr)

        self.logger.warning(message)
        return result
