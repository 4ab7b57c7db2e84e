"""Subprocess execution service for Orbit RaaS."""

import asyncio
import os
import subprocess
from typing import Dict, List, Optional

from orbitraas.errors import CommandError


class CommandRunner:
    """Runs named external commands with consistent error handling.

    No retries happen here; the first failure is reported to the caller.
    """

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        name: str,
        cmd: List[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        check: bool = True,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing [%s]: %s (cwd=%s)", name, cmd_str, cwd or ".")
        if env:
            self.logger.debug("Environment overrides for [%s]: %s", name, ", ".join(sorted(env)))

        effective_timeout = timeout if timeout is not None else self.default_timeout
        process_env = None
        if env:
            process_env = os.environ.copy()
            process_env.update(env)

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                env=process_env,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
            )
        except FileNotFoundError as exc:
            raise CommandError(
                f"[{name}] Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(
                f"[{name}] Command timed out after {effective_timeout}s: {cmd_str}"
            ) from exc
        except OSError as exc:
            raise CommandError(f"[{name}] Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("[%s] output: %s", name, result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"[{name}] Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise CommandError(message)

        self.logger.warning(message)
        return result

    async def run_async(self, name: str, cmd: List[str], **kwargs) -> subprocess.CompletedProcess:
        """Runs the command in a worker thread so the event loop keeps serving."""
        return await asyncio.to_thread(self.run, name, cmd, **kwargs)
