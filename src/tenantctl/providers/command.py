"""Blocking invocation of external command-line tools."""

from __future__ import annotations

import shlex
import subprocess
from pathlib import Path
from typing import Mapping, Sequence

import structlog

from tenantctl.core.errors import ProviderError
from tenantctl.providers.base import CommandResult

logger = structlog.get_logger()


def run_command(
    cmd: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: int | None = None,
    input_text: str | None = None,
    check: bool = True,
) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Args:
        cmd: Command and arguments
        cwd: Working directory
        env: Full environment for the child process
        timeout: Seconds before the command is considered hung
        input_text: Text piped to stdin (e.g. a registry password)
        check: Raise ProviderError on a non-zero exit

    Returns:
        CommandResult with captured stdout/stderr
    """
    display = shlex.join(cmd)
    logger.debug("command_started", command=display, cwd=str(cwd) if cwd else None)

    try:
        proc = subprocess.run(
            list(cmd),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise ProviderError(
            f"Command not found: {cmd[0]}",
            {"command": display, "raw": str(e)},
        ) from e
    except subprocess.TimeoutExpired as e:
        raise ProviderError(
            f"Command timed out after {timeout}s: {display}",
            {"command": display, "raw": str(e)},
        ) from e

    result = CommandResult(
        command=display,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
    logger.debug("command_finished", command=display, returncode=result.returncode)

    if check and not result.ok:
        raise ProviderError(
            f"Command failed ({result.returncode}): {display}",
            {"command": display, "returncode": result.returncode, "raw": result.tail()},
        )
    return result
