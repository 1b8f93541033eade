"""External command execution."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Mapping, Sequence

from .errors import CommandFailedError

logger = logging.getLogger(__name__)


def run_command(
    args: Sequence[str],
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    hint: str | None = None,
) -> str:
    """Run an external command and return its combined output.

    Args:
        args: Command and arguments
        cwd: Working directory
        env: Full environment for the child (inherits ours when None)
        hint: Remediation hint attached to a failure

    Returns:
        Captured stdout followed by stderr

    Raises:
        CommandFailedError: On non-zero exit, or 127 if the executable is missing
    """
    logger.debug("Running %s (cwd=%s)", " ".join(args), cwd)
    try:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise CommandFailedError(
            args, 127, str(e), hint=hint or f"Install `{args[0]}` and make sure it is on PATH."
        ) from e

    output = (completed.stdout or "") + (completed.stderr or "")
    if completed.returncode != 0:
        logger.error("Command %s exited with %d", args[0], completed.returncode)
        raise CommandFailedError(args, completed.returncode, output, hint=hint)
    return output
