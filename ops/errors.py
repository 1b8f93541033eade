"""Error taxonomy for the orchestration commands.

Every error carries an operator-facing remediation hint; the CLI prints it
and turns the error into a non-zero exit code.
"""

from __future__ import annotations

import re
from typing import Sequence

from pulumi import automation as auto


class LabError(Exception):
    """Base class for orchestration failures."""

    default_hint: str | None = None

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint or self.default_hint

    def __str__(self) -> str:
        return self.message


class ConfigurationError(LabError):
    """Invalid or missing settings."""


class EmulatorError(LabError):
    """The emulator container could not be managed."""

    default_hint = "Check that Docker is running and `docker compose` is installed."


class EmulatorUnavailableError(EmulatorError):
    """The emulator does not answer or is missing required services."""

    default_hint = (
        "Start the emulator with `python -m ops emulator up` and inspect it with "
        "`python -m ops emulator logs` (or `docker compose logs localstack`)."
    )


class CommandFailedError(LabError):
    """An external command exited with a non-zero status."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        output: str = "",
        hint: str | None = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command `{' '.join(self.command)}` failed with exit code {returncode}",
            hint=hint,
        )


class StackError(LabError):
    """The provisioning engine reported a failure."""

    default_hint = "Re-run with `python -m ops preview` to inspect the plan, then retry."


class StateLockedError(StackError):
    """Another update holds the stack lock."""

    def __init__(self, stack_name: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Stack {stack_name} is locked by another update",
            hint=(
                "Wait for the other update to finish and retry. If no update is running "
                "(e.g. a previous run was interrupted), force-unlock with `python -m ops unlock` "
                "and then clear leftovers with `python -m ops repair`."
            ),
        )
        self.stack_name = stack_name


class BucketConflictError(StackError):
    """A bucket with the requested name exists outside the stack state."""

    def __init__(self, bucket_name: str | None, message: str | None = None) -> None:
        name = bucket_name or "<bucket>"
        super().__init__(
            message or f"Bucket {name} already exists outside the stack state",
            hint=(
                f"Remove the pre-existing bucket with `python -m ops remove-bucket {name}` "
                f"or import it with `pulumi import aws:s3/bucket:Bucket <resource-name> {name}`, "
                "then retry the deploy."
            ),
        )
        self.bucket_name = bucket_name


class CloudError(LabError):
    """A cloud API call through the emulator failed."""

    default_hint = "Check `python -m ops emulator health`; the emulator may have been restarted without persistence."


class ScanFailedError(LabError):
    """The security scan could not run to completion."""

    default_hint = "Run `python -m ops preview` first; the scan needs a valid program."


_BUCKET_CONFLICT = re.compile(r"BucketAlready(?:OwnedByYou|Exists)")
_BUCKET_NAME = re.compile(r"S3 Bucket \(([a-z0-9][a-z0-9.-]{1,61}[a-z0-9])\)")


def classify_stack_error(error: Exception, stack_name: str) -> LabError:
    """Map a Pulumi automation error to the orchestration taxonomy.

    Args:
        error: Exception raised by pulumi.automation
        stack_name: Name of the stack being operated on

    Returns:
        The matching LabError (never raises)
    """
    if isinstance(error, LabError):
        return error

    text = str(error)
    if isinstance(error, auto.ConcurrentUpdateError) or "the stack is currently locked" in text:
        return StateLockedError(stack_name)
    if _BUCKET_CONFLICT.search(text):
        match = _BUCKET_NAME.search(text)
        bucket_name = match.group(1) if match else None
        return BucketConflictError(bucket_name)
    if isinstance(error, auto.StackNotFoundError):
        return StackError(
            f"Stack {stack_name} does not exist",
            hint="Run `python -m ops deploy` to create it.",
        )
    return StackError(f"Stack {stack_name} operation failed: {_last_line(text)}")


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    return lines[-1] if lines else "unknown error"
