"""Pulumi Automation API driver for the storage-lab stack."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence

from pulumi import automation as auto

from .errors import classify_stack_error
from .settings import Settings

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], Any]

# Pseudo-resources the engine records alongside the managed ones
INTERNAL_TYPES = ("pulumi:pulumi:Stack",)
PROVIDER_PREFIX = "pulumi:providers:"


@contextmanager
def engine_errors(stack_name: str) -> Iterator[None]:
    """Translate automation errors into the orchestration taxonomy."""
    try:
        yield
    except auto.CommandError as e:
        raise classify_stack_error(e, stack_name) from e


def _workspace_options(settings: Settings) -> auto.LocalWorkspaceOptions:
    return auto.LocalWorkspaceOptions(
        work_dir=str(settings.project_dir),
        env_vars=settings.pulumi_env(),
    )


def _ensure_backend(settings: Settings) -> None:
    state_dir = settings.state_dir
    if state_dir is not None:
        state_dir.mkdir(parents=True, exist_ok=True)


def select_stack(settings: Settings, configure: bool = True) -> auto.Stack:
    """Create or select the stack and point its provider at the emulator.

    Args:
        settings: Orchestration settings
        configure: Apply the emulator provider configuration

    Returns:
        The automation Stack
    """
    _ensure_backend(settings)
    with engine_errors(settings.stack_name):
        stack = auto.create_or_select_stack(
            stack_name=settings.stack_name,
            work_dir=str(settings.project_dir),
            opts=_workspace_options(settings),
        )
        if configure:
            for key, value in settings.stack_config().items():
                stack.set_config(key, auto.ConfigValue(value=value), path=True)
    logger.info("Using stack %s (backend %s)", settings.stack_name, settings.backend_url)
    return stack


def preview(
    settings: Settings,
    policy_packs: Sequence[Path | str] | None = None,
    on_output: OutputCallback | None = None,
) -> auto.PreviewResult:
    """Compute the plan without changing anything."""
    stack = select_stack(settings)
    kwargs: dict[str, Any] = {"on_output": on_output}
    if policy_packs:
        kwargs["policy_packs"] = [str(pack) for pack in policy_packs]
    with engine_errors(settings.stack_name):
        result = stack.preview(**kwargs)
    logger.info("Preview change summary: %s", result.change_summary)
    return result


def up(settings: Settings, on_output: OutputCallback | None = None) -> dict[str, Any]:
    """Apply the program and return the flat output map."""
    stack = select_stack(settings)
    with engine_errors(settings.stack_name):
        result = stack.up(on_output=on_output)
    logger.info("Update %s: %s", result.summary.result, result.summary.resource_changes)
    return {name: output.value for name, output in result.outputs.items()}


def destroy(
    settings: Settings,
    on_output: OutputCallback | None = None,
    remove: bool = False,
) -> None:
    """Destroy every managed resource, optionally removing the stack itself."""
    stack = select_stack(settings)
    with engine_errors(settings.stack_name):
        result = stack.destroy(on_output=on_output)
        logger.info("Destroy %s: %s", result.summary.result, result.summary.resource_changes)
        if remove:
            stack.workspace.remove_stack(settings.stack_name)
            logger.info("Removed stack %s", settings.stack_name)


def outputs(settings: Settings) -> dict[str, Any]:
    """Current stack outputs."""
    stack = select_stack(settings, configure=False)
    with engine_errors(settings.stack_name):
        return {name: output.value for name, output in stack.outputs().items()}


def export_state(settings: Settings) -> dict[str, Any]:
    """Raw checkpoint of the stack (the engine's state file)."""
    stack = select_stack(settings, configure=False)
    with engine_errors(settings.stack_name):
        deployment = stack.export_stack()
    return deployment.deployment or {}


def state_resources(state: dict[str, Any]) -> list[dict[str, Any]]:
    """Managed resources recorded in a state checkpoint."""
    resources = []
    for resource in state.get("resources") or []:
        resource_type = resource.get("type", "")
        if resource_type in INTERNAL_TYPES or resource_type.startswith(PROVIDER_PREFIX):
            continue
        resources.append({
            "type": resource_type,
            "urn": resource.get("urn", ""),
            "id": resource.get("id", ""),
        })
    return resources


def unlock(settings: Settings) -> list[Path]:
    """Force-unlock the stack.

    Cancels any in-flight update; for file backends also removes lock files
    left behind by an interrupted run.

    Returns:
        Lock files removed
    """
    stack = select_stack(settings, configure=False)
    try:
        stack.cancel()
        logger.info("Cancelled in-flight update for %s", settings.stack_name)
    except auto.CommandError as e:
        # File backends do not support cancel; their locks are plain files
        logger.info("Cancel not available for %s: %s", settings.stack_name, e.__class__.__name__)

    removed: list[Path] = []
    state_dir = settings.state_dir
    if state_dir is None:
        return removed

    lock_root = state_dir / ".pulumi" / "locks"
    patterns = (
        f"*/{settings.project_name}/{settings.stack_name}/*.json",
        f"{settings.stack_name}/*.json",
    )
    for pattern in patterns:
        for lock_file in sorted(lock_root.glob(pattern)):
            lock_file.unlink()
            logger.warning("Removed stale lock %s", lock_file)
            removed.append(lock_file)
    return removed


def clear_pending_operations(settings: Settings) -> int:
    """Drop pending operations an interrupted update left in the state.

    Returns:
        Number of pending operations removed
    """
    stack = select_stack(settings, configure=False)
    with engine_errors(settings.stack_name):
        deployment = stack.export_stack()
        checkpoint = deployment.deployment or {}
        pending = checkpoint.get("pending_operations") or []
        if not pending:
            return 0
        for operation in pending:
            resource = operation.get("resource", {})
            logger.warning("Dropping pending %s of %s", operation.get("type"), resource.get("urn"))
        checkpoint["pending_operations"] = []
        deployment.deployment = checkpoint
        stack.import_stack(deployment)
    return len(pending)
