"""LocalStack container lifecycle and health checks."""

from __future__ import annotations

import logging
import time
from typing import Iterable

import requests

from .errors import CommandFailedError, EmulatorError, EmulatorUnavailableError
from .process import run_command
from .settings import Settings

logger = logging.getLogger(__name__)

HEALTH_PATH = "/_localstack/health"
READY_STATES = {"running", "available"}


def _compose(settings: Settings, *args: str) -> str:
    command = ["docker", "compose", "-f", str(settings.compose_file), *args]
    try:
        return run_command(command, cwd=settings.project_dir)
    except CommandFailedError as e:
        raise EmulatorError(f"{e.message}\n{e.output.strip()}".strip()) from e


def start(settings: Settings) -> None:
    """Start the emulator container in the background."""
    logger.info("Starting emulator from %s", settings.compose_file)
    _compose(settings, "up", "-d")


def stop(settings: Settings, volumes: bool = False) -> None:
    """Stop the emulator container, optionally dropping its volumes."""
    logger.info("Stopping emulator%s", " and removing volumes" if volumes else "")
    args = ["down", "-v"] if volumes else ["down"]
    _compose(settings, *args)


def logs(settings: Settings, tail: int = 100) -> str:
    """Return the last lines of the emulator container log."""
    return _compose(settings, "logs", "--no-color", "--tail", str(tail))


def health(settings: Settings, timeout: float = 5.0) -> dict[str, str]:
    """Fetch the emulator's per-service state map.

    Raises:
        EmulatorUnavailableError: If the endpoint does not answer with 200
    """
    url = f"{settings.endpoint}{HEALTH_PATH}"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise EmulatorUnavailableError(f"Emulator not reachable at {settings.endpoint}: {e}") from e

    if response.status_code != 200:
        raise EmulatorUnavailableError(
            f"Emulator health check returned HTTP {response.status_code} at {url}"
        )
    try:
        payload = response.json()
    except ValueError as e:
        raise EmulatorUnavailableError(f"Emulator health check at {url} did not return JSON") from e
    return dict(payload.get("services", {}))


def missing_services(states: dict[str, str], required: Iterable[str]) -> list[str]:
    """Required services that are absent or not ready."""
    return [name for name in required if states.get(name) not in READY_STATES]


def wait_until_ready(
    settings: Settings,
    timeout: float | None = None,
    interval: float = 2.0,
) -> dict[str, str]:
    """Poll the health endpoint until every required service is ready.

    Args:
        settings: Orchestration settings
        timeout: Seconds to wait (defaults to settings.health_timeout)
        interval: Seconds between polls

    Returns:
        The last service state map

    Raises:
        EmulatorUnavailableError: If the services are not ready in time
    """
    timeout = settings.health_timeout if timeout is None else timeout
    deadline = time.monotonic() + timeout
    last_error: EmulatorUnavailableError | None = None
    missing: list[str] = list(settings.required_services)

    while True:
        try:
            states = health(settings)
            missing = missing_services(states, settings.required_services)
            if not missing:
                logger.info("Emulator ready at %s", settings.endpoint)
                return states
            logger.info("Waiting for emulator services: %s", ", ".join(missing))
            last_error = None
        except EmulatorUnavailableError as e:
            logger.info("Waiting for emulator: %s", e)
            last_error = e

        if time.monotonic() >= deadline:
            break
        time.sleep(interval)

    if last_error is not None:
        raise EmulatorUnavailableError(
            f"Emulator did not become reachable within {timeout:g}s: {last_error.message}"
        )
    raise EmulatorUnavailableError(
        f"Emulator services not ready within {timeout:g}s: {', '.join(missing)}"
    )
