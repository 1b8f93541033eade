"""Security scan of the declared resources with the guardrail policy pack."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from . import stack
from .errors import ScanFailedError, StackError
from .settings import Settings

logger = logging.getLogger(__name__)

# Current CLIs list "- [mandatory]  policy  (type: name)" under "Policies:";
# older ones add the pack name and version before the policy
VIOLATION_LINE = re.compile(
    r"\[(?P<level>mandatory|advisory)\]\s+"
    r"(?:(?P<pack>\S+ v\S+)\s{2,})?"
    r"(?P<policy>\S+)\s+\((?P<resource>.+)\)\s*$"
)


@dataclass(frozen=True)
class Violation:
    level: str
    policy: str
    resource: str
    pack: str = ""


@dataclass
class ScanResult:
    report_path: Path
    violations: list[Violation] = field(default_factory=list)

    @property
    def mandatory(self) -> list[Violation]:
        return [v for v in self.violations if v.level == "mandatory"]

    @property
    def advisory(self) -> list[Violation]:
        return [v for v in self.violations if v.level == "advisory"]

    @property
    def passed(self) -> bool:
        return not self.mandatory


def parse_violations(lines: Iterable[str]) -> list[Violation]:
    """Extract policy violations from engine output."""
    violations = []
    for line in lines:
        match = VIOLATION_LINE.search(line)
        if match:
            violations.append(Violation(**{k: (v or "").strip() for k, v in match.groupdict().items()}))
    return violations


def report_path(settings: Settings, when: datetime) -> Path:
    return Path(settings.reports_dir) / f"scan-{settings.stack_name}-{when:%Y%m%d-%H%M%S}.txt"


def write_report(
    settings: Settings,
    lines: list[str],
    violations: list[Violation],
    when: datetime,
) -> Path:
    """Write the captured scan output with a summary header."""
    path = report_path(settings, when)
    path.parent.mkdir(parents=True, exist_ok=True)

    mandatory = sum(1 for v in violations if v.level == "mandatory")
    advisory = len(violations) - mandatory
    header = [
        "Security scan report",
        f"Stack:       {settings.stack_name}",
        f"Generated:   {when.isoformat(timespec='seconds')}",
        f"Policy pack: {settings.policy_pack_dir}",
        f"Violations:  {mandatory} mandatory, {advisory} advisory",
        "=" * 72,
    ]
    path.write_text("\n".join(header + lines) + "\n", encoding="utf-8")
    logger.info("Scan report written to %s", path)
    return path


def scan(settings: Settings, on_output: Callable[[str], object] | None = None) -> ScanResult:
    """Preview the stack under the policy pack and record the findings.

    A preview that fails because of mandatory violations yields a failed
    result; any other failure raises.

    Raises:
        ScanFailedError: If the preview failed for another reason
    """
    lines: list[str] = []

    def collect(text: str) -> None:
        lines.extend(text.rstrip("\n").splitlines())
        if on_output is not None:
            on_output(text)

    started = datetime.now()
    failure: StackError | None = None
    try:
        stack.preview(settings, policy_packs=[settings.policy_pack_dir], on_output=collect)
    except StackError as e:
        failure = e

    violations = parse_violations(lines)
    path = write_report(settings, lines, violations, started)
    result = ScanResult(report_path=path, violations=violations)

    if failure is not None and result.passed:
        raise ScanFailedError(f"Scan preview failed: {failure.message} (output in {path})") from failure
    return result
