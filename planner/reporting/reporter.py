"""Run report generation.

Collects the units of a finished scheduler run and writes them as a JSON or
YAML report with per-unit timing, outcome and the summary of outcomes.
"""

from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any

import yaml

from planner.execution.errors import UnsatisfiableDependencyError
from planner.execution.unit import (
    OUTCOME_DEPENDENCY_NOT_RUN,
    OUTCOME_FAILED,
    OUTCOME_LAUNCH_FAILED,
    OUTCOME_PASSED,
    TestUnit,
)

# Every outcome a finished unit can carry
VALID_OUTCOMES = (
    OUTCOME_PASSED,
    OUTCOME_FAILED,
    OUTCOME_LAUNCH_FAILED,
    OUTCOME_DEPENDENCY_NOT_RUN,
)


class RunReport:
    """Collects units and excluded test cases and generates reports."""

    def __init__(self) -> None:
        self.units: list[TestUnit] = []
        self.excluded: list[UnsatisfiableDependencyError] = []

    def add_units(self, units: list[TestUnit]) -> None:
        self.units.extend(units)

    def add_excluded(self, errors: list[UnsatisfiableDependencyError]) -> None:
        self.excluded.extend(errors)

    @property
    def successful(self) -> bool:
        """True when nothing was excluded and every unit passed."""
        return not self.excluded and all(
            u.outcome == OUTCOME_PASSED for u in self.units
        )

    def generate_report(self) -> dict[str, Any]:
        """Generate the report as a plain dict.

        Returns:
            Dict with generated_at, summary, units and excluded keys.
        """
        return {
            "generated_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "summary": self._compute_summary(),
            "units": [self._format_unit(u) for u in self.units],
            "excluded": [
                {
                    "id": e.unit_id,
                    "depends_on": e.depends_on,
                    "reason": "invalid_dependency",
                }
                for e in self.excluded
            ],
        }

    def write_report(self, path: Path) -> None:
        """Write the report as JSON.

        Args:
            path: Output file path. Parent directories are created.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.generate_report(), f, indent=2)
            f.write("\n")

    def write_yaml(self, path: Path) -> None:
        """Write the report as YAML.

        Args:
            path: Output file path. Parent directories are created.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.generate_report(), f, sort_keys=False)

    def write(self, path: Path) -> None:
        """Write YAML for .yaml/.yml paths, JSON otherwise."""
        if path.suffix in (".yaml", ".yml"):
            self.write_yaml(path)
        else:
            self.write_report(path)

    def _compute_summary(self) -> dict[str, Any]:
        summary: dict[str, Any] = {"total": len(self.units)}
        for outcome in VALID_OUTCOMES:
            summary[outcome] = sum(1 for u in self.units if u.outcome == outcome)
        summary["excluded"] = len(self.excluded)
        return summary

    def _format_unit(self, unit: TestUnit) -> dict[str, Any]:
        duration = None
        if unit.started_at is not None and unit.finished_at is not None:
            duration = round(unit.finished_at - unit.started_at, 3)
        entry: dict[str, Any] = {
            "id": unit.id,
            "status": unit.status.value,
            "outcome": unit.outcome,
            "exit_code": unit.exit_code,
            "depends_on": unit.depends_on or None,
            "delay_minutes": unit.delay_minutes,
            "started_at": _timestamp(unit.started_at),
            "finished_at": _timestamp(unit.finished_at),
            "duration": duration,
            "command": unit.process.command_line(),
        }
        if unit.source:
            entry["source"] = unit.source
        if unit.error:
            entry["error"] = unit.error
        return entry


def _timestamp(value: float | None) -> str | None:
    if value is None:
        return None
    return datetime.datetime.fromtimestamp(value, datetime.timezone.utc).isoformat()
