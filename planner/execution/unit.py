"""TestUnit data model: one schedulable test-case run and its status."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from planner.execution.errors import ConfigurationError

if TYPE_CHECKING:
    from planner.execution.process import ProcessHandle


class UnitStatus(str, enum.Enum):
    """Lifecycle of a unit. Transitions only move forward."""

    QUEUED = "queued"
    READY = "ready"
    RUNNING = "running"
    FINISHED = "finished"


# Outcomes recorded for finished units
OUTCOME_PASSED = "passed"
OUTCOME_FAILED = "failed"
OUTCOME_LAUNCH_FAILED = "launch_failed"
OUTCOME_DEPENDENCY_NOT_RUN = "dependency_not_run"

# Outcomes of units that never produced a completion dependents can wait on
NOT_RUN_OUTCOMES = frozenset({OUTCOME_LAUNCH_FAILED, OUTCOME_DEPENDENCY_NOT_RUN})


def check_dependency(unit_id: str, depends_on: str, delay_minutes: float) -> None:
    """Verify that a dependency and its delay are declared together.

    Args:
        unit_id: Test case identifier, used in the error message.
        depends_on: Identifier of the test case to run after, or "".
        delay_minutes: Minutes to wait after the dependency has finished.

    Raises:
        ConfigurationError: If only one of the two is given, or the delay
            is negative or not a finite number.
    """
    if not math.isfinite(delay_minutes):
        raise ConfigurationError(
            f'Test "{unit_id}" has delay {delay_minutes} minutes, '
            f"which is not a finite number"
        )
    if delay_minutes < 0:
        raise ConfigurationError(
            f'Test "{unit_id}" has negative delay {delay_minutes} minutes'
        )
    if depends_on and delay_minutes == 0:
        raise ConfigurationError(
            f'Test "{unit_id}" should run after "{depends_on}", '
            f"but no delay was defined"
        )
    if delay_minutes != 0 and not depends_on:
        raise ConfigurationError(
            f'Test "{unit_id}" has defined delay {delay_minutes:g} minutes, '
            f"but does not have defined the test to run after"
        )


@dataclass
class TestUnit:
    """A single test case, its process handle and its scheduling state."""

    id: str
    process: ProcessHandle
    depends_on: str = ""
    delay_minutes: float = 0
    status: UnitStatus = UnitStatus.QUEUED
    started_at: float | None = None
    finished_at: float | None = None
    outcome: str | None = None
    exit_code: int | None = None
    error: str = ""
    # Source file the unit was discovered in, if any
    source: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        check_dependency(self.id, self.depends_on, self.delay_minutes)

    @property
    def delay_seconds(self) -> float:
        return self.delay_minutes * 60

    def finish(self, now: float, outcome: str, exit_code: int | None = None) -> None:
        """Move the unit to FINISHED, recording when and how it ended.

        Raises:
            RuntimeError: If the unit is already finished.
        """
        if self.status is UnitStatus.FINISHED:
            raise RuntimeError(f'Unit "{self.id}" is already finished')
        self.status = UnitStatus.FINISHED
        self.finished_at = now
        self.outcome = outcome
        self.exit_code = exit_code
