"""Polling scheduler that runs test units as concurrent processes.

A single control thread repeatedly:

1. starts every READY unit and polls every RUNNING unit, forwarding its
   incremental output and finishing it once the process has ended;
2. promotes QUEUED units whose dependency finished at least the configured
   delay ago;
3. reports progress;
4. stops once no unit is READY, QUEUED or RUNNING;
5. otherwise sleeps one tick interval.

Processes run in parallel with each other and with the loop; the loop only
polls and never waits on any single process.
"""

from __future__ import annotations

import time
from typing import Callable

from planner.execution.errors import LaunchError, UnsatisfiableDependencyError
from planner.execution.registry import UnitRegistry
from planner.execution.unit import (
    NOT_RUN_OUTCOMES,
    OUTCOME_DEPENDENCY_NOT_RUN,
    OUTCOME_FAILED,
    OUTCOME_LAUNCH_FAILED,
    OUTCOME_PASSED,
    TestUnit,
    UnitStatus,
)
from planner.reporting import events
from planner.reporting.events import Event, EventSink

DEFAULT_TICK_INTERVAL = 1.0


class Scheduler:
    """Owns a unit registry and drives it to completion.

    Args:
        sink: Receives every progress event and output chunk.
        tick_interval: Seconds to sleep between ticks.
        clock: Returns the current time in seconds.
        sleep: Blocks for the given number of seconds.
    """

    def __init__(
        self,
        sink: EventSink = events.discard,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = UnitRegistry()
        self.sink = sink
        self.tick_interval = tick_interval
        self.clock = clock
        self.sleep = sleep
        self.excluded: list[UnsatisfiableDependencyError] = []
        self.ticks = 0
        self._prepared = False

    def _emit(self, kind: str, unit_id: str = "", **data: object) -> None:
        self.sink(Event(kind, unit_id, data))

    def submit(self, unit: TestUnit) -> None:
        """Register a unit before the loop starts.

        Raises:
            ConfigurationError: If the unit's dependency declaration is
                contradictory.
            RuntimeError: If the scheduler was already prepared.
        """
        if self._prepared:
            raise RuntimeError("Cannot submit units after the scheduler was prepared")
        self.registry.add(unit)

    def prepare(self) -> None:
        """Run the pre-flight dependency check and the initial promotion.

        Units with an unknown dependency are removed and reported; units
        without a dependency become READY. Calling it again does nothing.
        """
        if self._prepared:
            return
        self._prepared = True

        self.excluded = self.registry.validate_dependencies()
        for error in self.excluded:
            self._emit(
                events.INVALID_DEPENDENCY, error.unit_id, depends_on=error.depends_on
            )

        self.registry.promote_independent()
        for unit in self.registry.units.values():
            if unit.status is UnitStatus.READY:
                self._emit(events.UNIT_PREPARED, unit.id)
            else:
                self._emit(
                    events.UNIT_QUEUED,
                    unit.id,
                    depends_on=unit.depends_on,
                    delay_minutes=unit.delay_minutes,
                )

    def tick(self) -> bool:
        """Run one iteration of the loop, without the trailing sleep.

        Returns:
            True if work remains, False once every unit is finished.
        """
        self.prepare()
        self.ticks += 1

        # Snapshot both lists so units started now are polled next tick
        ready = self.registry.by_status(UnitStatus.READY)
        running = self.registry.by_status(UnitStatus.RUNNING)
        for unit in ready:
            self._launch(unit)
        for unit in running:
            self._poll(unit)

        self._promote_queued()

        counts = self.registry.counts()
        self._emit(
            events.TICK,
            running=counts[UnitStatus.READY] + counts[UnitStatus.RUNNING],
            queued=counts[UnitStatus.QUEUED],
            finished=counts[UnitStatus.FINISHED],
        )

        return bool(
            counts[UnitStatus.READY]
            or counts[UnitStatus.QUEUED]
            or counts[UnitStatus.RUNNING]
        )

    def run(self) -> list[TestUnit]:
        """Run the loop until no unit is left to start, wait for or poll.

        Returns:
            All admitted units, in registration order.
        """
        while self.tick():
            self.sleep(self.tick_interval)
        self._emit(events.NO_TASKS_LEFT)
        return list(self.registry.units.values())

    def _launch(self, unit: TestUnit) -> None:
        command = unit.process.command_line()
        self._emit(events.UNIT_STARTED, unit.id, command=command)
        try:
            unit.process.start()
        except LaunchError as e:
            unit.error = str(e)
            unit.finish(self.clock(), OUTCOME_LAUNCH_FAILED)
            self._emit(events.UNIT_LAUNCH_FAILED, unit.id, error=str(e), command=command)
            return
        unit.status = UnitStatus.RUNNING
        unit.started_at = self.clock()

    def _poll(self, unit: TestUnit) -> None:
        # Liveness is checked before draining so the final read is complete
        alive = unit.process.is_running()

        out = unit.process.read_incremental_output()
        if out:
            self._emit(events.UNIT_OUTPUT, unit.id, stream="stdout", chunk=out)
        err = unit.process.read_incremental_error_output()
        if err:
            self._emit(events.UNIT_OUTPUT, unit.id, stream="stderr", chunk=err)

        if alive:
            return
        exit_code = unit.process.exit_code
        outcome = OUTCOME_PASSED if exit_code == 0 else OUTCOME_FAILED
        unit.finish(self.clock(), outcome, exit_code)
        self._emit(events.UNIT_FINISHED, unit.id, outcome=outcome, exit_code=exit_code)

    def _promote_queued(self) -> None:
        finished = {u.id: u for u in self.registry.by_status(UnitStatus.FINISHED)}
        now = self.clock()
        for unit in self.registry.by_status(UnitStatus.QUEUED):
            dependency = finished.get(unit.depends_on)
            if dependency is None:
                continue
            if dependency.outcome in NOT_RUN_OUTCOMES:
                unit.finish(now, OUTCOME_DEPENDENCY_NOT_RUN)
                self._emit(
                    events.UNIT_DEPENDENCY_NOT_RUN, unit.id, depends_on=unit.depends_on
                )
                continue
            assert dependency.finished_at is not None
            if now - dependency.finished_at >= unit.delay_seconds:
                unit.status = UnitStatus.READY
                self._emit(events.UNIT_UNQUEUED, unit.id)
