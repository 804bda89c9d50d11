"""In-memory registry of test units keyed by test case identifier.

Holds units in insertion order and answers status-filtered queries. All
mutation happens from the scheduler's single control thread, so no locking
is done here.
"""

from __future__ import annotations

from planner.execution.errors import ConfigurationError, UnsatisfiableDependencyError
from planner.execution.unit import TestUnit, UnitStatus, check_dependency


class UnitRegistry:
    """Ordered collection of TestUnits with unique identifiers."""

    def __init__(self) -> None:
        self.units: dict[str, TestUnit] = {}

    def add(self, unit: TestUnit) -> None:
        """Register a unit.

        Args:
            unit: Fully constructed unit, normally in QUEUED status.

        Raises:
            ConfigurationError: If the dependency/delay pair is contradictory
                or a unit with the same id is already registered.
        """
        check_dependency(unit.id, unit.depends_on, unit.delay_minutes)
        if unit.id in self.units:
            raise ConfigurationError(f'Test "{unit.id}" is registered twice')
        self.units[unit.id] = unit

    def remove(self, unit_id: str) -> TestUnit | None:
        """Remove a unit no matter its status. Returns the removed unit."""
        return self.units.pop(unit_id, None)

    def get(self, unit_id: str) -> TestUnit:
        return self.units[unit_id]

    def by_status(self, status: UnitStatus) -> list[TestUnit]:
        """Get all units currently in the given status, in insertion order."""
        return [u for u in self.units.values() if u.status is status]

    def counts(self) -> dict[UnitStatus, int]:
        """Count units per status. Every status is present in the result."""
        result = {status: 0 for status in UnitStatus}
        for unit in self.units.values():
            result[unit.status] += 1
        return result

    def validate_dependencies(self) -> list[UnsatisfiableDependencyError]:
        """Remove units whose dependency is not registered.

        Repeats until nothing changes, so a unit depending on a removed unit
        is removed as well.

        Returns:
            One error per removed unit, in removal order.
        """
        errors: list[UnsatisfiableDependencyError] = []
        while True:
            invalid = [
                unit for unit in self.units.values()
                if unit.depends_on and unit.depends_on not in self.units
            ]
            if not invalid:
                return errors
            for unit in invalid:
                errors.append(UnsatisfiableDependencyError(unit.id, unit.depends_on))
                self.remove(unit.id)

    def promote_independent(self) -> list[TestUnit]:
        """Mark every queued unit without a delay as READY.

        Returns:
            The promoted units.
        """
        promoted = []
        for unit in self.by_status(UnitStatus.QUEUED):
            if not unit.delay_minutes:
                unit.status = UnitStatus.READY
                promoted.append(unit)
        return promoted

    def __len__(self) -> int:
        return len(self.units)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self.units
