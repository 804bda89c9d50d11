"""Error kinds raised by the scheduling core."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """A unit's dependency and delay contradict each other."""


class UnsatisfiableDependencyError(Exception):
    """A unit depends on a test case that is not registered."""

    def __init__(self, unit_id: str, depends_on: str) -> None:
        super().__init__(
            f'Testcase "{unit_id}" has invalid dependency "{depends_on}"'
        )
        self.unit_id = unit_id
        self.depends_on = depends_on


class LaunchError(RuntimeError):
    """The process behind a unit could not be spawned."""
