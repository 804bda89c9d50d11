"""Scheduling core: test units, their registry, process handles and the loop."""

from planner.execution.errors import ConfigurationError, LaunchError, UnsatisfiableDependencyError
from planner.execution.process import ProcessHandle, SubprocessHandle
from planner.execution.registry import UnitRegistry
from planner.execution.scheduler import Scheduler
from planner.execution.unit import TestUnit, UnitStatus

__all__ = [
    "ConfigurationError",
    "LaunchError",
    "ProcessHandle",
    "Scheduler",
    "SubprocessHandle",
    "TestUnit",
    "UnitRegistry",
    "UnitStatus",
    "UnsatisfiableDependencyError",
]
