"""Progress events, console output and run reports."""

from planner.reporting.events import ConsolePrinter, Event, EventLog
from planner.reporting.reporter import RunReport

__all__ = ["ConsolePrinter", "Event", "EventLog", "RunReport"]
