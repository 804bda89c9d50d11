"""Structured progress events and their console rendering.

The scheduler never prints. It emits ``Event`` objects to a sink callable;
``EventLog`` records them (used by tests and the run report) and
``ConsolePrinter`` turns them into the human-readable lines of the command
line tool.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import IO, Any, Callable

# Event kinds
TESTCASE_FOUND = "testcase_found"
TESTCASE_UNREADABLE = "testcase_unreadable"
INVALID_DEPENDENCY = "invalid_dependency"
UNIT_PREPARED = "unit_prepared"
UNIT_QUEUED = "unit_queued"
UNIT_STARTED = "unit_started"
UNIT_OUTPUT = "unit_output"
UNIT_FINISHED = "unit_finished"
UNIT_LAUNCH_FAILED = "unit_launch_failed"
UNIT_DEPENDENCY_NOT_RUN = "unit_dependency_not_run"
UNIT_UNQUEUED = "unit_unqueued"
TICK = "tick"
NO_TASKS_LEFT = "no_tasks_left"


@dataclass(frozen=True)
class Event:
    """A single observable scheduler event."""

    kind: str
    unit_id: str = ""
    data: dict[str, Any] = field(default_factory=dict)


EventSink = Callable[[Event], None]


def discard(event: Event) -> None:
    """Sink that ignores every event."""


class EventLog:
    """Sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[Event]:
        return [e for e in self.events if e.kind == kind]

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    def unit_ids(self, kind: str) -> list[str]:
        return [e.unit_id for e in self.events if e.kind == kind]

    def output(self, unit_id: str, stream: str = "stdout") -> bytes:
        """Concatenate all forwarded output chunks for one unit."""
        return b"".join(
            e.data["chunk"]
            for e in self.events
            if e.kind == UNIT_OUTPUT
            and e.unit_id == unit_id
            and e.data["stream"] == stream
        )


class ConsolePrinter:
    """Sink rendering events as console lines.

    Progress lines go to ``out``; warnings go to ``err``. Output chunks of
    running tests are written raw to the binary buffers of the streams.
    """

    def __init__(self, out: IO[str] | None = None, err: IO[str] | None = None) -> None:
        self.out = out if out is not None else sys.stdout
        self.err = err if err is not None else sys.stderr

    def __call__(self, event: Event) -> None:
        if event.kind == UNIT_OUTPUT:
            stream = self.err if event.data["stream"] == "stderr" else self.out
            _write_bytes(stream, event.data["chunk"])
            return
        line = format_event(event)
        if line is None:
            return
        warning = event.kind in (
            INVALID_DEPENDENCY,
            TESTCASE_UNREADABLE,
            UNIT_LAUNCH_FAILED,
            UNIT_DEPENDENCY_NOT_RUN,
        )
        print(line, file=self.err if warning else self.out, flush=True)


def _write_bytes(stream: IO[str], chunk: bytes) -> None:
    buffer = getattr(stream, "buffer", None)
    stream.flush()
    if buffer is not None:
        buffer.write(chunk)
        buffer.flush()
    else:
        stream.write(chunk.decode(errors="replace"))


def format_event(event: Event) -> str | None:
    """Render one event as a line of text, or None for events without one."""
    d = event.data
    uid = event.unit_id
    if event.kind == TESTCASE_FOUND:
        return f"Found testcase file: {d['path']}"
    if event.kind == TESTCASE_UNREADABLE:
        return f"Warning: cannot read testcase file {d['path']}: {d['error']}"
    if event.kind == INVALID_DEPENDENCY:
        return (
            f'Testcase "{uid}" has invalid dependency "{d["depends_on"]}", '
            f"not queueing it."
        )
    if event.kind == UNIT_PREPARED:
        return f'Testcase "{uid}" is prepared to be run'
    if event.kind == UNIT_QUEUED:
        return (
            f'Testcase "{uid}" is queued to be run {d["delay_minutes"]:g} minutes '
            f'after testcase "{d["depends_on"]}" is finished'
        )
    if event.kind == UNIT_STARTED:
        return f'Running command for testcase "{uid}": {d["command"]}'
    if event.kind == UNIT_FINISHED:
        return f'Process for testcase "{uid}" finished ({d["outcome"]}, exit code {d["exit_code"]})'
    if event.kind == UNIT_LAUNCH_FAILED:
        return f'Error: could not start testcase "{uid}": {d["error"]}'
    if event.kind == UNIT_DEPENDENCY_NOT_RUN:
        return f'Testcase "{uid}" not run, its dependency "{d["depends_on"]}" did not run'
    if event.kind == UNIT_UNQUEUED:
        return f'Unqueuing testcase "{uid}"'
    if event.kind == TICK:
        return (
            f"waiting (running: {d['running']}, queued: {d['queued']}, "
            f"finished: {d['finished']})"
        )
    if event.kind == NO_TASKS_LEFT:
        return "No tasks left, exiting the execution loop..."
    return None
