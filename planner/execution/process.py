"""Process handles: the capability the scheduler needs to supervise a test.

``ProcessHandle`` is the protocol consumed by the scheduler. ``SubprocessHandle``
implements it on top of ``subprocess.Popen``; stdout and stderr are drained
by background reader threads into buffers so that reading incremental output
never blocks the control loop.
"""

from __future__ import annotations

import os
import shlex
import subprocess
import threading
from typing import IO, Protocol, runtime_checkable

from planner.execution.errors import LaunchError

# Bytes requested per read from a child pipe
READ_CHUNK_SIZE = 4096

# Seconds to wait for the pipes to reach EOF after the child has exited.
# A background grandchild can keep them open indefinitely.
DRAIN_TIMEOUT = 0.5


@runtime_checkable
class ProcessHandle(Protocol):
    """External execution of one test case.

    Implementations report failures only through LaunchError from start();
    the other methods must not raise.
    """

    def start(self) -> None:
        """Begin execution. Raises LaunchError if it cannot be spawned."""
        ...

    def is_running(self) -> bool:
        """Non-blocking liveness check."""
        ...

    def read_incremental_output(self) -> bytes:
        """Return stdout bytes produced since the previous call."""
        ...

    def read_incremental_error_output(self) -> bytes:
        """Return stderr bytes produced since the previous call."""
        ...

    def command_line(self) -> str:
        """Human-readable command line, for diagnostics only."""
        ...

    @property
    def exit_code(self) -> int | None:
        """Exit status once the process has ended, otherwise None."""
        ...


class _StreamBuffer:
    """Collects bytes from a pipe on a reader thread."""

    def __init__(self, stream: IO[bytes]) -> None:
        self._stream = stream
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._pump, daemon=True)
        self._thread.start()

    def _pump(self) -> None:
        fd = self._stream.fileno()
        try:
            while True:
                chunk = os.read(fd, READ_CHUNK_SIZE)
                if not chunk:
                    break
                with self._lock:
                    self._buffer.extend(chunk)
        finally:
            self._stream.close()

    def wait(self, timeout: float) -> None:
        """Block until the pipe reached EOF, or at most timeout seconds."""
        self._thread.join(timeout)

    def take(self) -> bytes:
        with self._lock:
            data = bytes(self._buffer)
            self._buffer.clear()
        return data


class SubprocessHandle:
    """ProcessHandle backed by a child process.

    Args:
        args: Command and arguments.
        env: Extra environment variables, layered over the inherited
            environment.
        cwd: Working directory of the child process.
    """

    def __init__(
        self,
        args: list[str],
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        self.args = list(args)
        self.env = dict(env or {})
        self.cwd = cwd
        self._process: subprocess.Popen[bytes] | None = None
        self._stdout: _StreamBuffer | None = None
        self._stderr: _StreamBuffer | None = None

    @property
    def started(self) -> bool:
        return self._process is not None

    def start(self) -> None:
        """Spawn the child process.

        Raises:
            LaunchError: If the executable is missing or cannot be run, or
                the handle was already started.
        """
        if self._process is not None:
            raise LaunchError(f"Process already started: {self.command_line()}")
        try:
            self._process = subprocess.Popen(
                self.args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env={**os.environ, **self.env},
                cwd=self.cwd,
            )
        except FileNotFoundError as e:
            raise LaunchError(f"Executable not found: {self.args[0]}") from e
        except OSError as e:
            raise LaunchError(f"OS error starting process: {e}") from e
        except ValueError as e:
            raise LaunchError(f"Invalid command {self.args!r}: {e}") from e

        assert self._process.stdout is not None
        assert self._process.stderr is not None
        self._stdout = _StreamBuffer(self._process.stdout)
        self._stderr = _StreamBuffer(self._process.stderr)

    def is_running(self) -> bool:
        """True until the child has exited.

        After exit the pipes get up to DRAIN_TIMEOUT seconds to reach EOF, so
        output read after this returns False is complete unless a process
        left behind by the child still holds them open.
        """
        if self._process is None:
            return False
        if self._process.poll() is None:
            return True
        assert self._stdout is not None and self._stderr is not None
        self._stdout.wait(DRAIN_TIMEOUT)
        self._stderr.wait(DRAIN_TIMEOUT)
        return False

    def read_incremental_output(self) -> bytes:
        return self._stdout.take() if self._stdout is not None else b""

    def read_incremental_error_output(self) -> bytes:
        return self._stderr.take() if self._stderr is not None else b""

    def command_line(self) -> str:
        env_prefix = " ".join(
            f"{key}={shlex.quote(value)}" for key, value in self.env.items()
        )
        command = shlex.join(self.args)
        return f"{env_prefix} {command}" if env_prefix else command

    @property
    def exit_code(self) -> int | None:
        if self._process is None:
            return None
        return self._process.poll()
