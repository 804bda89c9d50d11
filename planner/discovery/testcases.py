"""Discover test case files and read their scheduling annotations.

A test case file declares its ordering constraint in the docstring of its
first class (or of the module, when it defines no class)::

    class CheckoutTest:
        \"\"\"Places an order once the catalog import has settled.

        @delayAfter shop.catalog_test.CatalogImportTest
        @delayMinutes 5
        \"\"\"

Files are parsed with ``ast``; test code is never imported here.
"""

from __future__ import annotations

import ast
import math
import re
from dataclasses import dataclass
from pathlib import Path

from planner.execution.errors import ConfigurationError
from planner.execution.process import SubprocessHandle
from planner.execution.unit import TestUnit
from planner.reporting import events
from planner.reporting.events import Event, EventSink

_DELAY_AFTER_RE = re.compile(r"@delayAfter\s+(\S+)")
_DELAY_MINUTES_RE = re.compile(r"@delayMinutes\s+(\S+)")


@dataclass
class TestCaseFile:
    """A discovered test case file and its declared dependency."""

    id: str
    path: Path
    depends_on: str = ""
    delay_minutes: float = 0


def find_files(root: Path, pattern: str) -> list[Path]:
    """Find files under ``root`` matching ``pattern``, in sorted order."""
    return sorted(p for p in root.rglob(pattern) if p.is_file())


def module_name(path: Path, root: Path) -> str:
    """Dotted module path of ``path`` relative to ``root``."""
    relative = path.relative_to(root).with_suffix("")
    return ".".join(relative.parts)


def parse_annotations(docstring: str | None) -> tuple[str, float]:
    """Extract the dependency id and delay from a docstring.

    Returns:
        Tuple of (depends_on, delay_minutes); ("", 0) when not annotated.

    Raises:
        ConfigurationError: If the delay is not a finite number.
    """
    if not docstring:
        return "", 0
    after = _DELAY_AFTER_RE.search(docstring)
    minutes = _DELAY_MINUTES_RE.search(docstring)
    depends_on = after.group(1) if after else ""
    delay: float = 0
    if minutes:
        raw = minutes.group(1)
        try:
            delay = float(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid @delayMinutes value: {raw!r}")
        if not math.isfinite(delay):
            raise ConfigurationError(f"Invalid @delayMinutes value: {raw!r}")
        if delay.is_integer():
            delay = int(delay)
    return depends_on, delay


def read_test_case(path: Path, root: Path) -> TestCaseFile:
    """Parse one test case file.

    Raises:
        SyntaxError: If the file is not valid Python.
        OSError: If the file cannot be read.
        ConfigurationError: If the annotations are malformed.
    """
    tree = ast.parse(path.read_text(), filename=str(path))
    module = module_name(path, root)

    first_class = next(
        (node for node in tree.body if isinstance(node, ast.ClassDef)), None
    )
    if first_class is not None:
        test_id = f"{module}.{first_class.name}"
        docstring = ast.get_docstring(first_class) or ast.get_docstring(tree)
    else:
        test_id = module
        docstring = ast.get_docstring(tree)

    depends_on, delay = parse_annotations(docstring)
    return TestCaseFile(id=test_id, path=path, depends_on=depends_on, delay_minutes=delay)


def discover(root: Path, pattern: str, sink: EventSink = events.discard) -> list[TestCaseFile]:
    """Discover all test case files under ``root``.

    Unreadable or unparseable files are reported and skipped.

    Raises:
        ConfigurationError: If a file has malformed annotations.
    """
    found: list[TestCaseFile] = []
    for path in find_files(root, pattern):
        sink(Event(events.TESTCASE_FOUND, data={"path": str(path)}))
        try:
            found.append(read_test_case(path, root))
        except (SyntaxError, OSError, UnicodeDecodeError) as e:
            sink(Event(events.TESTCASE_UNREADABLE, data={"path": str(path), "error": str(e)}))
    return found


def build_command(
    test_case: TestCaseFile,
    runner: list[str],
    logs_dir: Path,
    browser: str,
    environment: str,
) -> tuple[list[str], dict[str, str]]:
    """Build the command line and extra environment for one test case.

    Returns:
        Tuple of (args, env).
    """
    args = [
        *runner,
        f"--junitxml={logs_dir / (test_case.path.name + '.xml')}",
        str(test_case.path),
    ]
    env = {"BROWSER_NAME": browser, "TEST_ENV": environment}
    return args, env


def create_unit(
    test_case: TestCaseFile,
    runner: list[str],
    logs_dir: Path,
    browser: str,
    environment: str,
) -> TestUnit:
    """Create a queued TestUnit running the given test case file.

    Raises:
        ConfigurationError: If the declared dependency and delay contradict.
    """
    args, env = build_command(test_case, runner, logs_dir, browser, environment)
    return TestUnit(
        id=test_case.id,
        process=SubprocessHandle(args, env=env),
        depends_on=test_case.depends_on,
        delay_minutes=test_case.delay_minutes,
        source=str(test_case.path),
    )
