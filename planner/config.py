"""Planner configuration file management.

Reads the .test_planner_config JSON file holding the discovery and execution
defaults. Command-line options take precedence over it.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path(".test_planner_config")

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "tests_dir": "tests",
    "pattern": "*_test.py",
    "browser": "phantomjs",
    "environment": "unknown",
    "logs_dir": "logs",
    "tick_interval": 1.0,
    "runner": [sys.executable, "-m", "pytest"],
    "report_path": None,
}


class PlannerConfig:
    """Manages the .test_planner_config JSON configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            text = self.path.read_text()
            data = json.loads(text)
            if isinstance(data, dict):
                self._data = {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError):
            self._data = dict(DEFAULT_CONFIG)

    @property
    def tests_dir(self) -> Path:
        """Get the directory scanned for test case files."""
        return Path(self._data.get("tests_dir", DEFAULT_CONFIG["tests_dir"]))

    @property
    def pattern(self) -> str:
        """Get the file name pattern of test case files."""
        return str(self._data.get("pattern", DEFAULT_CONFIG["pattern"]))

    @property
    def browser(self) -> str:
        return str(self._data.get("browser", DEFAULT_CONFIG["browser"]))

    @property
    def environment(self) -> str:
        return str(self._data.get("environment", DEFAULT_CONFIG["environment"]))

    @property
    def logs_dir(self) -> Path:
        """Get the directory receiving per-test JUnit XML logs."""
        return Path(self._data.get("logs_dir", DEFAULT_CONFIG["logs_dir"]))

    @property
    def tick_interval(self) -> float:
        """Get the seconds slept between scheduler ticks."""
        val = float(
            self._data.get("tick_interval", DEFAULT_CONFIG["tick_interval"])
        )
        if val < 0:
            raise ValueError(f"tick_interval must not be negative, got {val}")
        return val

    @property
    def runner(self) -> list[str]:
        """Get the command prefix used to run a test case file."""
        val = self._data.get("runner", DEFAULT_CONFIG["runner"])
        if isinstance(val, str):
            return val.split()
        return [str(part) for part in val]

    @property
    def report_path(self) -> Path | None:
        """Get the run report path (None = no report)."""
        val = self._data.get("report_path", DEFAULT_CONFIG["report_path"])
        return Path(val) if val else None

    def set_config(self, **values: Any) -> None:
        """Update configuration values; None leaves a value unchanged.

        Raises:
            ValueError: If a key is not a known configuration key.
        """
        for key, value in values.items():
            if key not in DEFAULT_CONFIG:
                raise ValueError(f"Unknown configuration key: {key}")
            if value is not None:
                self._data[key] = str(value) if isinstance(value, Path) else value
