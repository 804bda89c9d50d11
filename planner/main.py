"""Entry point for the test planner.

Discovers test case files, queues one process per test case and runs them
concurrently, starting delayed test cases once their dependency has finished
and the declared delay has passed.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from planner.config import DEFAULT_CONFIG_PATH, PlannerConfig
from planner.discovery.testcases import create_unit, discover
from planner.execution.scheduler import Scheduler
from planner.reporting.events import ConsolePrinter, EventSink
from planner.reporting.reporter import RunReport


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Test planner - runs test cases, optionally delayed after other test cases"
    )
    parser.add_argument(
        "browser",
        nargs="?",
        default=None,
        help="Browser in which tests should be run (default: from config, phantomjs)",
    )
    parser.add_argument(
        "--env",
        dest="environment",
        default=None,
        help="Environment name passed to tests, use unknown for localhost",
    )
    parser.add_argument(
        "--dir",
        dest="tests_dir",
        type=Path,
        default=None,
        help="Path to directory with tests (default: tests)",
    )
    parser.add_argument(
        "--pattern",
        default=None,
        help="Pattern for test files to be run (default: *_test.py)",
    )
    parser.add_argument(
        "--logs-dir",
        type=Path,
        default=None,
        help="Directory for per-test JUnit XML logs (default: logs)",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the JSON config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to write the run report (.json, or .yaml/.yml for YAML)",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> PlannerConfig:
    """Load the config file and apply command-line overrides."""
    config = PlannerConfig(args.config_file)
    config.set_config(
        browser=args.browser,
        environment=args.environment,
        tests_dir=args.tests_dir,
        pattern=args.pattern,
        logs_dir=args.logs_dir,
        report_path=args.output,
    )
    return config


def build_scheduler(config: PlannerConfig, sink: EventSink) -> Scheduler:
    """Discover test cases and submit one unit per test case.

    Raises:
        ConfigurationError: If any test case declares a contradictory
            dependency and delay.
        ValueError: If the configured tick interval is negative.
    """
    scheduler = Scheduler(sink=sink, tick_interval=config.tick_interval)
    for test_case in discover(config.tests_dir, config.pattern, sink=sink):
        unit = create_unit(
            test_case,
            runner=config.runner,
            logs_dir=config.logs_dir,
            browser=config.browser,
            environment=config.environment,
        )
        scheduler.submit(unit)
    return scheduler


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    printer = ConsolePrinter()
    config = load_config(args)

    if not config.tests_dir.is_dir():
        print(f"Error: Tests directory not found: {config.tests_dir}", file=sys.stderr)
        return 1

    print(config.tests_dir)
    try:
        scheduler = build_scheduler(config, printer)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not len(scheduler.registry):
        print("No testcases found, nothing to run.")
        return 0

    config.logs_dir.mkdir(parents=True, exist_ok=True)
    units = scheduler.run()

    report = RunReport()
    report.add_units(units)
    report.add_excluded(scheduler.excluded)
    if config.report_path is not None:
        report.write(config.report_path)
        print(f"Report written to {config.report_path}")

    return 0 if report.successful else 1


if __name__ == "__main__":
    sys.exit(main())
