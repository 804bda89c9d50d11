"""Tests for the planner main entry point."""

from __future__ import annotations

import datetime
import json
import sys
import textwrap
from pathlib import Path

import yaml

from planner.main import build_scheduler, load_config, main, parse_args
from planner.reporting.events import EventLog


def _write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content))
    return path


def _config_file(tmp_path: Path, **values) -> Path:
    """Write a config file running test cases with the current interpreter's pytest."""
    data = {
        "tick_interval": 0.05,
        "runner": [sys.executable, "-m", "pytest", "-q", "-p", "no:cacheprovider"],
        **values,
    }
    path = tmp_path / ".test_planner_config"
    path.write_text(json.dumps(data))
    return path


class TestParseArgs:
    """Tests for command-line parsing."""

    def test_defaults(self):
        args = parse_args([])
        assert args.browser is None
        assert args.environment is None
        assert args.tests_dir is None
        assert args.pattern is None
        assert args.output is None
        assert args.config_file == Path(".test_planner_config")

    def test_all_options(self):
        args = parse_args([
            "firefox",
            "--env", "staging",
            "--dir", "suite",
            "--pattern", "test_*.py",
            "--logs-dir", "out",
            "--config-file", "cfg.json",
            "--output", "report.yaml",
        ])
        assert args.browser == "firefox"
        assert args.environment == "staging"
        assert args.tests_dir == Path("suite")
        assert args.pattern == "test_*.py"
        assert args.logs_dir == Path("out")
        assert args.config_file == Path("cfg.json")
        assert args.output == Path("report.yaml")


class TestLoadConfig:
    """Tests for merging config file values with command-line options."""

    def test_cli_overrides_file(self, tmp_path):
        cfg_path = _config_file(tmp_path, browser="chrome", pattern="check_*.py")
        args = parse_args(["firefox", "--config-file", str(cfg_path)])
        config = load_config(args)
        assert config.browser == "firefox"
        assert config.pattern == "check_*.py"
        assert config.tick_interval == 0.05

    def test_build_scheduler_submits_discovered_units(self, tmp_path):
        suite = tmp_path / "suite"
        _write(suite, "a_test.py", "class ATest:\n    pass\n")
        _write(suite, "b_test.py", '''
            class BTest:
                """@delayAfter a_test.ATest
                @delayMinutes 1
                """
        ''')
        args = parse_args([
            "--dir", str(suite), "--config-file", str(_config_file(tmp_path))
        ])
        log = EventLog()

        scheduler = build_scheduler(load_config(args), log)

        assert list(scheduler.registry.units) == ["a_test.ATest", "b_test.BTest"]
        assert scheduler.registry.get("b_test.BTest").depends_on == "a_test.ATest"
        assert scheduler.tick_interval == 0.05
        assert len(log.events) == 2


class TestMain:
    """Tests for running main() end to end."""

    def test_missing_tests_dir(self, tmp_path, capsys):
        rc = main([
            "--dir", str(tmp_path / "nope"),
            "--config-file", str(_config_file(tmp_path)),
        ])
        assert rc == 1
        assert "Tests directory not found" in capsys.readouterr().err

    def test_no_testcases(self, tmp_path, capsys):
        suite = tmp_path / "suite"
        suite.mkdir()
        rc = main(["--dir", str(suite), "--config-file", str(_config_file(tmp_path))])
        assert rc == 0
        assert "No testcases found" in capsys.readouterr().out

    def test_contradictory_annotation_halts_setup(self, tmp_path, capsys):
        suite = tmp_path / "suite"
        _write(suite, "a_test.py", "class ATest:\n    pass\n")
        _write(suite, "b_test.py", '''
            class BTest:
                """@delayAfter a_test.ATest"""
        ''')
        rc = main(["--dir", str(suite), "--config-file", str(_config_file(tmp_path))])
        assert rc == 1
        captured = capsys.readouterr()
        assert "no delay was defined" in captured.err
        assert "Running command" not in captured.out

    def test_negative_tick_interval_rejected(self, tmp_path, capsys):
        suite = tmp_path / "suite"
        _write(suite, "a_test.py", "class ATest:\n    pass\n")
        cfg = _config_file(tmp_path, tick_interval=-1)
        rc = main(["--dir", str(suite), "--config-file", str(cfg)])
        assert rc == 1
        assert "tick_interval" in capsys.readouterr().err

    def test_runs_suite_with_delayed_dependency(self, tmp_path, capsys):
        suite = tmp_path / "suite"
        _write(suite, "shop/cart_test.py", '''
            class TestCart:
                def test_add(self):
                    assert 1 + 1 == 2
        ''')
        _write(suite, "shop/order_test.py", '''
            class TestOrder:
                """Runs shortly after the cart test.

                @delayAfter shop.cart_test.TestCart
                @delayMinutes 0.002
                """

                def test_order(self):
                    assert True
        ''')
        logs = tmp_path / "logs"
        report_path = tmp_path / "report.yaml"

        rc = main([
            "--dir", str(suite),
            "--logs-dir", str(logs),
            "--output", str(report_path),
            "--config-file", str(_config_file(tmp_path)),
        ])

        out = capsys.readouterr().out
        assert rc == 0
        assert 'Testcase "shop.cart_test.TestCart" is prepared to be run' in out
        assert 'Unqueuing testcase "shop.order_test.TestOrder"' in out
        assert "No tasks left, exiting the execution loop..." in out
        assert (logs / "cart_test.py.xml").exists()
        assert (logs / "order_test.py.xml").exists()

        report = yaml.safe_load(report_path.read_text())
        assert report["summary"]["passed"] == 2
        units = {u["id"]: u for u in report["units"]}
        cart = units["shop.cart_test.TestCart"]
        order = units["shop.order_test.TestOrder"]
        assert order["depends_on"] == "shop.cart_test.TestCart"
        assert datetime.datetime.fromisoformat(order["started_at"]) > (
            datetime.datetime.fromisoformat(cart["finished_at"])
        )

    def test_failing_test_and_invalid_dependency(self, tmp_path, capsys):
        suite = tmp_path / "suite"
        _write(suite, "a_test.py", '''
            class TestA:
                def test_fails(self):
                    assert False
        ''')
        _write(suite, "c_test.py", '''
            class TestC:
                """@delayAfter missing.MissingTest
                @delayMinutes 1
                """

                def test_never(self):
                    pass
        ''')
        report_path = tmp_path / "report.json"

        rc = main([
            "--dir", str(suite),
            "--logs-dir", str(tmp_path / "logs"),
            "--output", str(report_path),
            "--config-file", str(_config_file(tmp_path)),
        ])

        captured = capsys.readouterr()
        assert rc == 1
        assert 'Testcase "c_test.TestC" has invalid dependency' in captured.err
        report = json.loads(report_path.read_text())
        assert report["summary"]["failed"] == 1
        assert report["excluded"][0]["id"] == "c_test.TestC"
        assert [u["id"] for u in report["units"]] == ["a_test.TestA"]
