"""Test case file discovery and command construction."""

from planner.discovery.testcases import TestCaseFile, build_command, create_unit, discover

__all__ = ["TestCaseFile", "build_command", "create_unit", "discover"]
