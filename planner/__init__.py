"""Test planner: runs test cases as processes, honoring delayed dependencies."""
