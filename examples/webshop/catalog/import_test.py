"""Simulated catalog import, the anchor for delayed order tests."""

import time


class TestCatalogImport:
    """Imports the product catalog."""

    def test_import(self):
        time.sleep(0.5)
        assert sum([3, 4]) == 7
