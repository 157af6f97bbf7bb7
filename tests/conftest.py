"""Root conftest — shared pytest markers and logging setup.

Markers
-------
unit        fast, no I/O, pure logic
integration requires Postgres (set STEPWISE_TEST_INTEGRATION=1)
"""

from __future__ import annotations

from stepwise.utils import setup_logging

# Before any test module imports stepwise: logs go to stderr, never stdout.
setup_logging()


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, no I/O tests")
    config.addinivalue_line("markers", "integration: requires Postgres")
