"""Shared pytest configuration.

Integration tests are skipped unless ``--integration`` is given.  Tests also
marked ``ci_safe`` always run because they stub every external call.
"""

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--integration", default=False):
        return
    skip_integration = pytest.mark.skip(reason="Need --integration option to run")
    for item in items:
        if "integration" in item.keywords and "ci_safe" not in item.keywords:
            item.add_marker(skip_integration)
