"""Integration-test switches.

Tests marked ``integration`` bind real sockets or talk to real identity
providers and only run with ``--integration``.  Adding ``ci_safe`` opts a
test back in by default: those tests stub every external call.
"""

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that need real sockets or services",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--integration", default=False):
        return
    skip_integration = pytest.mark.skip(reason="Need --integration option to run")
    for item in items:
        if "integration" in item.keywords and "ci_safe" not in item.keywords:
            item.add_marker(skip_integration)
