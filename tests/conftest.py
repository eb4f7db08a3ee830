import os
from pathlib import Path

import pytest

# Test directory -> marker applied to everything collected beneath it
SUITE_MARKERS = {
    "domain": "domain",
    "application": "application",
    "integration": "integration",
    "bdd": "bdd",
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="PROTEAN_ENV overlay of ordering/domain.toml to test against",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the ordering domain is initialized."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = Path(item.fspath).parts
        suite = next((SUITE_MARKERS[p] for p in parts if p in SUITE_MARKERS), None)
        if suite is None:
            continue

        item.add_marker(getattr(pytest.mark, suite))
        if suite == "integration" and item.get_closest_marker("fast") is None:
            item.add_marker(pytest.mark.slow)
