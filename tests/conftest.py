"""Root pytest fixtures for streamkit tests."""

from __future__ import annotations

import pytest


@pytest.fixture
def sample_csv() -> bytes:
    """A small delimited document with quoting and empty fields."""
    return (
        b"id,name,note\r\n"
        b'1,Ada,"likes ""math"", and tea"\r\n'
        b"2,,plain\r\n"
        b'3,"Grace, Admiral",\r\n'
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "property: property-based test driven by hypothesis",
    )
