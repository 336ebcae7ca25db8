"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from compass.registry import clear_registry_cache

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _fresh_registry_cache() -> Iterator[None]:
    clear_registry_cache()
    yield
    clear_registry_cache()


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES
