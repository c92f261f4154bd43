"""Shared pytest fixtures for emmylearn tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from emmylearn.auth.factory import clear_config_cache


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    """Drop cached Settings and mock gateway between tests."""
    clear_config_cache()
    yield
    clear_config_cache()
