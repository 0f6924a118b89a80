"""Shared test fixtures for paydown."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from paydown.config import CONFIG_DIR
from paydown.import_graph.languages import clear_cache

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clear_lang_cache() -> None:
    """Clear language cache before each test to avoid cross-test pollution."""
    clear_cache()


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal project structure for testing."""
    (tmp_path / CONFIG_DIR).mkdir()
    return tmp_path
