"""Shared pytest fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ``app`` lives at the project root; make it importable without an editable
# install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of a throwaway SQLite database for one test."""

    return f"sqlite+aiosqlite:///{tmp_path / 'reelport.db'}"
