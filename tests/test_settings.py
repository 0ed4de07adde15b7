"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import Settings


def test_defaults_match_documented_values() -> None:
    """Settings without environment overrides use the documented defaults."""

    settings = Settings(_env_file=None)

    assert settings.app_name == "Reelport"
    assert settings.import_max_candidates == 5
    assert settings.search_cache_ttl_seconds == 300
    assert settings.upload_max_bytes == 10 * 1024 * 1024
    assert settings.database_url.startswith("sqlite+aiosqlite://")


def test_log_level_is_case_insensitive() -> None:
    settings = Settings(_env_file=None, LOG_LEVEL="debug")

    assert settings.log_level == "DEBUG"


def test_unknown_log_level_raises() -> None:
    with pytest.raises(ValueError, match="LOG_LEVEL"):
        Settings(_env_file=None, LOG_LEVEL="chatty")


def test_blank_tmdb_key_is_treated_as_missing() -> None:
    settings = Settings(_env_file=None, TMDB_API_KEY="   ")

    assert settings.tmdb_api_key is None


def test_candidate_limit_is_bounded() -> None:
    """Candidate limits outside 1..20 are rejected."""

    with pytest.raises(ValueError):
        Settings(_env_file=None, IMPORT_MAX_CANDIDATES=0)
    with pytest.raises(ValueError):
        Settings(_env_file=None, IMPORT_MAX_CANDIDATES=50)
