"""Reelport watch-history import/export application package."""

from __future__ import annotations

from importlib import import_module
from typing import Any

# Attribute -> module that defines it; resolved on first access so importing
# ``app.utils`` does not build the FastAPI application.
_LAZY_EXPORTS = {
    "app": "app.main",
    "create_app": "app.main",
    "settings": "app.config",
}

__all__ = list(_LAZY_EXPORTS)


def __getattr__(name: str) -> Any:
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module 'app' has no attribute {name}")
    return getattr(import_module(module_name), name)
