"""Command line launcher for the Reelport service.

``python -m reelport`` and the ``reelport`` console script both start uvicorn
with settings read from the environment.
"""

from __future__ import annotations

__version__ = "1.0.0"

__all__ = ["__version__"]
