# crane/__init__.py
from __future__ import annotations

APP_NAME = "crane"
__version__ = "0.3.0"

__all__ = ["APP_NAME", "__version__"]
