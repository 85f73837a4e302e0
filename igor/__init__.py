"""Igor runner fleet inspection package."""
from __future__ import annotations

from .errors import IgorError

__all__ = ("__version__", "IgorError")

__version__ = "0.3.0"
