# services/__init__.py
from __future__ import annotations

from . import views

__all__ = [
    "views",
]
