# src/confessio/models/__init__.py
"""SQLAlchemy models for the Confess.io application."""

from .confession import ConfessionRow

__all__ = ["ConfessionRow"]
