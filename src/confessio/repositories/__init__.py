"""Data access layer for the confession store."""

from .confession_repo import ConfessionRepository

__all__ = ["ConfessionRepository"]
