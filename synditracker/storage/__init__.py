"""Storage layer: PostgreSQL connection management."""

from synditracker.storage.database import Database

__all__ = ["Database"]
