"""HTTP surface of the hub: ingestion, health, and administration."""

from synditracker.api.app import create_app

__all__ = ["create_app"]
