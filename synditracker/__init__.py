"""Synditracker hub: syndication event ingestion and duplicate spike alerting."""

from synditracker.config.settings import VERSION

__version__ = VERSION
