"""Projection: a project portfolio store with thumbnail management."""

__version__ = "0.4.0"
