"""Offline-first local data access for survey tasks and their choices."""

__version__ = "0.1.0"
