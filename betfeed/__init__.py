"""Betfeed: upstream betting feed sync and bet slip booking service."""

__version__ = "1.0.0"
