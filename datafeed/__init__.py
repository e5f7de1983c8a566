"""Cached gateway for a single remote JSON endpoint."""

__version__ = "0.1.0"
