"""Streaming tool-using conversation runtime."""

__version__ = "0.1.0"
