"""Asynchronous proposal draft generation queue."""

__version__ = "0.1.0"
