"""Marble game: position-sizing outcomes via weighted random draws."""

__version__ = "0.1.0"
