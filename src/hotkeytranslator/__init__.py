"""Translate the current selection with several providers at once."""

__version__ = "0.1.0"
