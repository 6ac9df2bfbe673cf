"""Crash-safe backup, restore and deletion of individual files."""

__version__ = "0.1.0"
