"""Nightshift — scheduled maintenance runs for software projects."""

__version__ = "0.1.0"
