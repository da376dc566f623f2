"""Doplarr - request media from Discord."""

__version__ = "0.1.0"
