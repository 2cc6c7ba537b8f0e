"""Commodore 64 TAP tape image conversion, pause editing, repair, loader identification and batch reporting."""

__version__ = "0.1.0"