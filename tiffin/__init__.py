"""Tiffin: multi-vendor food delivery marketplace backend."""

__version__ = "0.1.0"
