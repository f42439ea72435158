"""Readzy: a personal reading-list tracker service."""

__version__ = "1.0.0"
