"""Command-line interface for the REV distribution toolkit."""

from .main import cli, main

__all__ = ["cli", "main"]
