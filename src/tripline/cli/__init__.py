"""Command line interface."""

from tripline.cli.main import cli, main

__all__ = ["cli", "main"]
