"""Command-line interface (``perfspine``)."""

from perfspine.cli.app import app

__all__ = ["app"]
