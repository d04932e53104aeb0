"""carbonmarket CLI - Main entry point."""

from carbonmarket.cli.main import app, main

__all__ = ["app", "main"]
