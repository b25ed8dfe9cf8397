"""
CLI module for Ronin.

Provides the command-line interface using Click.
"""

from ronin.cli.main import ConsoleApprover, cli, main

__all__ = ["main", "cli", "ConsoleApprover"]
