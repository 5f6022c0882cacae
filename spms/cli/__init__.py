"""
Command Line Interface for SPMS.

This module provides the main entry point for the ``spms`` command.
It imports and registers all command groups from the commands package.
"""
from .commands import app

__all__ = ['app']

# This allows the module to be run directly with `python -m spms.cli`
if __name__ == "__main__":
    app()
