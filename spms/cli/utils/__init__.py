"""
Shared utilities for CLI commands.
"""
import asyncio
from typing import Any, Coroutine, TypeVar

from rich.console import Console

T = TypeVar("T")

# Global console instance
console = Console()
err_console = Console(stderr=True)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous command."""
    return asyncio.run(coro)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[red]✗ {message}[/red]")


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]ℹ {message}[/blue]")
