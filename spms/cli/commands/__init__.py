"""
Main CLI command registration.

This module sets up the main CLI command group and registers all subcommands.
"""
import typer

from . import routes, server, users

# Create the main command group
app = typer.Typer(help="Spare Parts Management System CLI")


@app.callback()
def main_callback():
    """SPMS command line interface."""
    pass


app.add_typer(server.app, name="server", help="Server management commands")
app.add_typer(users.app, name="users", help="User management commands")
app.add_typer(routes.app, name="routes", help="Route table inspection")

__all__ = ['app']
