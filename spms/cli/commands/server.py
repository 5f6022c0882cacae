"""
Server management commands.
"""
import typer
from typing import Optional

from ..utils import print_info, print_success

app = typer.Typer(help="Server management commands")


@app.command("run")
def run_server(
    host: Optional[str] = typer.Option(None, help="Bind address (defaults to HOST)"),
    port: Optional[int] = typer.Option(None, help="Port (defaults to PORT)"),
    reload: bool = False,
    workers: int = 1,
) -> None:
    """Run the application server."""
    # Import uvicorn only when needed
    import uvicorn
    from spms.core.config import settings

    host = host or settings.HOST
    port = port or settings.PORT
    print_success(f"Starting SPMS server at http://{host}:{port}")
    uvicorn.run(
        "spms.app:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers,
    )


@app.command("status")
def server_status() -> None:
    """Show the effective configuration."""
    from spms.core.config import settings

    print_info("Server status:")
    print_info(f"  Environment: {settings.ENV}")
    print_info(f"  Debug mode: {settings.DEBUG}")
    print_info(f"  Database: {settings.DATABASE_URL.split('@')[-1]}")
    print_info(f"  Session backend: {settings.SESSION_BACKEND}")
    print_info(f"  Session lifetime: {settings.SESSION_LIFETIME}s")
    print_info(f"  Login lockout: {settings.MAX_LOGIN_ATTEMPTS} attempts / {settings.LOCKOUT_SECONDS}s")
