"""
Route table inspection.
"""
import typer
from rich.table import Table

from ..utils import console

app = typer.Typer(help="Route table inspection")


def _describe(func) -> str:
    owner = getattr(func, "__self__", None)
    if owner is not None:
        return f"{type(owner).__name__}@{func.__name__}"
    return getattr(func, "__qualname__", repr(func))


@app.command("list")
def list_routes() -> None:
    """List the application's routes in match order."""
    from spms import build_router
    from spms.core.config import settings

    router = build_router(settings)

    table = Table(title="Routes")
    table.add_column("#", justify="right")
    table.add_column("Method", style="cyan")
    table.add_column("Pattern", style="green")
    table.add_column("Handler")
    table.add_column("Middleware")
    table.add_column("Name")

    for index, route in enumerate(router.routes, start=1):
        table.add_row(
            str(index),
            route.method,
            route.pattern,
            _describe(route.handler),
            ", ".join(getattr(m, "__qualname__", repr(m)).split(".")[0] for m in route.middleware) or "-",
            route.name or "",
        )
    console.print(table)
