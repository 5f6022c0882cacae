"""
User management commands.
"""
from typing import Optional

import typer
from pydantic import ValidationError

from ..utils import console, print_error, print_success, run_async

app = typer.Typer(help="User management commands")


async def _create_user(database_url: Optional[str], user_in):
    from spms.auth import SQLAlchemyIdentityStore
    from spms.db import Database

    db = Database(database_url)
    try:
        await db.create_all()
        return await SQLAlchemyIdentityStore(db).create_user(user_in)
    finally:
        await db.close()


@app.command("create")
def create_user(
    username: str = typer.Argument(..., help="Login name"),
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    full_name: Optional[str] = typer.Option(None, "--full-name", help="Display name"),
    role: str = typer.Option("user", help="admin, manager or user"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="Overrides DATABASE_URL"),
) -> None:
    """Create a user account."""
    from spms.auth import UserCreate, UserExistsError

    try:
        user_in = UserCreate(
            username=username, email=email, password=password, full_name=full_name, role=role
        )
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            print_error(f"{field}: {error['msg']}")
        raise typer.Exit(code=1)

    try:
        user = run_async(_create_user(database_url, user_in))
    except UserExistsError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    print_success(f"Created user {user.username} (id={user.id}, role={user.role.value})")


@app.command("hash-password")
def hash_password(
    password: str = typer.Option(..., prompt=True, hide_input=True),
) -> None:
    """Print a bcrypt hash for a password."""
    from spms.core.security import get_password_hash

    console.print(get_password_hash(password))
