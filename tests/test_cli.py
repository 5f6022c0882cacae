"""
Tests for the command line interface.
"""
from typer.testing import CliRunner

from spms.cli import app
from spms.core.security import verify_password

runner = CliRunner()


def test_hash_password():
    result = runner.invoke(app, ["users", "hash-password", "--password", "s3cret-pass"])
    assert result.exit_code == 0
    assert verify_password("s3cret-pass", result.output.strip())


def test_create_user(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    args = [
        "users", "create", "erin", "erin@example.com",
        "--password", "erin-password", "--role", "manager", "--database-url", url,
    ]

    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    assert "Created user erin" in result.output

    again = runner.invoke(app, args)
    assert again.exit_code == 1


def test_create_user_rejects_invalid_input(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    result = runner.invoke(app, [
        "users", "create", "erin", "not-an-email", "--password", "short", "--database-url", url,
    ])
    assert result.exit_code == 1
    assert not (tmp_path / "cli.db").exists()


def test_routes_list():
    result = runner.invoke(app, ["routes", "list"], env={"COLUMNS": "200"})
    assert result.exit_code == 0, result.output
    assert "Routes" in result.output
    assert "/login" in result.output


def test_server_status():
    result = runner.invoke(app, ["server", "status"])
    assert result.exit_code == 0
    assert "Session lifetime" in result.output
