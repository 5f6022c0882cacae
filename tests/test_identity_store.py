"""
Tests for the SQLAlchemy identity store against an in-memory SQLite database.
"""
from datetime import datetime

import pytest
import pytest_asyncio

from spms.auth import SQLAlchemyIdentityStore, UserCreate, UserExistsError
from spms.auth.models import AuthUser, Role
from spms.core.security import hash_token, verify_password


@pytest_asyncio.fixture
async def sql_store(database) -> SQLAlchemyIdentityStore:
    store = SQLAlchemyIdentityStore(database)
    await store.create_user(UserCreate(
        username="alice", email="alice@example.com", password="alice-password",
        full_name="Alice Admin", role=Role.ADMIN,
    ))
    await store.create_user(UserCreate(
        username="dave", email="dave@example.com", password="dave-password", is_active=False,
    ))
    return store


class TestSQLAlchemyIdentityStore:

    @pytest.mark.asyncio
    async def test_create_user_hashes_password(self, sql_store):
        user = await sql_store.find_by_username_or_email("alice")
        assert user.id == 1
        assert user.role is Role.ADMIN
        assert user.password_hash != "alice-password"
        assert verify_password("alice-password", user.password_hash)

    @pytest.mark.asyncio
    async def test_duplicate_username_or_email(self, sql_store):
        with pytest.raises(UserExistsError):
            await sql_store.create_user(UserCreate(
                username="alice", email="other@example.com", password="whatever-123",
            ))
        with pytest.raises(UserExistsError):
            await sql_store.create_user(UserCreate(
                username="other", email="alice@example.com", password="whatever-123",
            ))

    @pytest.mark.asyncio
    async def test_lookup_by_username_email_and_id(self, sql_store):
        by_email = await sql_store.find_by_username_or_email("alice@example.com")
        by_id = await sql_store.find_by_id(by_email.id)
        assert by_id.username == "alice"
        assert await sql_store.find_by_username_or_email("nobody") is None
        assert await sql_store.find_by_id(999) is None

    @pytest.mark.asyncio
    async def test_remember_token_round_trip(self, sql_store):
        digest = hash_token("raw-token")
        await sql_store.set_remember_token(1, digest)

        user = await sql_store.find_by_remember_token(digest)
        assert user.username == "alice"

        await sql_store.clear_remember_token(1)
        assert await sql_store.find_by_remember_token(digest) is None

    @pytest.mark.asyncio
    async def test_remember_token_ignores_inactive_users(self, sql_store):
        digest = hash_token("dave-token")
        await sql_store.set_remember_token(2, digest)
        assert await sql_store.find_by_remember_token(digest) is None

    @pytest.mark.asyncio
    async def test_update_last_login_and_password(self, sql_store):
        when = datetime(2024, 5, 1, 12, 30)
        await sql_store.set_remember_token(1, hash_token("t"))
        await sql_store.update_last_login(1, when)
        await sql_store.update_password(1, "new-hash")

        user = await sql_store.find_by_id(1)
        assert user.last_login == when
        assert user.password_hash == "new-hash"
        assert user.remember_token is None

    @pytest.mark.asyncio
    async def test_model_to_dict(self, sql_store, database):
        async with database.get_session() as session:
            user = await session.get(AuthUser, 1)
            data = user.to_dict(exclude={"password_hash"})
        assert data["username"] == "alice"
        assert "password_hash" not in data
        assert data["created_at"] is not None


class TestDatabase:

    @pytest.mark.asyncio
    async def test_health_check(self, database):
        assert await database.health_check()

    def test_obfuscate_url(self):
        from spms.db import Database
        assert Database._obfuscate_url("postgresql+asyncpg://app:s3cret@db/spms") == \
            "postgresql+asyncpg://app:****@db/spms"
