# auth/users.py
"""
Identity stores: the user-persistence collaborator of the authenticator.

The authenticator never touches storage directly; it only talks to an
:class:`IdentityStore`. Remember tokens are handed over already hashed.
"""
import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import select, or_, update

from ..core.security import get_password_hash
from ..db import Database
from .models import AuthUser, UserCreate, UserIdentity

logger = logging.getLogger(__name__)


class UserExistsError(ValueError):
    """Raised when a username or email is already taken."""
    pass


class IdentityStore(ABC):
    """Lookup and update contract for user records."""

    @abstractmethod
    async def find_by_username_or_email(self, identifier: str) -> Optional[UserIdentity]:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: int) -> Optional[UserIdentity]:
        pass

    @abstractmethod
    async def find_by_remember_token(self, token_hash: str) -> Optional[UserIdentity]:
        """Find an active user whose stored remember token hash matches."""
        pass

    @abstractmethod
    async def set_remember_token(self, user_id: int, token_hash: str) -> None:
        pass

    @abstractmethod
    async def clear_remember_token(self, user_id: int) -> None:
        pass

    @abstractmethod
    async def update_last_login(self, user_id: int, when: datetime) -> None:
        pass

    @abstractmethod
    async def update_password(self, user_id: int, password_hash: str) -> None:
        pass

    @abstractmethod
    async def create_user(self, user_in: UserCreate) -> UserIdentity:
        pass


class SQLAlchemyIdentityStore(IdentityStore):
    """Identity store backed by the ``users`` table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def _find_one(self, *criteria) -> Optional[UserIdentity]:
        async with self.db.get_session() as session:
            result = await session.execute(select(AuthUser).where(*criteria))
            user = result.scalar_one_or_none()
            return UserIdentity.model_validate(user) if user else None

    async def _update(self, user_id: int, **values) -> None:
        async with self.db.get_session() as session:
            await session.execute(
                update(AuthUser).where(AuthUser.id == user_id).values(**values)
            )

    async def find_by_username_or_email(self, identifier: str) -> Optional[UserIdentity]:
        return await self._find_one(
            or_(AuthUser.username == identifier, AuthUser.email == identifier)
        )

    async def find_by_id(self, user_id: int) -> Optional[UserIdentity]:
        return await self._find_one(AuthUser.id == user_id)

    async def find_by_remember_token(self, token_hash: str) -> Optional[UserIdentity]:
        return await self._find_one(
            AuthUser.remember_token == token_hash,
            AuthUser.is_active.is_(True),
        )

    async def set_remember_token(self, user_id: int, token_hash: str) -> None:
        await self._update(user_id, remember_token=token_hash)

    async def clear_remember_token(self, user_id: int) -> None:
        await self._update(user_id, remember_token=None)

    async def update_last_login(self, user_id: int, when: datetime) -> None:
        await self._update(user_id, last_login=when)

    async def update_password(self, user_id: int, password_hash: str) -> None:
        await self._update(user_id, password_hash=password_hash, remember_token=None)

    async def create_user(self, user_in: UserCreate) -> UserIdentity:
        """Create a new user."""
        if await self._find_one(
            or_(AuthUser.username == user_in.username, AuthUser.email == user_in.email)
        ):
            raise UserExistsError("Username or email already registered")

        user_data = user_in.model_dump(exclude={"password"})
        user_data["role"] = user_in.role.value
        user_data["password_hash"] = get_password_hash(user_in.password)

        async with self.db.get_session() as session:
            user = AuthUser(**user_data)
            session.add(user)
            await session.flush()
            await session.refresh(user)
            logger.info(f"Created user {user.username} ({user.role})")
            return UserIdentity.model_validate(user)


class InMemoryIdentityStore(IdentityStore):
    """Dictionary-backed identity store for tests and local tooling."""

    def __init__(self) -> None:
        self.users: Dict[int, UserIdentity] = {}
        self._ids = itertools.count(1)

    async def find_by_username_or_email(self, identifier: str) -> Optional[UserIdentity]:
        for user in self.users.values():
            if identifier in (user.username, user.email):
                return user.model_copy()
        return None

    async def find_by_id(self, user_id: int) -> Optional[UserIdentity]:
        user = self.users.get(user_id)
        return user.model_copy() if user else None

    async def find_by_remember_token(self, token_hash: str) -> Optional[UserIdentity]:
        for user in self.users.values():
            if user.is_active and user.remember_token == token_hash:
                return user.model_copy()
        return None

    async def set_remember_token(self, user_id: int, token_hash: str) -> None:
        self.users[user_id].remember_token = token_hash

    async def clear_remember_token(self, user_id: int) -> None:
        self.users[user_id].remember_token = None

    async def update_last_login(self, user_id: int, when: datetime) -> None:
        self.users[user_id].last_login = when

    async def update_password(self, user_id: int, password_hash: str) -> None:
        self.users[user_id].password_hash = password_hash
        self.users[user_id].remember_token = None

    def add(self, user_in: UserCreate) -> UserIdentity:
        """Synchronous insert, for seeding fixtures."""
        if any(u.username == user_in.username or u.email == user_in.email for u in self.users.values()):
            raise UserExistsError("Username or email already registered")

        user = UserIdentity(
            id=next(self._ids),
            username=user_in.username,
            email=user_in.email,
            password_hash=get_password_hash(user_in.password),
            full_name=user_in.full_name,
            role=user_in.role,
            is_active=user_in.is_active,
        )
        self.users[user.id] = user
        return user.model_copy()

    async def create_user(self, user_in: UserCreate) -> UserIdentity:
        return self.add(user_in)
