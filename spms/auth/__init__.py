# auth/__init__.py
"""
Session-backed authentication for the SPMS core.

Provides password login with per-client lockout, remember-me persistent login
with token rotation, periodic session-identifier rotation, session timeout
and role checks. One :class:`SessionAuthenticator` is built per request around
that request's :class:`~spms.sessions.Session`.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from ..core.config import Settings, settings as default_settings
from ..core.context import ResponseCookies
from ..core.exceptions import AccountLockedOut, AuthenticationFailure, SessionExpired, SpmsError
from ..core.security import (
    dummy_verify, generate_token, get_password_hash, hash_token, verify_password
)
from ..sessions import Session
from .lockout import LockoutTracker
from .models import AuthUser, Role, UserCreate, UserIdentity, UserSnapshot
from .users import IdentityStore, InMemoryIdentityStore, SQLAlchemyIdentityStore, UserExistsError

logger = logging.getLogger(__name__)


class LoginStatus(str, Enum):
    """Outcome of a login attempt."""
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    LOCKED_OUT = "locked_out"


@dataclass(frozen=True)
class LoginResult:
    """Result of :meth:`SessionAuthenticator.login`. Truthy only on success."""
    status: LoginStatus
    remaining_attempts: int = 0
    remaining_lockout_seconds: int = 0
    error: Optional[SpmsError] = None

    @property
    def success(self) -> bool:
        return self.status is LoginStatus.SUCCESS

    def __bool__(self) -> bool:
        return self.success


class SessionAuthenticator:
    """Establishes and validates the caller's identity for one request."""

    def __init__(
        self,
        session: Session,
        store: IdentityStore,
        client_address: str = "unknown",
        remember_cookie: Optional[str] = None,
        cookies: Optional[ResponseCookies] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session = session
        self.store = store
        self.client_address = client_address
        self.cookies = cookies if cookies is not None else ResponseCookies()
        self.settings = settings or default_settings
        self.clock = clock
        self.lockout = LockoutTracker(
            session,
            client_address,
            max_attempts=self.settings.MAX_LOGIN_ATTEMPTS,
            lockout_seconds=self.settings.LOCKOUT_SECONDS,
            clock=clock,
        )
        self._remember_cookie = remember_cookie
        self._user: Optional[UserSnapshot] = None
        self._bootstrapped = False
        self.session_error: Optional[SessionExpired] = None

    # === Session bootstrap ===

    async def bootstrap(self) -> None:
        """Rotate, expire and load the session once per request."""
        if self._bootstrapped:
            return
        self._bootstrapped = True

        self._regenerate_session_id()

        if self._session_timed_out():
            logger.info(f"Session expired for user {self.session.user.get('username')}")
            await self._logout()
            self.session_error = SessionExpired()
            return

        if self.session.user:
            try:
                self._user = UserSnapshot(**self.session.user)
            except (TypeError, ValueError):
                logger.warning("Discarding malformed user snapshot from session")
                self.session.user = None
            else:
                return

        if self._remember_cookie:
            await self._login_from_remember_token(self._remember_cookie)

    def _regenerate_session_id(self) -> None:
        now = self.clock()
        last = self.session.last_regeneration
        if last is None:
            self.session.last_regeneration = now
        elif now - last > self.settings.SESSION_REGENERATE_INTERVAL:
            self.session.regenerate_id()
            self.session.last_regeneration = now
            logger.debug("Regenerated session identifier")

    def _session_timed_out(self) -> bool:
        login_time = self.session.login_time
        if login_time is None or not self.session.user:
            return False
        return self.clock() - login_time > self.settings.SESSION_LIFETIME

    @property
    def session_expired(self) -> bool:
        return self.session_error is not None

    # === Login / logout ===

    async def login(self, username: str, password: str, remember: bool = False) -> LoginResult:
        """Attempt to log in with a username or email and a password."""
        await self.bootstrap()

        if self.lockout.is_locked_out(username):
            remaining = self.lockout.remaining_lockout_seconds(username)
            logger.warning(f"Login rejected for locked out user {username!r} from {self.client_address}")
            return LoginResult(
                LoginStatus.LOCKED_OUT,
                remaining_lockout_seconds=remaining,
                error=AccountLockedOut(remaining),
            )

        user = await self.store.find_by_username_or_email(username)
        if user is None or not user.is_active:
            dummy_verify()
            return self._failed(username)

        if not verify_password(password, user.password_hash):
            return self._failed(username)

        self.lockout.clear(username)
        self.session.regenerate_id()
        self.session.last_regeneration = self.clock()
        self._set_user_session(user)
        await self.store.update_last_login(user.id, datetime.now(timezone.utc).replace(tzinfo=None))
        if remember:
            await self._issue_remember_token(user.id)

        logger.info(f"User {user.username} logged in from {self.client_address}")
        return LoginResult(
            LoginStatus.SUCCESS,
            remaining_attempts=self.lockout.max_attempts,
        )

    def _failed(self, username: str) -> LoginResult:
        count = self.lockout.record_failure(username)
        logger.warning(f"Failed login for {username!r} from {self.client_address} ({count} attempts)")

        if count >= self.lockout.max_attempts:
            remaining = self.lockout.remaining_lockout_seconds(username)
            return LoginResult(
                LoginStatus.INVALID_CREDENTIALS,
                remaining_attempts=0,
                remaining_lockout_seconds=remaining,
                error=AccountLockedOut(remaining),
            )
        return LoginResult(
            LoginStatus.INVALID_CREDENTIALS,
            remaining_attempts=self.lockout.remaining_attempts(username),
            error=AuthenticationFailure(),
        )

    async def logout(self) -> None:
        """Log the current user out and forget the remember token."""
        await self.bootstrap()
        await self._logout()

    async def _logout(self) -> None:
        user_id = self._user.id if self._user else (self.session.user or {}).get("id")
        if user_id is not None:
            await self.store.clear_remember_token(user_id)
            logger.info(f"User {user_id} logged out")

        if self._remember_cookie or self.cookies.get(self.settings.REMEMBER_COOKIE_NAME):
            self.cookies.delete(self.settings.REMEMBER_COOKIE_NAME)
        self._remember_cookie = None

        self.session.invalidate()
        self._user = None

    def _set_user_session(self, user: UserIdentity) -> None:
        snapshot = UserSnapshot.from_identity(user)
        self.session.user = snapshot.model_dump(mode="json")
        self.session.login_time = self.clock()
        self._user = snapshot

    # === Remember me ===

    async def _issue_remember_token(self, user_id: int) -> None:
        token = generate_token(32)
        await self.store.set_remember_token(user_id, hash_token(token))
        self.cookies.set(
            self.settings.REMEMBER_COOKIE_NAME,
            token,
            max_age=self.settings.REMEMBER_TOKEN_DAYS * 24 * 60 * 60,
            path="/",
            httponly=True,
        )

    async def _login_from_remember_token(self, token: str) -> None:
        user = await self.store.find_by_remember_token(hash_token(token))

        if user is not None and user.is_active:
            self.session.regenerate_id()
            self.session.last_regeneration = self.clock()
            self._set_user_session(user)
            # Rotate so a captured cookie is useless after its first reuse
            await self._issue_remember_token(user.id)
            logger.info(f"User {user.username} logged in from remember token")
        else:
            logger.warning(f"Rejected remember token from {self.client_address}")
            self.cookies.delete(self.settings.REMEMBER_COOKIE_NAME)
        self._remember_cookie = None

    # === Identity reads ===

    async def check(self) -> bool:
        await self.bootstrap()
        return self._user is not None

    async def user(self) -> Optional[UserSnapshot]:
        await self.bootstrap()
        return self._user

    async def id(self) -> Optional[int]:
        user = await self.user()
        return user.id if user else None

    async def has_role(self, role: Union[Role, str]) -> bool:
        return await self.has_any_role([role])

    async def has_any_role(self, roles: Iterable[Union[Role, str]]) -> bool:
        user = await self.user()
        if user is None:
            return False
        return user.role.value in {r.value if isinstance(r, Role) else str(r) for r in roles}

    # === Lockout introspection ===

    def remaining_lockout_seconds(self, username: str) -> int:
        return self.lockout.remaining_lockout_seconds(username)

    def failed_attempts(self, username: str) -> int:
        return self.lockout.failed_attempts(username)

    def remaining_attempts(self, username: str) -> int:
        return self.lockout.remaining_attempts(username)

    # === Passwords ===

    @staticmethod
    def hash_password(password: str) -> str:
        return get_password_hash(password)

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    async def change_password(self, current_password: str, new_password: str) -> bool:
        """Change the logged-in user's password after re-checking the current one."""
        snapshot = await self.user()
        if snapshot is None:
            return False

        user = await self.store.find_by_id(snapshot.id)
        if user is None or not verify_password(current_password, user.password_hash):
            return False

        await self.store.update_password(user.id, get_password_hash(new_password))
        self.session.regenerate_id()
        logger.info(f"User {user.username} changed password")
        return True


__all__ = [
    'SessionAuthenticator', 'LoginResult', 'LoginStatus', 'LockoutTracker',
    'AuthUser', 'Role', 'UserCreate', 'UserIdentity', 'UserSnapshot',
    'IdentityStore', 'InMemoryIdentityStore', 'SQLAlchemyIdentityStore', 'UserExistsError',
]
