# sessions/__init__.py
"""
Explicit per-request sessions.

A :class:`Session` is loaded once at the start of a request, mutated by the
authenticator, the CSRF token store and the controllers, and written back
once at the end of the request if its contents changed.
"""
import copy
import json
import logging
import secrets
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from starlette.responses import Response

from .backends import SessionBackend, InMemorySessionBackend, RedisSessionBackend, create_backend

logger = logging.getLogger(__name__)

_PERSISTED_FIELDS = (
    "user",
    "login_time",
    "last_regeneration",
    "csrf_tokens",
    "login_attempts",
    "flash",
    "intended_url",
)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


@dataclass
class Session:
    """Session state for one browser."""
    session_id: str
    user: Optional[Dict[str, Any]] = None
    login_time: Optional[float] = None
    last_regeneration: Optional[float] = None
    csrf_tokens: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    login_attempts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    flash: Dict[str, str] = field(default_factory=dict)
    intended_url: Optional[str] = None

    # Bookkeeping, never persisted
    cookie_id: Optional[str] = field(default=None, repr=False, compare=False)
    previous_ids: List[str] = field(default_factory=list, repr=False, compare=False)
    persisted: bool = field(default=False, repr=False, compare=False)
    loaded_state: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in _PERSISTED_FIELDS}

    def is_empty(self) -> bool:
        defaults = Session(session_id="").to_dict()
        return self.to_dict() == defaults

    @classmethod
    def from_dict(cls, session_id: str, data: Dict[str, Any]) -> "Session":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and k in _PERSISTED_FIELDS}
        return cls(session_id=session_id, **values)

    def regenerate_id(self) -> str:
        """Move the contents to a fresh identifier; the old key is dropped on save."""
        self.previous_ids.append(self.session_id)
        self.session_id = new_session_id()
        return self.session_id

    def invalidate(self) -> None:
        """Drop all contents and continue under a fresh identifier."""
        blank = Session(session_id="")
        for name in _PERSISTED_FIELDS:
            setattr(self, name, getattr(blank, name))
        self.regenerate_id()

    # Flash messages survive exactly one read

    def set_flash(self, kind: str, message: str) -> None:
        self.flash[kind] = message

    def pop_flash(self) -> Dict[str, str]:
        messages, self.flash = self.flash, {}
        return messages


class SessionManager:
    """Loads and persists sessions through a :class:`SessionBackend`."""

    def __init__(
        self,
        backend: SessionBackend,
        cookie_name: str = "SPMS_SESSION",
        lifetime: int = 3600,
    ) -> None:
        self.backend = backend
        self.cookie_name = cookie_name
        self.lifetime = lifetime

    async def load(self, session_id: Optional[str]) -> Session:
        """Load the session named by the cookie, or start a new one."""
        if session_id:
            raw = await self.backend.get(session_id)
            if raw is not None:
                try:
                    session = Session.from_dict(session_id, json.loads(raw))
                except (ValueError, TypeError) as e:
                    logger.warning(f"Discarding unreadable session: {e}")
                else:
                    session.cookie_id = session_id
                    session.persisted = True
                    session.loaded_state = copy.deepcopy(session.to_dict())
                    return session

        # Unknown identifiers are never adopted (strict mode)
        session = Session(session_id=new_session_id())
        session.cookie_id = session_id if session_id else None
        session.loaded_state = copy.deepcopy(session.to_dict())
        return session

    async def save(self, session: Session) -> None:
        """Write the session back if it changed; drop rotated-away keys."""
        for old_id in session.previous_ids:
            await self.backend.delete(old_id)
        rotated = bool(session.previous_ids)
        session.previous_ids = []

        if session.is_empty():
            if session.persisted:
                await self.backend.delete(session.session_id)
            session.persisted = False
            return

        if rotated or not session.persisted or session.to_dict() != session.loaded_state:
            await self.backend.set(
                session.session_id,
                json.dumps(session.to_dict()),
                ttl=self.lifetime,
            )
            session.persisted = True
            session.loaded_state = copy.deepcopy(session.to_dict())

    def apply_cookie(self, response: Response, session: Session, secure: bool = False) -> None:
        """Point the browser at the session that was just saved."""
        if session.persisted:
            if session.session_id != session.cookie_id:
                response.set_cookie(
                    self.cookie_name,
                    session.session_id,
                    path="/",
                    httponly=True,
                    secure=secure,
                    samesite="strict",
                )
        elif session.cookie_id:
            response.delete_cookie(
                self.cookie_name,
                path="/",
                httponly=True,
                secure=secure,
                samesite="strict",
            )


__all__ = [
    "Session", "SessionManager", "SessionBackend", "InMemorySessionBackend",
    "RedisSessionBackend", "create_backend", "new_session_id",
]
