# csrf/__init__.py
"""
CSRF protection.

Tokens are kept in the session as ``{token: {"issued_at": float, "scope": str}}``.
A token is bound to the scope it was issued for and stays valid, and
reusable, until it is older than the configured TTL. At most
``CSRF_MAX_TOKENS`` tokens live in a session; the oldest are evicted first.
"""
import html
import logging
import time
from typing import Any, Callable, Dict, Optional

from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request
from starlette.responses import Response

from ..core import responses
from ..core.config import Settings, settings as default_settings
from ..core.context import RequestContext
from ..core.exceptions import CsrfValidationFailed
from ..core.security import constant_time_compare, generate_token
from ..sessions import Session

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class TokenStore:
    """Issues and validates CSRF tokens held in one session."""

    def __init__(
        self,
        session: Session,
        ttl: int = 3600,
        max_tokens: int = 10,
        token_bytes: int = 32,
        token_name: str = "csrf_token",
        header_name: str = "X-CSRF-Token",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session = session
        self.ttl = ttl
        self.max_tokens = max_tokens
        self.token_bytes = token_bytes
        self.token_name = token_name
        self.header_name = header_name
        self.clock = clock

    @classmethod
    def from_settings(cls, session: Session, settings: Optional[Settings] = None,
                      clock: Callable[[], float] = time.time) -> "TokenStore":
        settings = settings or default_settings
        return cls(
            session,
            ttl=settings.CSRF_TOKEN_TTL,
            max_tokens=settings.CSRF_MAX_TOKENS,
            token_bytes=settings.CSRF_TOKEN_BYTES,
            token_name=settings.CSRF_TOKEN_NAME,
            header_name=settings.CSRF_HEADER_NAME,
            clock=clock,
        )

    @property
    def tokens(self) -> Dict[str, Dict[str, Any]]:
        return self.session.csrf_tokens

    def _expired(self, entry: Dict[str, Any], now: float) -> bool:
        return now - entry["issued_at"] > self.ttl

    def _purge_expired(self, now: float) -> None:
        for token in [t for t, entry in self.tokens.items() if self._expired(entry, now)]:
            del self.tokens[token]

    def issue(self, scope: str = "default") -> str:
        """Return a live token for ``scope``, minting one if needed."""
        now = self.clock()
        self._purge_expired(now)

        for token, entry in self.tokens.items():
            if entry["scope"] == scope:
                return token

        token = generate_token(self.token_bytes)
        self.tokens[token] = {"issued_at": now, "scope": scope}

        # sorted() is stable, so equal timestamps evict in insertion order
        excess = len(self.tokens) - self.max_tokens
        if excess > 0:
            oldest = sorted(self.tokens.items(), key=lambda item: item[1]["issued_at"])
            for stale, _ in oldest[:excess]:
                del self.tokens[stale]

        return token

    def validate(self, candidate: Any, scope: str = "default") -> bool:
        """Check ``candidate`` against the tokens issued for ``scope``. Never raises."""
        if not isinstance(candidate, str) or not candidate:
            return False

        now = self.clock()
        for token, entry in list(self.tokens.items()):
            if entry["scope"] != scope or not constant_time_compare(candidate, token):
                continue
            if self._expired(entry, now):
                del self.tokens[token]
                return False
            return True
        return False

    async def token_from_request(self, request: Request) -> Optional[str]:
        """Pull a candidate from the form body, then the header, then the query string."""
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(FORM_CONTENT_TYPES):
            try:
                form = await request.form()
            except (HTTPException, MultiPartException) as e:
                logger.warning(f"Unreadable form body on {request.method} {request.url.path}: {e}")
            else:
                value = form.get(self.token_name)
                if isinstance(value, str) and value:
                    return value

        value = request.headers.get(self.header_name)
        if value:
            return value

        return request.query_params.get(self.token_name)

    async def validate_request(self, request: Request, scope: str = "default") -> bool:
        return self.validate(await self.token_from_request(request), scope)

    def field(self, scope: str = "default") -> str:
        """Hidden form input carrying a token."""
        token = html.escape(self.issue(scope))
        return f'<input type="hidden" name="{html.escape(self.token_name)}" value="{token}">'

    def meta_tag(self, scope: str = "default") -> str:
        """``<meta>`` tag for scripts that send the token as a header."""
        token = html.escape(self.issue(scope))
        return f'<meta name="csrf-token" content="{token}">'

    def clear(self) -> None:
        self.tokens.clear()

    def active_tokens(self) -> Dict[str, Dict[str, Any]]:
        """Unexpired tokens, for debugging."""
        now = self.clock()
        return {t: dict(entry) for t, entry in self.tokens.items() if not self._expired(entry, now)}


def csrf_protect(scope: str = "default"):
    """Middleware rejecting unsafe requests that lack a valid token for ``scope``."""

    async def middleware(ctx: RequestContext) -> Optional[Response]:
        if ctx.method in SAFE_METHODS:
            return None

        if await ctx.csrf.validate_request(ctx.request, scope):
            return None

        error = CsrfValidationFailed(
            context={"method": ctx.method, "path": ctx.request.url.path, "client": ctx.client_address}
        )
        logger.warning(f"{error.message}: {error.context}")
        return responses.csrf_failed(ctx.request)

    return middleware


__all__ = ["TokenStore", "csrf_protect", "SAFE_METHODS"]
