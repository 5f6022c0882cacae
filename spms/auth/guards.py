# auth/guards.py
"""
Route guards.

Each factory returns a middleware callable ``(ctx) -> Optional[Response]``.
Returning ``None`` lets the request continue; any response short-circuits
the handler.
"""
import logging
from typing import Optional

from starlette.responses import Response

from ..core import responses
from ..core.context import RequestContext
from ..routing import normalize_path
from .models import Role

logger = logging.getLogger(__name__)


def require_auth(login_url: Optional[str] = None):
    """Only let authenticated callers through."""

    async def guard(ctx: RequestContext) -> Optional[Response]:
        if await ctx.auth.check():
            return None

        if ctx.auth.session_expired:
            ctx.flash("error", str(ctx.auth.session_error))
        if ctx.method == "GET" and not ctx.is_ajax:
            ctx.session.intended_url = normalize_path(ctx.request.url.path)

        return responses.unauthenticated(ctx.request, login_url or ctx.settings.LOGIN_URL)

    return guard


def require_any_role(*roles, redirect_url: Optional[str] = None):
    """Only let callers holding one of ``roles`` through."""
    required = [r.value if isinstance(r, Role) else r for r in roles]

    async def guard(ctx: RequestContext) -> Optional[Response]:
        if not await ctx.auth.check():
            return responses.unauthenticated(ctx.request, ctx.settings.LOGIN_URL)

        if await ctx.auth.has_any_role(required):
            return None

        user = await ctx.auth.user()
        logger.warning(f"User {user.username} denied access to {ctx.request.url.path}, requires {required}")
        return responses.forbidden(ctx.request, redirect_url or ctx.settings.UNAUTHORIZED_URL)

    return guard


def require_role(role, redirect_url: Optional[str] = None):
    return require_any_role(role, redirect_url=redirect_url)


def require_guest(redirect_url: Optional[str] = None):
    """Bounce authenticated callers away from guest-only pages like the login form."""

    async def guard(ctx: RequestContext) -> Optional[Response]:
        if await ctx.auth.check():
            return responses.redirect(redirect_url or ctx.settings.HOME_URL)
        return None

    return guard
