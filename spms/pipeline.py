# pipeline.py
"""
ASGI application tying sessions, authentication, CSRF and routing together.

For every HTTP request the pipeline loads the session once, builds a
:class:`~spms.core.context.RequestContext`, bootstraps authentication,
dispatches through the router and finally writes the session back once.
"""
import logging
import time
from typing import Callable, Optional

from starlette.requests import Request
from starlette.types import Receive, Scope, Send

from .auth import SessionAuthenticator
from .auth.users import IdentityStore
from .core.config import Settings, settings as default_settings
from .core.context import RequestContext
from .csrf import TokenStore
from .routing import Router
from .sessions import SessionManager

logger = logging.getLogger(__name__)


class RequestPipeline:
    """Per-request orchestration around a frozen :class:`Router`."""

    def __init__(
        self,
        router: Router,
        session_manager: SessionManager,
        identity_store: IdentityStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.router = router
        self.session_manager = session_manager
        self.identity_store = identity_store
        self.settings = settings or default_settings
        self.clock = clock
        self.router.freeze()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            raise RuntimeError(f"RequestPipeline only serves HTTP, got {scope['type']!r}")

        request = Request(scope, receive)
        response = await self.handle(request)
        await response(scope, receive, send)

    async def build_context(self, request: Request) -> RequestContext:
        session = await self.session_manager.load(
            request.cookies.get(self.session_manager.cookie_name)
        )
        ctx = RequestContext(request, session, self.settings)
        ctx.auth = SessionAuthenticator(
            session,
            self.identity_store,
            client_address=ctx.client_address,
            remember_cookie=request.cookies.get(self.settings.REMEMBER_COOKIE_NAME),
            cookies=ctx.cookies,
            settings=self.settings,
            clock=self.clock,
        )
        ctx.csrf = TokenStore.from_settings(session, self.settings, clock=self.clock)
        return ctx

    async def handle(self, request: Request):
        ctx = await self.build_context(request)
        await ctx.auth.bootstrap()

        response = await self.router.dispatch(ctx)

        ctx.cookies.apply(response)
        await self.session_manager.save(ctx.session)
        self.session_manager.apply_cookie(response, ctx.session, secure=ctx.is_secure)
        return response
