# controllers/home.py
from starlette import status
from starlette.responses import Response

from ..core import responses
from ..core.context import RequestContext
from .base import Controller


class HomeController(Controller):
    """Landing page: sends visitors to the dashboard or the login form."""

    async def index(self, ctx: RequestContext) -> Response:
        if await ctx.auth.check():
            return self.redirect(ctx.settings.HOME_URL)
        return self.redirect(ctx.settings.LOGIN_URL)

    async def unauthorized(self, ctx: RequestContext) -> Response:
        return responses.error_page(
            "Forbidden",
            "You do not have permission to access this page.",
            status.HTTP_403_FORBIDDEN,
        )
