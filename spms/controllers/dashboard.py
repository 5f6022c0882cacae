# controllers/dashboard.py
"""Dashboard pages shown after login."""
from starlette.responses import Response

from ..core.context import RequestContext
from .base import Controller


class DashboardController(Controller):

    async def index(self, ctx: RequestContext) -> Response:
        return await self.render(ctx, "dashboard/index.html", title="Dashboard")

    async def data(self, ctx: RequestContext) -> Response:
        """Session summary for scripts polling the dashboard."""
        if not ctx.is_ajax:
            return self.redirect(ctx.settings.HOME_URL)

        user = await ctx.auth.user()
        return self.json({
            "success": True,
            "data": {
                "user": user.model_dump(mode="json"),
                "login_time": ctx.session.login_time,
                "session_lifetime": ctx.settings.SESSION_LIFETIME,
            },
        })
