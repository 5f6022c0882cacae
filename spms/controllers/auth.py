# controllers/auth.py
"""Login, logout and password management pages."""
import logging

from starlette import status
from starlette.responses import Response

from ..auth import LoginStatus
from ..core.context import RequestContext
from .base import Controller

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class AuthController(Controller):
    """Handles the login form, logout and password changes."""

    async def show_login(self, ctx: RequestContext) -> Response:
        if await ctx.auth.check():
            return self.redirect(ctx.settings.HOME_URL)
        if ctx.auth.session_expired:
            ctx.flash("warning", str(ctx.auth.session_error))
        return await self.render(ctx, "auth/login.html", title="Login")

    async def login(self, ctx: RequestContext) -> Response:
        username = (await ctx.input("username") or "").strip()
        password = await ctx.input("password") or ""
        remember = bool(await ctx.input("remember_me"))

        if not username or not password:
            return self._login_failed(ctx, "Please enter your username and password")

        result = await ctx.auth.login(username, password, remember)

        if result:
            redirect_to = ctx.session.intended_url or ctx.settings.HOME_URL
            ctx.session.intended_url = None
            if ctx.is_ajax:
                return self.json({"success": True, "message": "Login successful", "redirect": redirect_to})
            ctx.flash("success", "Login successful")
            return self.redirect(redirect_to)

        if result.status is LoginStatus.LOCKED_OUT or result.remaining_attempts == 0:
            minutes = result.error.remaining_minutes
            message = f"Account locked due to too many failed attempts ({minutes} minutes remaining)"
        else:
            message = f"Invalid username or password ({result.remaining_attempts} attempts remaining)"
        return self._login_failed(ctx, message)

    def _login_failed(self, ctx: RequestContext, message: str) -> Response:
        if ctx.is_ajax:
            return self.json({"success": False, "message": message}, status.HTTP_401_UNAUTHORIZED)
        ctx.flash("error", message)
        return self.redirect(ctx.settings.LOGIN_URL)

    async def logout(self, ctx: RequestContext) -> Response:
        await ctx.auth.logout()
        ctx.flash("success", "You have been logged out")
        return self.redirect(ctx.settings.LOGIN_URL)

    async def show_change_password(self, ctx: RequestContext) -> Response:
        return await self.render(ctx, "auth/change_password.html", title="Change Password")

    async def change_password(self, ctx: RequestContext) -> Response:
        current = await ctx.input("current_password") or ""
        new = await ctx.input("new_password") or ""
        confirm = await ctx.input("confirm_password") or ""

        if not current or len(new) < MIN_PASSWORD_LENGTH or new != confirm:
            ctx.flash("error", "Please check your input and try again")
            return self.redirect("/change-password")

        if not await ctx.auth.change_password(current, new):
            ctx.flash("error", "Current password is incorrect")
            return self.redirect("/change-password")

        ctx.flash("success", "Password changed successfully")
        return self.redirect(ctx.settings.HOME_URL)

    async def check_auth(self, ctx: RequestContext) -> Response:
        """Report the authentication state to scripts."""
        if not ctx.is_ajax:
            return self.redirect("/")
        user = await ctx.auth.user()
        return self.json({
            "authenticated": user is not None,
            "user": user.model_dump(mode="json") if user else None,
        })

    async def session_timeout(self, ctx: RequestContext) -> Response:
        await ctx.auth.logout()
        message = "Your session has expired"
        if ctx.is_ajax:
            return self.json(
                {"success": False, "message": message, "redirect": ctx.settings.LOGIN_URL},
                status.HTTP_401_UNAUTHORIZED,
            )
        ctx.flash("warning", message)
        return self.redirect(ctx.settings.LOGIN_URL)
