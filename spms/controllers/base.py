# controllers/base.py
"""Shared controller plumbing: template rendering and flash handling."""
import os
from typing import Any, Dict

from fastapi.templating import Jinja2Templates
from markupsafe import Markup
from starlette.responses import JSONResponse, Response

from ..core import responses
from ..core.context import RequestContext

TEMPLATES_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'templates')
templates = Jinja2Templates(directory=TEMPLATES_PATH)


class Controller:
    """Base class for controllers registered with the router."""

    def __init__(self, templates: Jinja2Templates = templates) -> None:
        self.templates = templates

    async def render(self, ctx: RequestContext, template: str, **data: Any) -> Response:
        """Render ``template`` with the values every page needs."""
        context: Dict[str, Any] = {
            "app_name": ctx.settings.APP_NAME,
            "title": data.pop("title", ctx.settings.APP_NAME),
            "user": await ctx.auth.user(),
            "csrf_field": Markup(ctx.csrf.field()),
            "csrf_meta": Markup(ctx.csrf.meta_tag()),
            "flash_messages": ctx.session.pop_flash(),
        }
        context.update(data)
        return self.templates.TemplateResponse(ctx.request, template, context)

    def redirect(self, url: str) -> Response:
        return responses.redirect(url)

    def json(self, data: Any, status_code: int = 200) -> Response:
        return JSONResponse(data, status_code=status_code)
