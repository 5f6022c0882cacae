# middleware/base.py
"""Base class for ASGI-level middleware wrapped around the application."""
from abc import ABC
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable
import time
import uuid


class SpmsMiddleware(BaseHTTPMiddleware, ABC):
    """Hooks run before and after every request reaching the application."""

    def __init__(self, app, **kwargs):
        super().__init__(app)
        self.config = kwargs

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.request_id = str(uuid.uuid4())
        request.state.start_time = time.perf_counter()

        await self.before_request(request)
        response = await call_next(request)
        return await self.after_response(request, response)

    async def before_request(self, request: Request) -> None:
        pass

    async def after_response(self, request: Request, response: Response) -> Response:
        return response
