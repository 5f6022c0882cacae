# middleware/timing.py
from .base import SpmsMiddleware
from starlette.requests import Request
from starlette.responses import Response
import time
import logging

logger = logging.getLogger(__name__)


class TimingMiddleware(SpmsMiddleware):
    """
    Measures request processing time.

    Adds the elapsed time to the response headers and writes one access log
    line per request.
    """

    def __init__(self, app, time_header: str = "X-Process-Time", **kwargs):
        """
        Args:
            app: The ASGI application
            time_header: Header name to use for the process time
        """
        super().__init__(app, **kwargs)
        self.time_header = time_header

    async def after_response(self, request: Request, response: Response) -> Response:
        process_time = time.perf_counter() - request.state.start_time
        response.headers[self.time_header] = f"{process_time:.4f} sec"

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({process_time * 1000:.1f} ms) [{request.state.request_id}]"
        )
        return response
