"""
Per-request context handed to middleware and handlers.

A :class:`RequestContext` is built by the pipeline for every request and
discarded when the response has been sent. It carries the request, the
loaded session, the authenticator and the CSRF token store, plus cookies
that collaborators want set on whatever response ends up being returned.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request
from starlette.responses import Response

from .config import Settings
from .responses import is_ajax

if TYPE_CHECKING:
    from ..auth import SessionAuthenticator
    from ..csrf import TokenStore
    from ..routing import Route
    from ..sessions import Session


@dataclass
class PendingCookie:
    name: str
    value: Optional[str]
    max_age: Optional[int] = None
    path: str = "/"
    httponly: bool = True
    secure: bool = False
    samesite: str = "lax"


class ResponseCookies:
    """Cookie changes queued during a request and applied to the final response."""

    def __init__(self, secure: bool = False) -> None:
        self.secure = secure
        self.pending: List[PendingCookie] = []

    def set(self, name: str, value: str, max_age: Optional[int] = None, path: str = "/",
            httponly: bool = True, samesite: str = "lax") -> None:
        self._replace(PendingCookie(name, value, max_age, path, httponly, self.secure, samesite))

    def delete(self, name: str, path: str = "/") -> None:
        self._replace(PendingCookie(name, None, path=path, secure=self.secure))

    def get(self, name: str) -> Optional[PendingCookie]:
        for cookie in self.pending:
            if cookie.name == name:
                return cookie
        return None

    def _replace(self, cookie: PendingCookie) -> None:
        self.pending = [c for c in self.pending if c.name != cookie.name]
        self.pending.append(cookie)

    def apply(self, response: Response) -> None:
        for cookie in self.pending:
            if cookie.value is None:
                response.delete_cookie(
                    cookie.name, path=cookie.path, secure=cookie.secure,
                    httponly=cookie.httponly, samesite=cookie.samesite,
                )
            else:
                response.set_cookie(
                    cookie.name, cookie.value, max_age=cookie.max_age, path=cookie.path,
                    secure=cookie.secure, httponly=cookie.httponly, samesite=cookie.samesite,
                )


class RequestContext:
    """Everything a handler needs to know about the current request."""

    def __init__(self, request: Request, session: "Session", settings: Settings) -> None:
        self.request = request
        self.session = session
        self.settings = settings
        self.cookies = ResponseCookies(secure=self.is_secure)
        self.auth: Optional["SessionAuthenticator"] = None
        self.csrf: Optional["TokenStore"] = None
        self.route: Optional["Route"] = None
        self.path_params: Dict[str, str] = {}

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def is_secure(self) -> bool:
        return self.request.url.scheme == "https"

    @property
    def is_ajax(self) -> bool:
        return is_ajax(self.request)

    @property
    def client_address(self) -> str:
        return self.request.client.host if self.request.client else "unknown"

    def flash(self, kind: str, message: str) -> None:
        self.session.set_flash(kind, message)

    async def input(self, key: str, default: Any = None) -> Any:
        """Form field first, then query string."""
        content_type = self.request.headers.get("content-type", "")
        if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            try:
                form = await self.request.form()
            except (HTTPException, MultiPartException):
                form = {}
            if key in form:
                return form[key]
        return self.request.query_params.get(key, default)
