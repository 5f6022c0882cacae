# routing/__init__.py
"""
Pattern router with a middleware chain.

Routes are matched by a linear scan in registration order and the first
match wins, so a parameterised route like ``/clients/{id}`` shadows a
literal ``/clients/create`` registered after it. Register literal routes
first.

Middleware and handlers receive a :class:`~spms.core.context.RequestContext`.
A middleware returning anything other than ``None`` short-circuits the chain
and that value becomes the response.
"""
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response

from ..core import responses
from ..core.context import RequestContext
from ..core.exceptions import (
    HandlerExecutionError, RouteNotFound, RouterFrozenError
)
from .controllers import ControllerRegistry

logger = logging.getLogger(__name__)

ANY = "ANY"

Handler = Callable[..., Any]
Middleware = Callable[[RequestContext], Any]
HandlerRef = Union[str, Handler]

_PARAM_RE = re.compile(r"\{([^{}]*)\}")
_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Route:
    """One registered route. Immutable."""
    method: str
    pattern: str
    regex: re.Pattern
    param_names: Tuple[str, ...]
    handler: Handler
    middleware: Tuple[Middleware, ...] = ()
    name: Optional[str] = None

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        if self.method != ANY and self.method != method:
            return None
        m = self.regex.match(path)
        if m is None:
            return None
        return dict(zip(self.param_names, m.groups()))


def normalize_path(uri: str, base_path: str = "") -> str:
    """Reduce a request URI to the path the route table is written against."""
    path = uri.split("?", 1)[0].split("#", 1)[0] or "/"

    base = base_path.rstrip("/")
    if base and (path == base or path.startswith(base + "/")):
        path = path[len(base):]

    path = "/" + path.lstrip("/")
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def normalize_pattern(pattern: str) -> str:
    """Give a route pattern the same slash shape as a normalized request path."""
    pattern = "/" + pattern.lstrip("/")
    if len(pattern) > 1 and pattern.endswith("/"):
        pattern = pattern[:-1]
    return pattern


def compile_pattern(pattern: str) -> Tuple[re.Pattern, Tuple[str, ...]]:
    """Compile ``/clients/{id}`` style patterns to an anchored regex."""
    names: List[str] = []
    parts: List[str] = []
    pos = 0
    for m in _PARAM_RE.finditer(pattern):
        name = m.group(1)
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid route parameter name {name!r} in {pattern!r}")
        if name in names:
            raise ValueError(f"Duplicate route parameter {name!r} in {pattern!r}")
        names.append(name)
        parts.append(re.escape(pattern[pos:m.start()]))
        parts.append("([^/]+)")
        pos = m.end()

    tail = pattern[pos:]
    if "{" in tail or "}" in tail:
        raise ValueError(f"Unbalanced braces in route pattern {pattern!r}")
    parts.append(re.escape(tail))

    return re.compile("^" + "".join(parts) + "$"), tuple(names)


def to_response(result: Any) -> Response:
    """Convert a handler's return value into a response."""
    if isinstance(result, Response):
        return result
    if result is None:
        return Response(status_code=204)
    if isinstance(result, str):
        return HTMLResponse(result)
    if isinstance(result, (dict, list)):
        return JSONResponse(result)
    raise TypeError(f"Handler returned unsupported type {type(result).__name__}")


async def _call(func: Callable, *args, **kwargs) -> Any:
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class Router:
    """Route table, middleware chain and fallback handlers."""

    def __init__(
        self,
        base_path: str = "",
        controllers: Optional[ControllerRegistry] = None,
        debug: bool = False,
    ) -> None:
        self.base_path = base_path.rstrip("/")
        self.controllers = controllers or ControllerRegistry()
        self.debug = debug
        self._routes: List[Route] = []
        self._global_middleware: List[Middleware] = []
        self._not_found_handler: Optional[Callable[[RequestContext, RouteNotFound], Any]] = None
        self._error_handler: Optional[Callable[[RequestContext, HandlerExecutionError], Any]] = None
        self._frozen = False

    # === Registration ===

    def _check_open(self) -> None:
        if self._frozen:
            raise RouterFrozenError("Routes cannot be changed after the router has been frozen")

    def add_route(
        self,
        method: str,
        pattern: str,
        handler: HandlerRef,
        middleware: Optional[List[Middleware]] = None,
        name: Optional[str] = None,
    ) -> Route:
        self._check_open()

        if isinstance(handler, str):
            handler = self.controllers.resolve(handler)
        elif not callable(handler):
            raise TypeError(f"Route handler for {pattern!r} must be callable or 'Controller@method'")

        pattern = normalize_pattern(pattern)
        regex, param_names = compile_pattern(pattern)
        route = Route(
            method=method.upper(),
            pattern=pattern,
            regex=regex,
            param_names=param_names,
            handler=handler,
            middleware=tuple(middleware or ()),
            name=name,
        )
        self._routes.append(route)
        logger.debug(f"Registered route {route.method} {pattern}")
        return route

    def get(self, pattern: str, handler: HandlerRef, middleware=None, name=None) -> Route:
        return self.add_route("GET", pattern, handler, middleware, name)

    def post(self, pattern: str, handler: HandlerRef, middleware=None, name=None) -> Route:
        return self.add_route("POST", pattern, handler, middleware, name)

    def put(self, pattern: str, handler: HandlerRef, middleware=None, name=None) -> Route:
        return self.add_route("PUT", pattern, handler, middleware, name)

    def patch(self, pattern: str, handler: HandlerRef, middleware=None, name=None) -> Route:
        return self.add_route("PATCH", pattern, handler, middleware, name)

    def delete(self, pattern: str, handler: HandlerRef, middleware=None, name=None) -> Route:
        return self.add_route("DELETE", pattern, handler, middleware, name)

    def any(self, pattern: str, handler: HandlerRef, middleware=None, name=None) -> Route:
        return self.add_route(ANY, pattern, handler, middleware, name)

    def add_global_middleware(self, middleware: Middleware) -> None:
        """Middleware run before every route's own middleware, in registration order."""
        self._check_open()
        self._global_middleware.append(middleware)

    def set_not_found_handler(self, handler: Callable[[RequestContext, RouteNotFound], Any]) -> None:
        self._check_open()
        self._not_found_handler = handler

    def set_error_handler(self, handler: Callable[[RequestContext, HandlerExecutionError], Any]) -> None:
        self._check_open()
        self._error_handler = handler

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def routes(self) -> Tuple[Route, ...]:
        return tuple(self._routes)

    def url(self, pattern: str, **params: Any) -> str:
        """Build a URL from a pattern, prefixed with the base path."""
        def substitute(m: "re.Match") -> str:
            name = m.group(1)
            if name not in params:
                raise KeyError(f"Missing route parameter {name!r} for {pattern!r}")
            return quote(str(params[name]), safe="")

        return self.base_path + _PARAM_RE.sub(substitute, pattern)

    # === Matching and dispatch ===

    def match(self, method: str, path: str) -> Optional[Tuple[Route, Dict[str, str]]]:
        method = method.upper()
        for route in self._routes:
            params = route.match(method, path)
            if params is not None:
                return route, params
        return None

    def path_for(self, request: Request) -> str:
        return normalize_path(request.url.path, self.base_path)

    async def dispatch(self, ctx: RequestContext) -> Response:
        """Run the middleware chain and the matched handler for ``ctx``."""
        path = self.path_for(ctx.request)
        found = self.match(ctx.method, path)

        if found is None:
            return await self._not_found(ctx, RouteNotFound(ctx.method, path))

        route, params = found
        ctx.route = route
        ctx.path_params = params

        try:
            for middleware in (*self._global_middleware, *route.middleware):
                result = await _call(middleware, ctx)
                if result is not None:
                    return to_response(result)

            return to_response(await _call(route.handler, ctx, **params))
        except Exception as e:
            logger.exception(f"Error handling {ctx.method} {path}")
            error = HandlerExecutionError(
                f"Error handling {ctx.method} {path}: {e}",
                context={"method": ctx.method, "path": path, "route": route.pattern},
                original_exception=e,
            )
            return await self._error(ctx, error)

    async def _not_found(self, ctx: RequestContext, error: RouteNotFound) -> Response:
        logger.info(error.message)
        if self._not_found_handler is not None:
            return to_response(await _call(self._not_found_handler, ctx, error))
        return responses.not_found(ctx.request)

    async def _error(self, ctx: RequestContext, error: HandlerExecutionError) -> Response:
        if self._error_handler is not None:
            try:
                return to_response(await _call(self._error_handler, ctx, error))
            except Exception:
                logger.exception("Error handler failed")
        return responses.server_error(ctx.request, error, debug=self.debug)


__all__ = [
    "Router", "Route", "ControllerRegistry", "ANY",
    "normalize_path", "normalize_pattern", "compile_pattern", "to_response",
]
