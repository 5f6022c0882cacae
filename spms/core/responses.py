"""
Response helpers shared by the router, the CSRF middleware and the guards.

AJAX callers (``X-Requested-With: XMLHttpRequest``) get JSON bodies of the
form ``{"success": false, "message": ..., "errors"|"redirect": ...}``;
browsers get a redirect or a minimal HTML page.
"""
import html
import traceback
from typing import Any, Optional

from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette import status


def is_ajax(request: Request) -> bool:
    """Check whether the caller identified itself as an AJAX client."""
    return request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"


def json_error(message: str, status_code: int, errors: Any = None, redirect: Optional[str] = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if redirect is not None:
        content["redirect"] = redirect
    else:
        content["errors"] = errors
    return JSONResponse(content, status_code=status_code)


def error_page(title: str, message: str, status_code: int, details: Optional[str] = None) -> HTMLResponse:
    """Render a minimal standalone error page."""
    body = (
        "<!DOCTYPE html>\n"
        "<html>\n<head>\n"
        f"    <title>{status_code} {html.escape(title)}</title>\n"
        "    <style>\n"
        "        body { font-family: Arial, sans-serif; text-align: center; margin-top: 100px; }\n"
        "        .error { color: #d32f2f; }\n"
        "        pre { text-align: left; margin: 20px auto; max-width: 900px; overflow-x: auto; }\n"
        "    </style>\n"
        "</head>\n<body>\n"
        f"    <h1 class=\"error\">{status_code} - {html.escape(title)}</h1>\n"
        f"    <p>{html.escape(message)}</p>\n"
    )
    if details:
        body += f"    <pre>{html.escape(details)}</pre>\n"
    body += "    <a href=\"javascript:history.back()\">Go Back</a>\n</body>\n</html>"
    return HTMLResponse(body, status_code=status_code)


def redirect(url: str, status_code: int = status.HTTP_302_FOUND) -> RedirectResponse:
    return RedirectResponse(url, status_code=status_code)


def unauthenticated(request: Request, login_url: str) -> Response:
    """401 for AJAX callers, redirect to the login page otherwise."""
    if is_ajax(request):
        return json_error("Authentication required", status.HTTP_401_UNAUTHORIZED, redirect=login_url)
    return redirect(login_url)


def forbidden(request: Request, redirect_url: Optional[str] = None, message: str = "Insufficient permissions") -> Response:
    """403 for AJAX callers, redirect (or a 403 page) otherwise."""
    if is_ajax(request):
        return json_error(message, status.HTTP_403_FORBIDDEN)
    if redirect_url:
        return redirect(redirect_url)
    return error_page("Forbidden", message, status.HTTP_403_FORBIDDEN)


def csrf_failed(request: Request) -> Response:
    message = "CSRF token validation failed"
    if is_ajax(request):
        return json_error(message, status.HTTP_403_FORBIDDEN)
    return error_page(
        "Forbidden",
        f"{message}. Please refresh the page and try again.",
        status.HTTP_403_FORBIDDEN,
    )


def not_found(request: Request) -> Response:
    if is_ajax(request):
        return json_error("Page not found", status.HTTP_404_NOT_FOUND)
    return error_page("Page Not Found", "The page you requested does not exist.", status.HTTP_404_NOT_FOUND)


def server_error(request: Request, exc: BaseException, debug: bool = False) -> Response:
    """500 response; internals are only rendered in debug mode."""
    if not debug:
        if is_ajax(request):
            return json_error("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return error_page(
            "Internal Server Error",
            "Something went wrong. Please try again later.",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    cause = getattr(exc, "original_exception", None) or exc
    frames = traceback.extract_tb(cause.__traceback__)
    location = f"{frames[-1].filename}:{frames[-1].lineno}" if frames else "unknown"
    trace = "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))
    message = f"{type(cause).__name__}: {cause}"

    if is_ajax(request):
        return json_error(
            message,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            errors={"location": location, "trace": trace},
        )
    return error_page(
        "Internal Server Error",
        f"{message} ({location})",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        details=trace,
    )
