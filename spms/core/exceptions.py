"""
Error taxonomy for the authentication, CSRF and routing core.

Expected failures (bad credentials, lockouts, expired sessions, rejected CSRF
tokens, unknown routes, crashing handlers) are carried around as values and
turned into HTTP responses. Only configuration mistakes made at startup are
raised.
"""
from typing import Optional, Dict, Any


class SpmsError(Exception):
    """Base exception for all core errors."""

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message
            context: Additional context about the error
            original_exception: The original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception


class AuthenticationFailure(SpmsError):
    """Bad credentials or inactive user. Never says which."""

    def __init__(self, message: str = "Invalid username or password", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class AccountLockedOut(SpmsError):
    """Too many failed logins for a username/client pair."""

    def __init__(self, remaining_seconds: int, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(
            message or "Too many failed login attempts",
            **kwargs
        )
        self.remaining_seconds = remaining_seconds

    @property
    def remaining_minutes(self) -> int:
        return -(-self.remaining_seconds // 60)


class SessionExpired(SpmsError):
    """The session outlived its configured lifetime."""

    def __init__(self, message: str = "Your session has expired", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class CsrfValidationFailed(SpmsError):
    """Missing, expired or mismatched CSRF token."""

    def __init__(self, message: str = "CSRF token validation failed", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class RouteNotFound(SpmsError):
    """No registered route matches the request."""

    def __init__(self, method: str, path: str, **kwargs: Any) -> None:
        super().__init__(f"No route for {method} {path}", **kwargs)
        self.method = method
        self.path = path


class HandlerExecutionError(SpmsError):
    """A middleware or handler raised while serving a request."""
    pass


class HandlerResolutionError(SpmsError):
    """A "Name@method" handler reference could not be resolved."""
    pass


class RouterFrozenError(SpmsError):
    """Routes were registered after the router started serving."""
    pass
