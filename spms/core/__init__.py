"""
Core building blocks shared by the authentication, CSRF and routing layers.
"""
from .config import Settings, settings
from .context import RequestContext, ResponseCookies
from .exceptions import (
    SpmsError, AuthenticationFailure, AccountLockedOut, SessionExpired,
    CsrfValidationFailed, RouteNotFound, HandlerExecutionError,
    HandlerResolutionError, RouterFrozenError,
)

__all__ = [
    'Settings', 'settings', 'RequestContext', 'ResponseCookies',
    'SpmsError', 'AuthenticationFailure', 'AccountLockedOut', 'SessionExpired',
    'CsrfValidationFailed', 'RouteNotFound', 'HandlerExecutionError',
    'HandlerResolutionError', 'RouterFrozenError',
]
