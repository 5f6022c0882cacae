# routing/controllers.py
"""
Controller registry for ``"Name@method"`` handler references.

Controllers are registered by name before routes are declared; the router
resolves string handlers to bound methods at registration time, so a typo
fails at startup instead of on the first request.
"""
import inspect
from typing import Any, Callable, Dict

from ..core.exceptions import HandlerResolutionError


class ControllerRegistry:
    """Name to controller instance mapping."""

    def __init__(self) -> None:
        self._controllers: Dict[str, Any] = {}

    def register(self, name: str, controller: Any) -> Any:
        """Register a controller instance, or a class to be instantiated with no arguments."""
        if inspect.isclass(controller):
            controller = controller()
        self._controllers[name] = controller
        return controller

    def get(self, name: str) -> Any:
        try:
            return self._controllers[name]
        except KeyError:
            raise HandlerResolutionError(
                f"Controller {name!r} is not registered",
                context={"controller": name},
            ) from None

    def resolve(self, reference: str) -> Callable:
        """Turn ``"Controller@method"`` into a bound method."""
        name, sep, method = reference.partition("@")
        if not sep or not name or not method:
            raise HandlerResolutionError(
                f"Invalid handler reference {reference!r}, expected 'Controller@method'",
                context={"handler": reference},
            )

        controller = self.get(name)
        handler = getattr(controller, method, None)
        if method.startswith("_") or not callable(handler):
            raise HandlerResolutionError(
                f"Controller {name!r} has no handler method {method!r}",
                context={"controller": name, "method": method},
            )
        return handler
