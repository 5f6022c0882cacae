# controllers/__init__.py
"""
Application controllers and the default route table.
"""
from ..auth.guards import require_any_role, require_auth, require_guest
from ..auth.models import Role
from ..routing import Router
from ..routing.controllers import ControllerRegistry
from .auth import AuthController
from .base import Controller, templates
from .dashboard import DashboardController
from .home import HomeController


def register_controllers(registry: ControllerRegistry) -> ControllerRegistry:
    registry.register("HomeController", HomeController)
    registry.register("AuthController", AuthController)
    registry.register("DashboardController", DashboardController)
    return registry


def register_routes(router: Router) -> Router:
    """Declare the application's routes. Literal paths go before parameterised ones."""
    auth = require_auth()
    staff = require_any_role(Role.ADMIN, Role.MANAGER)

    router.get("/", "HomeController@index", name="home")
    router.get("/unauthorized", "HomeController@unauthorized", name="unauthorized")

    router.get("/login", "AuthController@show_login", [require_guest()], name="login")
    router.post("/login", "AuthController@login", [require_guest()])
    router.any("/logout", "AuthController@logout", name="logout")
    router.get("/auth/check", "AuthController@check_auth")
    router.get("/auth/timeout", "AuthController@session_timeout")
    router.get("/change-password", "AuthController@show_change_password", [auth], name="change_password")
    router.post("/change-password", "AuthController@change_password", [auth])

    router.get("/dashboard", "DashboardController@index", [auth], name="dashboard")
    router.get("/dashboard/data", "DashboardController@data", [auth, staff])
    return router


__all__ = [
    "Controller", "AuthController", "DashboardController", "HomeController",
    "register_controllers", "register_routes", "templates",
]
