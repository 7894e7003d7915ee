from .controller import JsonApiController, RouteLinks
from .main import create_app, register_resources

__all__ = ["JsonApiController", "RouteLinks", "create_app", "register_resources"]
