from importlib.metadata import version

from .cache import RouteCache
from .router import OptimizedRouter, Router
from .tree import RouteHandler, RouteMatch, RouteTrie, format_routes

__all__ = [
    "OptimizedRouter",
    "RouteCache",
    "RouteHandler",
    "RouteMatch",
    "RouteTrie",
    "Router",
    "__version__",
    "format_routes",
]

__version__ = version("routetrie")
