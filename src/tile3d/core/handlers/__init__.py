"""Feature handlers: one per vector feature plus the power line aggregate."""

from .area import VectorAreaHandler
from .base import Handler
from .node import VectorNodeHandler
from .polyline import VectorPolylineHandler
from .powerline import PowerlineHandler

__all__ = [
    "Handler",
    "PowerlineHandler",
    "VectorAreaHandler",
    "VectorNodeHandler",
    "VectorPolylineHandler",
]
