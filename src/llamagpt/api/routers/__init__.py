"""API router exports"""

from .conversation import router as conversation_router
from .health import router as health_router

__all__ = ["conversation_router", "health_router"]
