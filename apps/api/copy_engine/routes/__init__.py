"""Route modules."""

from .copy import router as copy_router
from .health import router as health_router
from .media import router as media_router
from .tasks import router as tasks_router

__all__ = ["copy_router", "health_router", "media_router", "tasks_router"]
