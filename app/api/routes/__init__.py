from .analyses import router as analyses_router
from .chat import router as chat_router
from .health import router as health_router
from .reports import router as reports_router

__all__ = ["analyses_router", "chat_router", "health_router", "reports_router"]
