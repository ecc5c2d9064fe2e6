from .enhance import router as enhance_router
from .health import router as health_router

__all__ = ["enhance_router", "health_router"]
