from .ai import router as ai_router
from .health import router as health_router
from .search import router as search_router


__all__ = [
    # ai.py
    "ai_router",
    # health.py
    "health_router",
    # search.py
    "search_router",
]
