from .routes import ai_router, health_router, search_router


__all__ = [
    "ai_router",
    "health_router",
    "search_router",
]
