"""
API router - aggregates all endpoints.

Usage in main.py:
    from api.routes import router
    app.include_router(router)
"""

from fastapi import APIRouter

from api.routes import agents, chat, health, threads, usage

router = APIRouter()

# Health and metrics (no auth required)
router.include_router(health.router)

router.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
router.include_router(threads.router, prefix="/api/threads", tags=["Threads"])
router.include_router(usage.router, prefix="/api/usage", tags=["Usage"])
router.include_router(agents.router, prefix="/api/agents", tags=["Agents"])

__all__ = ["router"]
