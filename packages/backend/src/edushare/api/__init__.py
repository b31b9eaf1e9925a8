"""API route aggregation.

All routers registered here get mounted in main.py. Auth is applied at
the include_router level for protected routers; health and auth are open.
"""

from fastapi import APIRouter, Depends

from edushare.api.auth import router as auth_router
from edushare.api.chat import router as chat_router
from edushare.api.health import router as health_router
from edushare.auth.dependencies import get_current_user

_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes (valid JWT required)
api_router.include_router(chat_router, tags=["chat"], dependencies=_auth)
