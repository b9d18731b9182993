"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in the tasks router
without modifying individual handlers. Health and auth routers are
open (no token required); /auth/me asks for one itself.
"""

from fastapi import APIRouter, Depends

from tasktrack.api.auth import router as auth_router
from tasktrack.api.health import router as health_router
from tasktrack.api.tasks import router as tasks_router
from tasktrack.auth.dependencies import get_current_principal

# All protected routers require authentication
_auth = [Depends(get_current_principal)]

api_router = APIRouter()

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid bearer token
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
