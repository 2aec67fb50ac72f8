"""Top-level API router."""

from fastapi import APIRouter

from incubator.api.routes.expenses import router as expenses_router
from incubator.api.routes.health import router as health_router
from incubator.api.routes.interchange import router as interchange_router
from incubator.api.routes.members import router as members_router
from incubator.api.routes.projects import router as projects_router
from incubator.api.routes.reports import router as reports_router
from incubator.api.routes.tasks import router as tasks_router
from incubator.api.routes.workspace import router as workspace_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(workspace_router)
api_router.include_router(projects_router)
api_router.include_router(members_router)
api_router.include_router(tasks_router)
api_router.include_router(expenses_router)
api_router.include_router(reports_router)
api_router.include_router(interchange_router)
