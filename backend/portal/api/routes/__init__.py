"""API Routes module"""
from fastapi import APIRouter

from .auth import router as auth_router
from .customers import router as customers_router
from .projects import router as projects_router
from .tasks import router as tasks_router
from .tickets import router as tickets_router
from .users import router as users_router
from .consumers import router as consumers_router
from .notifications import router as notifications_router
from .audit_logs import router as audit_logs_router
from .dashboard import router as dashboard_router
from .system import router as system_router

# Main API router
api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Auth"])
api_router.include_router(customers_router, prefix="/customers", tags=["Customers"])
api_router.include_router(projects_router, prefix="/projects", tags=["Projects"])
api_router.include_router(tasks_router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(tickets_router, prefix="/tickets", tags=["Tickets"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
api_router.include_router(consumers_router, prefix="/consumers", tags=["Consumers"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(audit_logs_router, prefix="/audit-logs", tags=["Audit Logs"])
api_router.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(system_router, tags=["System"])

__all__ = ["api_router"]
