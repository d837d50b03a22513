"""
Operations Portal - FastAPI application

On startup the indexes are ensured and the scheduler that drains the email
outbox, replays deferred side effects and sends deadline reminders is
started. Items left in either queue by a previous run are reported so a
stuck backlog shows up in the logs right away.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .domain.enums import NotificationStatus
from .repositories.mongo_client import create_indexes, close_connection, health_check
from .repositories.notification_repo import NotificationRepository
from .repositories.side_effect_repo import SideEffectRepository
from .scheduler.dev_scheduler import get_scheduler, stop_scheduler
from .utils.logger import setup_logging, get_logger

APP_VERSION = "1.0.0"

setup_logging()
logger = get_logger(__name__)


def _report_backlog() -> None:
    for queue in (NotificationRepository(), SideEffectRepository()):
        counts = queue.count_by_status()
        pending = counts.get(NotificationStatus.PENDING.value, 0)
        failed = counts.get(NotificationStatus.FAILED.value, 0)
        if failed:
            logger.warning(f"{failed} {queue.item_label} item(s) gave up retrying; see {queue.collection_name}")
        if pending:
            logger.info(f"{pending} {queue.item_label} item(s) still queued from an earlier run")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Operations Portal {APP_VERSION} ({settings.environment})")

    try:
        create_indexes()
        _report_backlog()
    except Exception as e:
        logger.error(f"Database not ready at startup: {e}", extra={"error_code": type(e).__name__})

    if settings.scheduler_enabled:
        try:
            get_scheduler().start()
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}", extra={"error_code": type(e).__name__})
    else:
        logger.warning("Scheduler disabled: queued emails and deferred side effects wait for another server")

    yield

    stop_scheduler()
    close_connection()
    logger.info("Operations Portal stopped")


def create_app() -> FastAPI:
    application = FastAPI(
        title="Operations Portal",
        description="Customers, projects, tasks and tickets with role-scoped access",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    # Browsers reject credentials together with a wildcard origin
    allow_all = settings.cors_origins.strip() == "*"
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )
    application.add_middleware(CorrelationIdMiddleware)
    register_error_handlers(application)

    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    async def health():
        """Liveness plus database reachability; no authentication"""
        mongo_health = health_check()
        return {
            "status": "healthy" if mongo_health.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "mongo": mongo_health
        }

    return application


app = create_app()
