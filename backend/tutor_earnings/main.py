import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutor_earnings.core.config import settings
from tutor_earnings.core.logging_setup import configure_logging
import tutor_earnings.models  # noqa: F401  # force model registration

from tutor_earnings.api.v1.admin_jobs import router as admin_jobs_router
from tutor_earnings.api.v1.earnings import router as earnings_router
from tutor_earnings.api.v1.engagement import router as engagement_router
from tutor_earnings.api.v1.subscriptions import router as subscriptions_router
from tutor_earnings.services.scheduler import build_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = build_scheduler()
        scheduler.start()
        logger.info("scheduler started: %s", ", ".join(job.id for job in scheduler.get_jobs()))
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)


def create_application() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Tutor Earnings API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"status": "ok", "service": "tutor-earnings"}

    # Routers
    app.include_router(admin_jobs_router, prefix="/api/v1")
    app.include_router(earnings_router, prefix="/api/v1")
    app.include_router(engagement_router, prefix="/api/v1")
    app.include_router(subscriptions_router, prefix="/api/v1")

    return app


app = create_application()
