from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import init_db
from .deps import get_clock
from .issuer import CodeIssuer, schedule_refresh
from .observability import RequestTimingLoggingMiddleware, add_exception_handlers
from .routers import health
from .routers import customers as customers_router
from .routers import check_ins as check_ins_router
from .routers import venue_settings as settings_router
from .routers import lottery as lottery_router
from .routers import qr as qr_router
from .routers import portal as portal_router


logger = logging.getLogger(__name__)

# Ensure schema is present when the module is imported (helps tests using TestClient without lifespan)
init_db()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db()

    issuer = CodeIssuer(settings, get_clock())
    issuer.refresh()
    app.state.issuer = issuer

    scheduler = None
    if settings.issuer_scheduler_enabled:
        scheduler = BackgroundScheduler()
        schedule_refresh(scheduler, issuer)
        scheduler.start()
        logger.info("Admission code refresh scheduled every %sms", settings.admission_window_ms)
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


def create_app() -> FastAPI:
    settings = get_settings()
    application = FastAPI(title="Front Desk Check-in API", version="0.1.0", lifespan=lifespan)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestTimingLoggingMiddleware)

    add_exception_handlers(application)

    # Routers
    application.include_router(health.router)
    application.include_router(customers_router.router)
    application.include_router(check_ins_router.router)
    application.include_router(settings_router.router)
    application.include_router(lottery_router.router)
    application.include_router(qr_router.router)
    application.include_router(portal_router.router)

    return application


app = create_app()
