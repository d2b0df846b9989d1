# app/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings, get_settings
from app.core.errors import register_exception_handlers
from app.middleware.request_logging import RequestLoggingMiddleware

# --- DB engine + models (models must be imported BEFORE create_all) ---
from app.db.session import SessionLocal, engine
from app.models import Base

# ---------------------------
# ROUTERS
# ---------------------------
from app.api import health
from app.api.v1 import dashboard, jobs, notifications

from app.services.email import get_email_service
from app.worker.expiry_job import build_expiry_job

log = logging.getLogger("app")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    settings = settings or get_settings()
    session_factory = session_factory or SessionLocal

    app = FastAPI(title="HR Compliance API", version="1.0.0")
    app.state.session_factory = session_factory
    register_exception_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)

    # ---------------------------
    # ROUTER MOUNT
    # ---------------------------
    app.include_router(dashboard.router, prefix="/api/v1")
    app.include_router(notifications.router, prefix="/api/v1")
    app.include_router(jobs.router, prefix="/api/v1")
    app.include_router(health.router, prefix="/api")

    # Built eagerly so the job routes can report status before startup;
    # the scheduler itself only starts with the app.
    app.state.expiry_job = build_expiry_job(
        settings, session_factory, get_email_service(settings)
    )

    @app.on_event("startup")
    def _start_expiry_job():
        app.state.expiry_job.start()

    @app.on_event("shutdown")
    def _stop_expiry_job():
        app.state.expiry_job.stop()

    return app


_settings = get_settings()
configure_logging(_settings.log_level)

# ---------------------------
# CREATE TABLES (dev-only; guard with env)
# ---------------------------
if _settings.enable_create_all:
    Base.metadata.create_all(bind=engine)

app = create_app(_settings)
