from contextlib import asynccontextmanager
import logging
import os
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine

from qc_tracker.core.config import Settings
from qc_tracker.core.db import create_db_engine, create_session_factory
from qc_tracker.core.logging import configure_logging
from qc_tracker.middleware.request_logging import RequestLoggingMiddleware
from qc_tracker.routes.auth import router as auth_router
from qc_tracker.routes.laptops import router as laptops_router
from qc_tracker.routes.qc import router as qc_router
from qc_tracker.routes.reports import router as reports_router
from qc_tracker.routes.users import router as users_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    logger.info("QC tracker starting up")
    logger.info(f"Uploads stored in {os.path.abspath(settings.upload_dir)}")
    yield
    logger.info("QC tracker shutting down...")
    if app.state.owns_engine:
        app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Laptop QC Tracker", version="1.0.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.owns_engine = engine is None
    app.state.engine = engine or create_db_engine(settings.database_url)
    app.state.session_factory = create_session_factory(app.state.engine)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(users_router, prefix="/api/users", tags=["users"])
    app.include_router(laptops_router, prefix="/api/laptops", tags=["laptops"])
    app.include_router(qc_router, prefix="/api/qc", tags=["qc"])
    app.include_router(reports_router, prefix="/api/reports", tags=["reports"])

    return app
