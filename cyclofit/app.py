"""
CycloFit Service - FastAPI server
Main entry point for the bike fit analysis service

FastAPI is the web framework (defines routes, endpoints, middleware)
Uvicorn is the ASGI server (runs the FastAPI application)
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from cyclofit.shared.admin.routes import router as admin_router
from cyclofit.shared.admin.setup import router as admin_setup_router
from cyclofit.shared.analyses.routes import router as analysis_router
from cyclofit.shared.auth.database import init_db
from cyclofit.shared.auth.routes import router as auth_router, users_router
from cyclofit.shared.config.settings import Settings, get_settings, validate_settings_or_exit
from cyclofit.shared.contact.routes import router as contact_router
from cyclofit.shared.errors import error_detail
from cyclofit.shared.newsletter.routes import router as newsletter_router
from cyclofit.shared.storage.object_store import get_object_store

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = validate_settings_or_exit()
    init_db()
    logger.info("Database tables ready")

    storage = get_object_store(settings).check_connection()
    if storage["connected"]:
        logger.info(f"S3 bucket {storage['bucket']} reachable")
    else:
        logger.warning(f"S3 bucket {storage['bucket']} not reachable: {storage['error']}")

    logger.info(f"{settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")
    yield


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or validate_settings_or_exit()
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Bike fit analysis service: video upload, AI pose analysis and stored results",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Configure CORS to allow frontend connections
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Pre-S3 analyses point at files on this host
    legacy_root = Path(settings.LEGACY_MEDIA_ROOT)
    if legacy_root.is_dir():
        app.mount("/static", StaticFiles(directory=str(legacy_root)), name="static")

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": error_detail(get_settings(), "Server error", exc)},
        )

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {"message": "CycloFit API is running", "status": "ok"}

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy"}

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(analysis_router)
    app.include_router(contact_router)
    app.include_router(newsletter_router)
    app.include_router(admin_router)
    app.include_router(admin_setup_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
