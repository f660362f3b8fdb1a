"""dropheic Backend Application.

HTTP service that converts uploaded HEIC/HEIF images to JPEG and serves the
results for download for a limited time.

Modules:
    - uploads: multipart intake, validation and staging
    - conversion: HEIC decode / JPEG encode and batch orchestration
    - storage: directory provisioning, retention sweep, diagnostics
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from dropheic.config import AppConfig, get_config
from dropheic.conversion.converter import HeicConverter
from dropheic.conversion.router import router as conversion_router
from dropheic.conversion.service import DOWNLOAD_PREFIX, BatchConversionService, ConversionGate
from dropheic.storage.router import router as storage_router
from dropheic.storage.service import StorageManager
from dropheic.storage.sweeper import RetentionSweeper
from dropheic.uploads.service import IntakeError, UploadIntake

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# PIL logs every plugin import at DEBUG; python-multipart logs each part.
for _noisy in (
    "PIL",
    "multipart",
    "python_multipart",
    "uvicorn.access",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Seconds to wait for running batches at shutdown before stopping anyway.
SHUTDOWN_GRACE_SECONDS = 30.0
STATIC_MAX_AGE_SECONDS = 3600


class CachedStaticFiles(StaticFiles):
    """StaticFiles that adds a fixed Cache-Control header."""

    def __init__(self, *args, max_age: int = STATIC_MAX_AGE_SECONDS, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._cache_control = f"public, max-age={max_age}"

    def file_response(self, *args, **kwargs):
        response = super().file_response(*args, **kwargs)
        response.headers["Cache-Control"] = self._cache_control
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppConfig = app.state.config

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    # Fatal on failure: never serve without writable staging space.
    try:
        app.state.storage.ensure_directories()
    except OSError as exc:
        logger.critical("Error creating directories: %s", exc)
        raise

    await app.state.sweeper.start()
    logger.info(
        "Server started (env=%s, upload_dir=%s, converted_dir=%s)",
        config.server.environment,
        app.state.storage.upload_dir,
        app.state.storage.converted_dir,
    )

    yield  # Application runs here

    # Shutdown: refuse new batches, drain running ones, then stop sweeping.
    gate: ConversionGate = app.state.gate
    gate.close()
    if gate.active:
        logger.info("Waiting for %d in-flight conversion(s)", gate.active)
        if not await gate.wait_idle(SHUTDOWN_GRACE_SECONDS):
            logger.warning("Shutdown grace period elapsed with conversions still running")
    await app.state.sweeper.stop()
    logger.info("Application shutdown complete")


def create_app(
    config: Optional[AppConfig] = None,
    converter: Optional[HeicConverter] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Explicit configuration; defaults to ``get_config()``.
        converter: Conversion adapter; defaults to a HeicConverter using the
            configured JPEG quality.

    Returns:
        Configured FastAPI app. Components live on ``app.state``.
    """
    config = config or get_config()
    converter = converter or HeicConverter(quality=config.conversion.jpeg_quality)

    storage = StorageManager(
        upload_dir=config.upload_path,
        converted_dir=config.converted_path,
        retention_seconds=config.storage.retention_seconds,
        images_dir=config.images_path,
    )

    app = FastAPI(
        title="dropheic API",
        description="Converts uploaded HEIC/HEIF images to JPEG",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.storage = storage
    app.state.sweeper = RetentionSweeper(storage, config.storage.sweep_interval_seconds)
    app.state.intake = UploadIntake(storage.upload_dir, config.uploads, output_dir=storage.converted_dir)
    app.state.batch = BatchConversionService(converter, storage.converted_dir)
    app.state.gate = ConversionGate()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if config.is_development else config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(conversion_router)
    app.include_router(storage_router)

    # Directories are created in the lifespan, after mounting.
    app.mount(
        DOWNLOAD_PREFIX,
        CachedStaticFiles(directory=storage.converted_dir, check_dir=False),
        name="converted",
    )
    app.mount(
        "/uploads",
        CachedStaticFiles(directory=storage.upload_dir, check_dir=False),
        name="uploads",
    )
    if storage.images_dir:
        app.mount(
            "/images",
            CachedStaticFiles(directory=storage.images_dir, check_dir=False),
            name="images",
        )

    @app.exception_handler(IntakeError)
    async def _intake_error(request: Request, exc: IntakeError) -> JSONResponse:
        logger.warning("Upload rejected: %s (%s)", exc.message, exc.details)
        body = {"success": False, "error": exc.message}
        if exc.details:
            body["details"] = exc.details
        return JSONResponse(body, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            {"success": False, "error": "File upload error", "details": str(exc)},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error: %s", exc, exc_info=exc)
        body = {"success": False, "error": "Internal server error"}
        if not config.is_production:
            body["details"] = str(exc)
        return JSONResponse(body, status_code=500)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object with the running environment.
        """
        return {
            "status": "healthy",
            "environment": config.server.environment,
            "frontendUrl": config.server.frontend_url,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


def run() -> None:
    """Console entry point: load config and serve with uvicorn."""
    config = get_config()
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
