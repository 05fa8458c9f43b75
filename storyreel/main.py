"""
StoryReel - Script-to-Video Render Service
FastAPI application: render API, progress WebSocket, published videos
"""

from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse

from .config import get_settings
from .utils.auth import api_key_required, extract_api_key, is_valid_api_key
from .utils.exceptions import StoryReelError
from .utils.logger import setup_logger
from .routers import renders_router, websocket_router
from .services.ffmpeg import check_ffmpeg
from .services.project_store import get_project_store
from .services.render_queue import get_render_queue


settings = get_settings()
logger = setup_logger(level=settings.log_level)


def _log_startup_summary(ffmpeg_ok: bool):
    logger.info("=" * 60)
    logger.info(f"{settings.app_name} {settings.app_version}")
    logger.info("=" * 60)
    for label, path in (("Output", settings.output_dir), ("Temp", settings.temp_dir), ("Data", settings.data_dir)):
        logger.info(f"{label} directory: {Path(path).resolve()}")

    if ffmpeg_ok:
        logger.info(f"[OK] Encoder: {settings.ffmpeg_path}")
    else:
        logger.warning(f"[!] FFmpeg not usable at '{settings.ffmpeg_path}'; renders will fail")

    if settings.upload_to_s3 and settings.s3_bucket_name:
        logger.info(f"[OK] Publishing to s3://{settings.s3_bucket_name}")
    else:
        logger.info("[-] Publishing locally under /output")

    if settings.api_key:
        logger.info("[OK] API key required for /api and /ws")
    else:
        logger.warning("[!] API key authentication disabled")
    logger.info("=" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare directories, recover the queue, stop it on shutdown"""
    for directory in (settings.output_dir, settings.temp_dir, settings.data_dir):
        Path(directory).mkdir(parents=True, exist_ok=True)

    await get_project_store().initialize()
    _log_startup_summary(check_ffmpeg(settings.ffmpeg_path))

    # interrupted renders go back to pending before the scheduler resumes
    render_queue = get_render_queue()
    await render_queue.start()

    yield

    await render_queue.stop()
    logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title=settings.app_name,
    description="Render narrated scene images into a single video",
    version=settings.app_version,
    lifespan=lifespan
)

cors_origins = settings.cors_allowed_origins or ["http://localhost:8000", "http://127.0.0.1:8000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Authentication
# ============================================================================

OPEN_PATHS = {"/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico"}
OPEN_PREFIXES = ("/output/",)


@app.middleware("http")
async def require_api_key(request: Request, call_next):
    path = request.url.path
    if not api_key_required() or path in OPEN_PATHS or path.startswith(OPEN_PREFIXES):
        return await call_next(request)

    if not is_valid_api_key(extract_api_key(request.headers)):
        return JSONResponse(
            status_code=401,
            content={"detail": "Unauthorized: invalid or missing API key"},
        )
    return await call_next(request)


# ============================================================================
# Exception Handlers
# ============================================================================

# Codes that map to a specific HTTP status; others use `recoverable`
HTTP_STATUS_BY_ERROR_CODE = {
    "JOB_NOT_FOUND": 404,
    "JOB_STATE_ERROR": 409,
}


@app.exception_handler(StoryReelError)
async def storyreel_error_handler(request: Request, exc: StoryReelError):
    status_code = HTTP_STATUS_BY_ERROR_CODE.get(exc.code, 400 if exc.recoverable else 500)
    log = logger.error if status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {status_code} [{exc.code}] {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": str(exc),
            "recoverable": True,
            "recovery_hint": "Check the render settings and try again."
        }
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again.",
            "recoverable": True,
            "recovery_hint": "If this persists, check the server logs for details."
        }
    )


app.include_router(renders_router)
app.include_router(websocket_router)

# Published videos, as referenced by job.video_url
Path(settings.output_dir).mkdir(parents=True, exist_ok=True)
app.mount("/output", StaticFiles(directory=settings.output_dir), name="output")


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "app": settings.app_name,
        "queue_busy": get_render_queue().busy,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "storyreel.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
