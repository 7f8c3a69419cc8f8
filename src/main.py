"""
Storystone - Main Application

Language-learning storytelling backend: liked movies, shows and books become
narrative profiles that seed serialized novels with a controlled pool of
foreign words.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import router, set_coordinator, set_qloo_client, set_taste_builder
from src.config import Settings, get_settings
from src.pipeline import StoryCoordinator, TasteProfileBuilder
from src.services.errors import StorystoneError
from src.services.firebase import FirebaseService
from src.services.gemini import GeminiService
from src.services.logger import init_logger
from src.services.qloo import QlooClient
from src.services.retry import RetryPolicy
from src.services.tag_classifier import TagClassifierClient

load_dotenv()


def configure_logging(log_dir: Path = Path("logs")) -> Path:
    """
    Detailed records go to a per-run file, bare messages to stdout.

    Returns:
        Path of the log file
    """
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / f"storystone_{datetime.now():%Y%m%d_%H%M%S}.log"

    to_file = logging.FileHandler(log_file, encoding="utf-8")
    to_file.setLevel(logging.DEBUG)
    to_file.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    ))

    to_console = logging.StreamHandler(sys.stdout)
    to_console.setLevel(logging.INFO)
    to_console.setFormatter(logging.Formatter("%(message)s"))

    logging.basicConfig(level=logging.DEBUG, handlers=[to_file, to_console])
    return log_file


logger = logging.getLogger(__name__)
logger.info(f"📝 Logging to: {configure_logging()}")


def _mask(secret: str) -> str:
    return f"{secret[:8]}...{secret[-4:]}" if len(secret) > 12 else "***"


def _report_environment(settings: Settings):
    traces = [name for name, enabled in (
        ("Storage", settings.debug_storage),
        ("API Calls", settings.debug_api_calls),
    ) if enabled]
    if traces:
        print(f"🐛 Debug traces enabled: {', '.join(traces)} → {settings.debug_log_dir}/")

    for name, value in (
        ("GEMINI_API_KEY", settings.gemini_api_key),
        ("QLOO_API_KEY", settings.qloo_api_key),
        ("HF_TOKEN", settings.hf_token),
    ):
        print(f"✅ {name}: {_mask(value)}" if value else f"⚠️  {name} is missing!")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the services on startup; close the Qloo session and Firebase pool on shutdown"""
    settings = get_settings()
    settings.validate_story_arc()

    print("📚 Initializing Storystone...")
    app_logger = init_logger(settings=settings)
    _report_environment(settings)

    print("📊 Connecting to Firebase...")
    storage = FirebaseService(
        database_url=settings.firebase_database_url,
        credentials_dict=settings.get_firebase_credentials_dict(),
        credentials_path=settings.google_application_credentials,
        logger=app_logger,
    )
    storage.initialize()
    print("✅ Firebase connected")

    retry_policy = RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )
    qloo = QlooClient(
        settings.qloo_api_key,
        base_url=settings.qloo_base_url,
        timeout_seconds=settings.qloo_timeout_seconds,
        retry_policy=retry_policy,
    )
    classifier = TagClassifierClient(
        settings.tag_classifier_space,
        hf_token=settings.hf_token,
        api_name=settings.tag_classifier_endpoint,
        retry_policy=retry_policy,
    )
    gemini = GeminiService(settings.gemini_api_key, model=settings.gemini_model)

    set_coordinator(StoryCoordinator(storage, gemini, settings, logger=app_logger))
    set_taste_builder(TasteProfileBuilder(storage, qloo, classifier, logger=app_logger))
    set_qloo_client(qloo)

    print(
        f"📖 Story arc {list(settings.story_act_lengths)} = {settings.max_story_length} segments, "
        f"{settings.story_language} with {settings.foreign_language} words"
    )
    print(f"📚 Storystone ready on port {settings.port} (docs: http://localhost:{settings.port}/docs)")

    try:
        yield
    finally:
        print("👋 Shutting down Storystone...")
        await qloo.close()
        storage.shutdown()


app = FastAPI(
    title="Storystone",
    description="""
    Language-learning storytelling backend.

    - Taste profiles from liked movies, TV shows and books
    - Serialized five-act novels with an embedded foreign word pool
    - Per-segment translation aid
    - Three-tier vocabulary tracking (base, familiar, learned)
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS_ALLOWED_ORIGINS is "*" or a comma-separated list of origins
_origins = get_settings().cors_allowed_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if _origins == "*" else [o.strip() for o in _origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorystoneError)
async def storystone_exception_handler(request: Request, exc: StorystoneError):
    """Pipeline errors carry their own status and a safe public message"""
    where = f"{request.method} {request.url.path}"
    if exc.status_code >= 500:
        logger.error(f"❌ {where} failed: {type(exc).__name__}: {exc}")
    else:
        logger.warning(f"⚠️ {where}: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        received = error.get("input", "N/A")
        if isinstance(received, str) and len(received) > 100:
            received = received[:100] + "..."
        problems.append(f"{error['loc']}: {error['msg']} (input: {received})")
    logger.error(f"❌ Invalid request body on {request.url.path}: " + " | ".join(problems))

    return JSONResponse(status_code=422, content={"detail": [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last resort: log with an error id and answer with a generic 500"""
    error_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    logger.error(
        f"❌ Unhandled exception [{error_id}] on {request.method} {request.url.path}: "
        f"{type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    # Details stay in the server log; error_id locates them
    return JSONResponse(status_code=500, content={
        "error": "Internal server error",
        "error_id": error_id,
        "message": "An unexpected error occurred. Please try again.",
    })


app.include_router(router)


@app.get("/")
async def root():
    return {
        "message": "Welcome to Storystone!",
        "docs": "/docs",
        "health": "/api/health",
        "version": "1.0.0",
    }


def main():
    """Run the application"""
    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
