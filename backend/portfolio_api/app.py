import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api import router
from .auth import AuthService, create_admin_directory
from .config import Settings
from .db import create_db_and_tables, create_engine, make_sessionmaker, wait_for_db
from .errors import PortfolioError, RateLimited
from .logging_config import configure_logging
from .rate_limit import FixedWindowRateLimiter
from .sections import create_section_store, seed_sections
from .sessions import create_session_store
from .uploads import DiskAssetStorage, create_asset_storage, select_upload_strategy

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


async def run_startup_seed(store) -> None:
    try:
        await seed_sections(store)
    except Exception:
        # the API stays up with whatever content is already stored
        logger.exception("❌ Failed to seed content from defaults")


async def sweep_forever(app: FastAPI, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        state = app.state
        try:
            dropped = state.login_limiter.sweep() + state.contact_limiter.sweep()
            expired = await state.auth.store.sweep()
        except Exception:
            logger.exception("❌ Periodic cleanup failed")
            continue
        if dropped or expired:
            logger.debug("Cleanup dropped %d rate-limit windows and %d sessions", dropped, expired)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    engine = create_engine(settings.database_url, settings.database_echo) if settings.database_url else None
    session_factory = make_sessionmaker(engine) if engine is not None else None

    section_store = create_section_store(settings, session_factory)
    upload_strategy = select_upload_strategy(settings)
    asset_storage = create_asset_storage(upload_strategy, settings, session_factory)
    session_store = create_session_store(settings, session_factory)
    auth = AuthService(create_admin_directory(settings, session_factory), session_store, settings)

    # --- Startup / shutdown ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            await wait_for_db(engine)
            await create_db_and_tables(engine)
        if isinstance(asset_storage, DiskAssetStorage):
            asset_storage.ensure_dir()
        logger.info(
            "✅ Content store: %s, uploads: %s, sessions: %s",
            section_store.kind, upload_strategy.value, session_store.kind,
        )
        if settings.seed_on_startup:
            await run_startup_seed(section_store)

        sweeper = asyncio.create_task(sweep_forever(app, settings.sweep_interval_seconds))
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
            await session_store.close()
            if engine is not None:
                await engine.dispose()

    app = FastAPI(
        title="Portfolio Content API",
        description="Editable content sections, admin sessions and image uploads for the portfolio site.",
        version="1.0.0",
        docs_url="/swagger",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.section_store = section_store
    app.state.asset_storage = asset_storage
    app.state.auth = auth
    app.state.login_limiter = FixedWindowRateLimiter(
        settings.login_max_attempts,
        settings.login_window_seconds,
        message="Too many login attempts. Please try again later.",
    )
    app.state.contact_limiter = FixedWindowRateLimiter(
        settings.contact_max_attempts,
        settings.contact_window_seconds,
        message="Too many messages. Please try again later.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Middleware ---
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if settings.is_production:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            duration = (time.perf_counter() - start) * 1000
            line = f"{request.method} {request.url.path} {response.status_code} in {duration:.0f}ms"
            if len(line) > 80:
                line = line[:79] + "…"
            logger.info(line)
        return response

    # --- Error handlers ---
    @app.exception_handler(PortfolioError)
    async def handle_portfolio_error(request: Request, exc: PortfolioError):
        headers = None
        if isinstance(exc, RateLimited):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"success": False, "message": "Invalid request body"})

    app.include_router(router)

    if isinstance(asset_storage, DiskAssetStorage):
        app.mount("/uploads", StaticFiles(directory=asset_storage.uploads_dir, check_dir=False), name="uploads")

    return app
