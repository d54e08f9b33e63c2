import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_netatmo,  # noqa: F401
)
from .config import get_config
from .database import Base, engine
from .domain.thermostat.router import router as thermostat_router
from .exceptions import Forbidden, NotConnected, TokenRefreshFailed, Unauthorized, UpstreamError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    # One connection pool for every outbound call of the app
    app.state.http_client = httpx.AsyncClient(timeout=get_config().http_timeout)
    yield
    logger.info("Application shutting down...")
    await app.state.http_client.aclose()
    app.state.http_client = None


app = FastAPI(title="ThermoBnB API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized):
    logger.warning(f"Authentication failed for {request.url.path}: {exc}")
    return JSONResponse(status_code=401, content={"error": str(exc) or "Unauthorized"})


@app.exception_handler(Forbidden)
async def forbidden_handler(request: Request, exc: Forbidden):
    return JSONResponse(status_code=403, content={"error": str(exc) or "Forbidden"})


@app.exception_handler(NotConnected)
async def not_connected_handler(request: Request, exc: NotConnected):
    return JSONResponse(status_code=404, content={"error": "Not connected to Netatmo"})


@app.exception_handler(TokenRefreshFailed)
async def refresh_failed_handler(request: Request, exc: TokenRefreshFailed):
    logger.error(f"❌ {exc}")
    return JSONResponse(status_code=502, content={"error": "Refresh failed", "details": exc.detail})


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return JSONResponse(
        status_code=exc.status if exc.status and exc.status >= 400 else 502,
        content={"error": "Netatmo upstream error", "status": exc.status, "body": exc.body_excerpt},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


ALLOWED_ORIGINS = list(get_config().allowed_origins)
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(thermostat_router)


@app.get("/")
def root():
    return {"message": "ThermoBnB API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
