# main.py - WebRTC signaling relay

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from dotenv import load_dotenv
import logging
import uvicorn

# Import route modules
from routes.signaling_routes import router as signaling_router
from routes.status_routes import router as status_router, ENDPOINTS, SERVICE_NAME, SERVICE_VERSION
from config.signaling_config import (
    configure_logging,
    get_allowed_origins,
    get_host,
    get_log_level,
    get_port,
    get_trusted_hosts,
    is_production,
    validate_environment,
)
from models.schemas import ErrorResponse
from registry import ConnectionRegistry
from router import MessageRouter

# Load environment variables
load_dotenv()

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle app startup and shutdown"""
    # Startup
    logger.info(f"Starting up {SERVICE_NAME}")
    try:
        validate_environment()
        logger.info("Environment validation passed")
    except Exception as e:
        logger.error(f"Environment validation failed: {e}")
        raise

    # One registry per process, shared by every connection task
    app.state.registry = ConnectionRegistry()
    app.state.router = MessageRouter(app.state.registry)

    yield

    # Shutdown
    logger.info(f"Shutting down {SERVICE_NAME} with {app.state.registry.active_count()} open connection(s)")


app = FastAPI(
    title=SERVICE_NAME,
    description="Relays WebRTC session, SDP and ICE candidate messages between peers",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url=None if is_production() else "/docs",
    redoc_url=None if is_production() else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

trusted_hosts = get_trusted_hosts()
if trusted_hosts:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

# Include routers
app.include_router(status_router, tags=["Status"])
app.include_router(signaling_router, tags=["Signaling"])


@app.exception_handler(500)
async def internal_server_error_handler(request, exc):
    logger.error(f"Internal server error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            message="An unexpected error occurred",
        ).model_dump(exclude_none=True)
    )


@app.exception_handler(404)
async def not_found_handler(request, exc):
    return JSONResponse(
        status_code=404,
        content=ErrorResponse(
            error="Endpoint not found",
            message="The requested endpoint does not exist",
            available_endpoints=list(ENDPOINTS.values()),
        ).model_dump(exclude_none=True)
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=get_host(),
        port=get_port(),
        reload=False,
        log_level=get_log_level().lower(),
        access_log=True,
    )
