import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .utils.logging import setup_logging

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)

# Import after logging setup
from .api import dependencies  # noqa: E402
from .api.keys import router as keys_router  # noqa: E402
from .api.summarizer import router as summarizer_router  # noqa: E402
from .api.token_auth import router as token_auth_router  # noqa: E402
from .api.usage import router as usage_router  # noqa: E402
from .api.validate import router as validate_router  # noqa: E402
from .database import create_tables  # noqa: E402
from .exceptions import SummarizerGatewayError  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("🚀 Starting Summarizer Gateway...")

    create_tables()
    logger.info("✅ Database initialized")

    await dependencies.startup()
    logger.info("🎯 Summarizer Gateway is ready!")

    yield

    # Shutdown
    logger.info("🛑 Shutting down Summarizer Gateway...")
    await dependencies.shutdown()


# Create FastAPI app
app = FastAPI(
    title="Summarizer Gateway",
    description="API-key gated GitHub repository summaries with a deterministic fallback",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(SummarizerGatewayError)
async def gateway_error_handler(request: Request, exc: SummarizerGatewayError):
    if exc.status_code >= 500:
        logger.error(f"{exc.reason}: {exc.message}")
    else:
        logger.info(f"{exc.reason}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, **exc.extra()},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = "Not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", []) if p != "body")
        msg = err.get("msg", "validation error")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return JSONResponse(
        status_code=400,
        content={"error": "; ".join(messages) or "Invalid request"},
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Internal server error: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Root endpoints
@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": "Summarizer Gateway",
        "version": "1.0.0",
        "description": "GitHub repository summaries behind API keys and demo quotas",
        "status": "online",
        "endpoints": {
            "health": "/health",
            "docs": "/docs",
            "summarize": "/v1/github-summarizer",
            "api_keys": "/v1/api-keys",
            "validate": "/v1/validate",
            "usage": "/v1/usage",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "language_model": "configured" if settings.openai_api_key else "fallback-only",
        "github_token": "configured" if settings.github_token else "anonymous",
    }


# Include API routers
app.include_router(summarizer_router)
app.include_router(keys_router)
app.include_router(validate_router)
app.include_router(usage_router)
app.include_router(token_auth_router)


# Development server
if __name__ == "__main__":
    import uvicorn

    logger.info("🚀 Starting development server...")
    uvicorn.run(
        "summarizer_gateway.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )
