import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import health, swap, tools
from .config import settings
from .core.errors import RateLimited, SwapPipelineError
from .logging_config import setup_logging
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Swapdesk API",
    description="Swap quote-to-settlement pipeline",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(SwapPipelineError)
async def swap_pipeline_error_handler(request: Request, exc: SwapPipelineError) -> JSONResponse:
    request.state.error_code = exc.code
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict(), headers=headers)


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(swap.router, tags=["Swap"])
app.include_router(tools.router, tags=["Tools"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Swapdesk API",
        "version": "0.1.0",
        "description": "Swap quote-to-settlement pipeline",
        "docs": "/docs",
        "health": "/healthz"
    }


def main() -> None:
    import uvicorn
    uvicorn.run(
        "swapdesk.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
