"""
POS API main application.
Entry point for the FastAPI server running on a terminal.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pos_api.core.cors import configure_cors
from pos_api.core.lifespan import lifespan
from pos_api.routers.coupons import router as coupons_router
from pos_api.routers.health import router as health_router
from pos_api.routers.tables import router as tables_router
from shared.config.logging import pos_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware, get_request_id
from shared.utils.schemas import ErrorResponse


# Create FastAPI application
app = FastAPI(
    title="Tableside POS API",
    description="Order lifecycle and payment reconciliation for table-service terminals",
    version="0.1.0",
    lifespan=lifespan,
)

# Middlewares (last added runs first)
configure_cors(app)
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything that escaped the routers and answer with a plain 500."""
    logger.error(
        "Unhandled error",
        path=request.url.path,
        method=request.method,
        request_id=get_request_id(),
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content=ErrorResponse(detail="Internal server error").model_dump())


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(tables_router)
app.include_router(coupons_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pos_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
