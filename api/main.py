"""
Dealer Desk API - Main Application.

FastAPI application with CORS enabled for frontend communication.

Desk errors (domain.errors) are rendered as {error, message, details?, correlationId}
with the status code of their fault class. Request validation errors use the
same shape with status 400.
"""

import logging
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from config import get_settings
from domain.errors import DeskError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Dealer Desk API",
    description="REST API for the buying desk and consignment inventory",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DeskError)
async def desk_error_handler(request: Request, exc: DeskError):
    correlation_id = exc.correlation_id or str(uuid4())

    if exc.status_code >= 500:
        logger.error(
            "[Transaction %s] %s %s failed: %s %s",
            correlation_id, request.method, request.url.path, exc.message, exc.details or "",
        )

    content = {
        "error": exc.error,
        "message": exc.message,
        "correlationId": correlation_id,
    }
    if exc.details:
        content["details"] = jsonable_encoder(exc.details)

    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid input",
            "details": {"problems": jsonable_encoder(problems)},
            "correlationId": str(uuid4()),
        },
    )


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "dealer-desk-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Dealer Desk API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import cart, checkout, consignments

app.include_router(cart.router, prefix="/api/v1", tags=["Cart"])
app.include_router(checkout.router, prefix="/api/v1", tags=["Checkout"])
app.include_router(consignments.router, prefix="/api/v1", tags=["Consignments"])
