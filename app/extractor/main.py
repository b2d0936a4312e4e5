"""
FastAPI application for the schema-driven PDF extraction service.

Provides endpoints for:
- Extracting text from uploaded PDFs
- Structured extraction against user-defined schemas
- Table queries and spreadsheet export of extracted rows
- Managing schema templates (CRUD)
- Batch extraction with background processing and history
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .database import init_db
from .exceptions import ExtractionFailure, InputError, PipelineError, SerializationFailure
from .models import HealthResponse
from .routers import batches, export, extract, history, schemas, table
from .services.ai import get_ai_service
from .services.pdf_service import PDFConversionError, get_pdf_service

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting PDF Extraction Service...")
    get_pdf_service()
    get_ai_service()
    init_db()
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down PDF Extraction Service...")


app = FastAPI(
    title="PDF Extraction API",
    description="Schema-driven structured data extraction from PDF documents",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        message="PDF Extraction API is running",
        version=__version__,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(extract.router)
app.include_router(export.router)
app.include_router(table.router)
app.include_router(schemas.router)
app.include_router(batches.extract_router)  # Root-level extract-batch route
app.include_router(batches.router)  # /batches/{id}/* routes
app.include_router(history.router)


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(status_code: int, exc: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=exc.to_payload())


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError):
    """Handle rejected requests."""
    logger.info("Rejected request to %s: %s", request.url.path, exc.message)
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(PDFConversionError)
async def pdf_conversion_error_handler(request: Request, exc: PDFConversionError):
    """Handle PDF reading errors."""
    logger.warning("PDF error on %s: %s", request.url.path, exc.message)
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


@app.exception_handler(ExtractionFailure)
async def extraction_failure_handler(request: Request, exc: ExtractionFailure):
    """Handle upstream parsing and completion errors."""
    logger.warning("Extraction failed on %s: %s", request.url.path, exc.message)
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


@app.exception_handler(SerializationFailure)
async def serialization_failure_handler(request: Request, exc: SerializationFailure):
    """Handle spreadsheet generation errors."""
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)
