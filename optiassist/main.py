"""
Optical-Assist - FastAPI Application Entry Point

Retrieval-augmented question answering for optometry practice management.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError as PydanticValidationError

from optiassist import __version__
from optiassist.api.auth import require_admin_key
from optiassist.config import Settings, get_settings
from optiassist.errors import DocumentNotFoundError, ServiceError, ValidationError
from optiassist.llm.api_base import RetryPolicy
from optiassist.llm.completion_client import CompletionClient
from optiassist.observability.metrics import get_metrics_text, record_ask, record_ingestion
from optiassist.pipelines.answering import (
    AnsweringPipeline,
    DatabaseQueryLogger,
    NullQueryLogger,
)
from optiassist.pipelines.ingestion import IngestionPipeline
from optiassist.rag.embedding import EmbeddingClient
from optiassist.rag.store import PgVectorStore
from optiassist.security.input_validation import AskRequest
from optiassist.security.pii import build_pii_policy

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong."


# ============================================
# Service Wiring
# ============================================


@dataclass
class Services:
    """Long-lived collaborators shared by all requests."""

    settings: Settings
    store: Any
    embedder: Any
    completion_client: Any
    ingestion: IngestionPipeline
    answering: AnsweringPipeline


def build_services(settings: Settings, session_factory) -> Services:
    """Wire the store, model clients and pipelines from configuration."""
    store = PgVectorStore(
        session_factory,
        dimension=settings.embedding_dimension,
        metric=settings.distance_metric,
    )
    embedder = EmbeddingClient(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
        base_url=settings.openai_base_url,
        timeout=settings.http_timeout_seconds,
        retry_policy=RetryPolicy(max_attempts=settings.embedding_max_attempts),
    )
    completion_client = CompletionClient(
        api_key=settings.openai_api_key,
        model=settings.completion_model,
        base_url=settings.openai_base_url,
        timeout=settings.http_timeout_seconds,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    query_logger = (
        DatabaseQueryLogger(store) if settings.query_log_enabled else NullQueryLogger()
    )
    return Services(
        settings=settings,
        store=store,
        embedder=embedder,
        completion_client=completion_client,
        ingestion=IngestionPipeline(
            store,
            embedder,
            chunk_size=settings.chunk_size,
            concurrency=settings.embedding_concurrency,
            max_file_size=settings.max_upload_bytes,
        ),
        answering=AnsweringPipeline(
            store,
            embedder,
            completion_client,
            pii_policy=build_pii_policy(settings.pii_mode),
            query_logger=query_logger,
            top_k=settings.top_k,
            retrieval_source=settings.retrieval_source,
            query_log_timeout=settings.query_log_timeout_seconds,
        ),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the wired services."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return services


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    from optiassist.db.postgres import close_db, get_session_maker, init_db

    settings = get_settings()
    logger.info("Starting Optical-Assist API v%s", __version__)

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.warning("Database initialization failed: %s", e)

    app.state.services = build_services(settings, get_session_maker())
    logger.info(
        "Pipelines ready (pii_mode=%s, top_k=%d, source=%s)",
        settings.pii_mode,
        settings.top_k,
        settings.retrieval_source,
    )

    yield

    logger.info("Shutting down Optical-Assist API")
    await close_db()


# Create FastAPI application
app = FastAPI(
    title="Optical-Assist",
    description="Retrieval-augmented assistant for optometry practice management",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Health Check Endpoints
# ============================================


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Liveness endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": "optiassist-api",
    }


@app.get("/ready", tags=["Health"])
async def readiness_check(services: Services = Depends(get_services)) -> dict[str, Any]:
    """Readiness check with dependency status."""
    from optiassist.db.postgres import check_database_health

    db = await check_database_health()
    embedding_ok, completion_ok = await asyncio.gather(
        services.embedder.health_check(),
        services.completion_client.health_check(),
    )
    checks = {
        "database": "ok" if db.get("status") == "healthy" else "unavailable",
        "embedding_model": "ok" if embedding_ok else "unavailable",
        "completion_model": "ok" if completion_ok else "unavailable",
    }
    return {
        "ready": all(v == "ok" for v in checks.values()),
        "checks": checks,
    }


# ============================================
# Document Administration
# ============================================


@app.post("/upload", tags=["Documents"], dependencies=[Depends(require_admin_key)])
async def upload_endpoint(
    file: UploadFile | None = File(default=None),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Upload a PDF reference document for indexing."""
    if file is None:
        raise ValidationError("No file uploaded")

    # Read one byte past the limit so oversize uploads are detectable
    content = await file.read(services.settings.max_upload_bytes + 1)
    filename = file.filename or "upload.pdf"

    try:
        result = await services.ingestion.ingest(filename, content)
    except ServiceError:
        record_ingestion(success=False)
        raise

    record_ingestion(success=True)
    return {
        "message": "File uploaded and processed successfully",
        "document_id": str(result.document_id),
        "chunks": result.chunks_created,
    }


@app.get("/documents", tags=["Documents"], dependencies=[Depends(require_admin_key)])
async def list_documents_endpoint(
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    """List uploaded documents, newest first."""
    documents = await services.store.list_documents()
    return [
        {
            "id": str(d.id),
            "filename": d.filename,
            "size": d.file_size,
            "createdAt": d.created_at.isoformat(),
        }
        for d in documents
    ]


@app.delete(
    "/documents/{document_id}",
    tags=["Documents"],
    dependencies=[Depends(require_admin_key)],
)
async def delete_document_endpoint(
    document_id: uuid.UUID,
    services: Services = Depends(get_services),
) -> dict[str, str]:
    """Delete a document and all of its chunks."""
    if not await services.store.delete_document(document_id):
        raise DocumentNotFoundError()
    return {"message": "Document deleted successfully"}


# ============================================
# Question Answering
# ============================================


def _validation_message(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    if errors[0].get("type") == "missing":
        return "Question is required"
    return str(errors[0].get("msg", "Invalid request")).removeprefix("Value error, ")


@app.post("/ask", tags=["Query"])
async def ask_endpoint(
    request: Request,
    services: Services = Depends(get_services),
) -> dict[str, str]:
    """Answer a question from the indexed reference documents."""
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON") from None

    try:
        ask = AskRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(_validation_message(e)) from None

    try:
        result = await asyncio.wait_for(
            services.answering.answer(ask.question),
            timeout=services.settings.ask_timeout_seconds,
        )
    except asyncio.TimeoutError:
        record_ask("failed")
        logger.error("Question timed out after %.1fs", services.settings.ask_timeout_seconds)
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"error": "Request timed out"},
        )
    except Exception:
        record_ask("failed")
        raise

    if result.refused:
        record_ask("refused")
    else:
        record_ask("answered", latency_ms=result.latency_ms)
        # Outside the request deadline; has its own timeout
        await services.answering.record_query(result)
    return {"type": result.type, "answer": result.answer}


# ============================================
# Metrics Endpoint
# ============================================


@app.get("/metrics", tags=["Monitoring"])
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(content=get_metrics_text(), media_type="text/plain")


# ============================================
# Exception Handlers
# ============================================


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render domain errors; upstream and storage details stay in the logs."""
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.public_message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed path or query parameters use the same error envelope."""
    errors = exc.errors()
    location = errors[0].get("loc", ()) if errors else ()
    field = location[-1] if location else "request"
    logger.info("Invalid %s on %s", field, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"Invalid {field}"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": GENERIC_ERROR},
    )


# ============================================
# Static Frontend Mount
# ============================================

# Mount static assets at / (AFTER all API routes so they take precedence)
_static_dir = Path(get_settings().static_dir).resolve()
if _static_dir.is_dir():
    app.mount("/", StaticFiles(directory=str(_static_dir), html=True), name="static")


# ============================================
# Main Entry Point
# ============================================


def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "optiassist.main:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
