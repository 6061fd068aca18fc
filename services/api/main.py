"""FastAPI application for invoice upload, review and export.

Production-ready API with:
- Health and readiness checks for Kubernetes
- File upload validation
- Background AI extraction per uploaded invoice
- Field-level editing with derived totals recomputed server-side
- Dashboard aggregation and CSV export
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from decimal import Decimal
from typing import Any

from fastapi import (
    BackgroundTasks,
    FastAPI,
    File,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from services.api import metrics
from services.extraction.base import SUPPORTED_MEDIA_TYPES
from services.extraction.factory import create_extraction_service
from services.extraction.schema import InvoiceData
from services.records import recalculation
from services.records.aggregation import DashboardStats, compute_dashboard_stats
from services.records.export import EXPORT_FILENAME, encode_csv
from services.records.processing import process_record
from services.records.recalculation import InvalidFieldError, InvalidIndexError
from services.records.store import (
    InvalidTransitionError,
    InvoiceRecord,
    RecordNotFoundError,
    RecordStore,
    SourceDocument,
)
from services.shared.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Smart Invoice Reader",
    description="Invoice and receipt extraction, review and export API",
    version=settings.service_version,
)

extraction_service = create_extraction_service(settings)
record_store = RecordStore()


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Label by route template so record ids do not explode cardinality
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=endpoint,
    ).observe(duration)

    return response


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": f"Invoice not found: {exc.args[0]}"},
    )


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(
    request: Request, exc: InvalidTransitionError
) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(InvalidIndexError)
@app.exception_handler(InvalidFieldError)
@app.exception_handler(ValidationError)
async def invalid_edit_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning(f"Rejected edit on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, content={"detail": str(exc)}
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    extraction_provider: str
    extraction_available: bool


class FieldEdit(BaseModel):
    """Edit of a single field."""

    field: str
    value: Any


class TaxEdit(BaseModel):
    """Edit of the tax amount."""

    tax: Decimal = Field(..., ge=0)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    The service stays ready without a configured provider; uploads then fail
    per record with a configuration error.

    Returns:
        Readiness status
    """
    return ReadinessResponse(
        ready=True,
        extraction_provider=extraction_service.provider_name,
        extraction_available=extraction_service.is_available(),
    )


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post(
    "/api/v1/invoices",
    response_model=InvoiceRecord,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Invoices"],
)
async def upload_invoice(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="Invoice image (PNG, JPEG, WebP) or PDF"),  # noqa: B008
) -> InvoiceRecord:
    """Upload an invoice or receipt for AI extraction.

    The record is created immediately with status `processing` and returned;
    extraction runs in the background and settles the record as `success`
    (with `data`) or `error` (with `errorMessage`). Poll
    `GET /api/v1/invoices/{id}` for the outcome.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/v1/invoices" -F "file=@receipt.jpg"
    ```

    ## Error Handling

    - Returns 400 if the file is missing a name, empty, or of an unsupported type
    - Returns 413 if the file exceeds the configured upload limit
    - Extraction failures never fail the request; they show up on the record

    Args:
        background_tasks: FastAPI background task queue
        file: Document to process (required)

    Returns:
        The newly created Processing record

    Raises:
        HTTPException: If the file is invalid
    """
    if not file.filename:
        metrics.invoices_uploaded_total.labels(status="rejected").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No filename provided")

    content_type = (file.content_type or "").lower()
    if content_type == "image/jpg":
        content_type = "image/jpeg"
    if content_type not in SUPPORTED_MEDIA_TYPES:
        metrics.invoices_uploaded_total.labels(status="rejected").inc()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type: {file.content_type}. Only images and PDFs are supported.",
        )

    content = await file.read()
    if not content:
        metrics.invoices_uploaded_total.labels(status="rejected").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    if len(content) > settings.max_upload_bytes:
        metrics.invoices_uploaded_total.labels(status="rejected").inc()
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File exceeds the {settings.max_upload_bytes} byte upload limit",
        )

    metrics.invoice_upload_size_bytes.observe(len(content))
    metrics.invoices_uploaded_total.labels(status="accepted").inc()

    record_id = record_store.create(
        SourceDocument(filename=file.filename, content_type=content_type, size_bytes=len(content)),
        content,
    )
    background_tasks.add_task(
        process_record,
        record_store,
        extraction_service,
        record_id,
        content,
        content_type,
        settings.extraction_timeout_seconds,
    )
    return record_store.get(record_id)


@app.get("/api/v1/invoices", response_model=list[InvoiceRecord], tags=["Invoices"])
def list_invoices() -> list[InvoiceRecord]:
    """List all invoice records, most recent first."""
    return record_store.all()


@app.get("/api/v1/invoices/{record_id}", response_model=InvoiceRecord, tags=["Invoices"])
def get_invoice(record_id: str) -> InvoiceRecord:
    """Get one invoice record."""
    return record_store.get(record_id)


@app.get("/api/v1/invoices/{record_id}/preview", tags=["Invoices"])
def get_invoice_preview(record_id: str) -> Response:
    """Serve the original uploaded document with its media type."""
    record = record_store.get(record_id)
    return Response(
        content=record_store.get_content(record_id), media_type=record.file.content_type
    )


@app.patch(
    "/api/v1/invoices/{record_id}/line-items/{index}",
    response_model=InvoiceRecord,
    tags=["Editing"],
)
def edit_line_item(record_id: str, index: int, edit: FieldEdit) -> InvoiceRecord:
    """Edit one line item field (description, quantity, unitPrice).

    Quantity and unit price edits recompute the item total; every line item
    edit recomputes subtotal and total.
    """
    return record_store.apply(
        record_id,
        lambda data: recalculation.update_line_item(data, index, edit.field, edit.value),
    )


@app.put("/api/v1/invoices/{record_id}/tax", response_model=InvoiceRecord, tags=["Editing"])
def edit_tax(record_id: str, edit: TaxEdit) -> InvoiceRecord:
    """Replace the tax amount and recompute the total."""
    return record_store.apply(record_id, lambda data: recalculation.update_tax(data, edit.tax))


@app.patch("/api/v1/invoices/{record_id}", response_model=InvoiceRecord, tags=["Editing"])
def edit_invoice_field(record_id: str, edit: FieldEdit) -> InvoiceRecord:
    """Edit a header field: vendorName, invoiceNumber, date, currency, paymentMethod,
    category or aiNotes."""
    return record_store.apply(
        record_id, lambda data: recalculation.update_field(data, edit.field, edit.value)
    )


@app.put("/api/v1/invoices/{record_id}/data", response_model=InvoiceRecord, tags=["Editing"])
def replace_invoice_data(
    record_id: str,
    data: InvoiceData,
    recalculate: bool = Query(
        False, description="Recompute subtotal and total from line items and tax before saving"
    ),
) -> InvoiceRecord:
    """Replace a record's data wholesale, as the editor's save action does."""
    if recalculate:
        data = recalculation.recalculate_totals(data)
    return record_store.update_data(record_id, data)


@app.get(
    "/api/v1/dashboard",
    response_model=DashboardStats,
    responses={204: {"description": "No successfully extracted invoices yet"}},
    tags=["Reporting"],
)
def get_dashboard() -> Any:
    """Dashboard statistics over successfully extracted invoices.

    Returns 204 with no body while there is nothing to show.
    """
    stats = compute_dashboard_stats(record_store.successful())
    if stats is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return stats


@app.get("/api/v1/export.csv", tags=["Reporting"])
def export_csv() -> Response:
    """Download successfully extracted invoices as CSV."""
    return Response(
        content=encode_csv(record_store.successful()),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )
