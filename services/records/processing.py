"""Background extraction of uploaded invoices.

Runs as a FastAPI background task on the event loop. The provider call is
blocking, so it is pushed to a worker thread; the store is updated once the
call settles. Every failure is converted into an Error status on that record
only.
"""

import asyncio
import logging
import time

from services.api import metrics
from services.extraction.base import ExtractionProvider, ExtractionResult
from services.records.store import RecordStore

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Extraction service is not configured."
EXTRACTION_FAILED_MESSAGE = "Failed to extract data."


async def process_record(
    store: RecordStore,
    provider: ExtractionProvider,
    record_id: str,
    content: bytes,
    media_type: str,
    timeout_seconds: float | None = None,
) -> None:
    """Extract invoice data for one Processing record and settle it.

    This task performs:
    1. Configuration check (fails fast, no network call)
    2. Provider extraction in a worker thread, bounded by timeout_seconds
    3. Transition to Success with validated data, or to Error

    Args:
        store: Record store owning the record
        provider: Configured extraction provider
        record_id: Id returned by RecordStore.create
        content: Raw document bytes
        media_type: MIME type of the document
        timeout_seconds: Give up after this many seconds (None waits forever)
    """
    provider_name = provider.provider_name
    logger.info(f"Processing record {record_id} with provider {provider_name}")

    if not provider.is_available():
        logger.warning(
            f"Extraction provider '{provider_name}' is not configured; "
            f"record {record_id} marked as failed"
        )
        metrics.extraction_requests_total.labels(provider=provider_name, status="unconfigured").inc()
        store.mark_error(record_id, NOT_CONFIGURED_MESSAGE)
        return

    start = time.time()
    try:
        result: ExtractionResult = await asyncio.wait_for(
            asyncio.to_thread(provider.extract_invoice_fields, content, media_type),
            timeout=timeout_seconds,
        )
    except TimeoutError:
        logger.warning(f"Extraction for record {record_id} timed out after {timeout_seconds}s")
        result = ExtractionResult(
            invoice_data=None, success=False, error="timeout", provider=provider_name
        )
    except Exception as e:
        logger.exception(f"Extraction for record {record_id} raised: {e}")
        result = ExtractionResult(
            invoice_data=None, success=False, error=str(e), provider=provider_name
        )
    finally:
        metrics.extraction_processing_duration_seconds.labels(provider=provider_name).observe(
            time.time() - start
        )

    if result.success and result.invoice_data is not None:
        metrics.extraction_requests_total.labels(provider=provider_name, status="success").inc()
        store.mark_success(record_id, result.invoice_data)
        return

    error_type = result.error_type.value if result.error_type else "unknown"
    logger.warning(f"Extraction for record {record_id} failed ({error_type}): {result.error}")
    metrics.extraction_requests_total.labels(provider=provider_name, status="failed").inc()
    store.mark_error(record_id, EXTRACTION_FAILED_MESSAGE)
