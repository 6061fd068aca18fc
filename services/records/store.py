"""In-memory record store for uploaded invoices.

The store is the single owner of invoice records. Records are frozen pydantic
models; every mutation builds a new record and swaps it into the mapping, so
a reader sees either the whole old record or the whole new one.
"""

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from pydantic import Field

from services.extraction.schema import CamelModel, InvoiceData

logger = logging.getLogger(__name__)

PREVIEW_URL_TEMPLATE = "/api/v1/invoices/{record_id}/preview"


class RecordNotFoundError(KeyError):
    """No record with the given id exists."""


class InvalidTransitionError(ValueError):
    """The record's status does not allow the requested mutation."""


class RecordStatus(str, Enum):
    """Lifecycle status of an invoice record."""

    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class SourceDocument(CamelModel):
    """Uploaded document backing a record.

    Attributes:
        filename: Original filename
        content_type: Declared MIME type
        size_bytes: Size of the uploaded content
    """

    filename: str
    content_type: str
    size_bytes: int


class InvoiceRecord(CamelModel):
    """One uploaded document plus its lifecycle status and extracted data."""

    id: str
    file: SourceDocument
    preview_url: str
    status: RecordStatus = RecordStatus.PROCESSING
    data: InvoiceData | None = None
    error_message: str | None = None
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RecordStore:
    """Ordered, most-recent-first collection of invoice records."""

    def __init__(self) -> None:
        self._records: dict[str, InvoiceRecord] = {}
        self._contents: dict[str, bytes] = {}
        self._order: list[str] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._order)

    def create(self, file: SourceDocument, content: bytes) -> str:
        """Insert a new Processing record at the front of the store.

        Args:
            file: Metadata of the uploaded document
            content: Raw document bytes, served back as the preview

        Returns:
            The new record id
        """
        record_id = str(uuid.uuid4())
        record = InvoiceRecord(
            id=record_id,
            file=file,
            preview_url=PREVIEW_URL_TEMPLATE.format(record_id=record_id),
        )

        with self._lock:
            if record_id in self._records:
                raise RuntimeError(f"Duplicate record id generated: {record_id}")
            self._records[record_id] = record
            self._contents[record_id] = content
            self._order.insert(0, record_id)

        logger.info(f"Created record {record_id} for {file.filename}")
        return record_id

    def mark_success(self, record_id: str, data: InvoiceData) -> InvoiceRecord:
        """Settle a Processing record with extracted data."""
        record = self._transition(record_id, RecordStatus.SUCCESS, data=data)
        logger.info(f"Record {record_id} extracted successfully")
        return record

    def mark_error(self, record_id: str, message: str) -> InvoiceRecord:
        """Settle a Processing record as failed with a user-facing message."""
        record = self._transition(record_id, RecordStatus.ERROR, error_message=message)
        logger.info(f"Record {record_id} marked as failed: {message}")
        return record

    def apply(
        self, record_id: str, edit: Callable[[InvoiceData], InvoiceData]
    ) -> InvoiceRecord:
        """Edit the data of a Success record as one atomic step.

        The edit receives the current data and returns the replacement. It
        runs under the store lock, so concurrent edits of the same record are
        applied one after another and none is lost. If the edit raises, the
        record is left unchanged.

        Args:
            record_id: Id of the record to edit
            edit: Pure function from current data to new data

        Returns:
            The updated record

        Raises:
            RecordNotFoundError: If the record does not exist
            InvalidTransitionError: If the record is not in Success status
        """
        with self._lock:
            current = self._get_locked(record_id)
            if current.status is not RecordStatus.SUCCESS or current.data is None:
                raise InvalidTransitionError(
                    f"Record {record_id} is {current.status.value}; only successful "
                    f"records can be edited"
                )
            updated = current.model_copy(update={"data": edit(current.data)})
            self._records[record_id] = updated

        logger.debug(f"Updated data for record {record_id}")
        return updated

    def update_data(self, record_id: str, data: InvoiceData) -> InvoiceRecord:
        """Replace the data of a Success record wholesale.

        Raises:
            RecordNotFoundError: If the record does not exist
            InvalidTransitionError: If the record is not in Success status
        """
        return self.apply(record_id, lambda _current: data)

    def get(self, record_id: str) -> InvoiceRecord:
        """Return one record.

        Raises:
            RecordNotFoundError: If the record does not exist
        """
        with self._lock:
            return self._get_locked(record_id)

    def get_content(self, record_id: str) -> bytes:
        """Return the raw bytes of the record's source document."""
        with self._lock:
            self._get_locked(record_id)
            return self._contents[record_id]

    def all(self) -> list[InvoiceRecord]:
        """Snapshot of all records, most recent first."""
        with self._lock:
            return [self._records[record_id] for record_id in self._order]

    def successful(self) -> list[InvoiceRecord]:
        """Snapshot of Success records, most recent first."""
        return [r for r in self.all() if r.status is RecordStatus.SUCCESS]

    def _get_locked(self, record_id: str) -> InvoiceRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise RecordNotFoundError(record_id) from None

    def _transition(
        self,
        record_id: str,
        status: RecordStatus,
        data: InvoiceData | None = None,
        error_message: str | None = None,
    ) -> InvoiceRecord:
        # Processing is the only state that may be left, and it is left once.
        with self._lock:
            current = self._get_locked(record_id)
            if current.status is not RecordStatus.PROCESSING:
                raise InvalidTransitionError(
                    f"Record {record_id} already settled as {current.status.value}"
                )
            updated = current.model_copy(
                update={"status": status, "data": data, "error_message": error_message}
            )
            self._records[record_id] = updated
        return updated
