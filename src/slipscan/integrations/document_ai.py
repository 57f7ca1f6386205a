"""Google Cloud Document AI integration for receipt OCR.

Document AI's receipt/expense processors return the document text together
with typed entities (``supplier_name``, ``total_amount``, ``receipt_date``,
...), which the field extractor prefers over its text heuristics.
"""

import logging
import threading
from pathlib import Path

from google.api_core.client_options import ClientOptions
from google.api_core.exceptions import (
    DeadlineExceeded,
    ServiceUnavailable,
    TooManyRequests,
)
from google.cloud import documentai
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from slipscan.integrations.ocr import read_image_file
from slipscan.models import OcrEntity, RawOcrResult

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "us"
DEFAULT_ENTITY_CONFIDENCE = 0.5

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}

# Transient errors worth retrying: rate limits, outages and timeouts
RETRYABLE_ERRORS = (TooManyRequests, ServiceUnavailable, DeadlineExceeded)


def guess_mime_type(file_path: str | Path) -> str:
    """Map a file extension to the MIME type Document AI expects."""
    return MIME_TYPES.get(Path(file_path).suffix.lower(), "image/jpeg")


def average_entity_confidence(entities: list[OcrEntity]) -> float:
    """Average entity confidence; missing or zero scores count as 0.5."""
    if not entities:
        return DEFAULT_ENTITY_CONFIDENCE
    scores = [entity.confidence or DEFAULT_ENTITY_CONFIDENCE for entity in entities]
    return sum(scores) / len(scores)


def document_to_raw_result(document: documentai.Document) -> RawOcrResult:
    """Convert a processed Document AI document into a RawOcrResult."""
    entities = [
        OcrEntity(
            type=entity.type_,
            mention_text=entity.mention_text or None,
            # protobuf reports an unset confidence as 0.0
            confidence=entity.confidence or None,
        )
        for entity in document.entities
    ]
    confidence = min(max(average_entity_confidence(entities), 0.0), 1.0)
    return RawOcrResult(text=document.text, entities=entities, confidence=confidence)


class DocumentAIEngine:
    """
    OCR engine backed by a Google Cloud Document AI processor.

    Attributes:
        project_id: Google Cloud project hosting the processor
        location: Processor location, e.g. "us" or "eu"
        processor_id: Document AI processor ID
    """

    name = "document_ai"

    def __init__(
        self,
        project_id: str,
        processor_id: str,
        location: str = DEFAULT_LOCATION,
        client: documentai.DocumentProcessorServiceClient | None = None,
    ) -> None:
        """
        Initialize the Document AI engine.

        Args:
            project_id: Google Cloud project ID
            processor_id: Document AI processor ID
            location: Processor location (default: "us")
            client: Optional pre-configured DocumentProcessorServiceClient.
                   If None, a regional client is created lazily on first use.
        """
        self.project_id = project_id
        self.processor_id = processor_id
        self.location = location
        self._client = client
        self._client_initialized = client is not None
        self._client_lock = threading.Lock()

    @property
    def processor_name(self) -> str:
        return (
            f"projects/{self.project_id}/locations/{self.location}"
            f"/processors/{self.processor_id}"
        )

    @property
    def client(self) -> documentai.DocumentProcessorServiceClient:
        """Lazily initialize and return the regional Document AI client.

        Uses double-check locking for thread-safe lazy initialization.
        """
        if not self._client_initialized:
            with self._client_lock:
                if not self._client_initialized:
                    options = ClientOptions(
                        api_endpoint=f"{self.location}-documentai.googleapis.com"
                    )
                    self._client = documentai.DocumentProcessorServiceClient(
                        client_options=options
                    )
                    self._client_initialized = True
        return self._client  # type: ignore[return-value]

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _process(self, content: bytes, mime_type: str) -> documentai.Document:
        request = documentai.ProcessRequest(
            name=self.processor_name,
            raw_document=documentai.RawDocument(content=content, mime_type=mime_type),
        )
        result = self.client.process_document(request=request)
        return result.document

    def recognize(self, file_path: str) -> RawOcrResult:
        """
        Process a receipt image or PDF with Document AI.

        Args:
            file_path: Path to the file to process.

        Returns:
            RawOcrResult with the document text, typed entities and the
            average entity confidence.

        Raises:
            FileNotFoundError: If the file does not exist.
            google.api_core.exceptions.GoogleAPIError: If the API call fails
                (transient errors are retried first).
        """
        content = read_image_file(file_path)
        document = self._process(content, guess_mime_type(file_path))
        result = document_to_raw_result(document)
        logger.info(
            "Document AI processed %s: %d page(s), %d entities",
            Path(file_path).name,
            len(document.pages),
            len(result.entities),
        )
        return result
