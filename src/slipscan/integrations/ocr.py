"""OCR Engine using Google Cloud Vision API for receipt text extraction."""

import logging
import threading
from pathlib import Path

from google.cloud import vision

from slipscan.models import RawOcrResult

logger = logging.getLogger(__name__)


def read_image_file(image_path: str | Path) -> bytes:
    """Read an image from disk.

    Raises:
        FileNotFoundError: If the path does not exist or is not a file.
    """
    path = Path(image_path)
    if not path.exists() or not path.is_file():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    with path.open("rb") as image_file:
        return image_file.read()


class OCREngine:
    """
    OCR Engine for extracting text from receipt images using Google Vision API.

    Vision returns plain text only, so results carry no entities and the
    extractor relies on its text heuristics for every field. Used when
    Document AI is not configured or fails.
    """

    name = "vision"

    def __init__(self, client: vision.ImageAnnotatorClient | None = None) -> None:
        """
        Initialize the OCR Engine.

        Args:
            client: Optional pre-configured ImageAnnotatorClient.
                   If None, a default client will be created lazily on first use.
        """
        self._client = client
        self._client_initialized = client is not None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> vision.ImageAnnotatorClient:
        """Lazily initialize and return the Vision API client.

        Uses double-check locking for thread-safe lazy initialization.
        """
        if not self._client_initialized:
            with self._client_lock:
                # Double-check inside lock to prevent race conditions
                if not self._client_initialized:
                    self._client = vision.ImageAnnotatorClient()
                    self._client_initialized = True
        return self._client  # type: ignore[return-value]

    def _detect(self, image_path: str):
        content = read_image_file(image_path)

        # vision.Image content expects bytes,
        # but type hints sometimes incorrectly expect a dict
        image = vision.Image(content=content)  # type: ignore

        # text_detection is a dynamic method added at runtime,
        # which static analysis may not resolve
        return self.client.text_detection(image=image)  # type: ignore

    def extract_text(self, image_path: str) -> str:
        """
        Extract text from an image file using Google Vision API.

        Args:
            image_path: Path to the image file to process.

        Returns:
            Extracted text as a string. Returns empty string if no text is found.

        Raises:
            FileNotFoundError: If the image file does not exist.
            google.api_core.exceptions.GoogleAPIError: If the API call fails.
        """
        response = self._detect(image_path)
        return _full_text(response)

    def recognize(self, image_path: str) -> RawOcrResult:
        """
        Run text detection and wrap the output as a RawOcrResult.

        The confidence is the mean page confidence reported by Vision, or None
        when the response carries no page information.

        Raises:
            FileNotFoundError: If the image file does not exist.
            google.api_core.exceptions.GoogleAPIError: If the API call fails.
        """
        response = self._detect(image_path)
        text = _full_text(response)
        logger.debug("Vision recognized %d characters in %s", len(text), image_path)
        return RawOcrResult(text=text, confidence=_page_confidence(response))


def _full_text(response) -> str:
    # The first annotation contains the entire detected text
    if response.text_annotations:
        return response.text_annotations[0].description
    return ""


def _page_confidence(response) -> float | None:
    scores = [
        page.confidence
        for page in response.full_text_annotation.pages
        if isinstance(page.confidence, int | float) and 0.0 <= page.confidence <= 1.0
    ]
    if not scores:
        return None
    return sum(scores) / len(scores)
