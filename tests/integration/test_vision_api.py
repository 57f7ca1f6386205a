"""
Integration tests for Google Cloud Vision API OCR functionality.

These tests make real API calls to Google Cloud Vision and require:
1. Google Cloud credentials configured via Application Default Credentials (ADC)
   - Run: gcloud auth application-default login
   - Or set GOOGLE_APPLICATION_CREDENTIALS to a service account key
2. Active Google Cloud project with Vision API enabled and billing enabled
3. Test images in tests/dataset/

Run these tests with: uv run pytest tests/integration/test_vision_api.py -m integration
"""

import time
from pathlib import Path

import pytest

from slipscan.extractor import ReceiptFieldExtractor
from slipscan.integrations.ocr import OCREngine
from tests.integration.utils import receipt_image, skip_on_billing_error

# Mark all tests in this module as integration tests
pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def ocr_engine():
    """
    Create an OCREngine instance with real Google Vision client using ADC.

    Skips all tests if credentials are not available.
    """
    try:
        engine = OCREngine()
        # Test that we can actually create a client (this validates credentials)
        _ = engine.client
        return engine
    except Exception as e:
        pytest.skip(
            f"Google Cloud credentials not configured. "
            f"Run 'gcloud auth application-default login' or set "
            f"GOOGLE_APPLICATION_CREDENTIALS. Error: {e}"
        )


@pytest.fixture
def dataset_dir():
    """Return path to test dataset directory."""
    return Path(__file__).parent.parent / "dataset"


@skip_on_billing_error
def test_recognize_english_receipt(ocr_engine, dataset_dir):
    """Test OCR extraction from a real English receipt image."""
    receipt_path = receipt_image(dataset_dir, "receipt_en.jpg")

    result = ocr_engine.recognize(str(receipt_path))

    assert len(result.text) > 0
    assert result.entities == []
    # Basic sanity check - receipts typically contain numbers
    assert any(char.isdigit() for char in result.text)


@skip_on_billing_error
def test_english_receipt_yields_total(ocr_engine, dataset_dir):
    """Test that Vision text alone is enough to find a total."""
    receipt_path = receipt_image(dataset_dir, "receipt_en.jpg")

    receipt = ReceiptFieldExtractor().extract(ocr_engine.recognize(str(receipt_path)))

    assert receipt.total_amount is not None
    assert receipt.merchant_name


@skip_on_billing_error
def test_recognize_japanese_receipt(ocr_engine, dataset_dir):
    """Test OCR extraction from a Japanese receipt."""
    receipt_path = receipt_image(dataset_dir, "receipt_jp.jpg")

    result = ocr_engine.recognize(str(receipt_path))

    assert len(result.text) > 0


@skip_on_billing_error
def test_ocr_processing_speed(ocr_engine, dataset_dir):
    """Test that OCR processing meets speed requirements (< 5 seconds)."""
    receipt_path = receipt_image(dataset_dir, "receipt_en.jpg")

    start_time = time.time()
    result = ocr_engine.recognize(str(receipt_path))
    elapsed_time = time.time() - start_time

    assert len(result.text) > 0
    # Performance requirement: < 5 seconds per receipt
    assert elapsed_time < 5.0, f"OCR took {elapsed_time:.2f}s, exceeds 5s requirement"
