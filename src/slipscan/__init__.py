try:
    from slipscan._version import __version__
except ImportError:
    try:
        from importlib.metadata import version as _version

        __version__ = _version("slipscan")
    except Exception:
        __version__ = "unknown"

from slipscan.extractor import ReceiptFieldExtractor, extract_receipt
from slipscan.models import LineItem, OcrEntity, RawOcrResult, ReceiptRecord
from slipscan.stats import ReceiptSummary, summarize

__all__ = [
    "LineItem",
    "OcrEntity",
    "RawOcrResult",
    "ReceiptFieldExtractor",
    "ReceiptRecord",
    "ReceiptSummary",
    "__version__",
    "extract_receipt",
    "summarize",
]
