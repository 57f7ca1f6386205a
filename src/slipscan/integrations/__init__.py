"""Slipscan integrations module."""

from slipscan.integrations.document_ai import DocumentAIEngine
from slipscan.integrations.local_export import LocalExporter
from slipscan.integrations.ocr import OCREngine

__all__ = [
    "DocumentAIEngine",
    "LocalExporter",
    "OCREngine",
]
