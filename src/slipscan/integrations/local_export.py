"""Local CSV export functionality for receipt records."""

import csv
import fcntl
import logging
import os
from pathlib import Path

from slipscan.models import ReceiptRecord

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "Merchant Name",
    "Total Amount",
    "Tax Amount",
    "Subtotal Amount",
    "Date",
    "Time",
    "Currency",
    "Payment Method",
    "Confidence Score",
]


def receipt_to_row(receipt: ReceiptRecord) -> list[str]:
    """Convert a ReceiptRecord to a CSV row in CSV_HEADER order.

    Missing values are written as empty strings.
    """
    values = [
        receipt.merchant_name,
        receipt.total_amount,
        receipt.tax_amount,
        receipt.subtotal_amount,
        receipt.date,
        receipt.time,
        receipt.currency,
        receipt.payment_method,
        f"{receipt.confidence_score:.2f}",
    ]
    return ["" if value is None else str(value) for value in values]


class LocalExporter:
    """Exporter for appending receipt records to local CSV files."""

    def export(self, receipts: list[ReceiptRecord], path: Path) -> None:
        """Export receipts to a local CSV file.

        If the file doesn't exist, it will be created with headers.
        If the file exists, data will be appended to it.

        Args:
            receipts: List of ReceiptRecord objects to export
            path: Path to the CSV file to write/append to

        Raises:
            PermissionError: If the file cannot be written due to permissions
            OSError: If there are filesystem-related errors
        """
        if not receipts:
            return

        path.parent.mkdir(parents=True, exist_ok=True)

        # The BOM is written manually for new files only, so appending never
        # puts one in the middle of the file
        with open(path, mode="a", encoding="utf-8", newline="") as f:
            # Use file locking to prevent corruption from concurrent writes
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                # Check actual file size AFTER acquiring lock using fstat
                is_new_file = os.fstat(f.fileno()).st_size == 0

                if is_new_file:
                    f.write("\ufeff")  # UTF-8 BOM for Excel

                writer = csv.writer(f)
                if is_new_file:
                    writer.writerow(CSV_HEADER)

                for receipt in receipts:
                    writer.writerow(receipt_to_row(receipt))
                # Buffered rows must reach the file before the lock is released
                f.flush()
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        logger.info("Exported %d receipt(s) to %s", len(receipts), path)
