import asyncio
import logging
import os
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

import typer
from dotenv import load_dotenv
from google.api_core.exceptions import GoogleAPIError
from pydantic import ValidationError

# Disable gRPC fork support warnings
# These warnings occur when gRPC clients (Google APIs) are used with thread
# pools. Setting this env var disables the warnings.
os.environ.setdefault("GRPC_ENABLE_FORK_SUPPORT", "0")

from slipscan.extractor import ReceiptFieldExtractor
from slipscan.integrations.document_ai import DEFAULT_LOCATION, DocumentAIEngine
from slipscan.integrations.local_export import LocalExporter
from slipscan.integrations.ocr import OCREngine
from slipscan.models import ProcessingResult, RawOcrResult
from slipscan.stats import ReceiptSummary, summarize

load_dotenv()

logger = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True)


class OcrProvider(Protocol):
    """Anything that turns a receipt file into a RawOcrResult."""

    name: str

    def recognize(self, file_path: str) -> RawOcrResult: ...


@app.callback(invoke_without_command=True)
def callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
):
    """Slipscan CLI tool."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def _ocr_failed(
    result: ProcessingResult,
    error: Exception,
    start_time: float,
    on_progress: Callable[[str, str], None] | None,
) -> ProcessingResult:
    result.ocr_error = str(error)
    result.processing_time = time.time() - start_time
    logger.warning("OCR failed for %s: %s", result.file_name, error)
    if on_progress:
        on_progress("ocr_error", f"Failed to process {result.file_name}: {error}")
    return result


async def process_file(
    path: Path,
    ocr_engine: OcrProvider,
    fallback_engine: OcrProvider | None = None,
    extractor: ReceiptFieldExtractor | None = None,
    on_progress: Callable[[str, str], None] | None = None,
) -> ProcessingResult:
    """Process a single receipt file through OCR and field extraction.

    If the primary engine fails with a Google API error and a fallback engine
    is given, OCR is retried with the fallback.

    Args:
        path: Local path of the receipt image or PDF
        ocr_engine: Primary OCR engine
        fallback_engine: Optional engine used when the primary one fails
        extractor: Field extractor (default: a new ReceiptFieldExtractor)
        on_progress: Optional callback for progress updates (event_type, message)

    Returns:
        ProcessingResult with the OCR output, the extracted record and any
        OCR error
    """
    start_time = time.time()
    extractor = extractor or ReceiptFieldExtractor()
    file_name = path.name
    result = ProcessingResult(file_name=file_name)

    # Step 1: OCR extraction
    # OCR is synchronous, so we run it in an executor for true parallelism
    loop = asyncio.get_running_loop()
    engines = [ocr_engine] if fallback_engine is None else [ocr_engine, fallback_engine]
    for position, engine in enumerate(engines, start=1):
        try:
            raw = await loop.run_in_executor(None, engine.recognize, str(path))
        except GoogleAPIError as e:
            if position == len(engines):
                return _ocr_failed(result, e, start_time, on_progress)
            next_engine = engines[position]
            logger.warning(
                "%s failed for %s, falling back to %s: %s",
                engine.name,
                file_name,
                next_engine.name,
                e,
            )
            if on_progress:
                on_progress(
                    "ocr_fallback",
                    f"{engine.name} failed for {file_name}, "
                    f"retrying with {next_engine.name}: {e}",
                )
            continue
        except Exception as e:
            return _ocr_failed(result, e, start_time, on_progress)

        result.ocr_engine = engine.name
        result.ocr_result = raw
        break

    if on_progress:
        on_progress(
            "ocr_success",
            f"Extracted text from {file_name}: {len(raw.text)} characters",
        )

    # Step 2: field extraction (never fails)
    receipt = extractor.extract(raw)
    result.receipt = receipt
    result.processing_time = time.time() - start_time

    if on_progress:
        total = "-" if receipt.total_amount is None else receipt.total_amount
        on_progress(
            "extract_success",
            f"Receipt fields extracted for {file_name}: "
            f"{receipt.merchant_name}, {receipt.date}, {total} {receipt.currency}",
        )

    return result


async def run_pipeline(
    paths: Iterable[Path],
    ocr_engine: OcrProvider,
    fallback_engine: OcrProvider | None = None,
    extractor: ReceiptFieldExtractor | None = None,
    exporter: LocalExporter | None = None,
    export_path: Path | None = None,
    on_progress: Callable[[str, str], None] | None = None,
) -> list[ProcessingResult]:
    """Run OCR and extraction for every file concurrently.

    Args:
        paths: Receipt files to process
        ocr_engine: Primary OCR engine
        fallback_engine: Optional engine used when the primary one fails
        extractor: Field extractor shared by all files
        exporter: Optional CSV exporter for the extracted records
        export_path: CSV file to append to (required with exporter)
        on_progress: Optional callback for progress updates (event_type, message)

    Returns:
        List of ProcessingResult objects in the order of ``paths``
    """
    extractor = extractor or ReceiptFieldExtractor()
    tasks = [
        asyncio.create_task(
            process_file(path, ocr_engine, fallback_engine, extractor, on_progress)
        )
        for path in paths
    ]
    results = await asyncio.gather(*tasks)

    if exporter and export_path:
        receipts = [result.receipt for result in results if result.receipt]
        if receipts:
            try:
                exporter.export(receipts, export_path)
                message = f"Exported {len(receipts)} receipts to {export_path}"
                if on_progress:
                    on_progress("export_success", message)
            except OSError as e:
                message = f"Failed to export receipts to {export_path}: {e}"
                if on_progress:
                    on_progress("export_error", message)

    return list(results)


def build_ocr_engines() -> tuple[OcrProvider, OcrProvider | None]:
    """Create the OCR engines from environment configuration.

    Document AI is the primary engine when GOOGLE_CLOUD_PROJECT_ID and
    DOCUMENT_AI_PROCESSOR_ID are set, with Vision as its fallback. Otherwise
    Vision is used alone.
    """
    project_id = os.getenv("GOOGLE_CLOUD_PROJECT_ID")
    processor_id = os.getenv("DOCUMENT_AI_PROCESSOR_ID")
    location = os.getenv("GOOGLE_CLOUD_LOCATION", DEFAULT_LOCATION)

    vision_engine = OCREngine()
    if not project_id or not processor_id:
        typer.echo(
            "Warning: GOOGLE_CLOUD_PROJECT_ID or DOCUMENT_AI_PROCESSOR_ID not set. "
            "Using Vision OCR only.",
            err=True,
        )
        return vision_engine, None

    document_ai_engine = DocumentAIEngine(
        project_id=project_id, processor_id=processor_id, location=location
    )
    return document_ai_engine, vision_engine


def _echo_summary(summary: ReceiptSummary) -> None:
    average = "-" if summary.average_amount is None else summary.average_amount
    typer.echo(
        f"Summary: {summary.receipt_count} receipt(s), "
        f"total {summary.total_amount}, average {average}"
    )
    for currency, amount in sorted(summary.currency_totals.items()):
        typer.echo(f"  {currency}: {amount}")
    for merchant, count in sorted(
        summary.merchant_counts.items(), key=lambda item: (-item[1], item[0])
    ):
        typer.echo(f"  {merchant}: {count}")
    if summary.earliest_date:
        typer.echo(f"Dates: {summary.earliest_date} to {summary.latest_date}")
    if summary.average_confidence is not None:
        typer.echo(f"Average confidence: {summary.average_confidence:.2f}")


@app.command()
def extract(
    input_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="OCR result as JSON, or a plain text file",
    ),
):
    """Extract receipt fields from a saved OCR result and print them as JSON."""
    try:
        content = input_file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        typer.echo(f"Error: {input_file} is not UTF-8 text: {e}", err=True)
        raise typer.Exit(code=1) from e

    if input_file.suffix.lower() == ".json":
        try:
            raw = RawOcrResult.model_validate_json(content)
        except ValidationError as e:
            typer.echo(f"Error: invalid OCR result in {input_file}: {e}", err=True)
            raise typer.Exit(code=1) from e
    else:
        raw = RawOcrResult(text=content)

    receipt = ReceiptFieldExtractor().extract(raw)
    typer.echo(receipt.to_json())


@app.command()
def scan(
    paths: list[Path] = typer.Argument(
        ..., exists=True, dir_okay=False, help="Receipt images or PDFs"
    ),
    csv_path: Path | None = typer.Option(
        None, "--csv", "-o", help="CSV file to append the extracted receipts to"
    ),
    stats: bool = typer.Option(
        False, "--stats", help="Print totals and breakdowns for the batch"
    ),
):
    """OCR receipt files and extract their fields."""
    try:
        ocr_engine, fallback_engine = build_ocr_engines()
        # Eagerly initialize the Google clients in the main thread
        # to avoid gRPC initialization warnings when running in executor
        _ = ocr_engine.client  # type: ignore[attr-defined]
        if fallback_engine is not None:
            _ = fallback_engine.client  # type: ignore[attr-defined]
    except Exception as e:
        typer.echo(f"Failed to initialize OCR engine: {e}", err=True)
        raise typer.Exit(code=1) from e

    def cli_progress(event_type: str, message: str):
        """Callback to handle progress events and output to CLI."""
        if "error" in event_type or "fallback" in event_type:
            typer.echo(message, err=True)
        else:
            typer.echo(message)

    results = asyncio.run(
        run_pipeline(
            paths,
            ocr_engine,
            fallback_engine=fallback_engine,
            exporter=LocalExporter() if csv_path else None,
            export_path=csv_path,
            on_progress=cli_progress,
        )
    )

    extracted = sum(1 for result in results if result.receipt)
    typer.echo(
        f"Processed {len(results)} file(s): {extracted} extracted, "
        f"{len(results) - extracted} failed"
    )

    if stats:
        _echo_summary(summarize(r.receipt for r in results if r.receipt))


def main():
    app()


if __name__ == "__main__":
    main()
