"""
Batch processor: list of RawExtractions -> run pipeline per invoice, collect metrics.
Does not duplicate pipeline logic; uses InvoiceProcessingPipeline.process_invoice().
Supports parallel execution via max_workers (ThreadPoolExecutor); output keeps input order.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from core.exceptions import ProcessingCancelledError
from core.models import BatchMetrics, ErrorKind, ProcessingMethod, ProcessingResult
from core.schema import RawExtraction
from pipeline.invoice_pipeline import InvoiceProcessingPipeline
from utils.logger import log_structured

logger = logging.getLogger(__name__)


def _update_metrics(metrics: BatchMetrics, result: ProcessingResult) -> None:
    """Update counts from a single ProcessingResult."""
    metrics.total_processed += 1
    if not result.success:
        metrics.failed_count += 1
    elif result.processing_method is ProcessingMethod.AI_ENHANCED:
        metrics.ai_enhanced_count += 1
    else:
        metrics.fallback_count += 1


def _failed_result(error: Exception) -> ProcessingResult:
    return ProcessingResult(
        success=False,
        processing_method=ProcessingMethod.RULE_FALLBACK,
        processing_notes=[f"Invoice processing failed: {error}"],
        error_kind=ErrorKind.GENERIC_FAILURE,
        error_message=str(error),
    )


class BatchProcessor:
    """
    Process multiple invoices in parallel (or sequentially when max_workers=1). Collects metrics.
    Injected pipeline; no duplicate pipeline logic.
    """

    def __init__(self, pipeline: InvoiceProcessingPipeline, max_workers: int = 1) -> None:
        self._pipeline = pipeline
        self._max_workers = max(1, int(max_workers))

    def _process_one(
        self,
        index: int,
        raw: RawExtraction,
        cancel_event: threading.Event | None,
        stop_on_first_error: bool,
    ) -> ProcessingResult:
        logger.info("Processing invoice %s/%s", index + 1, raw.invoice_number or "-")
        try:
            return self._pipeline.process_invoice(raw, cancel_event=cancel_event)
        except ProcessingCancelledError:
            raise
        except Exception as e:
            logger.exception("Batch item %s failed: %s", index, e)
            if stop_on_first_error:
                raise
            return _failed_result(e)

    def process_batch(
        self,
        extractions: Sequence[RawExtraction],
        *,
        stop_on_first_error: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> tuple[list[ProcessingResult], BatchMetrics]:
        """
        Run pipeline.process_invoice() for each extraction. Returns (results, metrics) with
        results in input order. Unexpected errors become failed results unless
        stop_on_first_error; cancellation always propagates.
        """
        metrics = BatchMetrics()
        start = time.perf_counter()
        if self._max_workers > 1 and len(extractions) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                futures = [
                    executor.submit(self._process_one, i, raw, cancel_event, stop_on_first_error)
                    for i, raw in enumerate(extractions)
                ]
                # iterate in submission order so results line up with inputs
                results = [future.result() for future in futures]
        else:
            results = [
                self._process_one(i, raw, cancel_event, stop_on_first_error)
                for i, raw in enumerate(extractions)
            ]
        for result in results:
            _update_metrics(metrics, result)
        metrics.total_time_sec = time.perf_counter() - start
        summary = metrics.to_dict()
        log_structured(logger, logging.INFO, f"Batch metrics: {summary}", **summary)
        return results, metrics
