"""
Invoice processing pipeline: single public method process_invoice(raw) -> ProcessingResult.
Does not know which LLM is used; all services injected via constructor.
Flow: ATTEMPT_AI -> MERGE (AI success) | FALLBACK (AI failed or unavailable) -> DONE.
"""

from __future__ import annotations

import logging
import threading
import uuid
from enum import Enum
from typing import Sequence

from core.exceptions import FallbackError, ProcessingCancelledError
from core.interfaces import IAIEnhancementService, IFallbackEngine, IPostProcessingService, IReferenceStore
from core.models import (
    HEADER_FIELD_LABELS,
    HEADER_FIELDS,
    AIResult,
    ErrorKind,
    ExtractionMethod,
    InvoiceHeader,
    ProcessedLineItem,
    ProcessingMethod,
    ProcessingResult,
)
from core.schema import AIInvoiceResponse, RawExtraction
from services.description_summary import summarize
from services.field_normalizer import clean_field
from services.post_processing_service import PostProcessingService, fill_missing_totals
from utils.logger import trace_logger
from utils.retry import with_retry

logger = logging.getLogger(__name__)

AI_UNAVAILABLE_NOTE = "AI enhancement unavailable, used fallback"
RATE_LIMIT_NOTE = "Rate limit encountered, used fallback"
NO_AI_LINES_NOTE = "AI returned no line items; lines classified by rule-based fallback"


class PipelineState(str, Enum):
    ATTEMPT_AI = "attempt_ai"
    MERGE = "merge"
    FALLBACK = "fallback"
    DONE = "done"


def _is_missing(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _ai_lines(parsed: AIInvoiceResponse) -> list[ProcessedLineItem]:
    return [
        ProcessedLineItem(
            line_number=item.line_number if item.line_number is not None else i,
            description=item.description,
            unit_cost=item.unit_cost,
            quantity=item.quantity,
            total_cost=item.total_cost,
            classification=item.classification,
            confidence=item.confidence,
            part_number=item.part_number,
            extraction_method=ExtractionMethod.AI_INFERRED,
        )
        for i, item in enumerate(parsed.line_items, start=1)
    ]


def merge_with_raw(
    parsed: AIInvoiceResponse,
    raw: RawExtraction,
    fallback_lines: Sequence[ProcessedLineItem] | None = None,
) -> ProcessingResult:
    """
    Merge AI output with the raw extraction. Pure: same inputs, same result.

    Header fields the AI omitted are filled from raw (one note per field); AI line items
    are authoritative. fallback_lines replace the lines only when the AI returned none.
    Totals still missing are derived from the lines; a missing description is derived
    from the line classifications.
    """
    notes: list[str] = list(parsed.processing_notes)
    values: dict[str, object] = {}
    for name in HEADER_FIELDS:
        value = getattr(parsed, name)
        if _is_missing(value):
            raw_value = clean_field(name, getattr(raw, name))
            if raw_value is not None:
                value = raw_value
                notes.append(f"{HEADER_FIELD_LABELS[name]} filled from raw extraction")
            else:
                value = None
        values[name] = value
    header = InvoiceHeader(**values, description=parsed.description)

    lines = _ai_lines(parsed)
    if not lines and fallback_lines:
        lines = list(fallback_lines)
        notes.append(NO_AI_LINES_NOTE)

    header, total_notes = fill_missing_totals(header, lines)
    notes.extend(total_notes)
    if _is_missing(header.description):
        header.description = summarize(lines)
        notes.append(f"{HEADER_FIELD_LABELS['description']} derived from line classifications")

    confidence = parsed.overall_confidence
    if confidence <= 0 and lines:
        confidence = sum(line.confidence for line in lines) / len(lines)
    return ProcessingResult(
        success=True,
        processing_method=ProcessingMethod.AI_ENHANCED,
        header=header,
        line_items=lines,
        overall_confidence=max(0.0, min(100.0, confidence)),
        processing_notes=notes,
    )


class InvoiceProcessingPipeline:
    """
    Production pipeline: process_invoice(raw) -> ProcessingResult.
    No global state; no knowledge of concrete LLM. All deps injected.
    Never raises except ProcessingCancelledError when the caller cancels.
    """

    def __init__(
        self,
        fallback_engine: IFallbackEngine,
        reference_store: IReferenceStore,
        ai_service: IAIEnhancementService | None = None,
        post_processing_service: IPostProcessingService | None = None,
        *,
        max_ai_attempts: int = 1,
        retry_delay_sec: float = 2.0,
    ) -> None:
        self._fallback = fallback_engine
        self._store = reference_store
        self._ai = ai_service
        self._post = post_processing_service or PostProcessingService()
        self._max_ai_attempts = max(1, int(max_ai_attempts))
        self._retry_delay_sec = retry_delay_sec

    @property
    def ai_enabled(self) -> bool:
        return self._ai is not None

    def process_invoice(
        self,
        raw: RawExtraction,
        cancel_event: threading.Event | None = None,
    ) -> ProcessingResult:
        trace_id = str(uuid.uuid4())
        log = trace_logger(logger, trace_id)
        log.info("Processing invoice %s (%s line items)", raw.invoice_number or "-", len(raw.line_items))

        state = PipelineState.ATTEMPT_AI if self._ai is not None else PipelineState.FALLBACK
        ai_result: AIResult | None = None
        result: ProcessingResult | None = None
        while state is not PipelineState.DONE:
            self._check_cancelled(cancel_event, trace_id)
            if state is PipelineState.ATTEMPT_AI:
                ai_result = self._attempt_ai(raw)
                state = PipelineState.MERGE if ai_result.success else PipelineState.FALLBACK
                if not ai_result.success:
                    log.warning("AI enhancement failed (%s): %s", ai_result.error_kind.value, ai_result.error_message)
            elif state is PipelineState.MERGE:
                result = self._merge(ai_result, raw)
                state = PipelineState.DONE
            else:
                result = self._run_fallback(raw, ai_result)
                state = PipelineState.DONE
        self._check_cancelled(cancel_event, trace_id)

        result = self._post.apply(result, raw)
        result.trace_id = trace_id
        log.info(
            "Invoice done: method=%s success=%s lines=%s confidence=%.1f",
            result.processing_method.value,
            result.success,
            len(result.line_items),
            result.overall_confidence,
        )
        return result

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None, trace_id: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProcessingCancelledError("Invoice processing cancelled", trace_id=trace_id)

    def _attempt_ai(self, raw: RawExtraction) -> AIResult:
        payload = raw.model_dump_json(by_alias=True)
        return with_retry(
            lambda: self._ai.process(payload),
            max_attempts=self._max_ai_attempts,
            delay_sec=self._retry_delay_sec,
            retry_exceptions=(),
            # throttling, auth, quota and payload errors will not improve on retry
            retry_if=lambda r: r.error_kind is ErrorKind.GENERIC_FAILURE,
        )

    def _merge(self, ai_result: AIResult, raw: RawExtraction) -> ProcessingResult:
        parsed = ai_result.parsed
        fallback_lines: list[ProcessedLineItem] | None = None
        extra_notes: list[str] = list(ai_result.notes)
        if not parsed.line_items and raw.line_items:
            try:
                fallback_lines = self._fallback.classify_lines(raw, self._store.keyword_rules())
            except FallbackError as e:
                logger.error("Rule-based line classification unavailable: %s", e)
                extra_notes.append(f"Rule-based line classification unavailable: {e}")
        result = merge_with_raw(parsed, raw, fallback_lines)
        result.processing_notes = extra_notes + result.processing_notes
        return result

    def _run_fallback(self, raw: RawExtraction, ai_result: AIResult | None) -> ProcessingResult:
        if ai_result is None:
            lead = [AI_UNAVAILABLE_NOTE]
        elif ai_result.rate_limit_encountered:
            lead = [RATE_LIMIT_NOTE]
        else:
            lead = [f"AI processing failed: {ai_result.error_message}"]
        if ai_result is not None:
            lead.extend(ai_result.notes)
        try:
            result = self._fallback.classify_and_normalize(
                raw,
                self._store.keyword_rules(),
                self._store.field_mapping_rules(),
            )
        except FallbackError as e:
            logger.error("Rule-based fallback failed: %s", e)
            return ProcessingResult(
                success=False,
                processing_method=ProcessingMethod.RULE_FALLBACK,
                processing_notes=lead + [f"Rule-based fallback failed: {e}"],
                error_kind=ErrorKind.FALLBACK_ERROR,
                error_message=str(e),
            )
        result.processing_notes = lead + result.processing_notes
        return result
