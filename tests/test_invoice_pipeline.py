"""
Tests for InvoiceProcessingPipeline: AI path, fallback path, merge rules and cancellation.
The AI service is a fake returning scripted AIResults; the fallback engine is the real one
over the packaged reference rules.
"""

from __future__ import annotations

import json
import threading
from datetime import date
from typing import Any
from unittest.mock import MagicMock

import pytest

from core.exceptions import FallbackError, ProcessingCancelledError
from core.interfaces import IAIEnhancementService, IReferenceStore
from core.models import (
    AIResult,
    Classification,
    ErrorKind,
    ExtractionMethod,
    FieldMappingRule,
    KeywordRule,
    ProcessingMethod,
)
from core.schema import AIInvoiceResponse
from pipeline.invoice_pipeline import (
    AI_UNAVAILABLE_NOTE,
    NO_AI_LINES_NOTE,
    RATE_LIMIT_NOTE,
    InvoiceProcessingPipeline,
    merge_with_raw,
)
from providers.github_provider import GitHubModelsProvider
from services.ai_enhancement_service import AIEnhancementService
from services.description_summary import ROUTINE_MAINTENANCE
from services.fallback_service import RuleBasedFallbackEngine

AI_REPLY: dict[str, Any] = {
    "header": {"invoiceNumber": "INV-77", "vehicleId": ""},
    "lineItems": [
        {"lineNumber": 1, "description": "Oil filter", "classification": "Part", "totalCost": 12.99, "confidence": 0.9},
        {"description": "Shop supplies", "classification": "Fee", "totalCost": 5.0, "confidence": 0.8},
    ],
    "overallConfidence": 0.87,
    "processingNotes": ["Read from scanned copy"],
}


# ---------------------------------------------------------------------------
# Fake implementations (test doubles)
# ---------------------------------------------------------------------------


class FakeAIService(IAIEnhancementService):
    """Returns scripted results in order (the last one repeats); records payloads."""

    def __init__(self, *results: AIResult, on_call=None) -> None:
        self.results = list(results)
        self.payloads: list[str] = []
        self.on_call = on_call

    @property
    def calls(self) -> int:
        return len(self.payloads)

    def process(self, raw_extraction_json: str) -> AIResult:
        self.payloads.append(raw_extraction_json)
        if self.on_call is not None:
            self.on_call()
        return self.results[min(len(self.payloads), len(self.results)) - 1]


class BrokenReferenceStore(IReferenceStore):
    def keyword_rules(self) -> list[KeywordRule]:
        raise FallbackError("reference database unreachable")

    def field_mapping_rules(self) -> list[FieldMappingRule]:
        raise FallbackError("reference database unreachable")


def ai_ok(reply: dict[str, Any] | None = None) -> AIResult:
    return AIResult.ok(AIInvoiceResponse.model_validate(reply if reply is not None else AI_REPLY))


def make_pipeline(store, ai: IAIEnhancementService | None = None, **kwargs: Any) -> InvoiceProcessingPipeline:
    return InvoiceProcessingPipeline(RuleBasedFallbackEngine(), store, ai, retry_delay_sec=0, **kwargs)


# ---------------------------------------------------------------------------
# Fallback path
# ---------------------------------------------------------------------------


def test_without_ai_service_uses_fallback(default_store, maintenance_raw) -> None:
    pipeline = make_pipeline(default_store)
    assert pipeline.ai_enabled is False
    result = pipeline.process_invoice(maintenance_raw)
    assert result.success is True
    assert result.processing_method is ProcessingMethod.RULE_FALLBACK
    assert result.processing_notes[0] == AI_UNAVAILABLE_NOTE
    assert result.processing_notes[-1] == "Processed using rule-based fallback"
    assert [line.classification for line in result.line_items] == [
        Classification.PART,
        Classification.FEE,
        Classification.TAX,
    ]
    assert result.header.description == ROUTINE_MAINTENANCE
    assert result.trace_id


def test_rate_limit_goes_straight_to_fallback(default_store, maintenance_raw) -> None:
    ai = FakeAIService(
        AIResult.failure(ErrorKind.RATE_LIMITED, "Rate limit exceeded", status_code=429),
        ai_ok(),
    )
    result = make_pipeline(default_store, ai, max_ai_attempts=3).process_invoice(maintenance_raw)
    assert ai.calls == 1
    assert result.processing_method is ProcessingMethod.RULE_FALLBACK
    assert result.processing_notes[0] == RATE_LIMIT_NOTE
    assert result.error_kind is None


def test_ai_failure_notes_lead_fallback_notes(default_store, maintenance_raw) -> None:
    ai = FakeAIService(
        AIResult.failure(ErrorKind.JSON_ERROR, "Invalid JSON in AI response", notes=["Large request: ~9000 tokens"])
    )
    result = make_pipeline(default_store, ai).process_invoice(maintenance_raw)
    assert result.processing_notes[:2] == [
        "AI processing failed: Invalid JSON in AI response",
        "Large request: ~9000 tokens",
    ]
    assert "Classified 3 line items using keyword matching" in result.processing_notes


def test_generic_failure_retried_up_to_max_attempts(default_store, maintenance_raw) -> None:
    ai = FakeAIService(AIResult.failure(ErrorKind.GENERIC_FAILURE, "AI request timed out"), ai_ok())
    result = make_pipeline(default_store, ai, max_ai_attempts=2).process_invoice(maintenance_raw)
    assert ai.calls == 2
    assert result.processing_method is ProcessingMethod.AI_ENHANCED


def test_generic_failure_without_retries_falls_back(default_store, maintenance_raw) -> None:
    ai = FakeAIService(AIResult.failure(ErrorKind.GENERIC_FAILURE, "AI request timed out"), ai_ok())
    result = make_pipeline(default_store, ai).process_invoice(maintenance_raw)
    assert ai.calls == 1
    assert result.processing_method is ProcessingMethod.RULE_FALLBACK


def test_fallback_error_is_unsuccessful(maintenance_raw) -> None:
    result = make_pipeline(BrokenReferenceStore()).process_invoice(maintenance_raw)
    assert result.success is False
    assert result.processing_method is ProcessingMethod.RULE_FALLBACK
    assert result.error_kind is ErrorKind.FALLBACK_ERROR
    assert result.processing_notes[0] == AI_UNAVAILABLE_NOTE
    assert result.processing_notes[-1].startswith("Rule-based fallback failed")
    assert result.line_items == []


# ---------------------------------------------------------------------------
# AI path and merge
# ---------------------------------------------------------------------------


def test_ai_payload_is_serialized_extraction(default_store, maintenance_raw) -> None:
    ai = FakeAIService(ai_ok())
    make_pipeline(default_store, ai).process_invoice(maintenance_raw)
    payload = json.loads(ai.payloads[0])
    assert payload["vehicleId"] == "VEH-013"
    assert payload["lineItems"][0]["description"] == "Oil filter"


def test_ai_result_merged_with_raw(default_store, maintenance_raw) -> None:
    result = make_pipeline(default_store, FakeAIService(ai_ok())).process_invoice(maintenance_raw)
    notes = result.processing_notes
    assert result.success is True
    assert result.processing_method is ProcessingMethod.AI_ENHANCED
    assert notes[0] == "Read from scanned copy"
    assert notes[-1] == "Processed using AI enhancement"
    assert result.header.invoice_number == "INV-77"
    assert result.header.vehicle_id == "VEH-013"
    assert result.header.invoice_date == date(2025, 8, 22)
    assert result.header.odometer == 67890
    assert "Vehicle ID filled from raw extraction" in notes
    assert "Odometer filled from raw extraction" in notes
    assert "Invoice Number filled from raw extraction" not in notes
    assert result.header.total_parts_cost == pytest.approx(12.99)
    assert result.header.total_cost == pytest.approx(17.99)
    assert "Total Parts Cost derived from classified lines" in notes
    assert result.header.description == ROUTINE_MAINTENANCE
    assert "Description derived from line classifications" in notes
    assert result.overall_confidence == pytest.approx(87.0)


def test_ai_lines_are_authoritative(default_store, maintenance_raw) -> None:
    result = make_pipeline(default_store, FakeAIService(ai_ok())).process_invoice(maintenance_raw)
    assert len(result.line_items) == 2
    assert [line.line_number for line in result.line_items] == [1, 2]
    assert all(line.extraction_method is ExtractionMethod.AI_INFERRED for line in result.line_items)
    assert result.line_items[0].confidence == pytest.approx(90.0)


def test_merge_is_pure_and_repeatable(maintenance_raw) -> None:
    parsed = AIInvoiceResponse.model_validate(AI_REPLY)
    before = parsed.model_dump()
    first = merge_with_raw(parsed, maintenance_raw)
    second = merge_with_raw(parsed, maintenance_raw)
    assert first.to_dict() == second.to_dict()
    assert parsed.model_dump() == before


def test_merge_keeps_ai_values_over_raw(maintenance_raw) -> None:
    parsed = AIInvoiceResponse.model_validate({**AI_REPLY, "vehicleId": "VEH-999", "odometer": 70000})
    result = merge_with_raw(parsed, maintenance_raw)
    assert result.header.vehicle_id == "VEH-999"
    assert result.header.odometer == 70000


def test_merge_confidence_from_lines_when_ai_gives_none(maintenance_raw) -> None:
    parsed = AIInvoiceResponse.model_validate({**AI_REPLY, "overallConfidence": 0})
    result = merge_with_raw(parsed, maintenance_raw)
    assert result.overall_confidence == pytest.approx(85.0)


def test_zero_ai_lines_classified_by_rules(default_store, maintenance_raw) -> None:
    reply = {"header": {"invoiceNumber": "INV-77"}, "lineItems": [], "overallConfidence": 0}
    result = make_pipeline(default_store, FakeAIService(ai_ok(reply))).process_invoice(maintenance_raw)
    assert result.processing_method is ProcessingMethod.AI_ENHANCED
    assert NO_AI_LINES_NOTE in result.processing_notes
    assert [line.classification for line in result.line_items] == [
        Classification.PART,
        Classification.FEE,
        Classification.TAX,
    ]
    assert result.line_items[0].matched_keyword == "oil filter"
    expected = sum(line.confidence for line in result.line_items) / 3
    assert result.overall_confidence == pytest.approx(expected)


def test_zero_ai_lines_with_broken_rules_keeps_ai_result(maintenance_raw) -> None:
    reply = {"header": {"invoiceNumber": "INV-77"}, "lineItems": [], "overallConfidence": 0.7}
    result = make_pipeline(BrokenReferenceStore(), FakeAIService(ai_ok(reply))).process_invoice(maintenance_raw)
    assert result.success is True
    assert result.processing_method is ProcessingMethod.AI_ENHANCED
    assert result.line_items == []
    assert any(n.startswith("Rule-based line classification unavailable") for n in result.processing_notes)
    assert "No line items in result although the raw extraction had some" in result.processing_notes


def test_totals_mismatch_noted_not_changed(default_store, maintenance_raw) -> None:
    reply = {**AI_REPLY, "totalPartsCost": "50.00"}
    result = make_pipeline(default_store, FakeAIService(ai_ok(reply))).process_invoice(maintenance_raw)
    assert result.header.total_parts_cost == 50.0
    assert "Total parts cost 50.00 does not match sum of Part lines 12.99" in result.processing_notes


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


def test_cancelled_before_start(default_store, maintenance_raw) -> None:
    ai = FakeAIService(ai_ok())
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ProcessingCancelledError):
        make_pipeline(default_store, ai).process_invoice(maintenance_raw, cancel_event=cancel)
    assert ai.calls == 0


def test_cancelled_during_ai_call(default_store, maintenance_raw) -> None:
    cancel = threading.Event()
    ai = FakeAIService(ai_ok(), on_call=cancel.set)
    with pytest.raises(ProcessingCancelledError) as exc_info:
        make_pipeline(default_store, ai).process_invoice(maintenance_raw, cancel_event=cancel)
    assert exc_info.value.trace_id


# ---------------------------------------------------------------------------
# Untrusted HTTP 200 replies (real AI service and provider, requests.post mocked)
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "body,method",
    [
        ([], ProcessingMethod.RULE_FALLBACK),
        ({"choices": [None]}, ProcessingMethod.RULE_FALLBACK),
        ({"choices": [{"message": {"content": ["a"]}}]}, ProcessingMethod.RULE_FALLBACK),
        (
            {"choices": [{"message": {"content": '{"odometer": 1e999, "lineItems": []}'}}]},
            ProcessingMethod.AI_ENHANCED,
        ),
        (
            {
                "choices": [
                    {
                        "message": {
                            "content": '{"lineItems": [{"lineNumber": 1e999, "description": "Oil filter",'
                            ' "classification": "Part", "totalCost": 12.99}]}'
                        }
                    }
                ]
            },
            ProcessingMethod.AI_ENHANCED,
        ),
    ],
)
def test_malformed_model_replies_never_escape(monkeypatch, default_store, maintenance_raw, body, method) -> None:
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = body
    monkeypatch.setattr("providers.base.requests.post", MagicMock(return_value=response))
    ai = AIEnhancementService(GitHubModelsProvider(api_key="tok"), system_prompt="Return invoice JSON.")

    result = make_pipeline(default_store, ai).process_invoice(maintenance_raw)

    assert result.success is True
    assert result.processing_method is method
    assert result.line_items
