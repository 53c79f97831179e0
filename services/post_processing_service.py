"""
Post-processing: totals validation and the closing audit note.
Implements IPostProcessingService; no LLM dependency. Never destructive: mismatches
between header totals and classified lines are recorded as notes only.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Sequence

from core.interfaces import IPostProcessingService
from core.models import (
    HEADER_FIELD_LABELS,
    Classification,
    InvoiceHeader,
    ProcessedLineItem,
    ProcessingMethod,
    ProcessingResult,
)
from core.schema import RawExtraction

logger = logging.getLogger(__name__)
TOLERANCE = 0.01

_METHOD_NOTES = {
    ProcessingMethod.AI_ENHANCED: "Processed using AI enhancement",
    ProcessingMethod.RULE_FALLBACK: "Processed using rule-based fallback",
}


def line_amount(line: ProcessedLineItem) -> float | None:
    """Line total, or unit cost x quantity when the total is missing."""
    if line.total_cost is not None:
        return line.total_cost
    if line.unit_cost is not None and line.quantity is not None:
        return round(line.unit_cost * line.quantity, 2)
    return None


def sum_lines(lines: Iterable[ProcessedLineItem], classification: Classification | None = None) -> float | None:
    """Sum of line amounts, optionally for one classification. None when nothing to sum."""
    amounts = [
        amount
        for line in lines
        if classification is None or line.classification is classification
        if (amount := line_amount(line)) is not None
    ]
    return round(sum(amounts), 2) if amounts else None


def fill_missing_totals(header: InvoiceHeader, lines: Sequence[ProcessedLineItem]) -> tuple[InvoiceHeader, list[str]]:
    """Derive absent header totals from classified lines. Present values are never touched."""
    updates: dict[str, float] = {}
    notes: list[str] = []
    for field_name, classification in (
        ("total_parts_cost", Classification.PART),
        ("total_labor_cost", Classification.LABOR),
        ("total_cost", None),
    ):
        if getattr(header, field_name) is not None:
            continue
        derived = sum_lines(lines, classification)
        if derived is None:
            continue
        updates[field_name] = derived
        notes.append(f"{HEADER_FIELD_LABELS[field_name]} derived from classified lines")
    return (replace(header, **updates) if updates else header), notes


def totals_notes(result: ProcessingResult) -> list[str]:
    notes: list[str] = []
    checks = (
        ("Total parts cost", result.header.total_parts_cost, Classification.PART, "Part lines"),
        ("Total labor cost", result.header.total_labor_cost, Classification.LABOR, "Labor lines"),
        ("Total cost", result.header.total_cost, None, "all lines"),
    )
    for label, declared, classification, scope in checks:
        if declared is None:
            continue
        derived = sum_lines(result.line_items, classification)
        if derived is None:
            continue
        if abs(declared - derived) > TOLERANCE:
            notes.append(f"{label} {declared:.2f} does not match sum of {scope} {derived:.2f}")
    return notes


class PostProcessingService(IPostProcessingService):
    """Validate totals, clamp confidence and close the audit trail."""

    def apply(self, result: ProcessingResult, raw: RawExtraction) -> ProcessingResult:
        if not result.success:
            return result
        notes = list(result.processing_notes)
        mismatches = totals_notes(result)
        for note in mismatches:
            logger.info("Totals check: %s", note)
        notes.extend(mismatches)
        if not result.line_items and raw.line_items:
            notes.append("No line items in result although the raw extraction had some")
        notes.append(_METHOD_NOTES[result.processing_method])
        return replace(
            result,
            overall_confidence=max(0.0, min(100.0, result.overall_confidence)),
            processing_notes=notes,
        )
