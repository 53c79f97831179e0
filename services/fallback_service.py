"""
Rule-based fallback engine: deterministic classification and normalization.
Implements IFallbackEngine; no network, no LLM. Reproduces the same ProcessingResult
contract as the AI path from the keyword and field-mapping dictionaries alone.
"""

from __future__ import annotations

import logging
from typing import Sequence

from core.interfaces import IFallbackEngine
from core.models import (
    Classification,
    FieldMappingRule,
    KeywordRule,
    ProcessedLineItem,
    ProcessingMethod,
    ProcessingResult,
)
from core.schema import RawExtraction
from services.description_summary import summarize
from services.field_normalizer import FieldNormalizer
from services.line_item_classifier import LineItemClassifier
from services.part_number_extractor import PartNumberExtractor
from services.post_processing_service import fill_missing_totals

logger = logging.getLogger(__name__)

# Overall confidence reported when there are no lines to average over
NO_LINES_CONFIDENCE = 65.0


class RuleBasedFallbackEngine(IFallbackEngine):
    """Field normalization, keyword classification, part numbers and summary."""

    def __init__(
        self,
        normalizer: FieldNormalizer | None = None,
        classifier: LineItemClassifier | None = None,
        part_numbers: PartNumberExtractor | None = None,
    ) -> None:
        self._normalizer = normalizer or FieldNormalizer()
        self._classifier = classifier or LineItemClassifier()
        self._part_numbers = part_numbers or PartNumberExtractor()

    def classify_lines(
        self,
        raw: RawExtraction,
        keyword_rules: Sequence[KeywordRule],
    ) -> list[ProcessedLineItem]:
        """Classify every raw line; Part lines also get a part number when one validates."""
        lines: list[ProcessedLineItem] = []
        for line_number, item in raw.numbered_lines():
            classified = self._classifier.classify(item.description, keyword_rules)
            part = None
            if classified.classification is Classification.PART:
                part = self._part_numbers.extract(item.description, item.part_number)
            lines.append(
                ProcessedLineItem(
                    line_number=line_number,
                    description=item.description,
                    unit_cost=item.unit_cost,
                    quantity=item.quantity,
                    total_cost=item.total_cost,
                    classification=classified.classification,
                    confidence=classified.confidence,
                    part_number=part.value if part else None,
                    extraction_method=part.method if part else None,
                    matched_keyword=classified.keyword,
                )
            )
        return lines

    def classify_and_normalize(
        self,
        raw: RawExtraction,
        keyword_rules: Sequence[KeywordRule],
        field_mapping_rules: Sequence[FieldMappingRule],
    ) -> ProcessingResult:
        normalized = self._normalizer.normalize(raw, field_mapping_rules)
        lines = self.classify_lines(raw, keyword_rules)
        header, total_notes = fill_missing_totals(normalized.header, lines)
        header.description = summarize(lines)

        confidence = sum(line.confidence for line in lines) / len(lines) if lines else NO_LINES_CONFIDENCE
        notes = list(normalized.notes)
        notes.append(f"Classified {len(lines)} line items using keyword matching")
        with_part_numbers = sum(1 for line in lines if line.part_number)
        if with_part_numbers:
            notes.append(f"Extracted {with_part_numbers} part number(s)")
        notes.extend(total_notes)

        logger.info(
            "Fallback classified %s line(s): %s",
            len(lines),
            ", ".join(line.classification.value for line in lines) or "none",
        )
        return ProcessingResult(
            success=True,
            processing_method=ProcessingMethod.RULE_FALLBACK,
            header=header,
            line_items=lines,
            overall_confidence=max(0.0, min(100.0, confidence)),
            processing_notes=notes,
        )
