"""
Header field normalization for the rule-based fallback.

Noisy OCR labels ("RO#", "Unit #:", "Service Date") are canonicalized against
FieldMappingRules; matched labelled values fill header fields the OCR service left
empty. Header values are cleaned per field (prefix stripping, VIN casing, odometer
and amount parsing).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from core.models import HEADER_FIELD_LABELS, HEADER_FIELDS, FieldMappingRule, InvoiceHeader, MatchType
from core.schema import RawExtraction
from utils.ocr_normalize import clean_text, parse_amount, parse_date, parse_odometer

logger = logging.getLogger(__name__)

_VIN_RE = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")
_VEHICLE_PREFIX_RE = re.compile(r"^(UNIT|VEHICLE|CAR|VIN)(\s*(ID|NO\.?|NUMBER))?(?=[\s:#-]|\d)[:\s#-]*", re.IGNORECASE)
_INVOICE_PREFIX_RE = re.compile(r"^(INVOICE|INV|RECEIPT|RCP)(\s*(NO\.?|NUMBER))?(?=[\s:#-]|\d)[:\s#-]*", re.IGNORECASE)
# "RO" / "WO" only count as prefixes when a separator follows ("RO# 123", "WO: 77")
_ORDER_PREFIX_RE = re.compile(r"^(RO|WO)\s*[#:-]\s*", re.IGNORECASE)
_LABEL_TOKEN_RE = re.compile(r"[a-z0-9#]+")
_LABEL_NOISE_RE = re.compile(r"[^a-z0-9\s]+")

_PRECEDENCE = (MatchType.EXACT, MatchType.PARTIAL, MatchType.CONTAINS)


def clean_label(label: Any) -> str:
    """Casefold, collapse whitespace, drop trailing colons/periods: ' Unit #: ' -> 'unit #'."""
    text = clean_text(label) or ""
    text = text.rstrip(":.").strip()
    return text.casefold()


def strip_label_noise(cleaned: str) -> str:
    """Letters, digits and single spaces only: 'r.o. #' -> 'ro', 'invoice#' -> 'invoice'."""
    return " ".join(_LABEL_NOISE_RE.sub("", cleaned).split())


def _label_tokens(cleaned: str) -> set[str]:
    return set(_LABEL_TOKEN_RE.findall(cleaned))


def label_matches(label: str, rule: FieldMappingRule, expected: str | None = None) -> bool:
    """True when the (already cleaned) label matches rule per its match type."""
    if expected is None:
        expected = clean_label(rule.expected_label)
    if not label or not expected:
        return False
    if rule.match_type is MatchType.EXACT:
        return label == expected
    if rule.match_type is MatchType.PARTIAL:
        return expected in label
    tokens = _label_tokens(expected)
    return bool(tokens) and tokens <= _label_tokens(label)


def match_label(label: Any, rules: Sequence[FieldMappingRule]) -> FieldMappingRule | None:
    """
    Best rule for label: exact rules beat partial beat contains; within a precedence
    level the earliest rule in the given (rule_id) order wins. When nothing matches,
    the lookup is repeated with punctuation stripped from both sides ("Invoice#:",
    "R.O. #", "Unit#").
    """
    cleaned = clean_label(label)
    if not cleaned:
        return None
    rule = _first_match(cleaned, rules, clean_label)
    if rule is None:
        squashed = strip_label_noise(cleaned)
        if squashed and squashed != cleaned:
            rule = _first_match(squashed, rules, lambda text: strip_label_noise(clean_label(text)))
    return rule


def _first_match(label: str, rules: Sequence[FieldMappingRule], normalize) -> FieldMappingRule | None:
    for match_type in _PRECEDENCE:
        for rule in rules:
            if (
                rule.is_active
                and rule.match_type is match_type
                and label_matches(label, rule, normalize(rule.expected_label))
            ):
                return rule
    return None


def canonical_label(label: str, rules: Sequence[FieldMappingRule]) -> str:
    """Canonical field name for label; unmatched labels pass through unchanged."""
    rule = match_label(label, rules)
    return rule.target_field if rule else label


def clean_vehicle_id(value: Any) -> str | None:
    text = clean_text(value)
    if text is None:
        return None
    cleaned = _VEHICLE_PREFIX_RE.sub("", text.upper()).strip()
    if len(cleaned) == 17 and _VIN_RE.match(cleaned):
        return cleaned
    return cleaned or text.upper()


def clean_invoice_number(value: Any) -> str | None:
    text = clean_text(value)
    if text is None:
        return None
    cleaned = _INVOICE_PREFIX_RE.sub("", text)
    cleaned = _ORDER_PREFIX_RE.sub("", cleaned).strip()
    return cleaned or text


_FIELD_CLEANERS = {
    "vehicle_id": clean_vehicle_id,
    "invoice_number": clean_invoice_number,
    "invoice_date": parse_date,
    "odometer": parse_odometer,
    "total_cost": parse_amount,
    "total_parts_cost": parse_amount,
    "total_labor_cost": parse_amount,
}


def clean_field(field_name: str, value: Any) -> Any:
    """Clean one header value for its canonical field; unknown fields get text cleanup."""
    cleaner = _FIELD_CLEANERS.get(field_name, clean_text)
    return cleaner(value)


@dataclass
class NormalizedHeader:
    header: InvoiceHeader
    notes: list[str]


class FieldNormalizer:
    """Builds a cleaned InvoiceHeader from a RawExtraction and its labelled fields."""

    def map_labelled_fields(
        self,
        fields: Mapping[str, str],
        rules: Sequence[FieldMappingRule],
    ) -> dict[str, tuple[str, Any]]:
        """
        target_field -> (original label, cleaned value) for every labelled value that
        maps onto a header field. First label (in document order) wins per field.
        """
        mapped: dict[str, tuple[str, Any]] = {}
        for label, raw_value in fields.items():
            rule = match_label(label, rules)
            if rule is None or rule.target_field not in HEADER_FIELDS:
                continue
            if rule.target_field in mapped:
                continue
            value = clean_field(rule.target_field, raw_value)
            if value is None:
                continue
            mapped[rule.target_field] = (label, value)
        return mapped

    def normalize(self, raw: RawExtraction, rules: Sequence[FieldMappingRule]) -> NormalizedHeader:
        notes: list[str] = []
        values: dict[str, Any] = {name: clean_field(name, getattr(raw, name)) for name in HEADER_FIELDS}
        for field_name, (label, value) in self.map_labelled_fields(raw.labelled_fields, rules).items():
            if values.get(field_name) is not None:
                continue
            values[field_name] = value
            notes.append(f"{HEADER_FIELD_LABELS[field_name]} recovered from label '{label}'")
        logger.debug("Header normalized; %s field(s) recovered from labels", len(notes))
        return NormalizedHeader(header=InvoiceHeader(**values), notes=notes)
