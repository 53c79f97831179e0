"""
Part-number extraction for lines classified as Part.

Order matters: the structured table column is trusted first, then an ordered cascade of
(pattern, method) pairs runs over the description. Every candidate goes through
is_likely_part_number(); the first one that passes wins. Nothing is guessed when no
candidate validates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from core.models import ExtractionMethod
from utils.ocr_normalize import clean_text

logger = logging.getLogger(__name__)

_BRANDS = r"ACDELCO|AC DELCO|MOTORCRAFT|FRAM|WIX|BOSCH|NGK|DENSO|CHAMPION|MOBIL|PUROLATOR|K&N|MOOG"

# (name, pattern, method); the capture group, when present, is the candidate
PART_NUMBER_CASCADE: tuple[tuple[str, re.Pattern[str], ExtractionMethod], ...] = (
    (
        "labelled",
        re.compile(r"(?:\bP/?N|\bPART\s*(?:#|NO\.?|NUMBER))\s*[:#.]?\s*([A-Z0-9][A-Z0-9-]{2,24})"),
        ExtractionMethod.DESCRIPTION_PARSING,
    ),
    (
        "brand-prefixed",
        re.compile(r"\b((?:AC|MO|WIX|FRAM|BOSCH|NGK)-[A-Z0-9]*\d[A-Z0-9]*(?:-[A-Z0-9]+)*)\b"),
        ExtractionMethod.DESCRIPTION_PARSING,
    ),
    (
        "after-brand",
        re.compile(rf"\b(?:{_BRANDS})\s+([A-Z0-9]*\d[A-Z0-9-]*)\b"),
        ExtractionMethod.DESCRIPTION_PARSING,
    ),
    # Honda/Acura: 15400-RTA-003, 15400-PLM-A02
    ("oem-honda", re.compile(r"\b(\d{5}-[A-Z0-9]{3}-[A-Z0-9]{3,4})\b"), ExtractionMethod.DESCRIPTION_PARSING),
    # Toyota: 90915-YZZD2, 04465-33471
    ("oem-toyota", re.compile(r"\b(\d{5}-[0-9A-Z]{5,})\b"), ExtractionMethod.DESCRIPTION_PARSING),
    # Ford: F1XZ-6731-AB
    ("oem-ford", re.compile(r"\b(F[0-9A-Z]{2}Z-[0-9A-Z]{4,}-[A-Z]{1,3})\b"), ExtractionMethod.DESCRIPTION_PARSING),
    ("generic", re.compile(r"\b([A-Z]{2,4}-?\d{3,8})\b"), ExtractionMethod.REGEX_FALLBACK),
    ("hyphenated-numeric", re.compile(r"\b(\d{4,6}-\d{3,6})\b"), ExtractionMethod.REGEX_FALLBACK),
    ("long-numeric", re.compile(r"\b(\d{6,12})\b"), ExtractionMethod.REGEX_FALLBACK),
)

_DATE_RE = re.compile(r"^\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}$")
_PHONE_RE = re.compile(r"^(?:\(?\d{3}\)?[-.\s]?)?\d{3}[-.\s]\d{4}$")
_VISCOSITY_RE = re.compile(r"^\d{1,2}W-?\d{2}$")
_COMMON_WORDS = frozenset(
    {"THE", "AND", "FOR", "WITH", "ITEM", "PART", "QTY", "EACH", "SERVICE", "OIL", "FILTER", "LABOR", "TOTAL"}
)
MIN_LENGTH = 4
MAX_LENGTH = 25


def is_likely_part_number(candidate: Any) -> bool:
    """Reject dates, phone numbers, viscosity grades, short numerics, common words and bad lengths."""
    text = (clean_text(candidate) or "").upper()
    if not (MIN_LENGTH <= len(text) <= MAX_LENGTH):
        return False
    if text in _COMMON_WORDS:
        return False
    if not re.search(r"\d", text):
        return False
    if text.isdigit():
        return len(text) >= 5
    if _DATE_RE.match(text) or _PHONE_RE.match(text) or _VISCOSITY_RE.match(text):
        return False
    # mixed letters and digits, or a hyphenated code
    return bool(re.search(r"[A-Z].*\d|\d.*[A-Z]|-", text))


@dataclass(frozen=True)
class PartNumber:
    value: str
    method: ExtractionMethod
    pattern: str = ""


class PartNumberExtractor:
    """Stateless; the cascade is module data."""

    def extract(self, description: Any, table_hint: Any = None) -> PartNumber | None:
        hint = clean_text(table_hint)
        if hint and is_likely_part_number(hint):
            return PartNumber(hint.upper(), ExtractionMethod.TABLE_COLUMN, "table-column")
        text = (clean_text(description) or "").upper()
        if not text:
            return None
        for name, pattern, method in PART_NUMBER_CASCADE:
            for m in pattern.finditer(text):
                candidate = (m.group(1) if m.groups() else m.group(0)).strip("-")
                if is_likely_part_number(candidate):
                    logger.debug("Part number %s matched by %s pattern", candidate, name)
                    return PartNumber(candidate, method, name)
        return None
