"""
Maintenance summary: a short standard phrase derived from classified lines.

Pure function of (classification, matched keyword) per line; the description text
itself is not consulted. The priority table is evaluated top to bottom.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from core.models import Classification, ProcessedLineItem

GENERAL_SERVICE = "General Automotive Service"
BRAKE_REPAIR = "Brake System Repair"
OIL_CHANGE = "Oil Change Service"
ENGINE_DIAGNOSTICS = "Engine Diagnostics"
TIRE_SERVICE = "Tire Service"
FEES_AND_CHARGES = "Service Fees and Charges"
ROUTINE_MAINTENANCE = "Routine Maintenance"

BRAKE_TERMS = ("brake", "rotor", "caliper")
OIL_CHANGE_TERMS = ("oil change", "lube")
DIAGNOSTIC_TERMS = ("diagnos", "inspection", "check engine", "scan")
TIRE_TERMS = ("tire", "wheel", "alignment")

_PART_OR_LABOR = (Classification.PART, Classification.LABOR)
_FEE_OR_TAX = (Classification.FEE, Classification.TAX)


def _has_term(keyword: str | None, terms: Iterable[str]) -> bool:
    if not keyword:
        return False
    kw = keyword.casefold()
    return any(term in kw for term in terms)


def _any(lines: Sequence[ProcessedLineItem], classes: Iterable[Classification], terms: Iterable[str]) -> bool:
    classes = tuple(classes)
    terms = tuple(terms)
    return any(line.classification in classes and _has_term(line.matched_keyword, terms) for line in lines)


def summarize(lines: Sequence[ProcessedLineItem]) -> str:
    if not lines:
        return GENERAL_SERVICE
    present = {line.classification for line in lines}
    if _any(lines, _PART_OR_LABOR, BRAKE_TERMS):
        return BRAKE_REPAIR
    if _any(lines, (Classification.LABOR,), OIL_CHANGE_TERMS):
        return OIL_CHANGE
    if Classification.LABOR in present and Classification.PART not in present:
        if _any(lines, (Classification.LABOR,), DIAGNOSTIC_TERMS):
            return ENGINE_DIAGNOSTICS
    if _any(lines, _PART_OR_LABOR, TIRE_TERMS):
        return TIRE_SERVICE
    if present <= set(_FEE_OR_TAX):
        return FEES_AND_CHARGES
    return ROUTINE_MAINTENANCE
