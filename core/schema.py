"""
Pydantic schemas for external payloads: the OCR extraction coming in and the
LLM response coming back. Used by services/ and pipeline/.
"""
from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.models import Classification
from utils.ocr_normalize import clean_text, parse_amount, parse_date, parse_odometer


def to_classification(value: Any) -> Classification:
    """Map free-form classification text onto the closed set; unknown -> Other."""
    if isinstance(value, Classification):
        return value
    text = (str(value) if value is not None else "").strip().lower()
    if not text:
        return Classification.OTHER
    # "Parts - Filter", "Labor - Brake", "Tax/Fee"
    head = text.replace("/", " ").replace("-", " ").split()[0]
    aliases = {
        "part": Classification.PART,
        "parts": Classification.PART,
        "labor": Classification.LABOR,
        "labour": Classification.LABOR,
        "service": Classification.LABOR,
        "fee": Classification.FEE,
        "fees": Classification.FEE,
        "tax": Classification.TAX,
        "taxes": Classification.TAX,
        "other": Classification.OTHER,
    }
    if text in ("tax/fee", "tax fee"):
        return Classification.FEE
    return aliases.get(head, Classification.OTHER)


def to_percent(value: Any) -> float:
    """Confidence in [0,1] is scaled x100; values already on 0-100 are kept. Clamped to 0-100."""
    v = parse_amount(value)
    if v is None:
        return 0.0
    if v <= 1.0:
        v = v * 100
    return max(0.0, min(100.0, v))


# ---------------------------------------------------------------------------
# OCR extraction (input)
# ---------------------------------------------------------------------------


class RawLineItem(BaseModel):
    """Single line item as read by the OCR service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    line_number: int | None = Field(default=None, alias="lineNumber")
    description: str = ""
    unit_cost: float | None = Field(default=None, alias="unitCost")
    quantity: float | None = None
    total_cost: float | None = Field(default=None, alias="totalCost")
    part_number: str | None = Field(default=None, alias="partNumber")

    @field_validator("description", mode="before")
    @classmethod
    def description_text(cls, v: Any) -> str:
        return clean_text(v) or ""

    @field_validator("unit_cost", "quantity", "total_cost", mode="before")
    @classmethod
    def amounts(cls, v: Any) -> float | None:
        return parse_amount(v)

    @field_validator("part_number", mode="before")
    @classmethod
    def part_number_text(cls, v: Any) -> str | None:
        return clean_text(v)


class RawExtraction(BaseModel):
    """Structured invoice data produced by the upstream OCR collaborator. Immutable."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vehicle_id: str | None = Field(default=None, alias="vehicleId")
    invoice_number: str | None = Field(default=None, alias="invoiceNumber")
    invoice_date: date | None = Field(default=None, alias="invoiceDate")
    odometer: int | None = None
    total_cost: float | None = Field(default=None, alias="totalCost")
    total_parts_cost: float | None = Field(default=None, alias="totalPartsCost")
    total_labor_cost: float | None = Field(default=None, alias="totalLaborCost")
    line_items: list[RawLineItem] = Field(default_factory=list, alias="lineItems")
    labelled_fields: dict[str, str] = Field(default_factory=dict, alias="fields")

    @field_validator("vehicle_id", "invoice_number", mode="before")
    @classmethod
    def text_fields(cls, v: Any) -> str | None:
        return clean_text(v)

    @field_validator("invoice_date", mode="before")
    @classmethod
    def invoice_date_parsed(cls, v: Any) -> date | None:
        return parse_date(v)

    @field_validator("odometer", mode="before")
    @classmethod
    def odometer_parsed(cls, v: Any) -> int | None:
        return parse_odometer(v)

    @field_validator("total_cost", "total_parts_cost", "total_labor_cost", mode="before")
    @classmethod
    def totals(cls, v: Any) -> float | None:
        return parse_amount(v)

    @field_validator("line_items", mode="before")
    @classmethod
    def line_items_list(cls, v: Any) -> list[Any]:
        return list(v) if isinstance(v, (list, tuple)) else []

    @field_validator("labelled_fields", mode="before")
    @classmethod
    def labelled_fields_text(cls, v: Any) -> dict[str, str]:
        if not isinstance(v, dict):
            return {}
        return {str(k): str(val) for k, val in v.items() if k is not None and val is not None}

    def numbered_lines(self) -> list[tuple[int, RawLineItem]]:
        """(line_number, item) pairs; missing numbers default to 1-based position."""
        return [
            (item.line_number if item.line_number is not None else i, item)
            for i, item in enumerate(self.line_items, start=1)
        ]


# ---------------------------------------------------------------------------
# LLM response (output of the AI enhancement call)
# ---------------------------------------------------------------------------


class AILineItem(BaseModel):
    """One line item as returned by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    line_number: int | None = Field(default=None, alias="lineNumber")
    description: str = ""
    classification: Classification = Classification.OTHER
    unit_cost: float | None = Field(default=None, alias="unitCost")
    quantity: float | None = None
    total_cost: float | None = Field(default=None, alias="totalCost")
    part_number: str | None = Field(default=None, alias="partNumber")
    confidence: float = 0.0

    @field_validator("description", mode="before")
    @classmethod
    def description_text(cls, v: Any) -> str:
        return clean_text(v) or ""

    @field_validator("classification", mode="before")
    @classmethod
    def closed_set(cls, v: Any) -> Classification:
        return to_classification(v)

    @field_validator("line_number", mode="before")
    @classmethod
    def line_number_int(cls, v: Any) -> int | None:
        n = parse_amount(v)
        return int(n) if n is not None else None

    @field_validator("unit_cost", "quantity", "total_cost", mode="before")
    @classmethod
    def amounts(cls, v: Any) -> float | None:
        return parse_amount(v)

    @field_validator("part_number", mode="before")
    @classmethod
    def part_number_text(cls, v: Any) -> str | None:
        text = clean_text(v)
        if text is None or text.lower() in ("null", "none", "n/a"):
            return None
        return text

    @field_validator("confidence", mode="before")
    @classmethod
    def confidence_percent(cls, v: Any) -> float:
        return to_percent(v)


class AIInvoiceResponse(BaseModel):
    """
    Parsed LLM JSON. Header fields may arrive nested under "header" or at the top level;
    both are flattened here. Confidences are stored on the 0-100 scale.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    vehicle_id: str | None = Field(default=None, alias="vehicleId")
    invoice_number: str | None = Field(default=None, alias="invoiceNumber")
    invoice_date: date | None = Field(default=None, alias="invoiceDate")
    odometer: int | None = None
    total_cost: float | None = Field(default=None, alias="totalCost")
    total_parts_cost: float | None = Field(default=None, alias="totalPartsCost")
    total_labor_cost: float | None = Field(default=None, alias="totalLaborCost")
    description: str | None = None
    line_items: list[AILineItem] = Field(default_factory=list, alias="lineItems")
    overall_confidence: float = Field(default=0.0, alias="overallConfidence")
    processing_notes: list[str] = Field(default_factory=list, alias="processingNotes")

    @model_validator(mode="before")
    @classmethod
    def flatten_header(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        header = data.get("header")
        if not isinstance(header, dict):
            return data
        merged = {k: v for k, v in data.items() if k != "header"}
        for key, value in header.items():
            if merged.get(key) in (None, ""):
                merged[key] = value
        return merged

    @field_validator("vehicle_id", "invoice_number", "description", mode="before")
    @classmethod
    def text_fields(cls, v: Any) -> str | None:
        return clean_text(v)

    @field_validator("invoice_date", mode="before")
    @classmethod
    def invoice_date_parsed(cls, v: Any) -> date | None:
        return parse_date(v)

    @field_validator("odometer", mode="before")
    @classmethod
    def odometer_parsed(cls, v: Any) -> int | None:
        return parse_odometer(v)

    @field_validator("total_cost", "total_parts_cost", "total_labor_cost", mode="before")
    @classmethod
    def totals(cls, v: Any) -> float | None:
        return parse_amount(v)

    @field_validator("line_items", mode="before")
    @classmethod
    def line_items_list(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]

    @field_validator("overall_confidence", mode="before")
    @classmethod
    def confidence_percent(cls, v: Any) -> float:
        return to_percent(v)

    @field_validator("processing_notes", mode="before")
    @classmethod
    def notes_as_strings(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [str(n) for n in v if isinstance(n, str) and n.strip()]
