"""
Data models for the invoice pipeline.
Uses dataclasses for DTOs; Pydantic schemas (RawExtraction, AIInvoiceResponse) in core.schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from core.schema import AIInvoiceResponse


class Classification(str, Enum):
    """Closed set of line-item classifications."""

    PART = "Part"
    LABOR = "Labor"
    FEE = "Fee"
    TAX = "Tax"
    OTHER = "Other"


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    CONTAINS = "contains"


class ProcessingMethod(str, Enum):
    AI_ENHANCED = "ai-enhanced"
    RULE_FALLBACK = "rule-fallback"


class ExtractionMethod(str, Enum):
    """How a line's part number (or the whole line, for AI output) was obtained."""

    TABLE_COLUMN = "table-column"
    DESCRIPTION_PARSING = "description-parsing"
    REGEX_FALLBACK = "regex-fallback"
    AI_INFERRED = "ai-inferred"


class ErrorKind(str, Enum):
    RATE_LIMITED = "RateLimited"
    AUTH_ERROR = "AuthError"
    QUOTA_EXCEEDED = "QuotaExceeded"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    JSON_ERROR = "JsonError"
    GENERIC_FAILURE = "GenericFailure"
    FALLBACK_ERROR = "FallbackError"


@dataclass(frozen=True)
class LLMResponse:
    """Structured response from an LLM provider."""

    text: str
    model: str = ""
    finish_reason: str = ""
    usage: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class KeywordRule:
    """Classification keyword: description text -> Classification."""

    rule_id: int
    keyword: str
    classification: Classification
    match_type: MatchType = MatchType.CONTAINS
    weight: float = 0.5
    is_active: bool = True


@dataclass(frozen=True)
class FieldMappingRule:
    """Label synonym: noisy OCR label (e.g. 'RO#') -> canonical header field."""

    rule_id: int
    target_field: str
    expected_label: str
    match_type: MatchType = MatchType.EXACT
    is_active: bool = True


@dataclass
class ProcessedLineItem:
    """One classified invoice line."""

    line_number: int
    description: str
    unit_cost: float | None = None
    quantity: float | None = None
    total_cost: float | None = None
    classification: Classification = Classification.OTHER
    confidence: float = 0.0
    part_number: str | None = None
    extraction_method: ExtractionMethod | None = None
    matched_keyword: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_number": self.line_number,
            "description": self.description,
            "unit_cost": self.unit_cost,
            "quantity": self.quantity,
            "total_cost": self.total_cost,
            "classification": self.classification.value,
            "confidence": round(self.confidence, 2),
            "part_number": self.part_number,
            "extraction_method": self.extraction_method.value if self.extraction_method else None,
            "matched_keyword": self.matched_keyword,
        }


HEADER_FIELDS: tuple[str, ...] = (
    "vehicle_id",
    "invoice_number",
    "invoice_date",
    "odometer",
    "total_cost",
    "total_parts_cost",
    "total_labor_cost",
)

HEADER_FIELD_LABELS: dict[str, str] = {
    "vehicle_id": "Vehicle ID",
    "invoice_number": "Invoice Number",
    "invoice_date": "Invoice Date",
    "odometer": "Odometer",
    "total_cost": "Total Cost",
    "total_parts_cost": "Total Parts Cost",
    "total_labor_cost": "Total Labor Cost",
    "description": "Description",
}


@dataclass
class InvoiceHeader:
    """Normalized header fields plus the maintenance summary."""

    vehicle_id: str | None = None
    invoice_number: str | None = None
    invoice_date: date | None = None
    odometer: int | None = None
    total_cost: float | None = None
    total_parts_cost: float | None = None
    total_labor_cost: float | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "invoice_number": self.invoice_number,
            "invoice_date": self.invoice_date.isoformat() if self.invoice_date else None,
            "odometer": self.odometer,
            "total_cost": self.total_cost,
            "total_parts_cost": self.total_parts_cost,
            "total_labor_cost": self.total_labor_cost,
            "description": self.description,
        }


@dataclass
class ProcessingResult:
    """Single public output of the pipeline for one invoice."""

    success: bool
    processing_method: ProcessingMethod
    header: InvoiceHeader = field(default_factory=InvoiceHeader)
    line_items: list[ProcessedLineItem] = field(default_factory=list)
    overall_confidence: float = 0.0
    processing_notes: list[str] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    trace_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Export for persistence/serialization."""
        return {
            "trace_id": self.trace_id,
            "success": self.success,
            "processing_method": self.processing_method.value,
            "header": self.header.to_dict(),
            "line_items": [line.to_dict() for line in self.line_items],
            "overall_confidence": round(self.overall_confidence, 2),
            "processing_notes": list(self.processing_notes),
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
        }


@dataclass
class AIResult:
    """
    Outcome of one AI enhancement call: Ok(parsed) or one failure kind.
    Never raised; the client returns it for every path.
    """

    parsed: AIInvoiceResponse | None = None
    error_kind: ErrorKind | None = None
    error_message: str = ""
    notes: list[str] = field(default_factory=list)
    status_code: int | None = None

    @property
    def success(self) -> bool:
        return self.error_kind is None and self.parsed is not None

    @property
    def rate_limit_encountered(self) -> bool:
        return self.error_kind is ErrorKind.RATE_LIMITED

    @classmethod
    def ok(cls, parsed: AIInvoiceResponse, notes: list[str] | None = None) -> AIResult:
        return cls(parsed=parsed, notes=list(notes or []))

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        notes: list[str] | None = None,
        status_code: int | None = None,
    ) -> AIResult:
        return cls(error_kind=kind, error_message=message, notes=list(notes or []), status_code=status_code)


@dataclass
class BatchMetrics:
    """Metrics collected during batch processing."""

    total_processed: int = 0
    ai_enhanced_count: int = 0
    fallback_count: int = 0
    failed_count: int = 0
    total_time_sec: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Export for logging/serialization."""
        return {
            "total_processed": self.total_processed,
            "ai_enhanced_count": self.ai_enhanced_count,
            "fallback_count": self.fallback_count,
            "failed_count": self.failed_count,
            "total_time_sec": round(self.total_time_sec, 4),
        }
