"""Custom exceptions for the invoice processing pipeline. No generic Exception usage."""

from __future__ import annotations


class InvoiceProcessingError(Exception):
    """Base exception for pipeline failures."""

    def __init__(self, message: str, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or ""
        super().__init__(message)


class ConfigError(InvoiceProcessingError):
    """Invalid or missing configuration."""

    pass


class StructuredOutputError(InvoiceProcessingError):
    """LLM output could not be parsed as valid JSON/schema."""

    pass


class FallbackError(InvoiceProcessingError):
    """Rule-based fallback could not run (reference dictionaries unreachable)."""

    pass


class ProcessingCancelledError(InvoiceProcessingError):
    """Caller cancelled processing; no result is produced."""

    pass
