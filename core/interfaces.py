"""
Abstract interfaces for the invoice processing pipeline.
Every external dependency is behind an interface; no service depends on concrete LLM/store impl.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from core.models import AIResult, FieldMappingRule, KeywordRule, LLMResponse, ProcessedLineItem, ProcessingResult
from core.schema import RawExtraction


class ILLMProvider(ABC):
    """Abstract LLM provider: chat completion over HTTP. Used by the AI enhancement service."""

    @abstractmethod
    def generate(self, prompt: str, **kwargs: Any) -> LLMResponse:
        """Generate text from prompt. kwargs may include model, max_tokens, temperature."""
        ...

    @abstractmethod
    def chat(self, messages: list[dict[str, Any]], **kwargs: Any) -> str:
        """Chat completion; returns content string. Raises requests exceptions on HTTP failure."""
        ...


class IAIEnhancementService(ABC):
    """Serialized RawExtraction -> AIResult. Never raises."""

    @abstractmethod
    def process(self, raw_extraction_json: str) -> AIResult:
        ...


class IReferenceStore(ABC):
    """Read-only keyword/field dictionaries, active rules only, in stable rule order."""

    @abstractmethod
    def keyword_rules(self) -> list[KeywordRule]:
        ...

    @abstractmethod
    def field_mapping_rules(self) -> list[FieldMappingRule]:
        ...

    def invalidate(self) -> None:
        """Drop any cached snapshot. Default: nothing cached."""
        return None


class IFallbackEngine(ABC):
    """Deterministic rule-based classification and normalization."""

    @abstractmethod
    def classify_lines(
        self,
        raw: RawExtraction,
        keyword_rules: Sequence[KeywordRule],
    ) -> list[ProcessedLineItem]:
        """Line classification only; used when the AI kept the header but returned no lines."""
        ...

    @abstractmethod
    def classify_and_normalize(
        self,
        raw: RawExtraction,
        keyword_rules: Sequence[KeywordRule],
        field_mapping_rules: Sequence[FieldMappingRule],
    ) -> ProcessingResult:
        ...


class IPostProcessingService(ABC):
    """Totals validation and final clean-up applied to every result."""

    @abstractmethod
    def apply(self, result: ProcessingResult, raw: RawExtraction) -> ProcessingResult:
        ...
