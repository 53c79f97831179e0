"""Core layer: interfaces, models, schemas, exceptions."""

from core.interfaces import (
    IAIEnhancementService,
    IFallbackEngine,
    ILLMProvider,
    IPostProcessingService,
    IReferenceStore,
)
from core.models import (
    AIResult,
    BatchMetrics,
    Classification,
    ErrorKind,
    ExtractionMethod,
    FieldMappingRule,
    InvoiceHeader,
    KeywordRule,
    LLMResponse,
    MatchType,
    ProcessedLineItem,
    ProcessingMethod,
    ProcessingResult,
)
from core.schema import AIInvoiceResponse, AILineItem, RawExtraction, RawLineItem
from core.exceptions import (
    ConfigError,
    FallbackError,
    InvoiceProcessingError,
    ProcessingCancelledError,
    StructuredOutputError,
)

__all__ = [
    "IAIEnhancementService",
    "IFallbackEngine",
    "ILLMProvider",
    "IPostProcessingService",
    "IReferenceStore",
    "AIResult",
    "BatchMetrics",
    "Classification",
    "ErrorKind",
    "ExtractionMethod",
    "FieldMappingRule",
    "InvoiceHeader",
    "KeywordRule",
    "LLMResponse",
    "MatchType",
    "ProcessedLineItem",
    "ProcessingMethod",
    "ProcessingResult",
    "AIInvoiceResponse",
    "AILineItem",
    "RawExtraction",
    "RawLineItem",
    "ConfigError",
    "FallbackError",
    "InvoiceProcessingError",
    "ProcessingCancelledError",
    "StructuredOutputError",
]
