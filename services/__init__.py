"""Pipeline services: AI enhancement, rule-based fallback and its parts, reference store, post-processing."""

from services.ai_enhancement_service import AIEnhancementService
from services.fallback_service import RuleBasedFallbackEngine
from services.field_normalizer import FieldNormalizer
from services.line_item_classifier import LineItemClassifier
from services.part_number_extractor import PartNumberExtractor
from services.post_processing_service import PostProcessingService
from services.reference_store import StaticReferenceStore, YamlReferenceStore

__all__ = [
    "AIEnhancementService",
    "RuleBasedFallbackEngine",
    "FieldNormalizer",
    "LineItemClassifier",
    "PartNumberExtractor",
    "PostProcessingService",
    "StaticReferenceStore",
    "YamlReferenceStore",
]
