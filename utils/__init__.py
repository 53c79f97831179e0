"""Shared utilities: config, logger, retry, JSON extraction, OCR value normalization."""

from utils.config import AppConfig, LLMConfig, ProcessingConfig, load_config
from utils.logger import log_structured, setup_logging, trace_logger
from utils.retry import with_retry

__all__ = [
    "AppConfig",
    "LLMConfig",
    "ProcessingConfig",
    "load_config",
    "log_structured",
    "setup_logging",
    "trace_logger",
    "with_retry",
]
