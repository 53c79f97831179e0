"""Pipeline: single-invoice and batch processing."""

from pipeline.invoice_pipeline import InvoiceProcessingPipeline, PipelineState, merge_with_raw
from pipeline.batch_processor import BatchProcessor

__all__ = [
    "InvoiceProcessingPipeline",
    "PipelineState",
    "merge_with_raw",
    "BatchProcessor",
]
