"""
Vehicle Maintenance Invoice Intelligence: entry point.

Reads RawExtraction JSON files produced by the OCR service (one object or a list per
file), runs the hybrid AI + rule-based pipeline over every invoice and writes the results.

Usage:
  python main.py INPUT [INPUT ...] [--config config.yaml] [--output-dir DIR]
                 [--fallback-only] [--workers N] [--test-connection] [--log-level LEVEL]

- Output: processing_results.json (one ProcessingResult per invoice, input order) and
  line_items.csv (one row per classified line).
- --fallback-only: skip the LLM and use the rule-based engine for every invoice.
- --test-connection: probe the configured LLM endpoint and exit (0 = reachable).
"""
from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from core.exceptions import ConfigError, FallbackError, ProcessingCancelledError
from core.models import ProcessingResult
from core.schema import RawExtraction
from pipeline.batch_processor import BatchProcessor
from pipeline.invoice_pipeline import InvoiceProcessingPipeline
from providers.factory import create_provider_from_config
from services.ai_enhancement_service import AIEnhancementService
from services.fallback_service import RuleBasedFallbackEngine
from services.reference_store import YamlReferenceStore
from utils.config import AppConfig, load_config
from utils.logger import setup_logging

RESULTS_FILE = "processing_results.json"
LINE_ITEMS_FILE = "line_items.csv"

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def create_ai_service(config: AppConfig) -> AIEnhancementService:
    llm = config.llm
    return AIEnhancementService(
        create_provider_from_config(llm),
        model=llm.model,
        temperature=llm.temperature,
        max_tokens=llm.max_tokens,
        top_p=llm.top_p,
        token_warning_threshold=config.processing.token_warning_threshold,
    )


def build_pipeline(config: AppConfig) -> InvoiceProcessingPipeline:
    """Pipeline from config; AI service only when enabled."""
    store = YamlReferenceStore(
        config.processing.reference_rules_path or None,
        cache=config.processing.cache_reference_rules,
    )
    ai_service = create_ai_service(config) if config.processing.ai_enabled else None
    if ai_service is None:
        logger.info("AI enhancement disabled; rule-based fallback only")
    return InvoiceProcessingPipeline(
        RuleBasedFallbackEngine(),
        store,
        ai_service,
        max_ai_attempts=config.llm.max_retries,
        retry_delay_sec=config.llm.retry_delay_sec,
    )


# ---------------------------------------------------------------------------
# Input / output
# ---------------------------------------------------------------------------


def load_extractions(paths: list[Path]) -> list[RawExtraction]:
    """Read RawExtraction JSON files. Each file holds one object or a list of objects."""
    extractions: list[RawExtraction] = []
    for path in paths:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        items = data if isinstance(data, list) else [data]
        for i, item in enumerate(items):
            try:
                extractions.append(RawExtraction.model_validate(item))
            except ValidationError as e:
                logger.error("Skipping invalid extraction %s[%s]: %s", path.name, i, e.error_count())
    return extractions


def save_results(results: list[ProcessingResult], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.to_dict() for r in results], f, indent=2)
    logger.info("Saved results to %s", path)


def save_line_items_csv(results: list[ProcessingResult], path: Path) -> None:
    """Export each classified line to CSV for review."""
    rows: list[dict[str, Any]] = []
    for r in results:
        for line in r.line_items:
            rows.append({
                "trace_id": r.trace_id,
                "invoice_number": r.header.invoice_number or "",
                "processing_method": r.processing_method.value,
                "line_number": line.line_number,
                "description": line.description,
                "classification": line.classification.value,
                "confidence": round(line.confidence, 2),
                "part_number": line.part_number or "",
                "extraction_method": line.extraction_method.value if line.extraction_method else "",
                "total_cost": line.total_cost if line.total_cost is not None else "",
            })
    if not rows:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        w.writeheader()
        w.writerows(rows)
    logger.info("Saved line items CSV to %s", path)


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Vehicle maintenance invoice processing: AI enhancement with rule-based fallback",
    )
    parser.add_argument("inputs", nargs="*", type=Path, help="RawExtraction JSON file(s)")
    parser.add_argument("--config", "-c", default=None, help="YAML config (default: config.yaml)")
    parser.add_argument("--output-dir", "-o", default=None, help="Directory for outputs (default: OUTPUT_DIR or output)")
    parser.add_argument("--fallback-only", action="store_true", help="Skip the LLM; rule-based engine only")
    parser.add_argument("--workers", "-w", type=int, default=None, help="Parallel workers (default: 1)")
    parser.add_argument("--test-connection", action="store_true", help="Probe the LLM endpoint and exit")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args(argv)

    # .env values fill the environment before config env overrides are read
    load_dotenv()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    if args.log_level:
        config = replace(config, log_level=args.log_level)
    if args.workers is not None:
        config = replace(config, max_workers=max(1, args.workers))
    if args.fallback_only:
        config = replace(config, processing=replace(config.processing, ai_enabled=False))
    setup_logging(config.log_level)

    if args.test_connection:
        try:
            ai_service = create_ai_service(config)
        except ConfigError as e:
            print(f"Invalid configuration: {e}", file=sys.stderr)
            return 2
        ok = ai_service.test_connection()
        print("Connection successful" if ok else "Connection failed")
        return 0 if ok else 1

    if not args.inputs:
        parser.error("at least one INPUT file is required")
    missing = [p for p in args.inputs if not p.exists()]
    for p in missing:
        logger.warning("Skip missing file: %s", p)
    try:
        extractions = load_extractions([p for p in args.inputs if p.exists()])
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read input: %s", e)
        return 1
    if not extractions:
        logger.error("No valid invoices to process")
        return 1

    try:
        pipeline = build_pipeline(config)
        results, metrics = BatchProcessor(pipeline, max_workers=config.max_workers).process_batch(extractions)
    except (ConfigError, FallbackError, ProcessingCancelledError) as e:
        logger.error("Processing aborted: %s", e)
        return 1

    out_dir = Path(args.output_dir or config.output_dir)
    save_results(results, out_dir / RESULTS_FILE)
    save_line_items_csv(results, out_dir / LINE_ITEMS_FILE)

    m = metrics.to_dict()
    print("Batch complete.")
    print(f"  total_processed: {m['total_processed']}")
    print(f"  ai_enhanced: {m['ai_enhanced_count']}")
    print(f"  rule_fallback: {m['fallback_count']}")
    print(f"  failed: {m['failed_count']}")
    print(f"  time_sec: {m['total_time_sec']}")
    print(f"  output: {out_dir / RESULTS_FILE}")
    return 0 if metrics.failed_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
