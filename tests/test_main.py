"""Tests for the command-line entry point (rule-based fallback only; no network)."""

from __future__ import annotations

import csv
import json
from dataclasses import replace
from pathlib import Path

import pytest

import main as cli

INVOICES = [
    {
        "vehicleId": "VEH-013",
        "invoiceNumber": "A-4471",
        "invoiceDate": "08/22/2025",
        "odometer": "67,890",
        "lineItems": [
            {"lineNumber": 1, "description": "Oil filter WIX-24963", "totalCost": "12.99"},
            {"lineNumber": 2, "description": "Oil change labor", "totalCost": "39.00"},
            {"lineNumber": 3, "description": "Sales tax", "totalCost": "4.16"},
        ],
    },
    {"invoiceNumber": "B-200", "fields": {"Unit #": "VEH-77"}, "lineItems": [{"description": "Shop supplies"}]},
    "not an invoice",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ("AI_ENABLED", "MAX_WORKERS", "OUTPUT_DIR", "LOG_LEVEL", "REFERENCE_RULES_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def input_file(tmp_path: Path) -> Path:
    path = tmp_path / "extractions.json"
    path.write_text(json.dumps(INVOICES), encoding="utf-8")
    return path


def test_fallback_only_run_writes_outputs(tmp_path: Path, input_file: Path) -> None:
    out_dir = tmp_path / "out"
    code = cli.main(
        [str(input_file), "--fallback-only", "-o", str(out_dir), "-c", str(tmp_path / "none.yaml"), "-w", "2"]
    )
    assert code == 0

    results = json.loads((out_dir / cli.RESULTS_FILE).read_text(encoding="utf-8"))
    assert len(results) == 2
    first, second = results
    assert first["processing_method"] == "rule-fallback"
    assert first["header"]["invoice_number"] == "A-4471"
    assert first["header"]["odometer"] == 67890
    assert first["header"]["invoice_date"] == "2025-08-22"
    assert first["header"]["description"] == "Oil Change Service"
    assert [line["classification"] for line in first["line_items"]] == ["Part", "Labor", "Tax"]
    assert first["line_items"][0]["part_number"] == "WIX-24963"
    assert second["header"]["vehicle_id"] == "VEH-77"

    with open(out_dir / cli.LINE_ITEMS_FILE, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 4
    assert rows[0]["extraction_method"] == "description-parsing"


def test_invalid_config_exit_code(tmp_path: Path, input_file: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("max_workers: 0\n", encoding="utf-8")
    assert cli.main([str(input_file), "-c", str(config)]) == 2


def test_no_valid_invoices(tmp_path: Path) -> None:
    path = tmp_path / "empty.json"
    path.write_text("[]", encoding="utf-8")
    assert cli.main([str(path), "--fallback-only", "-c", str(tmp_path / "none.yaml"), "-o", str(tmp_path)]) == 1


def test_build_pipeline_without_ai(tmp_path: Path) -> None:
    config = cli.load_config(tmp_path / "none.yaml")
    config = replace(config, processing=replace(config.processing, ai_enabled=False))
    assert cli.build_pipeline(config).ai_enabled is False


def test_test_connection_unknown_provider_exit_code(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "acme")
    assert cli.main(["--test-connection", "-c", str(tmp_path / "none.yaml")]) == 2
