"""Shared fixtures: packaged reference rules and RawExtraction builders."""

from __future__ import annotations

from typing import Any

import pytest

from core.schema import RawExtraction
from services.reference_store import YamlReferenceStore


@pytest.fixture(scope="session")
def default_store() -> YamlReferenceStore:
    """Packaged default_rules.yaml."""
    return YamlReferenceStore()


@pytest.fixture
def make_raw():
    """Build a RawExtraction from line descriptions (or line dicts) plus header overrides."""

    def _make(lines: list[Any] | None = None, **header: Any) -> RawExtraction:
        items = [
            line if isinstance(line, dict) else {"description": line}
            for line in (lines or [])
        ]
        return RawExtraction.model_validate({**header, "lineItems": items})

    return _make


@pytest.fixture
def maintenance_raw(make_raw) -> RawExtraction:
    return make_raw(
        [
            {"lineNumber": 1, "description": "Oil filter", "unitCost": "12.99", "quantity": "1", "totalCost": "12.99"},
            {"lineNumber": 2, "description": "Shop supplies", "totalCost": "5.00"},
            {"lineNumber": 3, "description": "Sales tax", "totalCost": "1.44"},
        ],
        vehicleId="VEH-013",
        invoiceNumber="A-4471",
        invoiceDate="08/22/2025",
        odometer="67,890 mi",
    )
