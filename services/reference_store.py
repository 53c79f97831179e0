"""
Keyword/field reference store: read-only dictionaries for the rule-based fallback.

Rules live in a YAML document with two lists, keyword_rules and field_mapping_rules.
Only active rules are returned, ordered by rule_id; that order is the tie-break the
classifier and field normalizer rely on.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Iterable

import yaml

from core.exceptions import FallbackError
from core.interfaces import IReferenceStore
from core.models import Classification, FieldMappingRule, KeywordRule, MatchType
from utils.config import coerce_bool

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "reference" / "default_rules.yaml"


def _active_sorted(rules: Iterable[Any]) -> list[Any]:
    # sorted() is stable: equal rule_ids keep load order
    return sorted((r for r in rules if r.is_active), key=lambda r: r.rule_id)


def _keyword_rule_from_dict(d: dict[str, Any]) -> KeywordRule:
    return KeywordRule(
        rule_id=int(d["rule_id"]),
        keyword=str(d["keyword"]).strip(),
        classification=Classification(str(d["classification"]).strip()),
        match_type=MatchType(str(d.get("match_type", "contains")).strip().lower()),
        weight=max(0.0, min(1.0, float(d.get("weight", 0.5)))),
        is_active=coerce_bool(d.get("is_active", True)),
    )


def _field_rule_from_dict(d: dict[str, Any]) -> FieldMappingRule:
    return FieldMappingRule(
        rule_id=int(d["rule_id"]),
        target_field=str(d["target_field"]).strip(),
        expected_label=str(d["expected_label"]).strip(),
        match_type=MatchType(str(d.get("match_type", "exact")).strip().lower()),
        is_active=coerce_bool(d.get("is_active", True)),
    )


class StaticReferenceStore(IReferenceStore):
    """In-memory rules, for tests and embedding."""

    def __init__(
        self,
        keyword_rules: Iterable[KeywordRule] = (),
        field_mapping_rules: Iterable[FieldMappingRule] = (),
    ) -> None:
        self._keyword_rules = _active_sorted(keyword_rules)
        self._field_rules = _active_sorted(field_mapping_rules)

    def keyword_rules(self) -> list[KeywordRule]:
        return list(self._keyword_rules)

    def field_mapping_rules(self) -> list[FieldMappingRule]:
        return list(self._field_rules)


class YamlReferenceStore(IReferenceStore):
    """
    Rules loaded from a YAML file. With cache=True the parsed snapshot is kept until
    invalidate(); otherwise the file is re-read on every call.
    Unreadable or malformed files raise FallbackError.
    """

    def __init__(self, path: str | Path | None = None, cache: bool = True) -> None:
        self._path = Path(path) if path else DEFAULT_RULES_PATH
        self._cache = cache
        self._lock = threading.Lock()
        self._snapshot: tuple[list[KeywordRule], list[FieldMappingRule]] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> tuple[list[KeywordRule], list[FieldMappingRule]]:
        try:
            with open(self._path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise FallbackError(f"Reference rules unavailable ({self._path}): {e}") from e
        if not isinstance(data, dict):
            raise FallbackError(f"Reference rules must be a mapping: {self._path}")
        try:
            keyword_rules = [_keyword_rule_from_dict(d) for d in data.get("keyword_rules") or []]
            field_rules = [_field_rule_from_dict(d) for d in data.get("field_mapping_rules") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise FallbackError(f"Invalid reference rule in {self._path}: {e}") from e
        snapshot = (_active_sorted(keyword_rules), _active_sorted(field_rules))
        logger.info(
            "Loaded reference rules from %s: %s keyword, %s field mapping",
            self._path,
            len(snapshot[0]),
            len(snapshot[1]),
        )
        return snapshot

    def _get(self) -> tuple[list[KeywordRule], list[FieldMappingRule]]:
        if not self._cache:
            return self._load()
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def keyword_rules(self) -> list[KeywordRule]:
        return list(self._get()[0])

    def field_mapping_rules(self) -> list[FieldMappingRule]:
        return list(self._get()[1])

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None
