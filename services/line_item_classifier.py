"""
Keyword-rule line-item classification.

Every active KeywordRule is evaluated against a description; the highest-weight match
wins and ties go to the earliest rule (rules arrive sorted by rule_id). No match means
Other. Confidence is weight x match-type factor, on the 0-100 scale.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence

from core.models import Classification, KeywordRule, MatchType

MATCH_FACTORS: dict[MatchType, float] = {
    MatchType.EXACT: 1.0,
    MatchType.PARTIAL: 0.9,
    MatchType.CONTAINS: 0.8,
}
UNMATCHED_CONFIDENCE = 25.0

_TOKEN_RE = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True)
class Classified:
    classification: Classification
    confidence: float
    rule: KeywordRule | None = None

    @property
    def keyword(self) -> str | None:
        return self.rule.keyword if self.rule else None


def _normalize(text: Any) -> str:
    if text is None:
        return ""
    return " ".join(str(text).casefold().split())


def keyword_matches(description: str, rule: KeywordRule) -> bool:
    """Match a normalized description against one rule per its match type."""
    keyword = _normalize(rule.keyword)
    if not description or not keyword:
        return False
    if rule.match_type is MatchType.EXACT:
        return description == keyword
    if rule.match_type is MatchType.PARTIAL:
        return keyword in description
    tokens = set(_TOKEN_RE.findall(keyword))
    return bool(tokens) and tokens <= set(_TOKEN_RE.findall(description))


def rule_confidence(rule: KeywordRule) -> float:
    score = rule.weight * MATCH_FACTORS.get(rule.match_type, MATCH_FACTORS[MatchType.CONTAINS]) * 100
    return max(0.0, min(100.0, score))


class LineItemClassifier:
    """Stateless; safe to share across threads."""

    def classify(self, description: Any, rules: Sequence[KeywordRule]) -> Classified:
        text = _normalize(description)
        best: KeywordRule | None = None
        for rule in rules:
            if not rule.is_active or not keyword_matches(text, rule):
                continue
            # strict > keeps the earliest rule on equal weight
            if best is None or rule.weight > best.weight:
                best = rule
        if best is None:
            return Classified(Classification.OTHER, UNMATCHED_CONFIDENCE if text else 0.0)
        return Classified(best.classification, rule_confidence(best), best)
