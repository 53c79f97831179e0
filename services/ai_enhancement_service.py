"""
AI enhancement service: serialized RawExtraction -> AIResult via one chat-completion call.
Uses injected ILLMProvider; no concrete LLM dependency. Never raises: HTTP failures,
timeouts and unparseable replies all come back as typed AIResult failures.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import requests
from pydantic import ValidationError

from core.exceptions import StructuredOutputError
from core.interfaces import IAIEnhancementService, ILLMProvider
from core.models import HEADER_FIELD_LABELS, HEADER_FIELDS, AIResult, ErrorKind
from core.schema import AIInvoiceResponse, RawExtraction
from prompts import INVOICE_SYSTEM_PROMPT, load_prompt
from utils.json_utils import parse_json_object

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
CONNECTION_PROBE = "Reply with exactly: 'Connection successful'"

_STATUS_ERRORS: dict[int, tuple[ErrorKind, str]] = {
    429: (ErrorKind.RATE_LIMITED, "Rate limit exceeded: the model endpoint is throttling requests"),
    413: (ErrorKind.PAYLOAD_TOO_LARGE, "Request payload too large: the invoice exceeds the model token limit"),
    402: (ErrorKind.QUOTA_EXCEEDED, "Model quota exceeded: API usage limit reached"),
    401: (ErrorKind.AUTH_ERROR, "Authentication failed: invalid API token or insufficient permissions"),
}


def _fmt(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def compact_extraction_text(raw_extraction_json: str) -> str:
    """
    Render the serialized extraction as compact text (header key/values, labelled fields,
    'description | qty | unit | total' rows) to cut the token count. Input that does not
    parse as a RawExtraction is returned verbatim.
    """
    try:
        raw = RawExtraction.model_validate_json(raw_extraction_json)
    except ValidationError:
        return raw_extraction_json
    out = ["=== INVOICE CONTENT ==="]
    for name in HEADER_FIELDS:
        value = getattr(raw, name)
        if value is not None:
            out.append(f"{HEADER_FIELD_LABELS[name]}: {_fmt(value)}")
    if raw.labelled_fields:
        out.append("=== LABELLED FIELDS ===")
        out.extend(f"{label}: {value}" for label, value in raw.labelled_fields.items())
    if raw.line_items:
        out.append("=== LINE ITEMS ===")
        out.append("line | description | qty | unit | total | part number")
        for line_number, item in raw.numbered_lines():
            out.append(
                " | ".join(
                    (
                        str(line_number),
                        item.description,
                        _fmt(item.quantity),
                        _fmt(item.unit_cost),
                        _fmt(item.total_cost),
                        item.part_number or "",
                    )
                )
            )
    return "\n".join(out)


class AIEnhancementService(IAIEnhancementService):
    """One request per call, no internal retries. Retry policy belongs to the caller."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        top_p: float = 0.9,
        token_warning_threshold: int = 7500,
        system_prompt: str | None = None,
    ) -> None:
        self._llm = llm_provider
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._top_p = top_p
        self._token_warning_threshold = token_warning_threshold
        self._system_prompt = system_prompt

    def _get_system_prompt(self) -> str:
        if self._system_prompt is None:
            self._system_prompt = load_prompt(INVOICE_SYSTEM_PROMPT)
        return self._system_prompt

    def _chat(self, messages: list[dict[str, Any]], **kwargs: Any) -> str:
        params: dict[str, Any] = {
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "top_p": self._top_p,
        }
        if self._model:
            params["model"] = self._model
        params.update(kwargs)
        return self._llm.chat(messages, **params)

    def process(self, raw_extraction_json: str) -> AIResult:
        notes: list[str] = []
        try:
            return self._process(raw_extraction_json, notes)
        except Exception as e:
            logger.exception("AI enhancement failed unexpectedly: %s", e)
            return AIResult.failure(
                ErrorKind.GENERIC_FAILURE, f"AI enhancement failed: {type(e).__name__}: {e}", notes=notes
            )

    def _process(self, raw_extraction_json: str, notes: list[str]) -> AIResult:
        system = self._get_system_prompt()
        user = "Raw OCR extraction:\n" + compact_extraction_text(raw_extraction_json)
        estimated_tokens = (len(system) + len(user)) // CHARS_PER_TOKEN
        logger.debug("AI request: ~%s tokens (prompt %s chars)", estimated_tokens, len(system) + len(user))
        if estimated_tokens > self._token_warning_threshold:
            logger.warning(
                "AI request may exceed token limit: ~%s tokens (threshold %s)",
                estimated_tokens,
                self._token_warning_threshold,
            )
            notes.append(f"Large request: ~{estimated_tokens} tokens")

        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        try:
            content = self._chat(messages)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            kind, message = _STATUS_ERRORS.get(
                status, (ErrorKind.GENERIC_FAILURE, f"AI endpoint error: HTTP {status}")
            )
            logger.warning("AI request failed with HTTP %s: %s", status, kind.value)
            return AIResult.failure(kind, message, notes=notes, status_code=status)
        except requests.Timeout as e:
            logger.warning("AI request timed out: %s", e)
            return AIResult.failure(ErrorKind.GENERIC_FAILURE, f"AI request timed out: {e}", notes=notes)
        except requests.RequestException as e:
            logger.warning("AI request failed: %s", e)
            return AIResult.failure(ErrorKind.GENERIC_FAILURE, f"AI request failed: {e}", notes=notes)
        except StructuredOutputError as e:
            logger.warning("AI reply envelope malformed: %s", e)
            return AIResult.failure(ErrorKind.JSON_ERROR, f"Malformed AI reply: {e}", notes=notes)

        logger.debug("AI response: %s chars", len(content or ""))
        try:
            data = parse_json_object(content)
            parsed = AIInvoiceResponse.model_validate(data)
        except StructuredOutputError as e:
            logger.warning("AI response not parseable: %s", e)
            return AIResult.failure(ErrorKind.JSON_ERROR, f"Invalid JSON in AI response: {e}", notes=notes)
        except ValidationError as e:
            logger.warning("AI response failed schema validation: %s", e.error_count())
            return AIResult.failure(
                ErrorKind.JSON_ERROR,
                f"AI response did not match the invoice schema ({e.error_count()} error(s))",
                notes=notes,
            )
        logger.info(
            "AI enhancement parsed %s line item(s), overall confidence %.1f",
            len(parsed.line_items),
            parsed.overall_confidence,
        )
        return AIResult.ok(parsed, notes=notes)

    def test_connection(self) -> bool:
        """Probe the endpoint with a fixed prompt. False on any HTTP/network failure."""
        try:
            content = self._chat([{"role": "user", "content": CONNECTION_PROBE}], max_tokens=20)
        except (requests.RequestException, StructuredOutputError) as e:
            logger.error("Connection test failed: %s", e)
            return False
        ok = "connection successful" in (content or "").lower()
        if not ok:
            logger.warning("Connection test got unexpected reply (%s chars)", len(content or ""))
        return ok
