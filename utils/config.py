"""
Configuration loader: YAML + env overrides.
No hardcoded endpoints in services; all from config.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from core.exceptions import ConfigError

DEFAULT_MODEL = "gpt-4o"


def coerce_bool(s: Any) -> bool:
    if isinstance(s, bool):
        return s
    return (str(s).strip().lower() in ("1", "true", "yes", "on")) if s else False


def _coerce_float(s: Any, key: str) -> float:
    try:
        return float(s)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid number for {key}: {s!r}") from e


def _coerce_int(s: Any, key: str) -> int:
    try:
        return int(s)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid integer for {key}: {s!r}") from e


@dataclass(frozen=True)
class LLMConfig:
    """LLM endpoint and model configuration."""

    provider: str = "github"
    base_url: str = ""  # empty: provider default (GitHub Models for "github")
    api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 0.1
    max_tokens: int = 2000
    top_p: float = 0.9
    timeout_sec: int = 30
    max_retries: int = 1
    retry_delay_sec: float = 2.0


@dataclass(frozen=True)
class ProcessingConfig:
    """Pipeline behaviour switches."""

    ai_enabled: bool = True
    reference_rules_path: str = ""
    cache_reference_rules: bool = True
    token_warning_threshold: int = 7500


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration. Built from YAML + env."""

    output_dir: str = "output"
    log_level: str = "INFO"
    max_workers: int = 1
    llm: LLMConfig = field(default_factory=LLMConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def _config_from_dict(data: dict[str, Any]) -> AppConfig:
    """Build AppConfig from nested dict. Env overrides applied in load_config."""
    llm_data = data.get("llm") or {}
    proc_data = data.get("processing") or {}
    if not isinstance(llm_data, dict) or not isinstance(proc_data, dict):
        raise ConfigError("'llm' and 'processing' sections must be mappings")
    llm = LLMConfig(
        provider=str(llm_data.get("provider", "github")),
        base_url=str(llm_data.get("base_url", "") or ""),
        api_key=str(llm_data.get("api_key", "") or ""),
        model=str(llm_data.get("model", DEFAULT_MODEL)),
        temperature=_coerce_float(llm_data.get("temperature", 0.1), "llm.temperature"),
        max_tokens=_coerce_int(llm_data.get("max_tokens", 2000), "llm.max_tokens"),
        top_p=_coerce_float(llm_data.get("top_p", 0.9), "llm.top_p"),
        timeout_sec=_coerce_int(llm_data.get("timeout_sec", 30), "llm.timeout_sec"),
        max_retries=_coerce_int(llm_data.get("max_retries", 1), "llm.max_retries"),
        retry_delay_sec=_coerce_float(llm_data.get("retry_delay_sec", 2.0), "llm.retry_delay_sec"),
    )
    processing = ProcessingConfig(
        ai_enabled=coerce_bool(proc_data.get("ai_enabled", True)),
        reference_rules_path=str(proc_data.get("reference_rules_path", "") or ""),
        cache_reference_rules=coerce_bool(proc_data.get("cache_reference_rules", True)),
        token_warning_threshold=_coerce_int(
            proc_data.get("token_warning_threshold", 7500), "processing.token_warning_threshold"
        ),
    )
    return AppConfig(
        output_dir=str(data.get("output_dir", "output")),
        log_level=str(data.get("log_level", "INFO")),
        max_workers=_coerce_int(data.get("max_workers", 1), "max_workers"),
        llm=llm,
        processing=processing,
    )


def _validate(cfg: AppConfig) -> AppConfig:
    if cfg.max_workers < 1:
        raise ConfigError(f"max_workers must be >= 1, got {cfg.max_workers}")
    if cfg.llm.timeout_sec <= 0:
        raise ConfigError(f"llm.timeout_sec must be > 0, got {cfg.llm.timeout_sec}")
    if cfg.llm.max_retries < 1:
        raise ConfigError(f"llm.max_retries must be >= 1, got {cfg.llm.max_retries}")
    return cfg


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """
    Load config from YAML file, then apply env overrides.
    Env vars: LLM_PROVIDER, LLM_BASE_URL, LLM_MODEL, LLM_API_KEY (or GITHUB_API_TOKEN),
    LLM_TIMEOUT_SEC, AI_ENABLED, REFERENCE_RULES_PATH, OUTPUT_DIR, LOG_LEVEL, MAX_WORKERS.
    """
    path = Path(config_path) if config_path else Path("config.yaml")
    cfg = _config_from_dict(_load_yaml(path))

    # Env overrides (single source for deployment)
    top: dict[str, Any] = {}
    if os.getenv("OUTPUT_DIR"):
        top["output_dir"] = os.environ["OUTPUT_DIR"]
    if os.getenv("LOG_LEVEL"):
        top["log_level"] = os.environ["LOG_LEVEL"]
    if os.getenv("MAX_WORKERS"):
        top["max_workers"] = _coerce_int(os.environ["MAX_WORKERS"], "MAX_WORKERS")

    llm: dict[str, Any] = {}
    if os.getenv("LLM_PROVIDER"):
        llm["provider"] = os.environ["LLM_PROVIDER"].strip().lower()
    if os.getenv("LLM_BASE_URL"):
        llm["base_url"] = os.environ["LLM_BASE_URL"].strip()
    if os.getenv("LLM_MODEL"):
        llm["model"] = os.environ["LLM_MODEL"].strip()
    api_key = os.getenv("LLM_API_KEY") or os.getenv("GITHUB_API_TOKEN")
    if api_key:
        llm["api_key"] = api_key.strip()
    if os.getenv("LLM_TIMEOUT_SEC"):
        llm["timeout_sec"] = _coerce_int(os.environ["LLM_TIMEOUT_SEC"], "LLM_TIMEOUT_SEC")

    processing: dict[str, Any] = {}
    if os.getenv("AI_ENABLED") is not None:
        processing["ai_enabled"] = coerce_bool(os.environ["AI_ENABLED"])
    if os.getenv("REFERENCE_RULES_PATH"):
        processing["reference_rules_path"] = os.environ["REFERENCE_RULES_PATH"]

    if llm:
        top["llm"] = replace(cfg.llm, **llm)
    if processing:
        top["processing"] = replace(cfg.processing, **processing)
    if top:
        cfg = replace(cfg, **top)
    return _validate(cfg)
