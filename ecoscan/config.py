"""Central configuration constants and helpers.

This module centralizes environment-derived configuration values so that other
modules avoid duplicating constant definitions and can provide consistent
fallback logic. Keep this lightweight (no heavy imports).

The scoring weight tables below are tunable defaults, not fixed laws: each
entry can be overridden through the environment.
"""
from __future__ import annotations
import os
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default) not in ("0", "false", "False", "no", "")


# OpenAI enrichment model parameters
ENRICH_MODEL: str = os.getenv("ENRICH_MODEL", "gpt-4o-mini")
ENRICH_TEMPERATURE: float = _env_float("ENRICH_TEMPERATURE", 0.2)
ENRICH_MAX_TOKENS: int = int(os.getenv("ENRICH_MAX_TOKENS", "1024"))
ENRICH_TIMEOUT_SEC: float = _env_float("ENRICH_TIMEOUT_SEC", 4.0)
ENRICH_ENABLE: bool = _env_flag("ENABLE_ENRICH")

# Result cache (opt-in, keyed by ProductFacts fingerprint)
RESULT_CACHE_TTL: float = _env_float("RESULT_CACHE_TTL", 3600.0)  # 1h default
RESULT_CACHE_MAX: int = int(os.getenv("RESULT_CACHE_MAX", "256"))

# Weighted mean of the environmental sub-scores
ENVIRONMENTAL_WEIGHTS: Dict[str, float] = {
    "packaging": _env_float("WEIGHT_PACKAGING", 0.3),
    "carbon": _env_float("WEIGHT_CARBON", 0.4),
    "materials": _env_float("WEIGHT_MATERIALS", 0.3),
}

# Blend of environment and health in combined mode
UNIFIED_WEIGHTS: Dict[str, float] = {
    "environmental": _env_float("WEIGHT_UNIFIED_ENVIRONMENTAL", 0.5),
    "health": _env_float("WEIGHT_UNIFIED_HEALTH", 0.5),
}

# Inclusive lower bounds, checked in order
GRADE_THRESHOLDS: Tuple[Tuple[int, str], ...] = (
    (90, "A"),
    (75, "B"),
    (60, "C"),
    (40, "D"),
)
LOWEST_GRADE: str = "E"

CONFIDENCE_COMPLETENESS_THRESHOLD: float = _env_float("CONFIDENCE_COMPLETENESS_THRESHOLD", 0.7)
DISAGREEMENT_TOLERANCE: float = _env_float("DISAGREEMENT_TOLERANCE", 25.0)

MAX_INSIGHTS: int = 5
MAX_RECOMMENDATIONS: int = 4


@lru_cache(maxsize=1)
def get_runtime_config_snapshot() -> dict:
    """Return a cached snapshot of key runtime config values (for diagnostics)."""
    return {
        "model": ENRICH_MODEL,
        "temperature": ENRICH_TEMPERATURE,
        "max_tokens": ENRICH_MAX_TOKENS,
        "enrich_enabled": ENRICH_ENABLE,
        "enrich_timeout": ENRICH_TIMEOUT_SEC,
        "api_key_configured": bool(os.getenv("OPENAI_API_KEY")),
        "environmental_weights": dict(ENVIRONMENTAL_WEIGHTS),
        "unified_weights": dict(UNIFIED_WEIGHTS),
        "grade_thresholds": [list(t) for t in GRADE_THRESHOLDS],
        "confidence_completeness_threshold": CONFIDENCE_COMPLETENESS_THRESHOLD,
        "disagreement_tolerance": DISAGREEMENT_TOLERANCE,
        "result_cache_ttl": RESULT_CACHE_TTL,
        "result_cache_max": RESULT_CACHE_MAX,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }

__all__ = [
    "ENRICH_MODEL",
    "ENRICH_TEMPERATURE",
    "ENRICH_MAX_TOKENS",
    "ENRICH_TIMEOUT_SEC",
    "ENRICH_ENABLE",
    "RESULT_CACHE_TTL",
    "RESULT_CACHE_MAX",
    "ENVIRONMENTAL_WEIGHTS",
    "UNIFIED_WEIGHTS",
    "GRADE_THRESHOLDS",
    "LOWEST_GRADE",
    "CONFIDENCE_COMPLETENESS_THRESHOLD",
    "DISAGREEMENT_TOLERANCE",
    "MAX_INSIGHTS",
    "MAX_RECOMMENDATIONS",
    "get_runtime_config_snapshot",
]
