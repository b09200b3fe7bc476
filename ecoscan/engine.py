"""Analysis pipeline: normalize -> score -> enrich (AI or fallback) -> aggregate.

The enrichment step is the only fallible stage after normalization. Every
``EnrichmentError`` (and anything unexpected raised by the gateway) is
recovered here with the deterministic fallback provider, so callers only ever
see ``NormalizationError``.
"""
from __future__ import annotations

import asyncio
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ecoscan.aggregator import aggregate
from ecoscan.config import RESULT_CACHE_MAX, RESULT_CACHE_TTL
from ecoscan.environmental import score_environment
from ecoscan.errors import EnrichmentError
from ecoscan.fallback import fallback_enrich
from ecoscan.gateway import EnrichmentGateway
from ecoscan.health import score_health
from ecoscan.logger import log_context, logger
from ecoscan.normalizer import normalize
from ecoscan.schemas import EnrichedSignals, ProductFacts, SubScoreSet, UnifiedAnalysisResult


# In-process result cache (simple LRU with TTL)
@dataclass
class _CacheEntry:
    value: UnifiedAnalysisResult
    ts: float


class ResultCache:
    """LRU + TTL cache of AI-enriched results keyed by ProductFacts fingerprint."""

    def __init__(self, ttl: float = RESULT_CACHE_TTL, max_entries: int = RESULT_CACHE_MAX):
        self.ttl = ttl
        self.max_entries = max_entries
        self._data: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> Optional[UnifiedAnalysisResult]:
        now = time.time()
        with self._lock:
            e = self._data.get(key)
            if not e:
                return None
            if now - e.ts > self.ttl:
                self._data.pop(key, None)
                return None
            # Move to end (LRU)
            self._data.move_to_end(key)
            return e.value

    def put(self, key: str, value: UnifiedAnalysisResult) -> None:
        with self._lock:
            self._data[key] = _CacheEntry(value=value, ts=time.time())
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)

    def stats(self) -> Dict[str, Any]:
        now = time.time()
        with self._lock:
            alive = [k for k, v in self._data.items() if now - v.ts <= self.ttl]
            size = len(self._data)
        return {
            "size": size,
            "alive_entries": len(alive),
            "ttl_seconds": self.ttl,
            "max_entries": self.max_entries,
            "keys": [k[:12] for k in alive[:25]],
        }

    def clear(self) -> Dict[str, int]:
        with self._lock:
            removed = len(self._data)
            self._data.clear()
        return {"cleared": removed}


class AnalysisEngine:
    """Runs the full analysis for one raw product payload at a time; safe to share."""

    def __init__(
        self,
        gateway: Optional[EnrichmentGateway] = None,
        *,
        cache: Optional[ResultCache] = None,
        include_environment: bool = True,
    ):
        self.gateway = gateway if gateway is not None else EnrichmentGateway()
        self.cache = cache
        self.include_environment = include_environment

    def score(self, facts: ProductFacts) -> Tuple[Optional[SubScoreSet], Optional[SubScoreSet]]:
        env = score_environment(facts) if self.include_environment else None
        food = score_health(facts)
        if env is None and food is None:
            # nothing food-scorable and environment disabled: environment is the floor
            env = score_environment(facts)
        return env, food

    async def enrich(
        self,
        facts: ProductFacts,
        env: Optional[SubScoreSet],
        food: Optional[SubScoreSet],
    ) -> EnrichedSignals:
        try:
            return await self.gateway.enrich(facts, env, food)
        except EnrichmentError as e:
            logger.warning(f"AI enrichment unavailable ({type(e).__name__}: {e}); using heuristic fallback")
        except Exception as e:  # noqa: BLE001
            logger.error(f"Unexpected enrichment failure: {type(e).__name__}: {e}; using heuristic fallback")
        return fallback_enrich(facts, env, food)

    async def analyze(self, raw: Any) -> UnifiedAnalysisResult:
        """Analyze one product payload. Raises ``NormalizationError`` on unusable input."""
        facts = normalize(raw)
        fp = facts.fingerprint()
        with log_context(product=fp[:12]) as log:
            if self.cache is not None:
                cached = self.cache.get(fp)
                if cached is not None:
                    log.debug("result cache hit")
                    return cached

            start = time.time()
            env, food = self.score(facts)
            enriched = await self.enrich(facts, env, food)
            result = aggregate(env, food, enriched).model_copy(update={"fingerprint": fp})

            if self.cache is not None and enriched.ai_succeeded:
                self.cache.put(fp, result)
            log.info(
                f"analyzed '{result.product_name}' mode={result.analysis_type.value} "
                f"score={result.unified_score} grade={result.sustainability_grade} "
                f"confidence={result.confidence_level.value} source={result.enrichment_source.value} "
                f"in {round(time.time() - start, 3)}s"
            )
            return result

    def analyze_sync(self, raw: Any) -> UnifiedAnalysisResult:
        return asyncio.run(self.analyze(raw))


_default_engine: Optional[AnalysisEngine] = None
_engine_lock = threading.Lock()


def get_engine() -> AnalysisEngine:
    """Process-wide engine with the configured gateway and a result cache."""
    global _default_engine
    if _default_engine is None:
        with _engine_lock:
            if _default_engine is None:
                _default_engine = AnalysisEngine(cache=ResultCache())
    return _default_engine


async def analyze_product(raw: Any, *, engine: Optional[AnalysisEngine] = None) -> UnifiedAnalysisResult:
    return await (engine or get_engine()).analyze(raw)


__all__ = ["AnalysisEngine", "ResultCache", "get_engine", "analyze_product"]
