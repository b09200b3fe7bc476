import collections
import threading
import time
from typing import Any, Dict

import psutil
from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from ecoscan.config import get_runtime_config_snapshot
from ecoscan.engine import AnalysisEngine, get_engine
from ecoscan.errors import NormalizationError
from ecoscan.schemas import (
    CacheStatsResponse,
    EnrichmentSource,
    HealthResponse,
    MetricsResponse,
    UnifiedAnalysisResult,
)

app = FastAPI(title="EcoScan Unified Sustainability Analysis")

# CORS (adjust in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return JSONResponse({"message": "EcoScan API is running. See /docs for API specs."})


@app.get("/health", response_model=HealthResponse)
async def health():
    try:
        proc = psutil.Process()
        mem = proc.memory_info().rss
        cpu = proc.cpu_percent(interval=None)
    except psutil.Error:
        mem = 0
        cpu = 0
    return HealthResponse(status="ok", cpu_percent=cpu, rss_bytes=mem)


@app.get("/config")
async def config():
    """Runtime configuration snapshot (no secrets)."""
    return get_runtime_config_snapshot()


@app.post("/analyze", response_model=UnifiedAnalysisResult)
async def analyze_endpoint(
    payload: Dict[str, Any] = Body(...),
    engine: AnalysisEngine = Depends(get_engine),
):
    start_time = time.time()
    try:
        result = await engine.analyze(payload)
    except NormalizationError as ne:
        logger.warning(f"Rejected product payload: {ne.detail}")
        raise HTTPException(status_code=422, detail=ne.detail)
    MetricsLogger.log(
        latency=time.time() - start_time,
        score=result.unified_score,
        fallback=result.enrichment_source == EnrichmentSource.FALLBACK,
    )
    return result


@app.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(engine: AnalysisEngine = Depends(get_engine)):
    if engine.cache is None:
        return CacheStatsResponse()
    return CacheStatsResponse(**engine.cache.stats())


@app.post("/cache/clear")
async def cache_clear(engine: AnalysisEngine = Depends(get_engine)):
    if engine.cache is None:
        return {"cleared": 0}
    cleared = engine.cache.clear()
    logger.info(f"Result cache cleared ({cleared['cleared']} entries)")
    return cleared


# --- Minimal in-memory metrics logger for /metrics endpoint ---
class MetricsLogger:
    _lock = threading.Lock()
    _maxlen = 100
    _data = collections.deque(maxlen=_maxlen)

    @classmethod
    def log(cls, latency, score, fallback):
        with cls._lock:
            cls._data.append({
                "latency": latency, "score": score, "fallback": fallback,
                "timestamp": time.time()
            })

    @classmethod
    def reset(cls):
        with cls._lock:
            cls._data.clear()

    @classmethod
    def get_metrics(cls):
        with cls._lock:
            data = list(cls._data)
        if not data:
            return {
                "avg_latency": 0.0,
                "avg_unified_score": 0.0,
                "fallback_rate": 0.0,
                "latency_trend": [],
                "score_trend": [],
                "count": 0,
            }
        avg = lambda k: round(sum(d[k] for d in data)/len(data), 3)
        fallback_rate = round(100*sum(1 for d in data if d["fallback"])/len(data), 2)
        latency = [round(d["latency"], 4) for d in data]
        scores = [d["score"] for d in data]
        return {
            "avg_latency": avg("latency"),
            "avg_unified_score": avg("score"),
            "fallback_rate": fallback_rate,
            "latency_trend": latency[-10:],
            "score_trend": scores[-10:],
            "count": len(data)
        }


@app.get("/metrics", response_model=MetricsResponse)
async def metrics():
    """Return rolling averages for dashboard charting."""
    return MetricsLogger.get_metrics()
