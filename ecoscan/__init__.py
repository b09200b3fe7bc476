"""EcoScan unified sustainability analysis engine."""

from ecoscan.engine import AnalysisEngine, ResultCache, analyze_product, get_engine
from ecoscan.errors import (
    EcoScanError,
    EnrichmentError,
    EnrichmentTimeoutError,
    NormalizationError,
    SchemaValidationError,
    TransportError,
)
from ecoscan.normalizer import normalize
from ecoscan.schemas import ProductFacts, UnifiedAnalysisResult

__all__ = [
    "AnalysisEngine",
    "ResultCache",
    "analyze_product",
    "get_engine",
    "normalize",
    "ProductFacts",
    "UnifiedAnalysisResult",
    "EcoScanError",
    "NormalizationError",
    "EnrichmentError",
    "SchemaValidationError",
    "EnrichmentTimeoutError",
    "TransportError",
]
