"""
Error taxonomy for the analysis engine.

Only NormalizationError is meant to reach callers of the engine. The
EnrichmentError family is raised inside the AI gateway and recovered by the
engine's fallback boundary.
"""

from typing import Any, Optional


class EcoScanError(Exception):
    """Base error for the engine"""

    detail: str = "Analysis error"

    def __init__(self, detail: Optional[str] = None, **context: Any):
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail
        # Store any additional context
        self.context = context


class NormalizationError(EcoScanError):
    """Raw product payload cannot be normalized"""

    detail = "Product payload is missing a product name"


class EnrichmentError(EcoScanError):
    """AI enrichment failed; recovered with the fallback provider"""

    detail = "AI enrichment failed"


class SchemaValidationError(EnrichmentError):
    """Model output is not JSON matching the enrichment schema"""

    detail = "AI response did not match the enrichment schema"


class EnrichmentTimeoutError(EnrichmentError, TimeoutError):
    """AI call exceeded its deadline"""

    detail = "AI enrichment timed out"


class TransportError(EnrichmentError):
    """Network, HTTP or client availability failure"""

    detail = "AI service unavailable"


__all__ = [
    "EcoScanError",
    "NormalizationError",
    "EnrichmentError",
    "SchemaValidationError",
    "EnrichmentTimeoutError",
    "TransportError",
]
