"""AI enrichment gateway (OpenAI chat completions).

- Builds a structured prompt from ProductFacts plus the heuristic baseline scores.
- Calls the OpenAI SDK in a worker thread, bounded by a fixed deadline.
- Strips markdown fences, parses JSON and validates every field on its own:
  a malformed field degrades to the heuristic value for that field only.
- Raises SchemaValidationError / EnrichmentTimeoutError / TransportError; the
  engine turns any of them into the fallback path.

The API key is read from OPENAI_API_KEY and never logged.
"""
from __future__ import annotations

import asyncio
import json
import os
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Annotated, Any, Dict, List, Optional, Tuple

import openai
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, StrictStr, TypeAdapter, ValidationError

from ecoscan.config import (
    ENRICH_ENABLE,
    ENRICH_MAX_TOKENS,
    ENRICH_MODEL,
    ENRICH_TEMPERATURE,
    ENRICH_TIMEOUT_SEC,
    MAX_INSIGHTS,
    MAX_RECOMMENDATIONS,
)
from ecoscan.environmental import impact_summary, match_certification, weighted_overall
from ecoscan.errors import EnrichmentError, EnrichmentTimeoutError, SchemaValidationError, TransportError
from ecoscan.fallback import heuristic_insights, heuristic_recommendations
from ecoscan.logger import logger
from ecoscan.schemas import EnrichedSignals, EnrichmentSource, FieldSource, ProductFacts, SubScoreSet

ENVIRONMENTAL_AI_FIELDS: Tuple[str, ...] = ("packaging", "carbon", "materials")
FOOD_AI_FIELDS: Tuple[str, ...] = ("health_score", "sustainability_score")
LIST_AI_FIELDS: Tuple[str, ...] = ("certifications", "insights", "recommendations")

# --- Prompt ---
_SYSTEM_PROMPT = (
    "You are EcoAnalyst AI, an impartial, evidence-driven product sustainability and nutrition analyst.\n"
    "You receive normalized product facts and baseline heuristic sub-scores (0-100, higher is better).\n"
    "Refine the sub-scores using only the provided facts; never invent certifications or ingredients.\n"
    "Respond with a single JSON object and nothing else, using exactly this schema:\n"
    "{\n"
    "  \"sub_scores\": {\"packaging\": number, \"carbon\": number, \"materials\": number,\n"
    "                 \"health_score\": number, \"sustainability_score\": number},\n"
    "  \"certifications\": [string, ...],\n"
    "  \"insights\": [string, ...],\n"
    "  \"recommendations\": [string, ...]\n"
    "}\n"
    "Every number must be between 0 and 100. Omit health_score and sustainability_score when no\n"
    "nutrition facts are given. Keep insights and recommendations short (under 15 words each),\n"
    f"at most {MAX_INSIGHTS} insights and {MAX_RECOMMENDATIONS} recommendations."
)


def build_messages(
    facts: ProductFacts,
    environmental: Optional[SubScoreSet],
    food: Optional[SubScoreSet],
) -> List[Dict[str, str]]:
    profile = facts.model_dump(mode="json", exclude={"provided_fields", "category_label"})
    baseline: Dict[str, Any] = {}
    if environmental is not None:
        baseline.update({k: environmental.scores[k] for k in ENVIRONMENTAL_AI_FIELDS})
    if food is not None:
        baseline.update(food.scores)
    user = (
        "Product facts:\n"
        + json.dumps(profile, ensure_ascii=False, indent=2)
        + "\n\nBaseline sub-scores:\n"
        + json.dumps(baseline, indent=2)
        + "\n\nReturn the JSON object only."
    )
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


# --- Response parsing & validation ---
_JSON_BLOCK_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_SCORE = TypeAdapter(Annotated[float, Field(ge=0, le=100, strict=True)])
_STRINGS = TypeAdapter(List[StrictStr])


class AIEnrichment(BaseModel):
    """Fields that survived validation; absent means 'use the heuristic value'."""

    model_config = ConfigDict(frozen=True)

    scores: Dict[str, int] = Field(default_factory=dict)
    certifications: Optional[Tuple[str, ...]] = None
    insights: Optional[Tuple[str, ...]] = None
    recommendations: Optional[Tuple[str, ...]] = None


def strip_code_fences(text: str) -> str:
    t = (text or "").strip()
    m = _JSON_BLOCK_RE.search(t)
    if m:
        return m.group(1).strip()
    return t


def _load_object(body: str) -> Dict[str, Any]:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        # prose around the object: take the outermost braces
        start, end = body.find("{"), body.rfind("}")
        if start == -1 or end <= start:
            raise SchemaValidationError("AI response is not JSON")
        try:
            data = json.loads(body[start : end + 1])
        except json.JSONDecodeError as e:
            raise SchemaValidationError(f"AI response is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise SchemaValidationError("AI response is not a JSON object")
    return data


def _clean_strings(items: List[str], limit: int) -> Tuple[str, ...]:
    out = [" ".join(s.split()) for s in items if s and s.strip()]
    return tuple(out[:limit])


def validate_payload(data: Dict[str, Any]) -> AIEnrichment:
    scores: Dict[str, int] = {}
    sub = data.get("sub_scores")
    if isinstance(sub, dict):
        for name in ENVIRONMENTAL_AI_FIELDS + FOOD_AI_FIELDS:
            if name not in sub:
                continue
            try:
                scores[name] = int(round(_SCORE.validate_python(sub[name])))
            except ValidationError:
                logger.debug(f"dropping malformed AI sub-score {name}={sub[name]!r}")

    lists: Dict[str, Tuple[str, ...]] = {}
    limits = {"certifications": 20, "insights": MAX_INSIGHTS, "recommendations": MAX_RECOMMENDATIONS}
    for name in LIST_AI_FIELDS:
        if name not in data:
            continue
        try:
            items = _clean_strings(_STRINGS.validate_python(data[name]), limits[name])
        except ValidationError:
            logger.debug(f"dropping malformed AI field {name}")
            continue
        if items:
            lists[name] = items

    if not scores and not lists:
        raise SchemaValidationError("AI response contained no usable fields")
    return AIEnrichment(scores=scores, **lists)


def parse_response(text: str) -> AIEnrichment:
    """Strip fences, parse and validate a model response."""
    if not (text or "").strip():
        raise SchemaValidationError("AI response is empty")
    return validate_payload(_load_object(strip_code_fences(text)))


# --- Merge ---

def _merge_scores(
    baseline: SubScoreSet,
    fields: Tuple[str, ...],
    ai: AIEnrichment,
    sources: Dict[str, FieldSource],
    diffs: List[int],
) -> Dict[str, int]:
    scores = dict(baseline.scores)
    for name in fields:
        if name in ai.scores:
            diffs.append(abs(ai.scores[name] - baseline.scores[name]))
            scores[name] = ai.scores[name]
            sources[name] = FieldSource.AI
        else:
            sources[name] = FieldSource.HEURISTIC
    return scores


def merge_enrichment(
    facts: ProductFacts,
    environmental: Optional[SubScoreSet],
    food: Optional[SubScoreSet],
    ai: AIEnrichment,
) -> EnrichedSignals:
    """Overlay validated AI fields onto the heuristic baseline, field by field."""
    sources: Dict[str, FieldSource] = {}
    diffs: List[int] = []

    merged_env = environmental
    if environmental is not None:
        scores = _merge_scores(environmental, ENVIRONMENTAL_AI_FIELDS, ai, sources, diffs)
        overall = weighted_overall(scores)
        merged_env = environmental.model_copy(
            update={"scores": scores, "overall_score": overall, "impact_summary": impact_summary(overall)}
        )

    merged_food = food
    if food is not None:
        scores = _merge_scores(food, FOOD_AI_FIELDS, ai, sources, diffs)
        overall = int(round((scores["health_score"] + scores["sustainability_score"]) / 2))
        merged_food = food.model_copy(update={"scores": scores, "overall_score": overall})

    certifications = environmental.certifications if environmental is not None else ()
    if ai.certifications is not None:
        recognized = {c for c in (match_certification(x) for x in ai.certifications) if c}
        certifications = tuple(sorted(set(certifications) | recognized))
        sources["certifications"] = FieldSource.AI
    else:
        sources["certifications"] = FieldSource.HEURISTIC

    if ai.insights is not None:
        insights = ai.insights
        sources["insights"] = FieldSource.AI
    else:
        insights = heuristic_insights(facts, merged_env, merged_food, certifications)
        sources["insights"] = FieldSource.HEURISTIC

    if ai.recommendations is not None:
        recommendations = ai.recommendations
        sources["recommendations"] = FieldSource.AI
    else:
        recommendations = heuristic_recommendations(facts, merged_env, merged_food, certifications)
        sources["recommendations"] = FieldSource.HEURISTIC

    return EnrichedSignals(
        product_name=facts.product_name,
        environmental=merged_env,
        food=merged_food,
        certifications=certifications,
        key_insights=insights,
        action_recommendations=recommendations,
        impact_summary=merged_env.impact_summary if merged_env is not None else "",
        source=EnrichmentSource.AI,
        field_sources=sources,
        disagreement=round(sum(diffs) / len(diffs), 2) if diffs else None,
        completeness=facts.completeness(),
    )


# --- Gateway ---
# Separate from the loop default executor, which asyncio.run() joins on exit
_ENRICH_EXECUTOR = ThreadPoolExecutor(
    max_workers=int(os.getenv("ENRICH_MAX_WORKERS", "8")), thread_name_prefix="ecoscan-enrich"
)


class EnrichmentGateway:
    """Time-bounded AI enrichment. Every failure surfaces as an EnrichmentError."""

    def __init__(
        self,
        client: Any = None,
        *,
        model: str = ENRICH_MODEL,
        timeout: float = ENRICH_TIMEOUT_SEC,
        temperature: float = ENRICH_TEMPERATURE,
        max_tokens: int = ENRICH_MAX_TOKENS,
        enabled: bool = ENRICH_ENABLE,
    ):
        self._client = client
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.enabled = enabled

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise TransportError("OPENAI_API_KEY not set; AI enrichment unavailable")
        # SDK deadline matches ours and retries are off so the worker thread ends promptly
        self._client = OpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        client = self._get_client()
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APITimeoutError as e:
            raise EnrichmentTimeoutError(f"OpenAI request timed out: {e}") from e
        except openai.APIError as e:
            raise TransportError(f"OpenAI call failed: {e}") from e
        try:
            return resp.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError) as e:
            raise SchemaValidationError("Unexpected completion shape") from e

    async def enrich(
        self,
        facts: ProductFacts,
        environmental: Optional[SubScoreSet],
        food: Optional[SubScoreSet],
    ) -> EnrichedSignals:
        if not self.enabled:
            raise TransportError("AI enrichment disabled")
        messages = build_messages(facts, environmental, food)
        try:
            loop = asyncio.get_running_loop()
            call = loop.run_in_executor(_ENRICH_EXECUTOR, self._complete, messages)
            content = await asyncio.wait_for(call, timeout=self.timeout)
        except EnrichmentError:
            raise
        except asyncio.TimeoutError as e:
            raise EnrichmentTimeoutError(f"No AI response within {self.timeout}s") from e
        ai = parse_response(content)
        logger.debug(f"AI enrichment fields scores={sorted(ai.scores)} lists={[k for k in LIST_AI_FIELDS if getattr(ai, k)]}")
        return merge_enrichment(facts, environmental, food, ai)


__all__ = [
    "EnrichmentGateway",
    "AIEnrichment",
    "build_messages",
    "parse_response",
    "strip_code_fences",
    "validate_payload",
    "merge_enrichment",
]
