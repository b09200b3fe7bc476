"""Environmental scoring.

Each of packaging / carbon / materials starts from a category baseline and is
moved by additive bonuses and penalties for signals found in ``ProductFacts``.
Sub-scores are clamped to [0, 100] before the weighted mean so that large
adjustments on one dimension do not compound. ``health`` is an ecosystem and
chemical-exposure proxy shown in the breakdown but not weighted.
"""
from __future__ import annotations
import os
import re
from typing import Dict, List, Optional, Tuple

from rapidfuzz import fuzz, process

from ecoscan.config import ENVIRONMENTAL_WEIGHTS
from ecoscan.health import find_flagged_additives
from ecoscan.schemas import Category, ProductFacts, SubScoreSet

CATEGORY_BASELINES: Dict[Category, Dict[str, int]] = {
    Category.FOOD: {"packaging": 55, "carbon": 60, "materials": 60, "health": 60},
    Category.ELECTRONICS: {"packaging": 45, "carbon": 35, "materials": 40, "health": 55},
    Category.PERSONAL_CARE: {"packaging": 50, "carbon": 55, "materials": 50, "health": 55},
    Category.GENERAL: {"packaging": 50, "carbon": 50, "materials": 50, "health": 60},
}

# ---------------- Certification registry ----------------
CERTIFICATION_REGISTRY: Dict[str, Tuple[str, ...]] = {
    "organic": ("usda organic", "eu organic", "certified organic", "organic certified"),
    "fair-trade": ("fairtrade", "fair trade certified", "fair trade usa"),
    "rainforest-alliance": ("rainforest alliance certified",),
    "non-gmo": ("non gmo project verified", "gmo free"),
    "fsc": ("fsc certified", "forest stewardship council"),
    "b-corp": ("certified b corporation", "bcorp"),
    "energy-star": (),
    "carbon-neutral": ("climate neutral", "carbon neutral certified"),
    "msc": ("marine stewardship council",),
    "leaping-bunny": ("cruelty free",),
    "cradle-to-cradle": ("c2c certified",),
    "epeat": (),
    "eu-ecolabel": ("ecolabel",),
    "rspo": ("roundtable on sustainable palm oil",),
}
CERTIFICATION_BONUS = 5
CERTIFICATION_BONUS_CAP = 15
CERT_MATCH_CUTOFF = float(os.getenv("CERT_MATCH_CUTOFF", "88"))


def _cert_key(label: str) -> str:
    return re.sub(r"[\s_\-]+", " ", (label or "").lower()).strip()


_ALIAS_INDEX: Dict[str, str] = {}
for _canonical, _aliases in CERTIFICATION_REGISTRY.items():
    for _alias in (_canonical,) + _aliases:
        _ALIAS_INDEX[_cert_key(_alias)] = _canonical
_ALIASES_BY_LENGTH: List[str] = sorted(_ALIAS_INDEX, key=len, reverse=True)


def _contained_certification(key: str) -> Optional[str]:
    for alias in _ALIASES_BY_LENGTH:
        if re.search(r"\b" + re.escape(alias) + r"\b", key):
            return _ALIAS_INDEX[alias]
    return None


def match_certification(label: str) -> Optional[str]:
    """Map a free-text certification onto its registry name, or ``None``.

    Exact alias first, then whole-word containment ("USDA Organic seal"),
    then a fuzzy ratio for typos ("fairtrad").
    """
    key = _cert_key(label)
    if not key:
        return None
    if key in _ALIAS_INDEX:
        return _ALIAS_INDEX[key]
    hit = _contained_certification(key)
    if hit:
        return hit
    best = process.extractOne(key, _ALIASES_BY_LENGTH, scorer=fuzz.ratio, score_cutoff=CERT_MATCH_CUTOFF)
    return _ALIAS_INDEX[best[0]] if best else None


def detect_certifications(facts: ProductFacts) -> Tuple[str, ...]:
    found = set()
    for cert in facts.certifications:
        hit = match_certification(cert)
        if hit:
            found.add(hit)
    # claims printed in the name / brand / materials text
    text = _cert_key(" ".join([facts.product_name, facts.brand, facts.materials]))
    for alias in _ALIASES_BY_LENGTH:
        if len(alias) > 3 and re.search(r"\b" + re.escape(alias) + r"\b", text):
            found.add(_ALIAS_INDEX[alias])
    return tuple(sorted(found))


# ---------------- Packaging ----------------
PACKAGING_PENALTY_KEYWORDS: Tuple[str, ...] = (
    "plastic", "single use", "styrofoam", "polystyrene", "multilayer", "multi layer",
    "laminate", "blister", "pvc", "non recyclable", "not recyclable", "sachet",
)
PACKAGING_PENALTY = 10
PACKAGING_PENALTY_CAP = 30
PACKAGING_BONUSES: Dict[str, int] = {
    "glass": 15,
    "aluminum": 10,
    "aluminium": 10,
    "cardboard": 10,
    "paper": 10,
    "recyclable": 10,
    "recycled": 10,
    "compostable": 15,
    "biodegradable": 15,
    "minimal": 10,
    "refillable": 15,
    "reusable": 15,
    "plastic free": 15,
    "bulk": 10,
}
PACKAGING_BONUS_CAP = 30
_NEGATED_RECYCLABLE = re.compile(r"\b(non|not) recyclable\b")


def _has(word: str, text: str) -> bool:
    return re.search(r"\b" + re.escape(word), text) is not None


def packaging_signals(packaging: str) -> Tuple[List[str], List[str]]:
    """Return (penalized keywords, rewarded keywords) found in a packaging description."""
    text = re.sub(r"[\-_/]+", " ", packaging.lower())
    penalties = [k for k in PACKAGING_PENALTY_KEYWORDS if _has(k, text.replace("plastic free", ""))]
    positive_text = _NEGATED_RECYCLABLE.sub("", text)
    bonuses = [k for k in PACKAGING_BONUSES if _has(k, positive_text)]
    return penalties, bonuses


def _packaging_score(base: int, facts: ProductFacts) -> int:
    penalties, bonuses = packaging_signals(facts.packaging)
    score = base
    score -= min(PACKAGING_PENALTY * len(penalties), PACKAGING_PENALTY_CAP)
    score += min(sum(PACKAGING_BONUSES[k] for k in bonuses), PACKAGING_BONUS_CAP)
    return _clamp(score)


# ---------------- Carbon ----------------
HOME_COUNTRY = os.getenv("ECOSCAN_HOME_COUNTRY", "").strip().lower()
SHIPPING_TIER_PENALTY = 5
DEFAULT_SHIPPING_TIER = 1
SHIPPING_TIERS: Dict[str, int] = {
    **{c: 3 for c in (
        "china", "india", "vietnam", "bangladesh", "indonesia", "thailand", "malaysia",
        "philippines", "pakistan", "sri lanka", "cambodia", "taiwan",
    )},
    **{c: 2 for c in (
        "brazil", "argentina", "chile", "peru", "colombia", "ecuador", "south africa", "kenya",
        "australia", "new zealand", "japan", "south korea", "turkey", "egypt",
    )},
}


def shipping_tier(facts: ProductFacts) -> int:
    """Inferred shipping-distance tier: 0 local ... 3 long haul."""
    origin = facts.origin_country.lower()
    if facts.locally_sourced or "local" in origin:
        return 0
    if HOME_COUNTRY and HOME_COUNTRY in origin:
        return 0
    for country, tier in SHIPPING_TIERS.items():
        if re.search(r"\b" + re.escape(country) + r"\b", origin):
            return tier
    return DEFAULT_SHIPPING_TIER


def _carbon_score(base: int, facts: ProductFacts) -> int:
    score = base - SHIPPING_TIER_PENALTY * shipping_tier(facts)
    if facts.locally_sourced:
        score += 10
    if facts.carbon_neutral:
        score += 15
    return _clamp(score)


# ---------------- Materials ----------------
MATERIAL_ADJUSTMENTS: Dict[str, int] = {
    "recycled": 10,
    "bamboo": 10,
    "hemp": 10,
    "organic cotton": 8,
    "sustainable wood": 8,
    "linen": 5,
    "palm oil": -10,
    "virgin plastic": -10,
    "pvc": -10,
    "leather": -5,
}
ORGANIC_MATERIAL_BONUS = 8


def _materials_score(base: int, facts: ProductFacts, certifications: Tuple[str, ...]) -> int:
    score = base
    if facts.organic:
        score += ORGANIC_MATERIAL_BONUS
    score += min(CERTIFICATION_BONUS * len(certifications), CERTIFICATION_BONUS_CAP)
    text = " ".join([facts.materials] + list(facts.ingredients)).lower()
    for word, delta in MATERIAL_ADJUSTMENTS.items():
        if _has(word, text):
            score += delta
    return _clamp(score)


def _health_score(base: int, facts: ProductFacts) -> int:
    score = base
    if facts.organic:
        score += 10
    score -= min(5 * len(find_flagged_additives(facts.ingredients)), 25)
    packaging = facts.packaging.lower()
    if re.search(r"\b(bpa|pvc)\b", packaging) and "bpa free" not in packaging.replace("-", " "):
        score -= 10
    return _clamp(score)


# ---------------- Overall ----------------

def _clamp(x: float, lo: int = 0, hi: int = 100) -> int:
    return int(max(lo, min(hi, round(x))))


def weighted_overall(scores: Dict[str, int], weights: Optional[Dict[str, float]] = None) -> int:
    weights = weights or ENVIRONMENTAL_WEIGHTS
    total = sum(weights.values())
    if total <= 0:
        return 0
    return _clamp(sum(_clamp(scores[k]) * w for k, w in weights.items()) / total)


def impact_summary(score: int) -> str:
    if score >= 80:
        return "Excellent environmental choice with minimal impact across most categories."
    if score >= 60:
        return "Good environmental choice with some areas for improvement."
    if score >= 40:
        return "Moderate environmental impact - consider alternatives when possible."
    return "High environmental impact - significant improvements needed."


def score_environment(facts: ProductFacts) -> SubScoreSet:
    base = CATEGORY_BASELINES.get(facts.category, CATEGORY_BASELINES[Category.GENERAL])
    certifications = detect_certifications(facts)
    scores = {
        "packaging": _packaging_score(base["packaging"], facts),
        "carbon": _carbon_score(base["carbon"], facts),
        "materials": _materials_score(base["materials"], facts, certifications),
        "health": _health_score(base["health"], facts),
    }
    overall = weighted_overall(scores)
    return SubScoreSet(
        dimension="environmental",
        scores=scores,
        overall_score=overall,
        certifications=certifications,
        impact_summary=impact_summary(overall),
    )


__all__ = [
    "score_environment",
    "weighted_overall",
    "impact_summary",
    "match_certification",
    "detect_certifications",
    "packaging_signals",
    "shipping_tier",
    "CATEGORY_BASELINES",
    "CERTIFICATION_REGISTRY",
]
