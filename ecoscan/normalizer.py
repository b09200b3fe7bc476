"""Input normalization: loosely-typed product payloads -> canonical ProductFacts.

Upstream screens and product APIs send the same attribute under different
spellings (``originCountry``, ``origin_country``, ``country_of_origin``...).
Keys are first canonicalized to snake_case and then resolved through the
explicit alias tables below, so scorers only ever see ``ProductFacts``.
"""
from __future__ import annotations
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ecoscan.errors import NormalizationError
from ecoscan.logger import logger
from ecoscan.schemas import Category, NutritionFacts, ProductFacts

DEFAULT_PACKAGING = "unknown packaging"
DEFAULT_ORIGIN = "unspecified"

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "product_name": ("product_name", "name", "title", "product", "product_title"),
    "brand": ("brand", "brand_name", "brands", "manufacturer"),
    "category": ("category", "categories", "product_category", "product_type", "type"),
    "ingredients": ("ingredients", "ingredient_list", "ingredients_text", "ingredients_list"),
    "certifications": ("certifications", "certification", "certs", "labels", "eco_labels"),
    "packaging": ("packaging", "packaging_type", "packaging_description", "package", "container"),
    "materials": ("materials", "material", "material_composition"),
    "origin_country": ("origin_country", "origin", "country_of_origin", "country", "made_in", "manufacturing_country"),
    "nutrition": ("nutrition", "nutrition_facts", "nutriments", "nutrition_info", "nutritional_info"),
    "organic": ("organic", "is_organic"),
    "fair_trade": ("fair_trade", "is_fair_trade", "fairtrade"),
    "locally_sourced": ("locally_sourced", "is_locally_sourced", "local", "is_local", "locally_grown"),
    "carbon_neutral": ("carbon_neutral", "is_carbon_neutral"),
}

NUTRIENT_ALIASES: Dict[str, Tuple[str, ...]] = {
    "calories": ("calories", "energy_kcal", "kcal", "energy", "calories_per_serving"),
    "protein": ("protein", "proteins", "protein_g"),
    "carbs": ("carbs", "carbohydrates", "carbohydrate", "total_carbohydrate", "carbs_g"),
    "fat": ("fat", "fats", "total_fat", "fat_g"),
    "fiber": ("fiber", "fibre", "dietary_fiber", "fiber_g"),
    "sugar": ("sugar", "sugars", "total_sugars", "sugar_g"),
    "sodium": ("sodium", "sodium_g", "sodium_mg"),
}
SERVING_ALIASES: Tuple[str, ...] = ("serving_size", "serving", "portion", "portion_size")

# Checked in order; personal care before food so "organic shampoo" is not food
CATEGORY_KEYWORDS: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    (Category.ELECTRONICS, (
        "electronic", "phone", "laptop", "computer", "tablet", "appliance", "gadget",
        "headphone", "camera", "battery", "television", "charger",
    )),
    (Category.PERSONAL_CARE, (
        "personal care", "cosmetic", "beauty", "skincare", "skin care", "shampoo", "soap",
        "toiletr", "hygiene", "haircare", "hair care", "deodorant", "toothpaste", "lotion",
    )),
    (Category.FOOD, (
        "food", "beverage", "drink", "snack", "grocery", "fruit", "vegetable", "meat", "dairy",
        "grain", "cereal", "bakery", "produce", "salad", "seafood", "confectionery", "candy",
        "chips", "soda", "juice", "coffee", "tea", "nutrition",
    )),
)

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
_SEP_RE = re.compile(r"[\s\-]+")
_LIST_SPLIT_RE = re.compile(r"[,;\n](?![^()]*\))")
_QUANTITY_RE = re.compile(r"(-?[0-9]+(?:[.,][0-9]+)?)\s*(mg|g|kcal|kj|cal)?\b", re.IGNORECASE)
_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}
_FALSE_STRINGS = {"0", "false", "no", "n", "off", ""}


# ---------------- Key & value coercion ----------------

def canonical_key(key: Any) -> str:
    """``originCountry`` / ``Origin-Country`` / ``origin country`` -> ``origin_country``."""
    k = _CAMEL_RE.sub(r"_\1", str(key).strip())
    return _SEP_RE.sub("_", k).lower()


def _canonical_map(raw: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in raw.items():
        # first spelling wins when two keys collapse to the same canonical form
        out.setdefault(canonical_key(k), v)
    return out


def _lookup(data: Mapping[str, Any], aliases: Iterable[str]) -> Tuple[Optional[str], Any]:
    for alias in aliases:
        if alias in data and data[alias] is not None:
            return alias, data[alias]
    return None, None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = ", ".join(_text(v) for v in value if _text(v))
    return re.sub(r"\s+", " ", str(value)).strip()


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = _LIST_SPLIT_RE.split(value)
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        items = [value]
    out: List[str] = []
    for it in items:
        t = _text(it)
        if t:
            out.append(t)
    return out


def _flag(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    low = str(value).strip().lower()
    if low in _TRUE_STRINGS:
        return True
    if low in _FALSE_STRINGS:
        return False
    return None


def _quantity(value: Any, alias: str) -> Optional[float]:
    """Parse ``12``, ``"12g"``, ``"450 mg"`` into grams (kcal for energy)."""
    if value is None or isinstance(value, bool):
        return None
    unit = ""
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    else:
        m = _QUANTITY_RE.search(str(value))
        if not m:
            return None
        number = float(m.group(1).replace(",", "."))
        unit = (m.group(2) or "").lower()
    if not math.isfinite(number) or number < 0:
        return None
    if unit == "mg" or (not unit and alias.endswith("_mg")):
        number /= 1000.0
    elif unit == "kj":
        number /= 4.184
    return round(number, 4)


# ---------------- Sections ----------------

def _nutrition(data: Mapping[str, Any]) -> Optional[NutritionFacts]:
    _, nested = _lookup(data, FIELD_ALIASES["nutrition"])
    source: Mapping[str, Any] = _canonical_map(nested) if isinstance(nested, Mapping) else data
    values: Dict[str, Any] = {}
    for field, aliases in NUTRIENT_ALIASES.items():
        alias, raw = _lookup(source, aliases)
        if alias is None:
            continue
        q = _quantity(raw, alias)
        if q is not None:
            values[field] = q
    if not values:
        return None
    _, serving = _lookup(source, SERVING_ALIASES)
    if serving is None:
        _, serving = _lookup(data, SERVING_ALIASES)
    if serving is not None:
        values["serving_size"] = _text(serving) or None
    return NutritionFacts(**values)


def resolve_category(label: str) -> Optional[Category]:
    low = _SEP_RE.sub(" ", label.replace("_", " ")).lower().strip()
    if not low:
        return None
    for cat in Category:
        if low == cat.value.replace("-", " "):
            return cat
    for cat, keywords in CATEGORY_KEYWORDS:
        if any(re.search(r"\b" + re.escape(k), low) for k in keywords):
            return cat
    return Category.GENERAL


def _cert_key(cert: str) -> str:
    return re.sub(r"[\s_\-]+", " ", cert).strip()


def _infer_flags(certs: Tuple[str, ...], origin: str) -> Dict[str, bool]:
    keys = [_cert_key(c) for c in certs]
    return {
        "organic": any("organic" in k for k in keys),
        "fair_trade": any(k in ("fair trade", "fairtrade") or k.startswith("fair trade") for k in keys),
        "carbon_neutral": any("carbon neutral" in k for k in keys),
        "locally_sourced": "local" in origin.lower(),
    }


# ---------------- Public API ----------------

def normalize(raw: Any) -> ProductFacts:
    """Validate and default a raw product payload into ``ProductFacts``.

    Raises ``NormalizationError`` only when the payload has no product name
    (or is not a mapping at all); every other attribute has a default.
    """
    if isinstance(raw, ProductFacts):
        return raw
    if not isinstance(raw, Mapping):
        raise NormalizationError("Product payload must be a key/value mapping", payload_type=type(raw).__name__)

    data = _canonical_map(raw)
    provided = set()

    _, name = _lookup(data, FIELD_ALIASES["product_name"])
    product_name = _text(name)
    if not product_name:
        raise NormalizationError(keys=sorted(data)[:20])

    def field_text(field: str) -> str:
        _, v = _lookup(data, FIELD_ALIASES[field])
        t = _text(v)
        if t:
            provided.add(field)
        return t

    brand = field_text("brand")
    category_label = field_text("category")
    packaging = field_text("packaging") or DEFAULT_PACKAGING
    materials = field_text("materials")
    origin = field_text("origin_country") or DEFAULT_ORIGIN

    _, ing_raw = _lookup(data, FIELD_ALIASES["ingredients"])
    ingredients = tuple(_string_list(ing_raw))
    if ingredients:
        provided.add("ingredients")

    _, cert_raw = _lookup(data, FIELD_ALIASES["certifications"])
    certifications = tuple(sorted({c.lower() for c in _string_list(cert_raw)}))
    if certifications:
        provided.add("certifications")

    nutrition = _nutrition(data)
    if nutrition is not None:
        provided.add("nutrition")

    category = resolve_category(category_label)
    if category is None:
        category = Category.FOOD if nutrition is not None else Category.GENERAL

    inferred = _infer_flags(certifications, origin)
    flags: Dict[str, bool] = {}
    for field in ("organic", "fair_trade", "locally_sourced", "carbon_neutral"):
        _, v = _lookup(data, FIELD_ALIASES[field])
        explicit = _flag(v)
        if explicit is None:
            flags[field] = inferred[field]
        else:
            flags[field] = explicit
            provided.add(field)

    facts = ProductFacts(
        product_name=product_name,
        brand=brand,
        category=category,
        category_label=category_label,
        ingredients=ingredients,
        certifications=certifications,
        packaging=packaging,
        materials=materials,
        origin_country=origin,
        nutrition=nutrition,
        provided_fields=frozenset(provided),
        **flags,
    )
    logger.debug(
        f"normalized product='{facts.product_name}' category={facts.category.value} "
        f"completeness={facts.completeness()} food={facts.has_food_facts}"
    )
    return facts


__all__ = [
    "normalize",
    "canonical_key",
    "resolve_category",
    "FIELD_ALIASES",
    "NUTRIENT_ALIASES",
    "DEFAULT_PACKAGING",
    "DEFAULT_ORIGIN",
]
