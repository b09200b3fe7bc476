import pytest

from ecoscan.errors import NormalizationError
from ecoscan.normalizer import DEFAULT_ORIGIN, DEFAULT_PACKAGING, canonical_key, normalize, resolve_category
from ecoscan.schemas import Category, ProductFacts


def test_canonical_key_variants():
    assert canonical_key("originCountry") == "origin_country"
    assert canonical_key("Origin-Country") == "origin_country"
    assert canonical_key("origin country") == "origin_country"


def test_aliases_resolve_to_same_facts():
    a = normalize({"name": "Oat Milk", "originCountry": "Sweden", "packaging_type": "carton"})
    b = normalize({"product_name": "Oat Milk", "country_of_origin": "Sweden", "packaging": "carton"})
    assert a == b
    assert a.origin_country == "Sweden"
    assert a.fingerprint() == b.fingerprint()


def test_missing_name_raises():
    with pytest.raises(NormalizationError):
        normalize({"brand": "Acme", "packaging": "glass"})
    with pytest.raises(NormalizationError):
        normalize({"name": "   "})


def test_non_mapping_raises():
    with pytest.raises(NormalizationError) as exc:
        normalize(["not", "a", "product"])
    assert exc.value.context["payload_type"] == "list"


def test_defaults_for_missing_fields():
    facts = normalize({"name": "Mystery Box"})
    assert facts.packaging == DEFAULT_PACKAGING
    assert facts.origin_country == DEFAULT_ORIGIN
    assert facts.category == Category.GENERAL
    assert facts.nutrition is None
    assert facts.completeness() == 0.0


def test_product_facts_pass_through():
    facts = ProductFacts(product_name="Already clean")
    assert normalize(facts) is facts


def test_ingredient_string_split_keeps_parentheses():
    facts = normalize({"name": "Bread", "ingredients": "flour (wheat, malted barley), water; salt"})
    assert facts.ingredients == ("flour (wheat, malted barley)", "water", "salt")


def test_nutrition_units_and_category_inference(quinoa):
    facts = normalize({"name": "Granola", "nutrition": {"sodium_mg": 250, "energy_kcal": "420 kcal", "proteins": "9 g"}})
    assert facts.category == Category.FOOD
    assert facts.nutrition.sodium == pytest.approx(0.25)
    assert facts.nutrition.calories == 420
    assert facts.nutrition.protein == 9

    facts = normalize(quinoa)
    assert facts.nutrition.sodium == pytest.approx(0.3)
    assert facts.nutrition.protein == 12


def test_top_level_nutrients_are_collected():
    facts = normalize({"name": "Cola", "sugar": "39g", "serving": "355 ml"})
    assert facts.nutrition.sugar == 39
    assert facts.nutrition.serving_size == "355 ml"


def test_resolve_category_keywords():
    assert resolve_category("Laptop computers") == Category.ELECTRONICS
    assert resolve_category("Organic shampoo") == Category.PERSONAL_CARE
    assert resolve_category("salty snacks") == Category.FOOD
    assert resolve_category("personal care") == Category.PERSONAL_CARE
    assert resolve_category("garden furniture") == Category.GENERAL
    assert resolve_category("") is None


def test_flags_explicit_and_inferred():
    facts = normalize({"name": "Coffee", "certifications": "Fair Trade Certified, USDA Organic", "organic": "no"})
    assert facts.fair_trade is True
    assert facts.organic is False
    assert "organic" in facts.provided_fields
    assert "fair_trade" not in facts.provided_fields

    facts = normalize({"name": "Honey", "origin": "local apiary"})
    assert facts.locally_sourced is True


def test_completeness_counts_provided_fields(quinoa):
    assert normalize(quinoa).completeness() == 0.75


@pytest.mark.parametrize("value", [float("nan"), float("inf"), -float("inf"), 10**400, "-3 g"])
def test_unusable_nutrient_values_are_dropped(value):
    facts = normalize({"name": "Protein Bar", "calories": value, "protein": 20})
    assert facts.nutrition.calories is None
    assert facts.nutrition.protein == 20

    facts = normalize({"name": "Protein Bar", "calories": value})
    assert facts.nutrition is None
