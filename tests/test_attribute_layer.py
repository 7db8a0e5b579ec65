import pytest

from hs_consolidation.core.attribute_layer import (
    candidate_value,
    extract_attributes,
    guess_storage_type,
    plurality,
)
from hs_consolidation.models import ProductCategory, ProductVariant


def _category(categories, cid):
    return next(c for c in categories if c.id == cid)


@pytest.fixture
def food(categories):
    return _category(categories, "food_products")


def test_guessed_attributes_from_names(food):
    products = [
        ProductVariant(id="1", name="Frozen Chicken Nuggets", description="Keep in freezer"),
        ProductVariant(id="2", name="Frozen Chicken Wings"),
    ]
    attrs = extract_attributes(food, products)
    assert attrs["main_ingredient"] == "Chicken"
    assert attrs["preparation_type"] == "Frozen"
    assert attrs["storage_type"] == "Frozen"
    assert "shelf_life" not in attrs


def test_explicit_attribute_beats_guess(food):
    products = [
        ProductVariant(id="1", name="Chicken Pie", attributes={"main_ingredient": "Beef"}),
        ProductVariant(id="2", name="Chicken Roll", attributes={"mainIngredient": "Beef"}),
    ]
    assert extract_attributes(food, products)["main_ingredient"] == "Beef"


def test_tied_vote_omits_attribute(food):
    products = [
        ProductVariant(id="1", name="Chicken Soup"),
        ProductVariant(id="2", name="Beef Soup"),
    ]
    assert "main_ingredient" not in extract_attributes(food, products)


def test_disallowed_value_is_dropped(food):
    definition = food.attribute("preparation_type")
    # "Smoked" is guessed but not an allowed preparation type
    assert candidate_value(ProductVariant(id="1", name="Smoked Ham"), definition) is None
    assert candidate_value(
        ProductVariant(id="2", name="Ham", attributes={"preparation_type": "canned"}), definition
    ) == "Canned"


def test_boolean_attribute_coerced(categories):
    beverages = _category(categories, "beverages")
    products = [
        ProductVariant(id="1", name="Cola", attributes={"carbonated": "yes"}),
        ProductVariant(id="2", name="Cola Zero", attributes={"carbonated": "Y"}),
    ]
    assert extract_attributes(beverages, products)["carbonated"] is True


def test_storage_guess_order():
    assert guess_storage_type("keep chilled, frozen on arrival") == "Frozen"
    assert guess_storage_type("store in a cool pantry") == "Ambient"
    assert guess_storage_type("leather wallet") is None


def test_plurality():
    assert plurality(["a", "a", "b"]) == "a"
    assert plurality(["a", "b"]) is None
    assert plurality([None, None]) is None
    assert plurality([]) is None
    assert plurality([["x", "y"], ["x", "y"], ["z"]]) == ["x", "y"]


def test_category_without_definitions_gives_no_attributes():
    bare = ProductCategory(id="bare", name="Bare")
    assert extract_attributes(bare, [ProductVariant(id="1", name="Frozen Chicken")]) == {}
