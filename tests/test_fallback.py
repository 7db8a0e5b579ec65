import pytest

from hs_consolidation.config.settings import Settings
from hs_consolidation.core.fallback import (
    FALLBACK_CONFIDENCE,
    OTHER_PRODUCTS,
    FallbackClassifier,
    category_slug,
)
from hs_consolidation.models import ProductVariant, ResultSource


@pytest.fixture
def classifier():
    return FallbackClassifier()


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Classic Corn Dog", "Corn Dogs"),
        ("Mini corndogs", OTHER_PRODUCTS),
        ("Cheddar Cheese Sticks", "Cheese Products"),
        ("Hot Pocket", "Snack Items"),
        ("Chicken Wrap", "Snack Items"),
        ("Chicken Breast", "Chicken Products"),
        ("Beef Jerky", "Beef Products"),
        ("Leather Wallet", OTHER_PRODUCTS),
    ],
)
def test_first_matching_rule_wins(classifier, name, expected):
    assert classifier.category_name(ProductVariant(id="1", name=name)) == expected


def test_results_are_marked_fallback(classifier):
    results = classifier.classify([[ProductVariant(id="1", name="Beef Jerky")]])
    assert len(results) == 1
    r = results[0]
    assert r.source == ResultSource.fallback
    assert r.fallback_used
    assert r.confidence == FALLBACK_CONFIDENCE
    assert r.category.id == "beef-products"
    assert r.attributes == {}


def test_groups_form_within_clusters(classifier):
    clusters = [
        [ProductVariant(id="1", name="Beef Jerky"), ProductVariant(id="2", name="Beef Strips")],
        [ProductVariant(id="3", name="Beef Stew")],
    ]
    results = classifier.classify(clusters)
    assert [r.variant_ids for r in results] == [["1", "2"], ["3"]]


def test_fallback_confidence_below_default_match():
    assert FALLBACK_CONFIDENCE < Settings().DEFAULT_MATCH_CONFIDENCE


def test_category_slug():
    assert category_slug("Other Products") == "other-products"
    assert category_slug("  Snack Items! ") == "snack-items"
