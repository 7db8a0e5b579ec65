import pytest

from hs_consolidation.analysis import (
    attribute_coverage_by_category,
    confidence_by_source,
    results_to_frame,
)
from hs_consolidation.models import CategoryResult, ProductCategory, ProductVariant, ResultSource


@pytest.fixture
def results():
    beverages = ProductCategory(id="beverages", name="Beverages")
    other = ProductCategory(id="other-products", name="Other Products")
    return [
        CategoryResult(
            category=beverages,
            variants=[ProductVariant(id="1", name="Red Wine"), ProductVariant(id="2", name="Merlot")],
            confidence=0.98,
            attributes={"beverage_type": "Alcoholic", "grapes": ["Merlot", "Cabernet"]},
            label="Red Wine Merlot",
        ),
        CategoryResult(
            category=other,
            variants=[ProductVariant(id="3", name="Widget")],
            confidence=0.3,
            source=ResultSource.fallback,
            label="Widget",
        ),
    ]


def test_results_to_frame_one_row_per_variant(results):
    df = results_to_frame(results)

    assert list(df["product_id"]) == ["1", "2", "3"]
    assert list(df["group_size"]) == [2, 2, 1]
    assert list(df["source"]) == ["heuristic", "heuristic", "fallback"]
    assert list(df["fallback_used"]) == [False, False, True]
    assert df.loc[0, "attr_grapes"] == "Merlot, Cabernet"


def test_results_to_frame_empty():
    df = results_to_frame([])
    assert df.empty
    assert "product_id" in df.columns


def test_confidence_by_source(results):
    table = confidence_by_source(results)
    assert table.loc["heuristic", "variants"] == 2
    assert table.loc["heuristic", "groups"] == 1
    assert table.loc["fallback", "mean_confidence"] == pytest.approx(0.3)


def test_attribute_coverage_by_category(results):
    coverage = attribute_coverage_by_category(results)
    assert coverage.loc["Beverages", "beverage_type"] == 100.0
    assert coverage.loc["Other Products", "beverage_type"] == 0.0
