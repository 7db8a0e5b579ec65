import pytest

from hs_consolidation.core.text_utils import (
    normalize_text,
    product_text,
    tfidf_cluster_label,
    token_weight,
    tokenize,
    weighted_overlap,
    word_jaccard,
)
from hs_consolidation.models import ProductVariant


def test_tokenize_strips_punctuation_stopwords_and_short_tokens():
    assert tokenize("The Red-Wine, a Cabernet!") == ["red", "wine", "cabernet"]
    assert tokenize(None) == []


def test_normalize_text_collapses_whitespace():
    assert normalize_text("  Red \n\t Wine  ") == "Red Wine"
    assert normalize_text(None) == ""


def test_token_weight_favours_longer_tokens():
    assert token_weight("tea") == 1
    assert token_weight("wine") == 2


def test_weighted_overlap_counts_input_side_only():
    # shared: red(1) + wine(2); unshared: cabernet(2)
    score = weighted_overlap(["red", "wine", "cabernet"], {"wine", "red", "beer", "spirits"})
    assert score == pytest.approx(3 / 5)


def test_weighted_overlap_edges():
    assert weighted_overlap([], {"wine"}) == 0.0
    assert weighted_overlap(["wine"], set()) == 0.0
    assert weighted_overlap(["wine", "wine"], {"wine"}) == 1.0


def test_word_jaccard():
    assert word_jaccard("Leather Wallet", "leather goods") == pytest.approx(1 / 3)
    assert word_jaccard("", "anything") == 0.0


def test_tfidf_label_prefers_shared_terms():
    label = tfidf_cluster_label(["Red Wine Cabernet", "Red Wine Merlot"])
    assert label.startswith("Red Wine")
    assert len(label.split()) == 3


def test_tfidf_label_empty_input():
    assert tfidf_cluster_label([]) == "misc"
    assert tfidf_cluster_label(["", "   "]) == "misc"


def test_tfidf_label_only_stopwords_is_misc():
    assert tfidf_cluster_label(["the and", "of the"]) == "misc"


def test_product_text_includes_string_attributes_only():
    p = ProductVariant(
        id="1",
        name="Bordeaux Red",
        description="Dry red wine",
        attributes={"origin": "France", "volume": 750, "blank": "  "},
    )
    text = product_text(p)
    assert text == "Bordeaux Red Dry red wine origin: France"
