from unittest.mock import patch

import pytest

from hs_consolidation.config.settings import Settings
from hs_consolidation.core.similarity_cache import SimilarityCache
from hs_consolidation.hs import HSCatalog, HSCodeHierarchyService
from hs_consolidation.hs.hierarchy import NAVIGATION_CONFIDENCE
from hs_consolidation.models import HSCodeRequest, HSLevel


@pytest.fixture
def service(hs_nodes, categories, settings):
    return HSCodeHierarchyService(HSCatalog(hs_nodes), categories, settings=settings)


# ============================================================
# Suggestions without product text
# ============================================================

def test_category_only_returns_its_chapters(service):
    with patch.object(service, "_match_text") as match_text:
        suggestions = service.get_suggested_hs_codes(HSCodeRequest(category="beverages"))

    match_text.assert_not_called()
    assert [s.code for s in suggestions] == ["22"]
    assert suggestions[0].level == HSLevel.chapter
    assert suggestions[0].confidence == pytest.approx(0.7)
    assert suggestions[0].child_codes == ["2202", "2203", "2204", "2208"]


def test_attached_children_never_exceed_parent_confidence(service, settings):
    by_category = service.get_suggested_hs_codes(HSCodeRequest(category="beverages"))
    by_text = service.get_suggested_hs_codes(HSCodeRequest(category="beverages", name="Red Wine"))

    for s in by_category + by_text:
        assert all(c.confidence <= s.confidence for c in s.children)
        assert all(c.confidence < 1.0 for c in s.children)
    assert by_category[0].children[0].confidence == pytest.approx(settings.HS_CHAPTER_CONFIDENCE)


def test_chapter_suggestions_follow_hint_order(service):
    suggestions = service.get_suggested_hs_codes({"category": "food_products"})
    assert [s.code for s in suggestions] == ["02", "03", "04", "07", "08", "16", "19", "20", "21"]


def test_unknown_category_without_text_is_empty(service):
    assert service.get_suggested_hs_codes({"category": "toys"}) == []


def test_category_resolved_by_alternate_name(service):
    assert [s.code for s in service.get_suggested_hs_codes({"category": "Drinks"})] == ["22"]


# ============================================================
# Suggestions with product text
# ============================================================

def test_chocolate_drink_ranks_beverage_codes(service):
    suggestions = service.get_suggested_hs_codes(
        HSCodeRequest(category="beverages", name="Chocolate Drink")
    )
    codes = [s.code for s in suggestions]

    assert codes[0].startswith("22")
    assert "1806" not in codes
    assert set(codes) >= {"2202", "220290"}


def test_suggestions_sorted_filtered_and_capped(service, settings):
    suggestions = service.get_suggested_hs_codes(HSCodeRequest(category="beverages", name="Red Wine"))

    assert suggestions[0].code == "2204"
    assert len(suggestions) <= settings.HS_MAX_SUGGESTIONS
    confidences = [s.confidence for s in suggestions]
    assert confidences == sorted(confidences, reverse=True)
    assert all(settings.HS_CONFIDENCE_THRESHOLD <= c <= settings.CONFIDENCE_CEILING for c in confidences)


def test_preferred_chapter_boost(service):
    suggestions = {s.code: s.confidence for s in service.get_suggested_hs_codes(
        HSCodeRequest(category="beverages", name="Red Wine")
    )}
    # "wine" alone scores 2/3 everywhere; only chapter 22 nodes get the boost
    assert suggestions["220421"] == pytest.approx(2 / 3 + 0.1)
    assert suggestions["7013"] == pytest.approx(2 / 3)


def test_description_used_when_name_missing(service):
    suggestions = service.get_suggested_hs_codes(
        HSCodeRequest(category="ready_to_wear", description="Leather wallet")
    )
    assert suggestions[0].code in {"4202", "420231"}


def test_no_text_match_falls_back_to_chapters(service):
    suggestions = service.get_suggested_hs_codes(HSCodeRequest(category="beverages", name="Qwzx Plmok"))
    assert [s.code for s in suggestions] == ["22"]


def test_unknown_category_with_text_still_matches(service):
    suggestions = service.get_suggested_hs_codes(HSCodeRequest(category="toys", name="Red Wine"))
    assert suggestions[0].code == "2204"


def test_text_suggestions_are_cached(hs_nodes, categories, settings):
    service = HSCodeHierarchyService(
        HSCatalog(hs_nodes), categories, cache=SimilarityCache(), settings=settings
    )
    request = HSCodeRequest(category="beverages", name="Red Wine")
    with patch.object(service, "_match_text", wraps=service._match_text) as spy:
        first = service.get_suggested_hs_codes(request)
        second = service.get_suggested_hs_codes(request)

    assert spy.call_count == 1
    assert [s.code for s in first] == [s.code for s in second]


def test_threshold_from_settings(hs_nodes, categories):
    strict = HSCodeHierarchyService(
        HSCatalog(hs_nodes), categories, settings=Settings(HS_CONFIDENCE_THRESHOLD=0.9)
    )
    codes = [s.code for s in strict.get_suggested_hs_codes({"category": "beverages", "name": "Red Wine"})]
    assert codes == ["2204"]


# ============================================================
# Navigation
# ============================================================

def test_children_of_chapter(service):
    children = service.get_children("22")
    assert [c.code for c in children] == ["2202", "2203", "2204", "2208"]
    assert all(c.level == HSLevel.heading for c in children)
    assert all(c.parent == "22" for c in children)
    assert all(c.confidence == NAVIGATION_CONFIDENCE for c in children)


def test_children_of_heading_accepts_dotted_code(service):
    assert [c.code for c in service.get_children("22.04")] == ["220410", "220421"]


def test_children_of_leaf_or_unknown_code(service):
    assert service.get_children("220421") == []
    assert service.get_children("99") == []


def test_children_lookup_failure_returns_empty(service):
    with patch.object(service.catalog, "children", side_effect=RuntimeError("index corrupted")):
        assert service.get_children("22") == []


def test_get_details(service):
    details = service.get_details("2204")
    assert details.description.startswith("Wine of fresh grapes")
    assert details.child_codes == ["220410", "220421"]
    assert details.children[0].level == HSLevel.subheading
    assert details.confidence == NAVIGATION_CONFIDENCE
    assert all(c.confidence == NAVIGATION_CONFIDENCE for c in details.children)
    assert service.get_details("9999") is None


def test_from_catalog_files_uses_bundled_catalogs(settings):
    service = HSCodeHierarchyService.from_catalog_files(settings=settings)
    assert "2204" in service.catalog
    assert len(service.catalog.chapters()) > 10
