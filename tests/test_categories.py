"""Tests for the category taxonomy and keyword suggester."""

import pytest

from keihi.extraction.categories import (
    CATEGORY_TAXONOMY,
    display_name,
    get_category_definition,
    suggest_category,
)
from keihi.models.transaction import Category


class TestTaxonomy:
    """Tests for the fixed taxonomy."""

    def test_taxonomy_follows_enum_order(self):
        assert [definition.id for definition in CATEGORY_TAXONOMY] == list(Category)

    def test_display_names(self):
        assert display_name(Category.SUPPLIES) == "消耗品費"
        assert display_name(Category.HOME_OFFICE) == "家事按分"
        assert display_name(Category.MISC) == "雑費"

    def test_keywords_are_lower_case(self):
        for definition in CATEGORY_TAXONOMY:
            for keyword in definition.keywords:
                assert keyword == keyword.lower()

    def test_fallback_has_no_keywords(self):
        assert get_category_definition(Category.MISC).keywords == ()

    def test_definitions_are_immutable(self):
        definition = get_category_definition(Category.TRAVEL)
        with pytest.raises(ValueError):
            definition.display_name = "交通費"


class TestSuggestCategory:
    """Tests for first-match keyword suggestion."""

    def test_amazon_copy_paper_is_supplies(self):
        assert suggest_category("Amazonでコピー用紙購入") == Category.SUPPLIES

    def test_case_insensitive(self):
        assert suggest_category("STARBUCKS COFFEE") == Category.ENTERTAINMENT

    def test_empty_is_misc(self):
        assert suggest_category("") == Category.MISC
        assert suggest_category(None) == Category.MISC

    def test_no_match_is_misc(self):
        assert suggest_category("セブンイレブン") == Category.MISC

    def test_earlier_category_wins(self):
        """Test first match in taxonomy order wins, not the best match."""
        # communication (wi-fi) comes before supplies (amazon)
        assert suggest_category("AmazonでWi-Fiルーター購入") == Category.COMMUNICATION
        # travel (jr) comes before supplies (ダイソー)
        assert suggest_category("JR東日本 ダイソー") == Category.TRAVEL

    def test_deterministic(self):
        text = "タクシー 深夜料金"
        assert suggest_category(text) == suggest_category(text) == Category.TRAVEL

    def test_fees(self):
        assert suggest_category("振込手数料") == Category.FEES


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
