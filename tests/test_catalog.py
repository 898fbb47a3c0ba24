"""Tests for hazard rule catalog normalization."""

import json

import pytest

from exam_routing.catalog import (
    RuleCatalog,
    determine_category,
    make_keywords,
    rule_from_row,
)
from exam_routing.config import DEFAULT_CATALOG_FILE
from exam_routing.models import RuleCategory


@pytest.fixture(scope="module")
def packaged():
    return RuleCatalog.from_json(DEFAULT_CATALOG_FILE)


class TestDetermineCategory:
    """Test category inference from titles."""

    def test_profession(self):
        assert determine_category("Профессии и работы: работы на высоте") == RuleCategory.PROFESSION
        assert determine_category("Работы, связанные с обслуживанием котлов") == RuleCategory.PROFESSION
        assert determine_category("Работники военизированной охраны") == RuleCategory.PROFESSION

    def test_physical(self):
        assert determine_category("Шум производственный") == RuleCategory.PHYSICAL
        assert determine_category("Вибрация локальная") == RuleCategory.PHYSICAL

    def test_biological(self):
        assert determine_category("Патогенные микроорганизмы") == RuleCategory.BIOLOGICAL

    def test_default_chemical(self):
        assert determine_category("Ртуть и ее соединения") == RuleCategory.CHEMICAL
        assert determine_category("Работы, связанные с химические веществами") == RuleCategory.CHEMICAL


class TestMakeKeywords:
    """Test keyword generation."""

    def test_drops_short_and_stop_words(self):
        assert make_keywords("Ртуть и ее соединения") == ("ртуть",)

    def test_punctuation_and_limit(self):
        keywords = make_keywords(
            "Пыль (хлопок, лен, мука, зерно), растительного и животного происхождения"
        )
        assert keywords == ("пыль", "хлопок", "лен", "мука", "зерно", "растительного")

    def test_empty(self):
        assert make_keywords("") == ()


class TestRuleFromRow:
    """Test normalization of single table rows."""

    def test_basic_row(self):
        rule = rule_from_row({
            "id": "4",
            "title": "Ртуть и ее соединения",
            "specialties": ["Профпатолог", "врач-невропатолог", "ЭКГ"],
            "research": " Ртуть в моче ",
        })
        assert rule.id == 4
        assert rule.specialties == ("Профпатолог", "Невропатолог")
        assert rule.category == RuleCategory.CHEMICAL
        assert rule.keywords == ("ртуть",)
        assert rule.research == "Ртуть в моче"
        assert rule.unique_key == "4_Ртуть и ее соединения"

    def test_specialties_as_string(self):
        rule = rule_from_row({
            "id": 5,
            "title": "Свинец и его соединения",
            "specialties": "Профпатолог, Терапевт; Гематолог",
        })
        assert rule.specialties == ("Профпатолог", "Терапевт", "Гематолог")

    def test_doctors_in_title_tail(self):
        """Doctor names trailing the title become specialties."""
        rule = rule_from_row({
            "id": 17,
            "title": "Профессии и работы: подземные работы Терапевт, Хирург, Офтальмолог",
        })
        assert rule.title == "Профессии и работы: подземные работы"
        assert rule.specialties == ("Терапевт", "Хирург", "Офтальмолог")
        assert rule.category == RuleCategory.PROFESSION

    def test_explicit_category_and_keywords(self):
        rule = rule_from_row({
            "id": 3,
            "title": "Особые условия труда",
            "specialties": ["Терапевт"],
            "category": "other",
            "keywords": "условия, ТРУДА",
        })
        assert rule.category == RuleCategory.OTHER
        assert rule.keywords == ("условия", "труда")

    def test_unknown_category_is_inferred(self):
        rule = rule_from_row({
            "id": 3,
            "title": "Шум",
            "specialties": ["Терапевт"],
            "category": "acoustic",
        })
        assert rule.category == RuleCategory.PHYSICAL

    def test_unusable_rows(self):
        assert rule_from_row({"id": 1, "title": "1"}) is None
        assert rule_from_row({"id": 1, "title": "ab", "specialties": ["Терапевт"]}) is None
        assert rule_from_row({"id": "x", "title": "Ртуть", "specialties": ["Терапевт"]}) is None
        assert rule_from_row({"id": 0, "title": "Ртуть", "specialties": ["Терапевт"]}) is None
        assert rule_from_row({"id": 2, "title": "Без врачей", "specialties": ["ЭКГ"]}) is None


class TestRuleCatalog:
    """Test catalog loading, ordering and lookups."""

    def test_dedup_and_order(self):
        rows = [
            {"id": 2, "title": "Шум производственный", "specialties": ["Терапевт"]},
            {"id": 7, "title": "Ртуть и ее соединения", "specialties": ["Терапевт"]},
            {"id": 3, "title": "Бензол", "specialties": ["Гематолог"]},
            {"id": 7, "title": "Ртуть и ее соединения", "specialties": ["Невропатолог"]},
        ]
        catalog = RuleCatalog.from_rows(rows)

        assert [r.unique_key for r in catalog] == [
            "3_Бензол",
            "7_Ртуть и ее соединения",
            "2_Шум производственный",
        ]
        # First occurrence wins
        assert catalog.by_unique_key("7_Ртуть и ее соединения").specialties == ("Терапевт",)

    def test_from_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(
            json.dumps([{"id": 1, "title": "Ртуть", "specialties": ["Терапевт"]}], ensure_ascii=False),
            encoding="utf-8",
        )
        catalog = RuleCatalog.from_json(path)
        assert len(catalog) == 1
        assert catalog.by_id(1)[0].title == "Ртуть"

    def test_packaged_catalog_skips_unusable_rows(self, packaged):
        assert len(packaged) == 29
        assert not packaged.by_id(18)
        assert not packaged.by_id(19)

    def test_packaged_catalog_shared_point_id(self, packaged):
        """Point 12 exists as a substance and as a profession."""
        rules = packaged.by_id(12)
        assert [r.category for r in rules] == [RuleCategory.CHEMICAL, RuleCategory.PROFESSION]
        assert rules[0].title == "Хром шестивалентный и его соединения"

    def test_packaged_catalog_category_order(self, packaged):
        order = [r.category for r in packaged]
        assert order == sorted(order, key=lambda c: [
            RuleCategory.CHEMICAL,
            RuleCategory.PHYSICAL,
            RuleCategory.BIOLOGICAL,
            RuleCategory.PROFESSION,
            RuleCategory.OTHER,
        ].index(c))
        assert len(packaged.by_category(RuleCategory.PHYSICAL)) == 6
        assert len(packaged.by_category(RuleCategory.BIOLOGICAL)) == 2

    def test_packaged_title_tail_row(self, packaged):
        rule = packaged.by_id(17)[0]
        assert rule.title == "Профессии и работы: подземные работы"
        assert "Хирург" in rule.specialties
