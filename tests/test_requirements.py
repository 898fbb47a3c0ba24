"""Tests for required specialty and research aggregation."""

import pytest

from exam_routing.catalog import RuleCatalog
from exam_routing.config import BASELINE_RESEARCH, CHAIRMAN_SPECIALTY
from exam_routing.models import Employee, HazardRule, RuleCategory
from exam_routing.personalizer import ResearchPersonalizer
from exam_routing.requirements import RequirementAggregator, is_chairman_specialty
from exam_routing.resolver import HazardTextResolver

from conftest import CHROMIUM, NOW, FailingAggregator


class TestRequiredSpecialties:
    """Test per-employee and roster specialty sets."""

    def test_single_employee(self, aggregator, roster):
        assert aggregator.required_specialties(roster[0]) == [
            "Дерматовенеролог",
            "Профпатолог",
            "Терапевт",
        ]

    def test_chairman_always_included(self, aggregator, roster):
        """Empty hazard text still needs the commission chair."""
        assert aggregator.required_specialties(roster[2]) == [CHAIRMAN_SPECIALTY]

    def test_unresolvable_text(self, aggregator):
        employee = Employee(id="x", name="X", harmful_factor="работа в офисе")
        assert aggregator.required_specialties(employee) == [CHAIRMAN_SPECIALTY]

    def test_roster_union(self, aggregator, roster):
        assert aggregator.required_specialties_for_roster(roster) == [
            "Дерматовенеролог",
            "Офтальмолог",
            "Профпатолог",
            "Терапевт",
        ]

    def test_empty_roster(self, aggregator):
        assert aggregator.required_specialties_for_roster([]) == [CHAIRMAN_SPECIALTY]

    def test_specialties_canonicalized_and_deduplicated(self):
        rule = HazardRule(
            id=1,
            title="Ртуть",
            specialties=("врач-профпатолог", "Врач-терапевт", "терапевт"),
            category=RuleCategory.CHEMICAL,
            keywords=("ртуть",),
        )
        aggregator = RequirementAggregator(HazardTextResolver(RuleCatalog([rule])), now=NOW)
        employee = Employee(id="x", name="X", harmful_factor="ртуть")
        assert aggregator.required_specialties(employee) == ["Профпатолог", "Терапевт"]

    def test_union_specialties(self):
        assert RequirementAggregator.union_specialties([
            ["Терапевт", "Хирург"],
            ["терапевт", "Офтальмолог"],
        ]) == ["Офтальмолог", "Профпатолог", "Терапевт", "Хирург"]


class TestRequiredResearch:
    """Test per-employee test lists."""

    def test_baseline_only(self, aggregator, roster):
        assert aggregator.required_research(roster[2]) == BASELINE_RESEARCH

    def test_baseline_plus_rule_tests(self, aggregator, roster):
        assert aggregator.required_research(roster[0]) == BASELINE_RESEARCH + [
            "Спирометрия",
            "цитологическое исследование мокроты",
        ]

    def test_personalized(self, aggregator, roster):
        """12 years of experience and a recent exam: tonometry, no biomicroscopy."""
        assert aggregator.required_research(roster[1])[len(BASELINE_RESEARCH):] == [
            "Острота зрения",
            "рефрактометрия",
            "тонометрия",
        ]

    def test_no_duplicate_tests(self):
        rule = HazardRule(
            id=1,
            title="Ртуть",
            specialties=("Терапевт",),
            keywords=("ртуть",),
            research="ЭКГ (Электрокардиография), Флюорография, спирометрия, Спирометрия",
        )
        aggregator = RequirementAggregator(HazardTextResolver(RuleCatalog([rule])), now=NOW)
        employee = Employee(id="x", name="X", harmful_factor="ртуть")
        assert aggregator.required_research(employee) == BASELINE_RESEARCH + ["спирометрия"]

    def test_research_text(self, aggregator, roster):
        assert aggregator.required_research_text(roster[0]).endswith(
            "Флюорография; Спирометрия; цитологическое исследование мокроты"
        )

    def test_requirements_bundle(self, aggregator, roster):
        requirements = aggregator.requirements_for(roster[0])
        assert requirements.employee_id == "e1"
        assert requirements.rules == [CHROMIUM]
        assert "Терапевт" in requirements.specialties
        assert requirements.to_dict()["rules"] == [CHROMIUM.unique_key]


class TestEmployeesRequiring:
    """Test roster selection per specialty."""

    def test_specialty_subset(self, aggregator, roster):
        assert [e.id for e in aggregator.employees_requiring(roster, "Терапевт")] == ["e1"]
        assert [e.id for e in aggregator.employees_requiring(roster, "врач-офтальмолог")] == ["e2"]
        assert aggregator.employees_requiring(roster, "Хирург") == []

    def test_chairman_sees_everyone(self, aggregator, roster):
        assert aggregator.employees_requiring(roster, "Врач-профпатолог") == roster

    def test_failing_employee_excluded(self, resolver, roster):
        aggregator = FailingAggregator(resolver, ResearchPersonalizer(), now=NOW)
        broken = Employee(id="broken", name="?", harmful_factor="п. 12 хром")
        selected = aggregator.employees_requiring(roster + [broken], "Дерматовенеролог")
        assert [e.id for e in selected] == ["e1"]

    def test_assign_specialties(self, resolver, roster):
        aggregator = FailingAggregator(resolver, ResearchPersonalizer(), now=NOW)
        broken = Employee(id="broken", name="?", harmful_factor="п. 12 хром")

        assignments = aggregator.assign_specialties(roster + [broken])

        assert [(e.id, specialties) for e, specialties in assignments] == [
            ("e1", ["Дерматовенеролог", "Профпатолог", "Терапевт"]),
            ("e2", ["Офтальмолог", "Профпатолог"]),
            ("e3", ["Профпатолог"]),
        ]

    def test_precomputed_assignments_are_used(self, aggregator, roster):
        """Selection reads the given assignments instead of resolving again."""
        assignments = [(roster[2], ["Профпатолог", "Терапевт"])]
        selected = aggregator.employees_requiring(roster, "Терапевт", assignments)
        assert [e.id for e in selected] == ["e3"]

    def test_failing_employee_raises_directly(self, resolver):
        aggregator = FailingAggregator(resolver, ResearchPersonalizer(), now=NOW)
        with pytest.raises(RuntimeError):
            aggregator.required_specialties(Employee(id="broken", name="?"))


class TestChairman:
    def test_is_chairman_specialty(self):
        assert is_chairman_specialty("Профпатолог") is True
        assert is_chairman_specialty("врач-профпатолог") is True
        assert is_chairman_specialty("Терапевт") is False
        assert is_chairman_specialty(None) is False
