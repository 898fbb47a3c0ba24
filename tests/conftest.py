"""Shared fixtures for examination routing tests."""

from datetime import datetime

import pytest

from common.route_store import RouteSheetStore
from exam_routing.catalog import RuleCatalog
from exam_routing.models import Doctor, Employee, HazardRule, RuleCategory
from exam_routing.personalizer import ResearchPersonalizer
from exam_routing.requirements import RequirementAggregator
from exam_routing.resolver import HazardTextResolver

NOW = datetime(2024, 6, 1, 12, 0)

CHROMIUM = HazardRule(
    id=12,
    title="Хром шестивалентный и его соединения",
    specialties=("Профпатолог", "Терапевт", "Дерматовенеролог"),
    category=RuleCategory.CHEMICAL,
    keywords=("хром",),
    research="Спирометрия, цитологическое исследование мокроты",
)

NOISE = HazardRule(
    id=1,
    title="Шум производственный",
    specialties=("Профпатолог", "Оториноларинголог"),
    category=RuleCategory.PHYSICAL,
    keywords=("шум", "производственный"),
    research="Аудиометрия",
)

VISUAL_WORK = HazardRule(
    id=12,
    title="Профессии и работы: зрительно напряженные работы (операторы ПЭВМ)",
    specialties=("Профпатолог", "Офтальмолог"),
    category=RuleCategory.PROFESSION,
    keywords=("зрительно", "напряжен", "пэвм"),
    research=(
        "Острота зрения, рефрактометрия, при стаже более 10 лет, тонометрия, "
        "при предварительном осмотре биомикроскопия глаза"
    ),
)

HEIGHTS = HazardRule(
    id=10,
    title="Профессии и работы: работы на высоте",
    specialties=("Профпатолог", "Невропатолог"),
    category=RuleCategory.PROFESSION,
    keywords=("высоте", "верхолаз"),
    research="Острота зрения, аудиометрия",
)


class FailingAggregator(RequirementAggregator):
    """Aggregator that cannot compute requirements for one employee."""

    def rules_for(self, employee):
        if employee.id == "broken":
            raise RuntimeError("corrupted record")
        return super().rules_for(employee)


@pytest.fixture
def catalog():
    """Small catalog with one point id shared by two sections."""
    return RuleCatalog([CHROMIUM, NOISE, HEIGHTS, VISUAL_WORK])


@pytest.fixture
def resolver(catalog):
    return HazardTextResolver(catalog)


@pytest.fixture
def aggregator(resolver):
    return RequirementAggregator(resolver, ResearchPersonalizer(), now=NOW)


@pytest.fixture
def store(tmp_path):
    return RouteSheetStore(db_path=str(tmp_path / "route_sheets.db"))


@pytest.fixture
def roster():
    return [
        Employee(id="e1", name="Петров П.П.", position="Гальваник", harmful_factor="п. 12 хром"),
        Employee(
            id="e2",
            name="Сидорова А.А.",
            position="Оператор ПК",
            harmful_factor="п.12 зрительно напряженные работы",
            total_experience="12 лет",
            last_med_date="2023-09-01",
        ),
        Employee(id="e3", name="Иванов И.И.", position="Бухгалтер", harmful_factor=""),
    ]


@pytest.fixture
def doctors():
    return [
        Doctor(id="d1", name="Кузнецова Е.В.", specialty="Профпатолог", is_chairman=True),
        Doctor(id="d2", name="Смирнов О.Н.", specialty="Врач-терапевт"),
        Doctor(id="d3", name="Орлова М.С.", specialty="Офтальмолог", room_number="214"),
    ]
