"""Module-level entry points backed by the packaged catalog and default store."""

from functools import lru_cache
from typing import Iterable, Optional, Union

from common.route_store import RouteSheetStore

from .builder import RouteSheetBuilder
from .config import config
from .models import BuildResult, Doctor, Employee, HazardRule, RouteSheet
from .personalizer import ResearchPersonalizer
from .requirements import RequirementAggregator
from .resolver import HazardTextResolver


@lru_cache(maxsize=1)
def get_aggregator() -> RequirementAggregator:
    """Shared aggregator over the default catalog."""
    return RequirementAggregator(HazardTextResolver(), ResearchPersonalizer())


def get_builder(store: Optional[RouteSheetStore] = None) -> RouteSheetBuilder:
    return RouteSheetBuilder(
        store=store or RouteSheetStore(db_path=config.ROUTE_DB_PATH),
        aggregator=get_aggregator(),
    )


def resolve_hazard_rules(text: str) -> list[HazardRule]:
    return get_aggregator().resolver.resolve(text)


def personalize_research(text: str, employee: Employee) -> str:
    return get_aggregator().personalizer.personalize(text, employee)


def get_required_specialties(
    employee_or_roster: Union[Employee, Iterable[Employee]],
) -> list[str]:
    """Required specialties for one employee or the union for a roster."""
    aggregator = get_aggregator()
    if isinstance(employee_or_roster, Employee):
        return aggregator.required_specialties(employee_or_roster)
    return aggregator.required_specialties_for_roster(employee_or_roster)


def get_required_research(employee: Employee) -> str:
    """Required tests for one employee, "; "-separated."""
    return get_aggregator().required_research_text(employee)


def build_route_sheets_per_doctor(
    contract_id: str,
    roster: Iterable[Employee],
    doctors: Iterable[Doctor],
    store: Optional[RouteSheetStore] = None,
) -> BuildResult:
    return get_builder(store).build_per_doctor(contract_id, roster, doctors)


def build_route_sheets_per_specialty(
    contract_id: str,
    roster: Iterable[Employee],
    doctors: Iterable[Doctor],
    store: Optional[RouteSheetStore] = None,
) -> BuildResult:
    return get_builder(store).build_per_specialty(contract_id, roster, doctors)


def promote_virtual_doctor(
    contract_id: str,
    new_doctor: Doctor,
    store: Optional[RouteSheetStore] = None,
) -> list[RouteSheet]:
    return get_builder(store).promote_virtual_doctor(contract_id, new_doctor)
