"""Requirement aggregation.

Unions resolver output into the set of doctor specialties and tests an
employee (or a whole roster) needs. The commission chair and the baseline
tests are always included, even for empty hazard text.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from .config import BASELINE_RESEARCH, CHAIRMAN_SPECIALTY
from .criteria import canonical_specialty, normalize_specialty, specialties_match
from .models import Employee, EmployeeRequirements, HazardRule
from .personalizer import ResearchPersonalizer, split_research
from .resolver import HazardTextResolver

logger = logging.getLogger(__name__)


def is_chairman_specialty(specialty: Optional[str]) -> bool:
    return specialties_match(specialty, CHAIRMAN_SPECIALTY)


def _add_unique(target: list[str], seen: set[str], value: Optional[str]) -> None:
    key = normalize_specialty(value)
    if key and key not in seen:
        seen.add(key)
        target.append(value)


class RequirementAggregator:
    """Compute required specialties and research per employee or roster."""

    def __init__(
        self,
        resolver: Optional[HazardTextResolver] = None,
        personalizer: Optional[ResearchPersonalizer] = None,
        now: Optional[datetime] = None,
    ):
        self.resolver = resolver or HazardTextResolver()
        self.personalizer = personalizer or ResearchPersonalizer()
        self.now = now

    def rules_for(self, employee: Employee) -> list[HazardRule]:
        return self.resolver.resolve(employee.harmful_factor)

    def _specialties_from_rules(self, rules: Iterable[HazardRule]) -> list[str]:
        specialties: list[str] = []
        seen: set[str] = set()
        _add_unique(specialties, seen, CHAIRMAN_SPECIALTY)
        for rule in rules:
            for specialty in rule.specialties:
                _add_unique(specialties, seen, canonical_specialty(specialty))
        return sorted(specialties)

    def _research_from_rules(self, rules: Iterable[HazardRule], employee: Employee) -> list[str]:
        research: list[str] = []
        seen: set[str] = set()
        for test in BASELINE_RESEARCH:
            _add_unique(research, seen, test)
        for rule in rules:
            personalized = self.personalizer.personalize(rule.research, employee, now=self.now)
            for test in split_research(personalized):
                _add_unique(research, seen, test)
        return research

    def required_specialties(self, employee: Employee) -> list[str]:
        """Chairman plus every specialty of every resolved rule, sorted."""
        return self._specialties_from_rules(self.rules_for(employee))

    @staticmethod
    def union_specialties(specialty_lists: Iterable[Iterable[str]]) -> list[str]:
        """Chairman plus the union of several specialty lists, sorted."""
        specialties: list[str] = []
        seen: set[str] = set()
        _add_unique(specialties, seen, CHAIRMAN_SPECIALTY)
        for specialty_list in specialty_lists:
            for specialty in specialty_list:
                _add_unique(specialties, seen, specialty)
        return sorted(specialties)

    def required_specialties_for_roster(self, roster: Iterable[Employee]) -> list[str]:
        """Union of required specialties across a roster, sorted."""
        return self.union_specialties(self.required_specialties(e) for e in roster)

    def required_research(self, employee: Employee) -> list[str]:
        """Baseline tests plus personalized tests of every resolved rule."""
        return self._research_from_rules(self.rules_for(employee), employee)

    def required_research_text(self, employee: Employee) -> str:
        return "; ".join(self.required_research(employee))

    def requirements_for(self, employee: Employee) -> EmployeeRequirements:
        """Resolve once and bundle rules, specialties and research."""
        rules = self.rules_for(employee)
        return EmployeeRequirements(
            employee_id=employee.id,
            rules=rules,
            specialties=self._specialties_from_rules(rules),
            research=self._research_from_rules(rules, employee),
        )

    def assign_specialties(self, roster: Iterable[Employee]) -> list[tuple[Employee, list[str]]]:
        """Required specialties per employee.

        An employee whose requirements cannot be computed is logged and left
        out; the rest of the roster is unaffected.
        """
        assignments = []
        for employee in roster:
            try:
                assignments.append((employee, self.required_specialties(employee)))
            except Exception as e:
                logger.warning(
                    f"Excluding employee {getattr(employee, 'id', '?')} from specialty routing: {e}"
                )
        return assignments

    def employees_requiring(
        self,
        roster: Iterable[Employee],
        specialty: str,
        assignments: Optional[list[tuple[Employee, list[str]]]] = None,
    ) -> list[Employee]:
        """Roster subset that must see a doctor of the given specialty.

        The chairman sees everyone. Pass ``assignments`` from
        ``assign_specialties`` to avoid resolving the roster again.
        """
        roster = list(roster)
        if is_chairman_specialty(specialty):
            return roster

        if assignments is None:
            assignments = self.assign_specialties(roster)
        return [
            employee
            for employee, required in assignments
            if any(specialties_match(specialty, s) for s in required)
        ]
