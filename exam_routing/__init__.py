"""Occupational hazard rule resolution and examination route assignment.

Maps employees' harmful factor descriptions to the regulatory hazard list,
derives the doctors and tests each employee needs, and assigns roster
employees to doctors (or placeholders for not yet hired doctors) per contract.
"""

from .models import (
    BuildResult,
    Doctor,
    DoctorRef,
    Employee,
    EmployeeRequirements,
    ExaminationStatus,
    HazardRule,
    RealDoctor,
    RouteSheet,
    RouteSheetEntry,
    RuleCategory,
    VirtualDoctor,
)
from .catalog import RuleCatalog, load_default_catalog
from .resolver import HazardTextResolver
from .personalizer import ResearchPersonalizer
from .requirements import RequirementAggregator
from .builder import RouteSheetBuilder
from .service import (
    build_route_sheets_per_doctor,
    build_route_sheets_per_specialty,
    get_required_research,
    get_required_specialties,
    personalize_research,
    promote_virtual_doctor,
    resolve_hazard_rules,
)

__all__ = [
    # Models
    "BuildResult",
    "Doctor",
    "DoctorRef",
    "Employee",
    "EmployeeRequirements",
    "ExaminationStatus",
    "HazardRule",
    "RealDoctor",
    "RouteSheet",
    "RouteSheetEntry",
    "RuleCategory",
    "VirtualDoctor",
    # Engine
    "RuleCatalog",
    "load_default_catalog",
    "HazardTextResolver",
    "ResearchPersonalizer",
    "RequirementAggregator",
    "RouteSheetBuilder",
    # Entry points
    "build_route_sheets_per_doctor",
    "build_route_sheets_per_specialty",
    "get_required_research",
    "get_required_specialties",
    "personalize_research",
    "promote_virtual_doctor",
    "resolve_hazard_rules",
]
