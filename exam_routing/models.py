"""Data models for hazard rule resolution and route sheet assignment."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class RuleCategory(Enum):
    """Coarse classifier of a hazard rule, used for disambiguation."""
    CHEMICAL = "chemical"
    PHYSICAL = "physical"
    BIOLOGICAL = "biological"
    PROFESSION = "profession"
    OTHER = "other"


# Catalog ordering: category first, then point id
CATEGORY_ORDER = {
    RuleCategory.CHEMICAL: 1,
    RuleCategory.PHYSICAL: 2,
    RuleCategory.BIOLOGICAL: 3,
    RuleCategory.PROFESSION: 4,
    RuleCategory.OTHER: 5,
}


class ExaminationStatus(Enum):
    """Progress of one employee on one route sheet."""
    PENDING = "pending"
    EXAMINED = "examined"
    COMPLETED = "completed"


@dataclass(frozen=True)
class HazardRule:
    """One entry of the regulatory hazard list.

    ``id`` is the point number from the regulation and is shared by rules in
    different sections; ``unique_key`` is the real identity.
    """
    id: int
    title: str
    specialties: tuple[str, ...]
    category: RuleCategory = RuleCategory.CHEMICAL
    keywords: tuple[str, ...] = ()
    research: str = ""
    contraindications: str = ""

    @property
    def unique_key(self) -> str:
        return f"{self.id}_{self.title}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "uniqueKey": self.unique_key,
            "title": self.title,
            "keywords": list(self.keywords),
            "specialties": list(self.specialties),
            "research": self.research,
            "contraindications": self.contraindications,
            "category": self.category.value,
        }


@dataclass
class Employee:
    """Roster employee."""
    id: str
    name: str
    position: str = ""
    harmful_factor: str = ""
    total_experience: Optional[str] = None     # e.g. "10 лет 3 месяца"
    position_experience: Optional[str] = None  # same grammar, takes precedence
    last_med_date: Optional[str] = None        # ISO date of the last exam

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Employee":
        """Create from a camelCase roster record."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            position=data.get("position") or "",
            harmful_factor=data.get("harmfulFactor") or "",
            total_experience=data.get("totalExperience"),
            position_experience=data.get("positionExperience"),
            last_med_date=data.get("lastMedDate"),
        )


@dataclass
class Doctor:
    """Clinic doctor directory entry."""
    id: str
    name: str
    specialty: str
    room_number: Optional[str] = None
    is_chairman: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Doctor":
        """Create from a camelCase directory record."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            specialty=data.get("specialty", ""),
            room_number=data.get("roomNumber"),
            is_chairman=bool(data.get("isChairman", False)),
        )


@dataclass(frozen=True)
class RealDoctor:
    """Route sheet addressed to a registered doctor."""
    doctor_id: str

    def key_id(self, contract_id: str) -> str:
        return self.doctor_id


@dataclass(frozen=True)
class VirtualDoctor:
    """Placeholder for a specialty with no hired doctor yet."""
    specialty: str

    def key_id(self, contract_id: str) -> str:
        slug = "_".join(self.specialty.lower().split())
        return f"virtual_{slug}_{contract_id}"

    def promote(self, doctor: Doctor) -> RealDoctor:
        """Turn this placeholder into a reference to a registered doctor."""
        return RealDoctor(doctor_id=doctor.id)


DoctorRef = Union[RealDoctor, VirtualDoctor]


@dataclass
class RouteSheetEntry:
    """One employee on a route sheet."""
    employee_id: str
    name: str
    position: str = ""
    harmful_factor: str = ""
    status: ExaminationStatus = ExaminationStatus.PENDING
    examination_date: Optional[str] = None

    @classmethod
    def for_employee(cls, employee: Employee) -> "RouteSheetEntry":
        return cls(
            employee_id=employee.id,
            name=employee.name,
            position=employee.position,
            harmful_factor=employee.harmful_factor,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {
            "employeeId": self.employee_id,
            "name": self.name,
            "position": self.position,
            "harmfulFactor": self.harmful_factor,
            "status": self.status.value,
        }
        if self.examination_date:
            data["examinationDate"] = self.examination_date
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RouteSheetEntry":
        try:
            status = ExaminationStatus(data.get("status") or "pending")
        except ValueError:
            status = ExaminationStatus.PENDING
        return cls(
            employee_id=str(data["employeeId"]),
            name=data.get("name", ""),
            position=data.get("position") or "",
            harmful_factor=data.get("harmfulFactor") or "",
            status=status,
            examination_date=data.get("examinationDate"),
        )


@dataclass
class RouteSheet:
    """Assignment of a roster subset to one doctor or specialty for a contract."""
    doctor: DoctorRef
    contract_id: str
    specialty: str
    employees: list[RouteSheetEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def doctor_id(self) -> str:
        return self.doctor.key_id(self.contract_id)

    @property
    def virtual_doctor(self) -> bool:
        return isinstance(self.doctor, VirtualDoctor)

    @property
    def key(self) -> str:
        """Store key: ``{doctorId}_{contractId}``."""
        return f"{self.doctor_id}_{self.contract_id}"

    def employee_ids(self) -> set[str]:
        return {entry.employee_id for entry in self.employees}

    def promoted_to(self, doctor: Doctor) -> "RouteSheet":
        """Copy of a virtual sheet addressed to a registered doctor."""
        if not isinstance(self.doctor, VirtualDoctor):
            raise ValueError(f"Route sheet {self.key} is not virtual")
        return replace(
            self,
            doctor=self.doctor.promote(doctor),
            employees=[replace(entry) for entry in self.employees],
        )

    def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ExaminationStatus}
        for entry in self.employees:
            counts[entry.status.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored JSON document."""
        return {
            "doctorId": self.doctor_id,
            "contractId": self.contract_id,
            "specialty": self.specialty,
            "virtualDoctor": self.virtual_doctor,
            "employees": [entry.to_dict() for entry in self.employees],
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RouteSheet":
        """Create from a stored JSON document."""
        specialty = data.get("specialty", "")
        doctor: DoctorRef
        if data.get("virtualDoctor"):
            doctor = VirtualDoctor(specialty=specialty)
        else:
            doctor = RealDoctor(doctor_id=str(data["doctorId"]))

        created_at = data.get("createdAt")
        return cls(
            doctor=doctor,
            contract_id=str(data["contractId"]),
            specialty=specialty,
            employees=[RouteSheetEntry.from_dict(e) for e in data.get("employees", [])],
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
        )


@dataclass
class EmployeeRequirements:
    """Resolved examination requirements for one employee."""
    employee_id: str
    rules: list[HazardRule] = field(default_factory=list)
    specialties: list[str] = field(default_factory=list)
    research: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "employeeId": self.employee_id,
            "rules": [rule.unique_key for rule in self.rules],
            "specialties": self.specialties,
            "research": self.research,
        }


@dataclass
class BuildResult:
    """Outcome of one route sheet generation run."""
    contract_id: str
    written: list[RouteSheet] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # key -> error message
    skipped: list[str] = field(default_factory=list)      # doctors/specialties with no employees

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        virtual = sum(1 for sheet in self.written if sheet.virtual_doctor)
        return (
            f"contract {self.contract_id}: {len(self.written)} route sheet(s) written "
            f"({virtual} virtual), {len(self.skipped)} skipped, {len(self.failed)} failed"
        )
