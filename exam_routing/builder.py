"""Route sheet generation and virtual doctor promotion.

A route sheet assigns the roster employees that need one specialty to the
doctor (or the placeholder for a not yet hired doctor) of that specialty for
one contract. Sheets are stored under ``{doctorId}_{contractId}``.

Generation is full recomputation: every run rebuilds the employee list and
overwrites the stored sheet. Only per-employee progress (status and
examination date) is carried over from the sheet being replaced.

Promotion rekeys virtual sheets to a newly registered doctor. The new key is
written and the virtual key deleted in one store transaction.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from common.route_store import RouteSheetStore

from .config import config
from .criteria import specialties_match
from .models import (
    BuildResult,
    Doctor,
    Employee,
    ExaminationStatus,
    RealDoctor,
    RouteSheet,
    RouteSheetEntry,
    VirtualDoctor,
)
from .requirements import RequirementAggregator

logger = logging.getLogger(__name__)


def merge_progress(
    entries: list[RouteSheetEntry],
    previous: Iterable[RouteSheetEntry],
) -> list[RouteSheetEntry]:
    """Carry status/examination date over from previous entries by employee id."""
    progress = {
        entry.employee_id: entry
        for entry in previous
        if entry.status != ExaminationStatus.PENDING or entry.examination_date
    }
    for entry in entries:
        earlier = progress.get(entry.employee_id)
        if earlier is not None:
            entry.status = earlier.status
            entry.examination_date = earlier.examination_date
    return entries


def merge_entries(
    primary: list[RouteSheetEntry],
    secondary: Iterable[RouteSheetEntry],
) -> list[RouteSheetEntry]:
    """Union of two entry lists by employee id; primary order first.

    Progress recorded on either side is kept.
    """
    merged = list(primary)
    index = {entry.employee_id: entry for entry in merged}
    for entry in secondary:
        existing = index.get(entry.employee_id)
        if existing is None:
            merged.append(entry)
            index[entry.employee_id] = entry
        elif existing.status == ExaminationStatus.PENDING and entry.status != ExaminationStatus.PENDING:
            existing.status = entry.status
            existing.examination_date = entry.examination_date
    return merged


class RouteSheetBuilder:
    """Build, regenerate and promote route sheets for contracts."""

    def __init__(
        self,
        store: Optional[RouteSheetStore] = None,
        aggregator: Optional[RequirementAggregator] = None,
    ):
        self.store = store or RouteSheetStore(db_path=config.ROUTE_DB_PATH)
        self.aggregator = aggregator or RequirementAggregator()

    @staticmethod
    def _find_doctor(doctors: list[Doctor], specialty: str) -> Optional[Doctor]:
        for doctor in doctors:
            if specialties_match(doctor.specialty, specialty):
                return doctor
        return None

    # --- Persistence ---

    def _load(self, key: str) -> Optional[RouteSheet]:
        data = self.store.get(key)
        return RouteSheet.from_dict(data) if data else None

    def _placeholders_for(self, sheet: RouteSheet, exclude: set[str]) -> dict[str, RouteSheet]:
        """Stored virtual sheets of the contract whose specialty matches a real sheet."""
        placeholders = {}
        for key, data in self.store.list_by_contract(sheet.contract_id).items():
            if key in exclude:
                continue
            candidate = RouteSheet.from_dict(data)
            if candidate.virtual_doctor and specialties_match(sheet.specialty, candidate.specialty):
                placeholders[key] = candidate
        return placeholders

    def _write(self, sheet: RouteSheet, result: BuildResult) -> None:
        """Overwrite one sheet, keeping progress; failures are recorded, not raised.

        Writing a real sheet retires every placeholder left for its specialty
        from before the doctor was registered, in the same transaction.
        """
        try:
            previous = self._load(sheet.key)
            if previous is not None:
                merge_progress(sheet.employees, previous.employees)

            placeholders: dict[str, RouteSheet] = {}
            if not sheet.virtual_doctor:
                # Placeholders written earlier in this run are still wanted
                written = {s.key for s in result.written}
                placeholders = self._placeholders_for(sheet, exclude=written | {sheet.key})
                for placeholder in placeholders.values():
                    merge_progress(sheet.employees, placeholder.employees)

            if placeholders:
                updates: dict[str, Optional[dict]] = {key: None for key in placeholders}
                updates[sheet.key] = sheet.to_dict()
                self.store.multi_update(
                    updates,
                    details=f"replaced placeholder(s) {', '.join(sorted(placeholders))}",
                )
                logger.info(
                    f"Replaced virtual route sheet(s) {', '.join(sorted(placeholders))} with {sheet.key}"
                )
            else:
                self.store.set(sheet.key, sheet.to_dict())

            result.written.append(sheet)
            logger.info(
                f"Route sheet {sheet.key} ({sheet.specialty}"
                f"{', virtual' if sheet.virtual_doctor else ''}): "
                f"{len(sheet.employees)} employee(s)"
            )
        except Exception as e:
            result.failed[sheet.key] = str(e)
            logger.error(f"Failed to save route sheet {sheet.key}: {e}")

    @staticmethod
    def _entries(employees: list[Employee]) -> list[RouteSheetEntry]:
        return [RouteSheetEntry.for_employee(employee) for employee in employees]

    # --- Generation ---

    def build_per_doctor(
        self,
        contract_id: str,
        roster: Iterable[Employee],
        doctors: Iterable[Doctor],
    ) -> BuildResult:
        """One route sheet per directory doctor with at least one employee.

        The chairman gets the whole roster; everyone else gets the employees
        whose requirements include the doctor's specialty.
        """
        contract_id = str(contract_id)
        roster = list(roster)
        doctors = list(doctors)
        result = BuildResult(contract_id=contract_id)
        logger.info(
            f"Building route sheets per doctor for contract {contract_id}: "
            f"{len(roster)} employee(s), {len(doctors)} doctor(s)"
        )

        assignments = self.aggregator.assign_specialties(roster)
        for doctor in doctors:
            if doctor.is_chairman:
                employees = roster
            else:
                employees = self.aggregator.employees_requiring(roster, doctor.specialty, assignments)
            if not employees:
                logger.info(f"No employees for {doctor.specialty} {doctor.name}, skipping")
                result.skipped.append(doctor.id)
                continue

            sheet = RouteSheet(
                doctor=RealDoctor(doctor_id=doctor.id),
                contract_id=contract_id,
                specialty=doctor.specialty,
                employees=self._entries(employees),
            )
            self._write(sheet, result)

        logger.info(result.summary())
        return result

    def build_per_specialty(
        self,
        contract_id: str,
        roster: Iterable[Employee],
        doctors: Iterable[Doctor],
    ) -> BuildResult:
        """One route sheet per specialty the roster requires.

        Specialties with a directory doctor are addressed to that doctor;
        the rest go to a virtual doctor placeholder.
        """
        contract_id = str(contract_id)
        roster = list(roster)
        doctors = list(doctors)
        result = BuildResult(contract_id=contract_id)

        assignments = self.aggregator.assign_specialties(roster)
        required = self.aggregator.union_specialties(
            specialties for _, specialties in assignments
        )
        logger.info(
            f"Building route sheets per specialty for contract {contract_id}: "
            f"{len(required)} specialty(ies): {', '.join(required)}"
        )

        # Several specialties can land on the same doctor
        sheets: dict[str, RouteSheet] = {}
        for specialty in required:
            employees = self.aggregator.employees_requiring(roster, specialty, assignments)
            if not employees:
                result.skipped.append(specialty)
                continue

            doctor = self._find_doctor(doctors, specialty)
            if doctor is not None:
                ref = RealDoctor(doctor_id=doctor.id)
            else:
                ref = VirtualDoctor(specialty=specialty)
                logger.info(f"No doctor for {specialty}, assigning virtual doctor")

            sheet = RouteSheet(
                doctor=ref,
                contract_id=contract_id,
                specialty=specialty,
                employees=self._entries(employees),
            )
            if sheet.key in sheets:
                existing = sheets[sheet.key]
                existing.employees = merge_entries(existing.employees, sheet.employees)
            else:
                sheets[sheet.key] = sheet

        for sheet in sheets.values():
            self._write(sheet, result)

        logger.info(result.summary())
        return result

    # --- Promotion ---

    def promote_virtual_doctor(self, contract_id: str, new_doctor: Doctor) -> list[RouteSheet]:
        """Rekey matching virtual sheets of a contract to a newly registered doctor.

        All rekeys are applied in a single multi-key update. If the doctor
        already has a sheet for the contract, employees are merged into it.

        Raises:
            RouteStoreError: If the update fails; nothing is applied then and
                the whole promotion can be retried.
        """
        contract_id = str(contract_id)
        stored = self.store.list_by_contract(contract_id)

        updates: dict[str, Optional[dict]] = {}
        promoted: dict[str, RouteSheet] = {}
        for key, data in stored.items():
            sheet = RouteSheet.from_dict(data)
            if not sheet.virtual_doctor:
                continue
            if not specialties_match(sheet.specialty, new_doctor.specialty):
                continue

            target = promoted.get(f"{new_doctor.id}_{contract_id}")
            if target is None:
                target = sheet.promoted_to(new_doctor)
                if target.key in stored:
                    existing = RouteSheet.from_dict(stored[target.key])
                    target.employees = merge_entries(existing.employees, target.employees)
                    target.created_at = existing.created_at
            else:
                target.employees = merge_entries(target.employees, sheet.employees)

            promoted[target.key] = target
            updates[key] = None
            logger.info(f"Promoting virtual route sheet {key} to {target.key}")

        if not updates:
            logger.info(
                f"No virtual route sheets for {new_doctor.specialty} in contract {contract_id}"
            )
            return []

        for key, sheet in promoted.items():
            updates[key] = sheet.to_dict()

        self.store.multi_update(
            updates,
            details=f"promoted to doctor {new_doctor.id} ({new_doctor.specialty})",
        )
        return list(promoted.values())

    # --- Progress ---

    def mark_examined(
        self,
        contract_id: str,
        doctor_id: str,
        employee_id: str,
        status: ExaminationStatus = ExaminationStatus.EXAMINED,
        examination_date: Optional[str] = None,
    ) -> bool:
        """Record an employee's progress on one sheet. False if not found."""
        key = f"{doctor_id}_{contract_id}"
        sheet = self._load(key)
        if sheet is None:
            logger.warning(f"Route sheet {key} not found")
            return False

        for entry in sheet.employees:
            if entry.employee_id == str(employee_id):
                entry.status = status
                entry.examination_date = examination_date or date.today().isoformat()
                self.store.set(key, sheet.to_dict())
                logger.info(f"Employee {employee_id} marked {status.value} on {key}")
                return True

        logger.warning(f"Employee {employee_id} is not on route sheet {key}")
        return False

    def route_sheets_for_contract(self, contract_id: str) -> list[RouteSheet]:
        return [
            RouteSheet.from_dict(data)
            for data in self.store.list_by_contract(str(contract_id)).values()
        ]

    def route_sheets_for_doctor(self, contract_id: str, doctor: Doctor) -> list[RouteSheet]:
        """Sheets addressed to the doctor, plus virtual sheets of their specialty."""
        return [
            sheet
            for sheet in self.route_sheets_for_contract(contract_id)
            if (not sheet.virtual_doctor and sheet.doctor_id == doctor.id)
            or (sheet.virtual_doctor and specialties_match(sheet.specialty, doctor.specialty))
        ]

    def contract_progress(self, contract_id: str) -> dict:
        """Examination progress per sheet and in total for a contract."""
        sheets = self.route_sheets_for_contract(contract_id)
        totals = {status.value: 0 for status in ExaminationStatus}
        per_sheet = []
        for sheet in sheets:
            counts = sheet.count_by_status()
            for status, count in counts.items():
                totals[status] += count
            per_sheet.append({
                "key": sheet.key,
                "specialty": sheet.specialty,
                "virtualDoctor": sheet.virtual_doctor,
                "total": len(sheet.employees),
                **counts,
            })

        return {
            "contractId": str(contract_id),
            "sheets": per_sheet,
            "virtualSheets": sum(1 for sheet in sheets if sheet.virtual_doctor),
            "total": sum(len(sheet.employees) for sheet in sheets),
            **totals,
        }
