"""CLI runner for examination routing.

Usage:
    python -m exam_routing.runner resolve "п.12 зрительно напряженные работы"
    python -m exam_routing.runner requirements --roster roster.json
    python -m exam_routing.runner build --contract 42 --roster roster.json --doctors doctors.json
    python -m exam_routing.runner build --contract 42 --roster roster.json --doctors doctors.json --mode doctor
    python -m exam_routing.runner promote --contract 42 --doctor new_doctor.json
    python -m exam_routing.runner progress --contract 42
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from common.route_store import RouteSheetStore, RouteStoreError

from .builder import RouteSheetBuilder
from .config import CATEGORY_LABELS, config
from .models import Doctor, Employee
from .service import get_aggregator

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: If True, use DEBUG level.
    """
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def _load_json_list(path: str) -> list[dict]:
    with open(Path(path).expanduser(), encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def load_roster(path: str) -> list[Employee]:
    return [Employee.from_dict(row) for row in _load_json_list(path)]


def load_doctors(path: str) -> list[Doctor]:
    return [Doctor.from_dict(row) for row in _load_json_list(path)]


def _builder(db_path: str | None) -> RouteSheetBuilder:
    store = RouteSheetStore(db_path=db_path or config.ROUTE_DB_PATH)
    return RouteSheetBuilder(store=store, aggregator=get_aggregator())


def cmd_resolve(args: argparse.Namespace) -> int:
    rules = get_aggregator().resolver.resolve(args.text)
    if not rules:
        print("No matching hazard rules.")
        return 1

    for rule in rules:
        print(f"п. {rule.id} [{CATEGORY_LABELS[rule.category.value]}] {rule.title}")
        print(f"  Doctors:  {', '.join(rule.specialties)}")
        if rule.research:
            print(f"  Research: {rule.research}")
    return 0


def cmd_requirements(args: argparse.Namespace) -> int:
    aggregator = get_aggregator()
    roster = load_roster(args.roster)

    for employee in roster:
        requirements = aggregator.requirements_for(employee)
        print(f"{employee.name} ({employee.position or 'no position'})")
        print(f"  Harmful factor: {employee.harmful_factor or '-'}")
        print(f"  Doctors:  {', '.join(requirements.specialties)}")
        print(f"  Research: {'; '.join(requirements.research)}")

    print(f"\nContract specialties: {', '.join(aggregator.required_specialties_for_roster(roster))}")
    return 0


def cmd_build(args: argparse.Namespace) -> int:
    builder = _builder(args.db_path)
    roster = load_roster(args.roster)
    doctors = load_doctors(args.doctors) if args.doctors else []

    if args.mode == "doctor":
        result = builder.build_per_doctor(args.contract, roster, doctors)
    else:
        result = builder.build_per_specialty(args.contract, roster, doctors)

    print("=" * 60)
    for sheet in result.written:
        marker = " (virtual)" if sheet.virtual_doctor else ""
        print(f"  {sheet.key}: {sheet.specialty}{marker}, {len(sheet.employees)} employee(s)")
    for key, error in result.failed.items():
        print(f"  FAILED {key}: {error}")
    print("=" * 60)
    print(result.summary())
    return 0 if result.ok else 1


def cmd_promote(args: argparse.Namespace) -> int:
    builder = _builder(args.db_path)
    doctors = load_doctors(args.doctor)
    if len(doctors) != 1:
        print("Expected exactly one doctor record.")
        return 2

    try:
        promoted = builder.promote_virtual_doctor(args.contract, doctors[0])
    except RouteStoreError as e:
        logger.error(f"Promotion failed, nothing was changed: {e}")
        return 1

    if not promoted:
        print("No virtual route sheets to promote.")
    for sheet in promoted:
        print(f"  Promoted to {sheet.key}: {len(sheet.employees)} employee(s)")
    return 0


def cmd_progress(args: argparse.Namespace) -> int:
    builder = _builder(args.db_path)
    progress = builder.contract_progress(args.contract)
    print(json.dumps(progress, ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Examination routing - resolve hazard rules and build route sheets"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser("resolve", help="Resolve harmful factor text to hazard rules")
    resolve.add_argument("text", help="Harmful factor description")
    resolve.set_defaults(func=cmd_resolve)

    requirements = subparsers.add_parser("requirements", help="Show required doctors and tests")
    requirements.add_argument("--roster", required=True, help="Roster JSON file")
    requirements.set_defaults(func=cmd_requirements)

    build = subparsers.add_parser("build", help="Generate route sheets for a contract")
    build.add_argument("--contract", required=True, help="Contract ID")
    build.add_argument("--roster", required=True, help="Roster JSON file")
    build.add_argument("--doctors", default=None, help="Doctor directory JSON file")
    build.add_argument(
        "--mode",
        choices=["specialty", "doctor"],
        default="specialty",
        help="One sheet per required specialty (default) or per directory doctor",
    )
    build.add_argument("--db-path", default=None, help=f"Store path (default: {config.ROUTE_DB_PATH})")
    build.set_defaults(func=cmd_build)

    promote = subparsers.add_parser("promote", help="Assign virtual route sheets to a new doctor")
    promote.add_argument("--contract", required=True, help="Contract ID")
    promote.add_argument("--doctor", required=True, help="JSON file with the new doctor")
    promote.add_argument("--db-path", default=None, help="Store path")
    promote.set_defaults(func=cmd_promote)

    progress = subparsers.add_parser("progress", help="Examination progress for a contract")
    progress.add_argument("--contract", required=True, help="Contract ID")
    progress.add_argument("--db-path", default=None, help="Store path")
    progress.set_defaults(func=cmd_progress)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
