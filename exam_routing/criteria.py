"""Employee criteria and specialty matching helpers.

Pure functions used by the personalizer, the aggregator and the route sheet
builder. None of them raise on malformed input:

- Work experience strings ("10 лет 3 месяца", "5 лет", "7") -> years as float
- Last exam date -> preliminary (first-time) or periodic exam
- Specialty names -> normalized comparison keys and canonical display names
"""

import logging
import re
from datetime import date, datetime
from typing import Optional

from .config import DOCTOR_MARKERS, config
from .models import Employee

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365

_YEARS_RE = re.compile(r"(\d+)\s*(?:лет|год|г\.?)", re.IGNORECASE)
_MONTHS_RE = re.compile(r"(\d+)\s*(?:месяц|мес\.?)", re.IGNORECASE)
_BARE_NUMBER_RE = re.compile(r"^(\d+)$")

_DOCTOR_PREFIX_RE = re.compile(r"^врач\s*-?\s*", re.IGNORECASE)

# Shorter fragments never match a doctor name by containment
MIN_PARTIAL_LENGTH = 4


# --- Experience ---

def parse_experience(value: Optional[str]) -> float:
    """Parse a work experience string into years.

    Whole years come from a number before "лет"/"год"/"г."; months from a
    number before "месяц"/"мес." and add months/12. A bare integer is years.
    Anything unparseable is 0.
    """
    if not isinstance(value, str) or not value.strip():
        return 0.0

    text = value.strip().lower()
    years = 0.0

    year_match = _YEARS_RE.search(text)
    if year_match:
        years = float(int(year_match.group(1)))
    else:
        bare = _BARE_NUMBER_RE.match(text)
        if bare:
            years = float(int(bare.group(1)))

    month_match = _MONTHS_RE.search(text)
    if month_match:
        years += int(month_match.group(1)) / 12

    return years


def employee_experience_years(employee: Employee) -> float:
    """Experience used for seniority clauses.

    Position experience wins when it parses to a positive value; otherwise
    total experience is used.
    """
    position_years = parse_experience(employee.position_experience)
    if position_years > 0:
        return position_years
    return parse_experience(employee.total_experience)


# --- Exam recency ---

def parse_exam_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime string, None when absent or malformed."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip().replace("Z", "").replace("z", "")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.combine(date.fromisoformat(text[:10]), datetime.min.time())
    except ValueError:
        logger.debug(f"Unparseable exam date: {value!r}")
        return None


def is_preliminary_exam(
    last_med_date: Optional[str],
    now: Optional[datetime] = None,
    threshold_years: Optional[int] = None,
) -> bool:
    """True if the upcoming exam counts as preliminary.

    That is the case when there is no usable last exam date or the last exam
    was more than ``threshold_years`` (default 2) before ``now``.
    """
    last_exam = parse_exam_date(last_med_date)
    if last_exam is None:
        return True

    if threshold_years is None:
        threshold_years = config.PRELIMINARY_EXAM_YEARS
    now = now or datetime.now()
    if last_exam.tzinfo is not None:
        last_exam = last_exam.replace(tzinfo=None)

    elapsed_years = (now - last_exam).total_seconds() / (DAYS_PER_YEAR * 24 * 3600)
    return elapsed_years > threshold_years


# --- Specialties ---

def normalize_specialty(name: Optional[str]) -> str:
    """Comparison key: lowercase, single spaces, no "врач-" prefix."""
    if not name:
        return ""
    text = " ".join(name.split()).lower()
    return _DOCTOR_PREFIX_RE.sub("", text).strip()


def specialties_match(first: Optional[str], second: Optional[str]) -> bool:
    """Case/whitespace-insensitive match, containment in either direction.

    "офтальмолог" matches "Врач-офтальмолог".
    """
    a = normalize_specialty(first)
    b = normalize_specialty(second)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def canonical_specialty(name: Optional[str]) -> Optional[str]:
    """Map a specialty string to its canonical doctor name.

    Exact match against the doctor dictionary first, then containment.
    Unknown names are returned cleaned and capitalized; empty input is None.
    """
    normalized = normalize_specialty(name)
    if not normalized:
        return None

    for marker in DOCTOR_MARKERS:
        if marker.lower() == normalized:
            return marker

    for marker in DOCTOR_MARKERS:
        marker_lower = marker.lower()
        if marker_lower in normalized or (
            len(normalized) >= MIN_PARTIAL_LENGTH and normalized in marker_lower
        ):
            return marker

    return normalized[0].upper() + normalized[1:]


def is_known_doctor(name: Optional[str]) -> bool:
    """True if the string names a doctor from the dictionary."""
    normalized = normalize_specialty(name)
    if not normalized:
        return False
    return any(
        marker.lower() in normalized
        or (len(normalized) >= MIN_PARTIAL_LENGTH and normalized in marker.lower())
        for marker in DOCTOR_MARKERS
    )
