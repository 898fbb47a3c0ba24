"""Research personalization.

A rule's research text lists laboratory and functional tests, some of them
guarded by conditions on the employee:

    "Острота зрения, при стаже более 10 лет, тонометрия,
     при предварительном осмотре биомикроскопия глаза"

Each condition governs its segment: the text from the condition up to the
next top-level comma / semicolon (or the end). A segment either keeps only
its test name (condition met) or disappears (condition not met or not
determinable from the employee record).

Clauses are applied in the fixed order of CLAUSE_RULES. A test therefore
survives only if it passes every clause that guards it.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .criteria import employee_experience_years, is_preliminary_exam
from .models import Employee

logger = logging.getLogger(__name__)

_YEARS = r"(?:лет|год[а-яё]*|г\.?)"
_TRAILING = r"\s*,?\s*"

_SPACE_BEFORE_SEPARATOR_RE = re.compile(r"\s+([,;])")
_SEPARATOR_RUN_RE = re.compile(r"\s*[,;](?:\s*[,;])+\s*")
_EDGE_SEPARATORS_RE = re.compile(r"^[\s,;]+|[\s,;]+$")
_SPACES_RE = re.compile(r"[ \t]{2,}")


class ClauseOutcome(Enum):
    """What happens to a guarded segment."""
    KEEP_TEST = "keep_test"        # drop the condition, keep the test name
    DROP_SEGMENT = "drop_segment"  # drop condition and test


@dataclass(frozen=True)
class EmployeeContext:
    """Employee attributes the clauses can evaluate."""
    experience_years: float
    is_preliminary: bool

    @classmethod
    def for_employee(cls, employee: Employee, now: Optional[datetime] = None) -> "EmployeeContext":
        return cls(
            experience_years=employee_experience_years(employee),
            is_preliminary=is_preliminary_exam(employee.last_med_date, now=now),
        )


def _keep_if(condition: bool) -> ClauseOutcome:
    return ClauseOutcome.KEEP_TEST if condition else ClauseOutcome.DROP_SEGMENT


def _always_drop(match: re.Match, ctx: EmployeeContext) -> ClauseOutcome:
    return ClauseOutcome.DROP_SEGMENT


def _more_than(match: re.Match, ctx: EmployeeContext) -> ClauseOutcome:
    return _keep_if(ctx.experience_years > int(match.group(1)))


def _in_range(match: re.Match, ctx: EmployeeContext) -> ClauseOutcome:
    low, high = sorted((int(match.group(1)), int(match.group(2))))
    return _keep_if(low <= ctx.experience_years <= high)


def _less_than(match: re.Match, ctx: EmployeeContext) -> ClauseOutcome:
    return _keep_if(ctx.experience_years < int(match.group(1)))


def _preliminary(match: re.Match, ctx: EmployeeContext) -> ClauseOutcome:
    return _keep_if(ctx.is_preliminary)


def _repeated(match: re.Match, ctx: EmployeeContext) -> ClauseOutcome:
    return _keep_if(not ctx.is_preliminary)


@dataclass(frozen=True)
class ClauseRule:
    """One conditional clause of the research grammar."""
    name: str
    pattern: re.Pattern
    evaluate: Callable[[re.Match, EmployeeContext], ClauseOutcome]


def _clause(name: str, regex: str, evaluate) -> ClauseRule:
    return ClauseRule(name=name, pattern=re.compile(regex, re.IGNORECASE), evaluate=evaluate)


# Order matters: specific forms precede the general forms they contain
CLAUSE_RULES: tuple[ClauseRule, ...] = (
    _clause(
        "seniority_range",
        rf"при\s+стаже\s+(\d+)\s*-\s*(\d+)\s*{_YEARS}{_TRAILING}",
        _in_range,
    ),
    _clause(
        "seniority_more_than_ti",
        rf"при\s+стаже\s+более\s+(\d+)\s*-\s*ти\s*{_YEARS}{_TRAILING}",
        _more_than,
    ),
    _clause(
        "seniority_more_than",
        rf"при\s+стаже\s+более\s+(\d+)\s*{_YEARS}{_TRAILING}",
        _more_than,
    ),
    _clause(
        "underground_seniority_up_to",
        rf"для\s+подземных\s+работников\s+со\s+стажем\s+до\s+(\d+)\s*{_YEARS}{_TRAILING}",
        _always_drop,
    ),
    _clause(
        "seniority_up_to",
        rf"со\s+стажем\s+до\s+(\d+)\s*{_YEARS}{_TRAILING}",
        _less_than,
    ),
    _clause(
        "preliminary_exam",
        rf"при\s+предварительном\s+осмотре{_TRAILING}",
        _preliminary,
    ),
    _clause(
        "repeated_exam",
        rf"при\s+повторном\s+осмотре{_TRAILING}",
        _repeated,
    ),
    _clause("if_present", r"если\s+имеются\b", _always_drop),
    _clause("when_available", r"при\s+наличии\b", _always_drop),
    _clause("after_years", rf"через\s+\d+\s*{_YEARS}", _always_drop),
    _clause("times_per_years", rf"\d+\s+раз[а-яё]*\s+в\s+\d+\s*{_YEARS}", _always_drop),
)


def segment_end(text: str, start: int) -> int:
    """Index of the next top-level comma/semicolon at or after start, or len(text).

    Separators inside parentheses belong to the test name.
    """
    depth = 0
    for i in range(start, len(text)):
        char = text[i]
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char in ",;" and depth == 0:
            return i
    return len(text)


def split_research(text: str) -> list[str]:
    """Split research text into trimmed, non-empty test names."""
    if not text:
        return []
    parts = []
    start = 0
    while start <= len(text):
        end = segment_end(text, start)
        part = text[start:end].strip()
        if part:
            parts.append(part)
        start = end + 1
    return parts


def clean_separators(text: str) -> str:
    """Collapse repeated separators into ", " and trim the edges."""
    text = _SPACE_BEFORE_SEPARATOR_RE.sub(r"\1", text)
    text = _SEPARATOR_RUN_RE.sub(", ", text)
    text = _EDGE_SEPARATORS_RE.sub("", text)
    return _SPACES_RE.sub(" ", text).strip()


def apply_clause(text: str, clause: ClauseRule, ctx: EmployeeContext) -> str:
    """Apply one clause rule to every place it occurs in text."""
    # Right to left so earlier offsets stay valid
    for match in reversed(list(clause.pattern.finditer(text))):
        end = segment_end(text, match.end())
        outcome = clause.evaluate(match, ctx)
        if outcome == ClauseOutcome.KEEP_TEST:
            text = text[:match.start()] + text[match.end():end] + text[end:]
        else:
            text = text[:match.start()] + text[end:]
        logger.debug(f"Clause {clause.name}: {outcome.value} for {match.group(0).strip()!r}")
    return text


class ResearchPersonalizer:
    """Rewrite rule research text for one employee."""

    def __init__(self, clauses: tuple[ClauseRule, ...] = CLAUSE_RULES):
        self.clauses = clauses

    def personalize(
        self,
        research_text: Optional[str],
        employee: Employee,
        now: Optional[datetime] = None,
    ) -> str:
        """Return the tests applicable to the employee, "" if none remain.

        Never raises.
        """
        if not isinstance(research_text, str) or not research_text.strip():
            return ""

        try:
            ctx = EmployeeContext.for_employee(employee, now=now)
            return self.personalize_for_context(research_text, ctx)
        except Exception as e:
            logger.error(f"Failed to personalize research for employee {getattr(employee, 'id', '?')}: {e}")
            return ""

    def personalize_for_context(self, research_text: str, ctx: EmployeeContext) -> str:
        text = research_text.strip()
        for clause in self.clauses:
            text = apply_clause(text, clause, ctx)
        return clean_separators(text)
