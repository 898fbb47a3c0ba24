"""Hazard text resolution.

Maps an employee's free-text harmful factor description to catalog rules.

Decision Flow:
1. Empty text → no rules
2. Point references ("п. 12", "пункт 12", "п12") are authoritative:
   → one candidate with that id: take it
   → several candidates: score title words against the text around the
     reference; ties go to the profession rule, then catalog order
3. No resolvable reference → keyword fallback over the whole text,
   returning at most one rule (lowest id among the best matches)
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .catalog import RuleCatalog, load_default_catalog
from .config import config
from .models import HazardRule, RuleCategory

logger = logging.getLogger(__name__)

# Title/context words this short carry no meaning for disambiguation
MIN_CONTENT_WORD_LENGTH = 4

_POINT_RE = re.compile(
    r"(?<![а-яёa-z])(?:пункт[а-яё]*|п)\s*\.?\s*№?\s*(\d+)",
    re.IGNORECASE,
)
_WORD_RE = re.compile(r"\w+")


@dataclass(frozen=True)
class PointReference:
    """An explicit citation of a regulation point inside free text."""
    point_id: int
    start: int
    end: int
    context: str  # lowercased window around the reference


def find_point_references(text: str, window: Optional[int] = None) -> list[PointReference]:
    """Find all point references in text, in order of appearance."""
    if not text:
        return []
    window = config.CONTEXT_WINDOW_CHARS if window is None else window

    references = []
    for match in _POINT_RE.finditer(text):
        point_id = int(match.group(1))
        if point_id <= 0:
            continue
        start = max(0, match.start() - window)
        end = min(len(text), match.end() + window)
        references.append(PointReference(
            point_id=point_id,
            start=match.start(),
            end=match.end(),
            context=text[start:end].lower(),
        ))
    return references


def content_words(text: str) -> set[str]:
    """Lowercase words long enough to carry meaning."""
    return {w for w in _WORD_RE.findall(text.lower()) if len(w) >= MIN_CONTENT_WORD_LENGTH}


def score_rule_against_context(rule: HazardRule, context: str) -> int:
    """Count title words that appear in the context.

    A title word counts when it occurs inside the context, or when a context
    word occurs inside it (so "зрительно" matches "зрительнонапряженные").
    """
    context_words = content_words(context)
    score = 0
    for word in content_words(rule.title):
        if word in context or any(cw in word for cw in context_words):
            score += 1
    return score


class HazardTextResolver:
    """Resolve free-text harmful factor descriptions to catalog rules."""

    def __init__(self, catalog: Optional[RuleCatalog] = None):
        self.catalog = catalog if catalog is not None else load_default_catalog()

    def resolve(self, text: Optional[str]) -> list[HazardRule]:
        """Resolve text to an ordered, duplicate-free list of rules.

        Never raises; unexpected failures are logged and yield no rules.
        """
        if not isinstance(text, str) or not text.strip():
            return []

        try:
            rules = self._resolve_point_references(text)
            if rules:
                return rules
            return self._resolve_by_keywords(text)
        except Exception as e:
            logger.error(f"Failed to resolve hazard text {text[:50]!r}: {e}")
            return []

    def _resolve_point_references(self, text: str) -> list[HazardRule]:
        found: list[HazardRule] = []
        found_keys: set[str] = set()

        for reference in find_point_references(text):
            candidates = self.catalog.by_id(reference.point_id)
            if not candidates:
                logger.debug(f"Point {reference.point_id} is not in the catalog")
                continue

            if len(candidates) == 1:
                selected = candidates[0]
            else:
                selected = self.disambiguate(candidates, reference.context)

            if selected.unique_key not in found_keys:
                found.append(selected)
                found_keys.add(selected.unique_key)

        return found

    def disambiguate(self, candidates: list[HazardRule], context: str) -> HazardRule:
        """Pick one of several rules sharing a point id.

        Highest context score wins; ties prefer the profession category,
        then the earliest rule in catalog order.
        """
        best: Optional[HazardRule] = None
        best_rank: tuple[int, int] = (-1, -1)

        for rule in candidates:
            rank = (
                score_rule_against_context(rule, context),
                1 if rule.category == RuleCategory.PROFESSION else 0,
            )
            # Strictly greater keeps the earlier rule on a full tie
            if rank > best_rank:
                best, best_rank = rule, rank

        logger.debug(
            f"Point {candidates[0].id}: {len(candidates)} candidates, "
            f"selected {best.unique_key[:60]!r} (score {best_rank[0]})"
        )
        return best

    def _resolve_by_keywords(self, text: str) -> list[HazardRule]:
        normalized = text.lower()
        scored: list[tuple[int, HazardRule]] = []

        for rule in self.catalog:
            count = sum(1 for kw in rule.keywords if kw and kw.lower() in normalized)
            if count > 0:
                scored.append((count, rule))

        if not scored:
            return []

        max_count = max(count for count, _ in scored)
        tied = [rule for count, rule in scored if count == max_count]
        tied.sort(key=lambda r: r.id)
        return tied[:1]
