"""Hazard rule catalog.

The catalog is the regulatory list of harmful production factors and
professions. Each row names the doctors that take part in the exam and the
laboratory / functional tests to perform. Point numbers repeat across
sections (chemical substances, physical factors, professions...), so a rule
is identified by ``unique_key`` rather than by ``id``.

Rows are normalized on load:
- doctor names are mapped onto the canonical dictionary, other strings dropped
- a doctor list trailing the title is split off the title
- keywords are generated from the title when the row has none
- category is inferred from the title when the row has none
"""

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from .config import (
    DOCTOR_MARKERS,
    KEYWORD_STOP_WORDS,
    MAX_GENERATED_KEYWORDS,
    config,
)
from .criteria import canonical_specialty, is_known_doctor
from .models import CATEGORY_ORDER, HazardRule, RuleCategory

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3

_DOCTOR_MARKER_RE = re.compile(
    "|".join(re.escape(marker) for marker in DOCTOR_MARKERS),
    re.IGNORECASE,
)
_NON_WORD_RE = re.compile(r"[^a-zа-яё0-9\s]", re.IGNORECASE)

_PHYSICAL_MARKERS = (
    "шум", "вибрация", "ультразвук", "инфразвук", "электромагнитное",
    "ионизирующее", "лазерное", "ультрафиолетовое", "инфракрасное",
    "температура", "освещение",
)
_BIOLOGICAL_MARKERS = (
    "микроорганизмы", "бактерии", "вирусы", "грибы", "биологические",
)


def determine_category(title: str) -> RuleCategory:
    """Infer the rule category from its title. Defaults to chemical."""
    lower = title.lower()

    if (
        lower.startswith("профессии и работы")
        or lower.startswith("профессия")
        or ("работы, связанные" in lower and "химические" not in lower)
        or "военизированной охраны" in lower
        or "охранных структур" in lower
    ):
        return RuleCategory.PROFESSION

    if any(marker in lower for marker in _PHYSICAL_MARKERS):
        return RuleCategory.PHYSICAL

    if any(marker in lower for marker in _BIOLOGICAL_MARKERS):
        return RuleCategory.BIOLOGICAL

    return RuleCategory.CHEMICAL


def make_keywords(title: str) -> tuple[str, ...]:
    """Generate lowercase keywords from a rule title."""
    if not title:
        return ()
    words = _NON_WORD_RE.sub(" ", title.lower()).split()
    keywords: list[str] = []
    for word in words:
        if len(word) < 3 or word in KEYWORD_STOP_WORDS or word in keywords:
            continue
        keywords.append(word)
        if len(keywords) == MAX_GENERATED_KEYWORDS:
            break
    return tuple(keywords)


def _split_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in re.split(r"[,;]", value) if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


def _canonical_specialties(values: Iterable[str]) -> list[str]:
    specialties: list[str] = []
    for value in values:
        if not is_known_doctor(value):
            continue
        name = canonical_specialty(value)
        if name and name not in specialties:
            specialties.append(name)
    return specialties


def rule_from_row(row: dict[str, Any]) -> Optional[HazardRule]:
    """Build one rule from a raw table row, or None if the row is unusable."""
    full_title = str(row.get("title") or "").strip()
    if len(full_title) < MIN_TITLE_LENGTH or full_title.isdigit():
        return None

    try:
        point_id = int(row.get("id"))
    except (TypeError, ValueError):
        logger.warning(f"Skipping catalog row with invalid point id: {row.get('id')!r}")
        return None
    if point_id <= 0:
        return None

    specialties = _canonical_specialties(_split_list(row.get("specialties")))

    # Older tables keep the doctor list at the end of the title
    marker = _DOCTOR_MARKER_RE.search(full_title)
    if not specialties and marker:
        tail = full_title[marker.start():]
        specialties = _canonical_specialties(
            m.group(0) for m in _DOCTOR_MARKER_RE.finditer(tail)
        )

    if not specialties:
        logger.debug(f"Skipping catalog row {point_id}: no doctors")
        return None

    title = full_title[:marker.start()].strip(" ,;:") if marker else full_title
    if len(title) < MIN_TITLE_LENGTH:
        return None

    category_value = row.get("category")
    try:
        category = RuleCategory(category_value) if category_value else determine_category(title)
    except ValueError:
        category = determine_category(title)

    keywords = tuple(k.lower() for k in _split_list(row.get("keywords"))) or make_keywords(title)

    return HazardRule(
        id=point_id,
        title=title,
        specialties=tuple(specialties),
        category=category,
        keywords=keywords,
        research=str(row.get("research") or "").strip(),
        contraindications=str(row.get("contraindications") or "").strip(),
    )


class RuleCatalog:
    """Ordered, read-only collection of hazard rules."""

    def __init__(self, rules: Iterable[HazardRule]):
        self._rules: tuple[HazardRule, ...] = tuple(rules)
        self._by_id: dict[int, list[HazardRule]] = {}
        self._by_key: dict[str, HazardRule] = {}
        for rule in self._rules:
            self._by_id.setdefault(rule.id, []).append(rule)
            self._by_key.setdefault(rule.unique_key, rule)

    @classmethod
    def from_rows(cls, rows: Iterable[dict[str, Any]]) -> "RuleCatalog":
        """Normalize raw table rows into a catalog.

        Duplicates by unique key are dropped; rules are ordered by category
        and then by point id.
        """
        rules: list[HazardRule] = []
        seen: set[str] = set()
        skipped = 0
        for row in rows:
            rule = rule_from_row(row)
            if rule is None:
                skipped += 1
                continue
            if rule.unique_key in seen:
                continue
            seen.add(rule.unique_key)
            rules.append(rule)

        rules.sort(key=lambda r: (CATEGORY_ORDER[r.category], r.id))
        if skipped:
            logger.info(f"Catalog load skipped {skipped} unusable row(s)")
        return cls(rules)

    @classmethod
    def from_json(cls, path: str | Path) -> "RuleCatalog":
        """Load a catalog from a JSON list of rows."""
        with open(path, encoding="utf-8") as f:
            rows = json.load(f)
        catalog = cls.from_rows(rows)
        logger.info(f"Loaded {len(catalog)} hazard rule(s) from {path}")
        return catalog

    def __iter__(self) -> Iterator[HazardRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> tuple[HazardRule, ...]:
        return self._rules

    def by_id(self, point_id: int) -> list[HazardRule]:
        """All rules sharing a point number, in catalog order."""
        return list(self._by_id.get(point_id, []))

    def by_unique_key(self, unique_key: str) -> Optional[HazardRule]:
        return self._by_key.get(unique_key)

    def by_category(self, category: RuleCategory) -> list[HazardRule]:
        return [rule for rule in self._rules if rule.category == category]


@lru_cache(maxsize=1)
def load_default_catalog() -> RuleCatalog:
    """Load the configured catalog once per process."""
    return RuleCatalog.from_json(config.get_catalog_path())
