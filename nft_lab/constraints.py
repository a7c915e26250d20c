"""Rule evaluation for attribute combinations."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional

from .rules import RuleSet

Combination = Mapping[str, str]


class RarityCounter:
    """Accepted occurrences per item for one generation run.

    Counts only grow; the generator is the single writer.
    """

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    def __getitem__(self, item: str) -> int:
        return self._counts[item]

    def __contains__(self, item: object) -> bool:
        return item in self._counts

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def record(self, items: Iterable[str]) -> None:
        for item in items:
            self._counts[item] += 1

    def as_dict(self) -> dict[str, int]:
        return dict(self._counts)


@dataclass(frozen=True)
class RuleViolation:
    check: str
    subject: str
    message: str


def explain(
    combination: Combination,
    rules: RuleSet,
    rarity: RarityCounter,
) -> Optional[RuleViolation]:
    """Return the first rule *combination* breaks, or ``None`` if it is valid."""

    present = set(combination.values())

    for item, required in rules.must_be_with.items():
        if item not in present:
            continue
        missing = [other for other in required if other not in present]
        if missing:
            return RuleViolation("dependency", item, f"'{item}' requires {missing}")

    for item, forbidden in rules.cannot_be_with.items():
        if item not in present:
            continue
        clashes = [other for other in forbidden if other in present]
        if clashes:
            return RuleViolation("exclusion", item, f"'{item}' cannot be with {clashes}")

    for item, limit in rules.rarity_limits.items():
        if item in present and rarity[item] >= limit:
            return RuleViolation("rarity", item, f"'{item}' reached its limit of {limit}")

    for category in rules.mandatory_items:
        if category not in combination:
            return RuleViolation("mandatory", category, f"category '{category}' is mandatory")

    for kind, name, members in rules.groups():
        hits = [member for member in members if member in present]
        if hits and len(hits) != len(members):
            missing = [member for member in members if member not in present]
            return RuleViolation("group", name, f"{kind} '{name}' is incomplete, missing {missing}")

    return None


def is_valid(combination: Combination, rules: RuleSet, rarity: RarityCounter) -> bool:
    return explain(combination, rules, rarity) is None


__all__ = [
    "Combination",
    "RarityCounter",
    "RuleViolation",
    "explain",
    "is_valid",
]
