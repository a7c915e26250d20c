"""Stochastic generation of unique, rule-valid attribute combinations."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .catalog import AttributeCatalog
from .config import GenerationConfig
from .constraints import RarityCounter, explain
from .rng import DeterministicRNG
from .rules import RuleSet

LOGGER = logging.getLogger("nft.generator")

OPTIONAL_SKIP_PROBABILITY = 0.5

CombinationKey = Tuple[Tuple[str, str], ...]


class GenerationError(RuntimeError):
    """Raised when the generator cannot reach its target count."""


def combination_key(combination: Dict[str, str]) -> CombinationKey:
    """Normalized identity of a combination, independent of key order."""

    return tuple(sorted(combination.items()))


@dataclass
class GenerationStats:
    attempts: int = 0
    accepted: int = 0
    empty: int = 0
    invalid: int = 0
    duplicates: int = 0
    rejections: Counter[str] = field(default_factory=Counter)

    def summary(self) -> str:
        rejected = ",".join(f"{check}={count}" for check, count in sorted(self.rejections.items()))
        return (
            f"attempts={self.attempts} accepted={self.accepted} empty={self.empty} "
            f"invalid={self.invalid} duplicates={self.duplicates} rejected=[{rejected}]"
        )


class CombinationGenerator:
    """Sample combinations until ``target_count`` unique valid ones are accepted.

    Each instance owns the rarity counter and accepted set for a single run;
    build a new generator to run again.
    """

    def __init__(
        self,
        catalog: AttributeCatalog,
        rules: RuleSet,
        *,
        rng: Optional[DeterministicRNG] = None,
        settings: Optional[GenerationConfig] = None,
    ) -> None:
        self.catalog = catalog
        self.rules = rules
        self.rng = rng or DeterministicRNG()
        self.settings = settings or GenerationConfig()
        self.rarity = RarityCounter()
        self.stats = GenerationStats()
        self._accepted: Dict[CombinationKey, Dict[str, str]] = {}
        self._reported: set[str] = set()
        self._optional = set(rules.optional_items)
        categories = list(catalog.categories())
        for category in rules.optional_items:
            if category not in categories:
                categories.append(category)
        self.categories: Tuple[str, ...] = tuple(categories)

    # ------------------------------------------------------------------
    def capacity(self) -> int:
        """Upper bound on distinct non-empty combinations the catalog can express."""

        total = 1
        can_be_empty = True
        usable = 0
        for category in self.categories:
            count = len(self.catalog.values(category))
            if count == 0:
                continue
            usable += 1
            if category in self._optional:
                total *= count + 1
            else:
                total *= count
                can_be_empty = False
        if usable == 0:
            return 0
        return total - 1 if can_be_empty else total

    def check_feasible(self, target_count: int) -> None:
        if target_count <= 0:
            return
        for category in self.rules.mandatory_items:
            source = self.catalog.source(category)
            if not source.available:
                raise GenerationError(
                    f"Mandatory category '{category}' can never be filled: {source.problem}"
                )
        capacity = self.capacity()
        if target_count > capacity:
            raise GenerationError(
                f"Requested {target_count} combinations but the attribute folders only allow {capacity}"
            )

    # ------------------------------------------------------------------
    def sample(self) -> Dict[str, str]:
        combination: Dict[str, str] = {}
        for category in self.categories:
            if category in self._optional and self.rng.maybe(OPTIONAL_SKIP_PROBABILITY):
                continue
            source = self.catalog.source(category)
            if not source.available:
                self._report_unavailable(category, source.problem or "unavailable")
                continue
            combination[category] = self.rng.choice(source.values)
        return combination

    def _report_unavailable(self, category: str, problem: str) -> None:
        if category in self._reported:
            LOGGER.debug("skipping category '%s': %s", category, problem)
            return
        self._reported.add(category)
        LOGGER.warning("skipping category '%s' for this attempt: %s", category, problem)

    def offer(self, combination: Dict[str, str]) -> bool:
        """Validate *combination* and accept it if it is valid and new."""

        if not combination:
            self.stats.empty += 1
            return False
        violation = explain(combination, self.rules, self.rarity)
        if violation is not None:
            self.stats.invalid += 1
            self.stats.rejections[violation.check] += 1
            LOGGER.debug("rejected %s: %s", combination, violation.message)
            return False
        key = combination_key(combination)
        if key in self._accepted:
            self.stats.duplicates += 1
            return False
        self._accepted[key] = dict(combination)
        self.rarity.record(
            value for value in combination.values() if value in self.rules.rarity_limits
        )
        self.stats.accepted += 1
        return True

    def attempt_budget(self, target_count: int) -> int:
        """Total attempts allowed for *target_count*, scaled with the target."""

        return self.settings.attempts_per_item * max(target_count, 1)

    def generate(self, target_count: int) -> List[Dict[str, str]]:
        self.check_feasible(target_count)
        budget = self.attempt_budget(target_count)
        stall = 0
        while len(self._accepted) < target_count:
            if self.stats.attempts >= budget:
                raise GenerationError(
                    f"Gave up after {self.stats.attempts} attempts with "
                    f"{len(self._accepted)}/{target_count} combinations ({self.stats.summary()})"
                )
            if stall >= self.settings.stall_limit:
                raise GenerationError(
                    f"No new valid combination in {stall} consecutive attempts; "
                    f"stuck at {len(self._accepted)}/{target_count} ({self.stats.summary()})"
                )
            self.stats.attempts += 1
            if self.offer(self.sample()):
                stall = 0
            else:
                stall += 1
        LOGGER.info("generated %d combinations (%s)", len(self._accepted), self.stats.summary())
        return [dict(combination) for combination in self._accepted.values()]


def generate_combinations(
    catalog: AttributeCatalog,
    rules: RuleSet,
    target_count: int,
    *,
    rng: Optional[DeterministicRNG] = None,
    settings: Optional[GenerationConfig] = None,
) -> List[Dict[str, str]]:
    return CombinationGenerator(catalog, rules, rng=rng, settings=settings).generate(target_count)


__all__ = [
    "CombinationGenerator",
    "GenerationError",
    "GenerationStats",
    "combination_key",
    "generate_combinations",
]
