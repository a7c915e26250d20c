"""Rule set model and loader."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Tuple

from .config import ConfigError, read_document

LOGGER = logging.getLogger("nft.rules")

RULE_KEYS: tuple[str, ...] = (
    "mustBeWith",
    "cannotBeWith",
    "rarityLimits",
    "mandatoryItems",
    "colorSchemes",
    "themeRestrictions",
    "optionalItems",
)


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class RuleSet:
    """Immutable declarative constraints for one generation run."""

    must_be_with: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _frozen({}))
    cannot_be_with: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _frozen({}))
    rarity_limits: Mapping[str, int] = field(default_factory=lambda: _frozen({}))
    mandatory_items: Tuple[str, ...] = ()
    color_schemes: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _frozen({}))
    theme_restrictions: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _frozen({}))
    optional_items: Tuple[str, ...] = ()

    def groups(self) -> Iterable[Tuple[str, str, Tuple[str, ...]]]:
        """Yield ``(kind, name, members)`` for every all-or-nothing group."""

        for name, members in self.color_schemes.items():
            yield "colorSchemes", name, members
        for name, members in self.theme_restrictions.items():
            yield "themeRestrictions", name, members

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "RuleSet":
        unknown = sorted(set(raw) - set(RULE_KEYS))
        if unknown:
            LOGGER.warning("ignoring unknown rule keys: %s", ", ".join(unknown))
        return cls(
            must_be_with=_frozen(_item_lists(raw, "mustBeWith")),
            cannot_be_with=_frozen(_item_lists(raw, "cannotBeWith")),
            rarity_limits=_frozen(_limits(raw)),
            mandatory_items=_names(raw, "mandatoryItems"),
            color_schemes=_frozen(_item_lists(raw, "colorSchemes")),
            theme_restrictions=_frozen(_item_lists(raw, "themeRestrictions")),
            optional_items=_names(raw, "optionalItems"),
        )


def _names(raw: Mapping[str, Any], key: str) -> Tuple[str, ...]:
    value = raw.get(key) or []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigError(f"Rule '{key}' must be a list of names, got {value!r}")
    return tuple(str(item) for item in value)


def _item_lists(raw: Mapping[str, Any], key: str) -> dict[str, Tuple[str, ...]]:
    value = raw.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Rule '{key}' must be a mapping of name to item list")
    result: dict[str, Tuple[str, ...]] = {}
    for name, items in value.items():
        if isinstance(items, str) or not isinstance(items, (list, tuple)):
            raise ConfigError(f"Rule '{key}.{name}' must be a list of items, got {items!r}")
        result[str(name)] = tuple(str(item) for item in items)
    return result


def _limits(raw: Mapping[str, Any]) -> dict[str, int]:
    value = raw.get("rarityLimits") or {}
    if not isinstance(value, Mapping):
        raise ConfigError("Rule 'rarityLimits' must be a mapping of item to maximum count")
    limits: dict[str, int] = {}
    for item, limit in value.items():
        if isinstance(limit, bool):
            raise ConfigError(f"Rarity limit for '{item}' must be an integer, got {limit!r}")
        try:
            limits[str(item)] = int(limit)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Rarity limit for '{item}' must be an integer, got {limit!r}") from exc
    return limits


def load_rules(path: Path) -> RuleSet:
    rules = RuleSet.from_dict(read_document(Path(path)))
    LOGGER.debug(
        "loaded rules: %d dependencies, %d exclusions, %d rarity limits, %d groups",
        len(rules.must_be_with),
        len(rules.cannot_be_with),
        len(rules.rarity_limits),
        len(rules.color_schemes) + len(rules.theme_restrictions),
    )
    return rules


__all__ = ["RULE_KEYS", "RuleSet", "load_rules"]
