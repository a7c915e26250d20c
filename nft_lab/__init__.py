"""Layered NFT collection generator."""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - type checking helper
    from .config import Config, load_config
    from .generator import CombinationGenerator, generate_combinations
    from .orchestrator import run
    from .rules import RuleSet, load_rules

__all__ = [
    "CombinationGenerator",
    "Config",
    "RuleSet",
    "generate_combinations",
    "load_config",
    "load_rules",
    "run",
]

_EXPORTS = {
    "Config": ".config",
    "load_config": ".config",
    "CombinationGenerator": ".generator",
    "generate_combinations": ".generator",
    "run": ".orchestrator",
    "RuleSet": ".rules",
    "load_rules": ".rules",
}


def __getattr__(name: str) -> Any:  # pragma: no cover - dispatch helper
    if name not in _EXPORTS:
        raise AttributeError(name)
    value = getattr(import_module(_EXPORTS[name], __name__), name)
    globals()[name] = value
    return value
