"""Attribute catalog built from the configured layer folders."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

LOGGER = logging.getLogger("nft.catalog")

LAYER_EXTENSION = ".png"


@dataclass(frozen=True)
class CategorySource:
    """Where a category's values come from, and why it may be unusable."""

    category: str
    folder: Optional[Path]
    values: Tuple[str, ...]
    problem: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.problem is None


def _scan_folder(category: str, folder: Optional[Path]) -> CategorySource:
    if folder is None:
        return CategorySource(category, None, (), f"Attribute folder for '{category}' is not configured")
    if not folder.is_dir():
        return CategorySource(category, folder, (), f"Attribute folder does not exist: {folder}")
    values = tuple(
        sorted(
            entry.stem
            for entry in folder.iterdir()
            if entry.is_file() and entry.suffix.lower() == LAYER_EXTENSION and not entry.name.startswith(".")
        )
    )
    if not values:
        return CategorySource(category, folder, (), f"No files found in attribute folder: {folder}")
    return CategorySource(category, folder, values)


class AttributeCatalog:
    """Read-only view of every category's selectable values."""

    def __init__(self, sources: Iterable[CategorySource]) -> None:
        self._sources: Dict[str, CategorySource] = {source.category: source for source in sources}

    @classmethod
    def load(
        cls,
        folders: Mapping[str, Path],
        extra_categories: Iterable[str] = (),
    ) -> "AttributeCatalog":
        """Scan *folders* once; *extra_categories* without a folder are recorded as unconfigured."""

        sources = [_scan_folder(category, Path(folder)) for category, folder in folders.items()]
        for category in extra_categories:
            if category not in folders:
                sources.append(_scan_folder(category, None))
        catalog = cls(sources)
        for source in catalog.unavailable():
            LOGGER.warning(source.problem)
        LOGGER.info(
            "catalog loaded: %d categories, %d usable",
            len(catalog._sources),
            sum(1 for source in catalog._sources.values() if source.available),
        )
        return catalog

    def categories(self) -> Tuple[str, ...]:
        return tuple(self._sources)

    def source(self, category: str) -> CategorySource:
        try:
            return self._sources[category]
        except KeyError:
            return _scan_folder(category, None)

    def values(self, category: str) -> Tuple[str, ...]:
        return self.source(category).values

    def folder(self, category: str) -> Path:
        folder = self.source(category).folder
        if folder is None:
            raise KeyError(f"Attribute folder for '{category}' is not configured")
        return folder

    def layer_path(self, category: str, value: str) -> Path:
        return self.folder(category) / f"{value}{LAYER_EXTENSION}"

    def unavailable(self) -> Tuple[CategorySource, ...]:
        return tuple(source for source in self._sources.values() if not source.available)


__all__ = ["AttributeCatalog", "CategorySource", "LAYER_EXTENSION"]
