from __future__ import annotations

from pathlib import Path
import sys
from typing import Iterable, Tuple

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nft_lab.catalog import AttributeCatalog
from nft_lab.rng import DeterministicRNG

Color = Tuple[int, int, int, int]


def write_layer(folder: Path, name: str, color: Color = (255, 0, 0, 255), size: int = 8) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{name}.png"
    Image.new("RGBA", (size, size), color).save(path, format="PNG")
    return path


def make_layers(root: Path, layers: dict[str, Iterable[str]]) -> dict[str, Path]:
    folders: dict[str, Path] = {}
    for category, values in layers.items():
        folder = root / category
        folder.mkdir(parents=True, exist_ok=True)
        for value in values:
            write_layer(folder, value)
        folders[category] = folder
    return folders


@pytest.fixture()
def rng() -> DeterministicRNG:
    return DeterministicRNG(1234)


@pytest.fixture()
def layer_catalog(tmp_path: Path):
    def _build(layers: dict[str, Iterable[str]], extra: Iterable[str] = ()) -> AttributeCatalog:
        return AttributeCatalog.load(make_layers(tmp_path / "layers", layers), extra_categories=extra)

    return _build
