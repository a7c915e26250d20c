"""Layer compositing with Pillow."""
from __future__ import annotations

from io import BytesIO
from typing import Mapping

from PIL import Image, UnidentifiedImageError

from .catalog import AttributeCatalog


class CompositeError(RuntimeError):
    """Raised when a combination cannot be rendered."""


class LayerCompositor:
    """Overlay each attribute's PNG onto a transparent square canvas."""

    def __init__(self, catalog: AttributeCatalog, size: int) -> None:
        self.catalog = catalog
        self.size = int(size)

    def render(self, combination: Mapping[str, str]) -> Image.Image:
        canvas = Image.new("RGBA", (self.size, self.size), (0, 0, 0, 0))
        for category, value in combination.items():
            try:
                path = self.catalog.layer_path(category, value)
                with Image.open(path) as source:
                    layer = source.convert("RGBA")
            except (KeyError, OSError, UnidentifiedImageError) as exc:
                raise CompositeError(f"Error loading layer {category}={value}: {exc}") from exc
            if layer.size != canvas.size:
                layer = layer.resize(canvas.size, Image.Resampling.LANCZOS)
            canvas = Image.alpha_composite(canvas, layer)
        return canvas

    def render_png(self, combination: Mapping[str, str]) -> bytes:
        buffer = BytesIO()
        self.render(combination).save(buffer, format="PNG")
        return buffer.getvalue()


__all__ = ["CompositeError", "LayerCompositor"]
