from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

MEDIA_TYPE = "image/png"
METADATA_LABEL = "721"
COLLECTION_FILENAME = "collection_metadata.json"
ID_WIDTH = 4


@dataclass(slots=True)
class ItemNaming:
    prefix: str
    number: int

    @property
    def nft_id(self) -> str:
        return f"{self.number:0{ID_WIDTH}d}"

    @property
    def asset_name(self) -> str:
        return f"{self.prefix}{self.nft_id}"

    @property
    def display_name(self) -> str:
        return f"{self.prefix} #{self.nft_id}"

    @property
    def image_filename(self) -> str:
        return f"{self.asset_name}.png"

    @property
    def metadata_filename(self) -> str:
        return f"{self.asset_name}.json"


def build_metadata(
    naming: ItemNaming,
    policy_id: str,
    attributes: Mapping[str, str],
    image_uri: Optional[str],
) -> Dict[str, Any]:
    """Assemble the ``721`` record for one item.

    ``image_uri`` is ``None`` when the upload failed; the record then carries
    no image fields and an empty ``files`` list.
    """

    asset: Dict[str, Any] = {"name": naming.display_name, "files": []}
    if image_uri is not None:
        asset["image"] = image_uri
        asset["mediaType"] = MEDIA_TYPE
        asset["files"].append({"name": naming.asset_name, "mediaType": MEDIA_TYPE, "src": image_uri})
    asset.update(attributes)
    return {METADATA_LABEL: {policy_id: {naming.asset_name: asset}}}


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, ensure_ascii=False, indent=4)
    return path


def save_item_metadata(metadata_dir: Path, naming: ItemNaming, record: Mapping[str, Any]) -> Path:
    return write_json(metadata_dir / naming.metadata_filename, record)


def save_collection(metadata_dir: Path, records: Iterable[Mapping[str, Any]]) -> Path:
    return write_json(metadata_dir / COLLECTION_FILENAME, list(records))


__all__ = [
    "COLLECTION_FILENAME",
    "ItemNaming",
    "MEDIA_TYPE",
    "build_metadata",
    "save_collection",
    "save_item_metadata",
    "write_json",
]
