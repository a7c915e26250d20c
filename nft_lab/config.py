from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_PINNING_SERVICE = "lighthouse"

# Credential keys that may be supplied through the environment instead of the
# config file, per pinning service.
CREDENTIAL_ENV_VARS: Dict[str, Dict[str, str]] = {
    "lighthouse": {"apiKey": "LIGHTHOUSE_API_KEY"},
    "pinata": {
        "jwt": "PINATA_JWT",
        "apiKey": "PINATA_API_KEY",
        "secretApiKey": "PINATA_SECRET_API_KEY",
    },
}


class ConfigError(RuntimeError):
    """Raised when the configuration or rules input cannot be used."""


@dataclass(slots=True)
class PinningConfig:
    enabled: bool = False
    service: str = DEFAULT_PINNING_SERVICE
    credentials: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def credentials_for(self, service: Optional[str] = None) -> Dict[str, str]:
        name = (service or self.service).lower()
        resolved = dict(self.credentials.get(name, {}))
        for key, env_var in CREDENTIAL_ENV_VARS.get(name, {}).items():
            if not resolved.get(key):
                value = os.getenv(env_var)
                if value:
                    resolved[key] = value
        return resolved


@dataclass(slots=True)
class GenerationConfig:
    attempts_per_item: int = 1_000
    stall_limit: int = 10_000


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    to_file: bool = True


@dataclass(slots=True)
class Config:
    path: Path
    attributes_folders: Dict[str, Path]
    output_folder: Path
    image_size: int
    nft_count: int
    nft_prefix: str
    policy_id: str
    pinning: PinningConfig = field(default_factory=PinningConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    seed: Optional[int] = None

    @property
    def images_dir(self) -> Path:
        return self.output_folder / "images"

    @property
    def metadata_dir(self) -> Path:
        return self.output_folder / "metadata"


def read_document(path: Path) -> Dict[str, Any]:
    """Read a JSON or YAML mapping, raising :class:`ConfigError` on failure."""

    if not path.is_file():
        raise ConfigError(f"File not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _require(raw: Mapping[str, Any], key: str) -> Any:
    if key not in raw or raw[key] in (None, ""):
        raise ConfigError(f"Missing required config field '{key}'")
    return raw[key]


def _as_int(raw: Mapping[str, Any], key: str, *, minimum: int = 0) -> int:
    value = _require(raw, key)
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Config field '{key}' must be an integer, got {value!r}") from exc
    if number < minimum:
        raise ConfigError(f"Config field '{key}' must be >= {minimum}, got {number}")
    return number


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _resolve(base: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def parse_pinning(raw: Mapping[str, Any]) -> PinningConfig:
    """Build :class:`PinningConfig` from either pinning config shape.

    ``ipfs_pining`` may be a boolean (or the strings ``"true"``/``"false"``),
    in which case Lighthouse is used with the top-level ``lighthouseApiKey``,
    or a ``{enabled, service, config}`` block naming the service and holding
    one credential sub-block per service.
    """

    block = raw.get("ipfs_pinning", raw.get("ipfs_pining"))
    legacy_key = raw.get("lighthouseApiKey")
    credentials: Dict[str, Dict[str, str]] = {}
    if legacy_key:
        credentials["lighthouse"] = {"apiKey": str(legacy_key)}

    if isinstance(block, Mapping):
        service = str(block.get("service") or DEFAULT_PINNING_SERVICE).strip().lower()
        sub_blocks = block.get("config") or {}
        if not isinstance(sub_blocks, Mapping):
            raise ConfigError("ipfs_pinning.config must be a mapping of service name to credentials")
        for name, values in sub_blocks.items():
            if not isinstance(values, Mapping):
                raise ConfigError(f"ipfs_pinning.config.{name} must be a mapping")
            merged = credentials.setdefault(str(name).lower(), {})
            merged.update({str(k): str(v) for k, v in values.items() if v not in (None, "")})
        return PinningConfig(
            enabled=_as_flag(block.get("enabled", False)),
            service=service,
            credentials=credentials,
        )

    return PinningConfig(enabled=_as_flag(block), credentials=credentials)


def load_config(path: Path) -> Config:
    load_dotenv()
    path = Path(path).resolve()
    raw = read_document(path)
    base = path.parent

    folders = _require(raw, "attributesFolders")
    if not isinstance(folders, Mapping):
        raise ConfigError("attributesFolders must map category names to folder paths")

    generation = raw.get("generation") or {}
    logging_section = raw.get("logging") or {}
    try:
        generation_cfg = GenerationConfig(**dict(generation))
        logging_cfg = LoggingConfig(**dict(logging_section))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid generation/logging section: {exc}") from exc
    seed = _as_int(raw, "seed") if raw.get("seed") is not None else None

    return Config(
        path=path,
        attributes_folders={
            str(category): _resolve(base, folder)
            for category, folder in folders.items()
            if folder not in (None, "")
        },
        output_folder=_resolve(base, _require(raw, "outputFolder")),
        image_size=_as_int(raw, "imageSize", minimum=1),
        nft_count=_as_int(raw, "nftCount"),
        nft_prefix=str(raw.get("nftPrefix", "")),
        policy_id=str(_require(raw, "policyID")),
        pinning=parse_pinning(raw),
        generation=generation_cfg,
        logging=logging_cfg,
        seed=seed,
    )


__all__ = [
    "Config",
    "ConfigError",
    "GenerationConfig",
    "LoggingConfig",
    "PinningConfig",
    "load_config",
    "parse_pinning",
    "read_document",
]
