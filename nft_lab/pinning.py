"""IPFS pinning backends.

Every backend exposes ``upload(path) -> uri``. The backend is chosen once from
configuration by :func:`create_pinner`; callers never branch on the service
name.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Mapping, Protocol

import requests

from .config import ConfigError, PinningConfig

LOGGER = logging.getLogger("nft.pinning")

LIGHTHOUSE_UPLOAD_URL = "https://node.lighthouse.storage/api/v0/add"
PINATA_UPLOAD_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"


class PinningError(RuntimeError):
    """Raised when an upload to the pinning service fails."""


class PinningTimeoutError(PinningError):
    """Raised when the pinning service does not answer in time."""


class Pinner(Protocol):
    def upload(self, path: Path) -> str:
        """Pin *path* and return the URI to embed in metadata."""


@dataclass
class LocalPinner:
    """Used when pinning is disabled: point metadata at the local image."""

    prefix: str = "./images"

    def upload(self, path: Path) -> str:
        return f"{self.prefix}/{Path(path).name}"


def _post_file(url: str, path: Path, headers: Mapping[str, str], timeout: float) -> Dict[str, object]:
    try:
        with Path(path).open("rb") as fh:
            response = requests.post(
                url,
                files={"file": (Path(path).name, fh, "image/png")},
                headers=dict(headers),
                timeout=timeout,
            )
    except requests.Timeout as exc:
        raise PinningTimeoutError(f"Timed out uploading {path}") from exc
    except requests.RequestException as exc:
        raise PinningError(f"Failed to reach pinning service at {url}") from exc
    except OSError as exc:
        raise PinningError(f"Unable to read {path}: {exc}") from exc

    try:
        response.raise_for_status()
    except requests.HTTPError as exc:
        message = response.text.strip() or f"HTTP {response.status_code}"
        raise PinningError(f"Pinning service error: {message}") from exc

    try:
        data = response.json()
    except ValueError as exc:
        raise PinningError("Invalid JSON payload from pinning service") from exc
    if not isinstance(data, dict):
        raise PinningError("Unexpected response format from pinning service")
    return data


def _ipfs_uri(data: Mapping[str, object], field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value:
        raise PinningError(f"Pinning response is missing '{field}'")
    return f"ipfs://{value}"


@dataclass
class LighthousePinner:
    api_key: str
    url: str = LIGHTHOUSE_UPLOAD_URL
    timeout: float = 120.0

    def upload(self, path: Path) -> str:
        data = _post_file(
            self.url,
            path,
            {"Authorization": f"Bearer {self.api_key}"},
            self.timeout,
        )
        return _ipfs_uri(data, "Hash")


@dataclass
class PinataPinner:
    jwt: str | None = None
    api_key: str | None = None
    secret_api_key: str | None = None
    url: str = PINATA_UPLOAD_URL
    timeout: float = 120.0

    def _headers(self) -> Dict[str, str]:
        if self.jwt:
            return {"Authorization": f"Bearer {self.jwt}"}
        return {
            "pinata_api_key": self.api_key or "",
            "pinata_secret_api_key": self.secret_api_key or "",
        }

    def upload(self, path: Path) -> str:
        data = _post_file(self.url, path, self._headers(), self.timeout)
        return _ipfs_uri(data, "IpfsHash")


def _lighthouse(credentials: Mapping[str, str]) -> Pinner:
    api_key = credentials.get("apiKey")
    if not api_key:
        raise ConfigError("Lighthouse pinning requires an apiKey (or LIGHTHOUSE_API_KEY)")
    return LighthousePinner(api_key=api_key)


def _pinata(credentials: Mapping[str, str]) -> Pinner:
    jwt = credentials.get("jwt")
    api_key = credentials.get("apiKey")
    secret = credentials.get("secretApiKey")
    if not jwt and not (api_key and secret):
        raise ConfigError("Pinata pinning requires a jwt or an apiKey/secretApiKey pair")
    return PinataPinner(jwt=jwt, api_key=api_key, secret_api_key=secret)


PINNING_SERVICES: Dict[str, Callable[[Mapping[str, str]], Pinner]] = {
    "lighthouse": _lighthouse,
    "pinata": _pinata,
}


def create_pinner(config: PinningConfig) -> Pinner:
    if not config.enabled:
        LOGGER.info("IPFS pinning disabled; metadata will reference local images")
        return LocalPinner()
    factory = PINNING_SERVICES.get(config.service.lower())
    if factory is None:
        raise ConfigError(
            f"Unknown pinning service '{config.service}'. "
            f"Supported services: {', '.join(sorted(PINNING_SERVICES))}"
        )
    pinner = factory(config.credentials_for())
    LOGGER.info("IPFS pinning enabled via %s", config.service)
    return pinner


__all__ = [
    "LighthousePinner",
    "LocalPinner",
    "PINNING_SERVICES",
    "PinataPinner",
    "Pinner",
    "PinningError",
    "PinningTimeoutError",
    "create_pinner",
]
