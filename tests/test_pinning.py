from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

from nft_lab.config import ConfigError, PinningConfig
from nft_lab.pinning import (
    LighthousePinner,
    LocalPinner,
    PinataPinner,
    PinningError,
    PinningTimeoutError,
    create_pinner,
)


class _FakeResponse:
    def __init__(self, status_code: int = 200, body: object | None = None):
        self.status_code = status_code
        self._body = {"Hash": "QmHash"} if body is None else body
        self.text = json.dumps(self._body)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)

    def json(self) -> object:
        return self._body


@pytest.fixture()
def image(tmp_path: Path) -> Path:
    path = tmp_path / "Punk0001.png"
    path.write_bytes(b"\x89PNG fake")
    return path


@pytest.fixture(autouse=True)
def clean_pinning_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("LIGHTHOUSE_API_KEY", "PINATA_JWT", "PINATA_API_KEY", "PINATA_SECRET_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_local_pinner_returns_relative_image_path(image: Path) -> None:
    with patch("requests.post") as mock_post:
        uri = LocalPinner().upload(image)
    assert uri == "./images/Punk0001.png"
    mock_post.assert_not_called()


def test_disabled_pinning_selects_local_backend() -> None:
    assert isinstance(create_pinner(PinningConfig(enabled=False, service="anything")), LocalPinner)


def test_unknown_service_is_config_error() -> None:
    with pytest.raises(ConfigError, match="Unknown pinning service 'filecoin'"):
        create_pinner(PinningConfig(enabled=True, service="filecoin"))


def test_missing_credentials_are_config_errors() -> None:
    with pytest.raises(ConfigError, match="Lighthouse"):
        create_pinner(PinningConfig(enabled=True, service="lighthouse"))
    with pytest.raises(ConfigError, match="Pinata"):
        create_pinner(PinningConfig(enabled=True, service="pinata", credentials={"pinata": {"apiKey": "k"}}))


def test_factory_builds_configured_backend() -> None:
    lighthouse = create_pinner(
        PinningConfig(enabled=True, service="lighthouse", credentials={"lighthouse": {"apiKey": "lh"}})
    )
    pinata = create_pinner(
        PinningConfig(enabled=True, service="pinata", credentials={"pinata": {"jwt": "tok"}})
    )
    assert isinstance(lighthouse, LighthousePinner) and lighthouse.api_key == "lh"
    assert isinstance(pinata, PinataPinner) and pinata.jwt == "tok"


def test_lighthouse_upload_returns_ipfs_uri(image: Path) -> None:
    pinner = LighthousePinner(api_key="secret")

    with patch("requests.post", return_value=_FakeResponse()) as mock_post:
        uri = pinner.upload(image)

    assert uri == "ipfs://QmHash"
    kwargs = mock_post.call_args.kwargs
    assert kwargs["headers"] == {"Authorization": "Bearer secret"}
    assert kwargs["files"]["file"][0] == "Punk0001.png"
    assert mock_post.call_args.args[0] == pinner.url


def test_pinata_upload_uses_key_headers(image: Path) -> None:
    pinner = PinataPinner(api_key="k", secret_api_key="s")

    with patch("requests.post", return_value=_FakeResponse(body={"IpfsHash": "QmPinata"})) as mock_post:
        uri = pinner.upload(image)

    assert uri == "ipfs://QmPinata"
    assert mock_post.call_args.kwargs["headers"] == {
        "pinata_api_key": "k",
        "pinata_secret_api_key": "s",
    }


def test_upload_timeout_is_reported(image: Path) -> None:
    with patch("requests.post", side_effect=requests.Timeout):
        with pytest.raises(PinningTimeoutError):
            LighthousePinner(api_key="k").upload(image)


def test_upload_connection_error_is_reported(image: Path) -> None:
    with patch("requests.post", side_effect=requests.ConnectionError):
        with pytest.raises(PinningError, match="Failed to reach"):
            LighthousePinner(api_key="k").upload(image)


def test_http_error_is_reported(image: Path) -> None:
    with patch("requests.post", return_value=_FakeResponse(status_code=401, body={"error": "bad key"})):
        with pytest.raises(PinningError, match="bad key"):
            LighthousePinner(api_key="k").upload(image)


def test_response_without_hash_is_reported(image: Path) -> None:
    with patch("requests.post", return_value=_FakeResponse(body={"Name": "x"})):
        with pytest.raises(PinningError, match="Hash"):
            LighthousePinner(api_key="k").upload(image)
