from __future__ import annotations

import json
from pathlib import Path

import pytest

from nft_lab.config import ConfigError, load_config, parse_pinning
from nft_lab.rules import load_rules

PINNING_ENV_VARS = ("LIGHTHOUSE_API_KEY", "PINATA_JWT", "PINATA_API_KEY", "PINATA_SECRET_API_KEY")


@pytest.fixture(autouse=True)
def clean_pinning_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in PINNING_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path: Path, **overrides) -> Path:
    data = {
        "lighthouseApiKey": "lh-key",
        "attributesFolders": {"background": "layers/background", "hat": "layers/hat"},
        "outputFolder": "output",
        "imageSize": 64,
        "nftCount": 3,
        "nftPrefix": "Punk",
        "policyID": "policy123",
        "ipfs_pining": "false",
    }
    data.update(overrides)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_config_resolves_paths_relative_to_file(tmp_path: Path) -> None:
    config = load_config(write_config(tmp_path))

    assert config.attributes_folders["hat"] == (tmp_path / "layers" / "hat").resolve()
    assert config.output_folder == (tmp_path / "output").resolve()
    assert config.images_dir == config.output_folder / "images"
    assert config.metadata_dir == config.output_folder / "metadata"
    assert config.image_size == 64
    assert config.nft_count == 3
    assert config.nft_prefix == "Punk"
    assert config.policy_id == "policy123"
    assert config.pinning.enabled is False
    assert config.seed is None
    assert config.generation.attempts_per_item == 1_000


def test_load_config_reads_optional_sections(tmp_path: Path) -> None:
    path = write_config(
        tmp_path,
        seed=11,
        generation={"attempts_per_item": 10, "stall_limit": 5},
        logging={"level": "DEBUG", "to_file": False},
    )
    config = load_config(path)

    assert config.seed == 11
    assert config.generation.stall_limit == 5
    assert config.logging.level == "DEBUG"
    assert config.logging.to_file is False


def test_load_config_accepts_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        """
attributesFolders:
  background: layers/background
outputFolder: out
imageSize: 32
nftCount: 1
nftPrefix: Cat
policyID: abc
ipfs_pining: true
""",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.pinning.enabled is True
    assert config.pinning.service == "lighthouse"


def test_missing_config_is_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.json")


def test_unparsable_config_is_config_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError, match="Unable to parse"):
        load_config(path)


@pytest.mark.parametrize("field", ["attributesFolders", "outputFolder", "policyID", "imageSize", "nftCount"])
def test_missing_required_field(tmp_path: Path, field: str) -> None:
    path = write_config(tmp_path)
    data = json.loads(path.read_text(encoding="utf-8"))
    del data[field]
    path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ConfigError, match=field):
        load_config(path)


def test_non_integer_count_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="nftCount"):
        load_config(write_config(tmp_path, nftCount="many"))


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), ("true", True), ("false", False), (False, False), (None, False)],
)
def test_legacy_pinning_flag(value, expected) -> None:
    pinning = parse_pinning({"ipfs_pining": value, "lighthouseApiKey": "k"})
    assert pinning.enabled is expected
    assert pinning.service == "lighthouse"
    assert pinning.credentials == {"lighthouse": {"apiKey": "k"}}


def test_structured_pinning_block() -> None:
    pinning = parse_pinning(
        {
            "ipfs_pinning": {
                "enabled": True,
                "service": "Pinata",
                "config": {"pinata": {"jwt": "token"}, "lighthouse": {"apiKey": "lh"}},
            }
        }
    )
    assert pinning.enabled is True
    assert pinning.service == "pinata"
    assert pinning.credentials_for() == {"jwt": "token"}
    assert pinning.credentials_for("lighthouse") == {"apiKey": "lh"}


def test_credentials_fall_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PINATA_JWT", "from-env")
    pinning = parse_pinning({"ipfs_pinning": {"enabled": True, "service": "pinata"}})
    assert pinning.credentials_for() == {"jwt": "from-env"}


def test_load_rules_reads_every_category(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps(
            {
                "mustBeWith": {"crown": ["cape"]},
                "cannotBeWith": {"laser": ["shades"]},
                "rarityLimits": {"goldHat": "3"},
                "mandatoryItems": ["background"],
                "colorSchemes": {"blue": ["blueHat", "blueShirt"]},
                "themeRestrictions": {"royal": ["crown", "cape"]},
                "optionalItems": ["eyes"],
            }
        ),
        encoding="utf-8",
    )
    rules = load_rules(path)

    assert rules.must_be_with["crown"] == ("cape",)
    assert rules.cannot_be_with["laser"] == ("shades",)
    assert rules.rarity_limits["goldHat"] == 3
    assert rules.mandatory_items == ("background",)
    assert dict(rules.color_schemes) == {"blue": ("blueHat", "blueShirt")}
    assert list(rules.groups()) == [
        ("colorSchemes", "blue", ("blueHat", "blueShirt")),
        ("themeRestrictions", "royal", ("crown", "cape")),
    ]
    assert rules.optional_items == ("eyes",)
    with pytest.raises(TypeError):
        rules.rarity_limits["goldHat"] = 4  # type: ignore[index]


def test_rules_type_errors_are_fatal(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"mandatoryItems": "background"}), encoding="utf-8")
    with pytest.raises(ConfigError, match="mandatoryItems"):
        load_rules(path)


def test_unknown_rule_keys_are_ignored_with_warning(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"bogus": 1}), encoding="utf-8")
    caplog.set_level("WARNING")
    rules = load_rules(path)
    assert rules.mandatory_items == ()
    assert any("bogus" in record.getMessage() for record in caplog.records)
