from __future__ import annotations

import json
from pathlib import Path

import pytest

from lib_proxy_config.adapters.file_loaders.structured import LOADERS, JSONFileLoader, TOMLFileLoader, YAMLFileLoader
from lib_proxy_config.domain.errors import InvalidFormat, NotFound


def test_toml_loader(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[[outbounds]]\nprotocol = "freedom"\ntag = "direct"\n', encoding="utf-8")

    data = TOMLFileLoader().load(str(path))

    assert data["outbounds"][0]["tag"] == "direct"


def test_toml_loader_missing_file(tmp_path: Path) -> None:
    with pytest.raises(NotFound):
        TOMLFileLoader().load(str(tmp_path / "missing.toml"))


def test_toml_loader_invalid(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("outbounds = [", encoding="utf-8")
    with pytest.raises(InvalidFormat, match="Invalid TOML"):
        TOMLFileLoader().load(str(path))


def test_json_loader_invalid(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid}", encoding="utf-8")
    with pytest.raises(InvalidFormat, match="Invalid JSON"):
        JSONFileLoader().load(str(path))


def test_json_loader_rejects_top_level_list(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(InvalidFormat, match="did not produce a mapping"):
        JSONFileLoader().load(str(path))


def test_json_loader_valid(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"log": {"loglevel": "debug"}}), encoding="utf-8")
    assert JSONFileLoader().load(str(path))["log"]["loglevel"] == "debug"


def test_yaml_loader(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("inbounds:\n  - protocol: socks\n    port: 1080\n", encoding="utf-8")
    assert YAMLFileLoader().load(str(path))["inbounds"][0]["port"] == 1080


def test_yaml_loader_handles_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("# empty file\n", encoding="utf-8")
    assert YAMLFileLoader().load(str(path)) == {}


def test_yaml_loader_invalid(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("inbounds: [\n", encoding="utf-8")
    with pytest.raises(InvalidFormat, match="Invalid YAML"):
        YAMLFileLoader().load(str(path))


def test_loader_table_covers_every_suffix() -> None:
    assert set(LOADERS) == {".json", ".yaml", ".yml", ".toml"}
