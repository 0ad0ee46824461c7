"""Adapter contract tests for the application-layer ports."""

from __future__ import annotations

from pathlib import Path

import pytest

from lib_proxy_config.adapters.file_loaders.structured import JSONFileLoader, TOMLFileLoader, YAMLFileLoader
from lib_proxy_config.application import ports
from lib_proxy_config.application.registry import INBOUND_REGISTRY, OUTBOUND_REGISTRY
from lib_proxy_config.domain.config import TypedMessage

DOCUMENTS = {
    TOMLFileLoader: ("config.toml", '[log]\nloglevel = "info"\n'),
    JSONFileLoader: ("config.json", '{"log": {"loglevel": "info"}}'),
    YAMLFileLoader: ("config.yaml", "log:\n  loglevel: info\n"),
}


@pytest.mark.parametrize("loader_cls", list(DOCUMENTS))
def test_structured_loader_contract(tmp_path: Path, loader_cls) -> None:
    """Each structured loader should satisfy DocumentLoader and decode its target format."""

    loader = loader_cls()
    assert isinstance(loader, ports.DocumentLoader)

    name, body = DOCUMENTS[loader_cls]
    path = tmp_path / name
    path.write_text(body, encoding="utf-8")

    assert loader.load(str(path))["log"]["loglevel"] == "info"


@pytest.mark.parametrize("registry", [INBOUND_REGISTRY, OUTBOUND_REGISTRY], ids=["inbound", "outbound"])
def test_every_registered_variant_is_buildable(registry) -> None:
    """Every settings variant must expose ``build`` and name its runtime message type."""

    for name, variant in registry.creators.items():
        assert variant.protocol == name
        assert variant.message_type.startswith("xray.proxy.")
        assert callable(getattr(variant, "build"))
        assert issubclass(variant, ports.Buildable)


def test_build_returns_typed_message() -> None:
    assert isinstance(OUTBOUND_REGISTRY.load({}, "blackhole").build(), TypedMessage)
