"""Protocol registry and polymorphic settings loader.

Purpose
-------
Map protocol names onto their settings variants and decode raw settings
payloads into the matching variant. Two independent registries exist, one per
direction; both are built once at import time and never mutated afterwards.

Contents
--------
* :class:`ProtocolRegistry` – immutable name -> variant table.
* :class:`Registries` – the inbound/outbound pair passed explicitly to the
  compilers.
* :data:`INBOUND_REGISTRY`, :data:`OUTBOUND_REGISTRY`,
  :data:`DEFAULT_REGISTRIES` – the closed protocol sets.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable

from ..domain.errors import ConfigError, DecodeError, UnknownProtocol
from ..protocols.base import ProtocolSettings
from ..protocols.inbound import INBOUND_VARIANTS
from ..protocols.outbound import OUTBOUND_VARIANTS


@dataclass(frozen=True)
class ProtocolRegistry:
    """Immutable table of protocol settings variants for one direction.

    Examples
    --------
    >>> settings = INBOUND_REGISTRY.load({"auth": "noauth"}, "socks")
    >>> type(settings).__name__
    'SocksInboundSettings'
    >>> INBOUND_REGISTRY.load({}, "carrier-pigeon")
    Traceback (most recent call last):
    ...
    lib_proxy_config.domain.errors.UnknownProtocol: unknown inbound protocol: carrier-pigeon
    """

    direction: str
    creators: Mapping[str, type[ProtocolSettings]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "creators", MappingProxyType(dict(self.creators)))

    @classmethod
    def of(cls, direction: str, variants: Iterable[type[ProtocolSettings]]) -> "ProtocolRegistry":
        creators: dict[str, type[ProtocolSettings]] = {}
        for variant in variants:
            if variant.protocol in creators:
                raise ValueError(f"duplicate {direction} protocol: {variant.protocol}")
            creators[variant.protocol] = variant
        return cls(direction, creators)

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self.creators))

    def __contains__(self, name: object) -> bool:
        return name in self.creators

    def load(self, payload: Mapping[str, Any] | str | bytes | None, name: str) -> ProtocolSettings:
        """Instantiate the variant registered under *name* from *payload*.

        Raises
        ------
        UnknownProtocol
            *name* has no registered variant.
        DecodeError
            *payload* cannot populate the variant's schema; the message names
            the protocol.
        """

        try:
            variant = self.creators[name.lower()]
        except KeyError as exc:
            raise UnknownProtocol(f"unknown {self.direction} protocol: {name}") from exc
        data = _payload_mapping(payload)
        try:
            return variant.decode(data)
        except ConfigError as exc:
            raise exc.with_context(f"invalid {variant.protocol} {self.direction} settings") from exc


@dataclass(frozen=True)
class Registries:
    inbound: ProtocolRegistry
    outbound: ProtocolRegistry


def _payload_mapping(payload: Mapping[str, Any] | str | bytes | None) -> Mapping[str, Any]:
    if payload is None:
        return {}
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload or "{}")
        except json.JSONDecodeError as exc:
            raise DecodeError(f"settings are not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise DecodeError(f"settings must be an object, got {type(payload).__name__}")
    return payload


INBOUND_REGISTRY = ProtocolRegistry.of("inbound", INBOUND_VARIANTS)
OUTBOUND_REGISTRY = ProtocolRegistry.of("outbound", OUTBOUND_VARIANTS)
DEFAULT_REGISTRIES = Registries(inbound=INBOUND_REGISTRY, outbound=OUTBOUND_REGISTRY)
