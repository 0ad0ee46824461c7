"""Typed runtime configuration value objects.

Purpose
-------
Anchor the immutable structures the compiler hands to the runtime engine:
typed module messages, receiver and sender settings, compiled handlers, and
the :class:`CompiledConfig` aggregate. The module belongs to the domain layer
and contains no I/O.

Contents
--------
* :class:`TypedMessage` – a runtime message type name plus its frozen value.
* :class:`AllocationStrategy`, :class:`SniffingConfig`,
  :class:`MultiplexingConfig`, :class:`SocketConfig`, :class:`StreamConfig`,
  :class:`ProxyConfig` – translated sub-settings.
* :class:`ReceiverConfig` / :class:`SenderConfig` – listener and sender
  transport-level settings.
* :class:`InboundHandlerConfig` / :class:`OutboundHandlerConfig` – tag +
  transport settings + protocol settings.
* :class:`CompiledConfig` – ordered module list plus handler lists.
* :func:`to_primitive` – JSON-friendly export helper.

System Role
-----------
Every successful call to :func:`lib_proxy_config.core.compile_config` returns
a :class:`CompiledConfig`. Nothing in here is mutated after construction, so a
compiled result can be shared between threads freely.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from types import MappingProxyType
from typing import Any

from .net import PortList


@dataclass(frozen=True, slots=True)
class TypedMessage:
    """Runtime message: a fully-qualified type name and its settings.

    Why
    ----
    The runtime starts modules and protocol handlers from self-describing
    messages; keeping the type name beside the value lets the output list stay
    heterogeneous yet inspectable.

    Examples
    --------
    >>> msg = TypedMessage("xray.app.stats.Config", {"nested": {"a": [1]}})
    >>> msg.value["nested"]["a"]
    (1,)
    >>> msg.value["nested"]["b"] = 2
    Traceback (most recent call last):
    ...
    TypeError: 'mappingproxy' object does not support item assignment
    """

    type: str
    value: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _freeze_mapping(self.value))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": to_primitive(self.value)}


class AllocationType(str, enum.Enum):
    ALWAYS = "always"
    RANDOM = "random"
    EXTERNAL = "external"


class KnownProtocol(str, enum.Enum):
    HTTP = "http"
    TLS = "tls"


@dataclass(frozen=True, slots=True)
class AllocationStrategy:
    type: AllocationType
    concurrency: int | None = None
    refresh: int | None = None


@dataclass(frozen=True, slots=True)
class SniffingConfig:
    enabled: bool = False
    destination_override: tuple[str, ...] | None = None
    domains_excluded: tuple[str, ...] | None = None
    metadata_only: bool = False
    route_only: bool = False


@dataclass(frozen=True, slots=True)
class MultiplexingConfig:
    """Mux settings; a negative ``concurrency`` disables mux entirely."""

    enabled: bool = False
    concurrency: int = 0
    xudp_concurrency: int = 0
    xudp_proxy_udp443: str = "reject"


@dataclass(frozen=True, slots=True)
class SocketConfig:
    dialer_proxy: str = ""
    mark: int = 0
    tcp_fast_open: bool | None = None
    tproxy: str = ""
    domain_strategy: str = ""
    accept_proxy_protocol: bool = False


@dataclass(frozen=True, slots=True)
class StreamConfig:
    protocol_name: str = "tcp"
    transport_settings: tuple[TypedMessage, ...] = ()
    security_type: str = ""
    security_settings: tuple[TypedMessage, ...] = ()
    socket_settings: SocketConfig | None = None


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    tag: str
    transport_layer_proxy: bool = False


@dataclass(frozen=True, slots=True)
class ReceiverConfig:
    port_list: PortList | None = None
    listen: str | None = None
    allocation_strategy: AllocationStrategy | None = None
    stream_settings: StreamConfig | None = None
    receive_original_destination: bool = False
    sniffing_settings: SniffingConfig | None = None
    domain_override: tuple[KnownProtocol, ...] | None = None


@dataclass(frozen=True, slots=True)
class SenderConfig:
    via: str | None = None
    stream_settings: StreamConfig | None = None
    proxy_settings: ProxyConfig | None = None
    multiplex_settings: MultiplexingConfig | None = None


@dataclass(frozen=True, slots=True)
class InboundHandlerConfig:
    tag: str
    receiver_settings: ReceiverConfig
    proxy_settings: TypedMessage


@dataclass(frozen=True, slots=True)
class OutboundHandlerConfig:
    tag: str
    sender_settings: SenderConfig
    proxy_settings: TypedMessage


@dataclass(frozen=True, slots=True)
class CompiledConfig:
    """Result of one compilation pass.

    ``app`` is ordered: the runtime starts modules in list order.
    """

    app: tuple[TypedMessage, ...] = ()
    inbound: tuple[InboundHandlerConfig, ...] = ()
    outbound: tuple[OutboundHandlerConfig, ...] = ()

    @property
    def app_types(self) -> tuple[str, ...]:
        return tuple(message.type for message in self.app)

    def find_app(self, type_name: str) -> TypedMessage | None:
        for message in self.app:
            if message.type == type_name:
                return message
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "app": [message.to_dict() for message in self.app],
            "inbound": [to_primitive(handler) for handler in self.inbound],
            "outbound": [to_primitive(handler) for handler in self.outbound],
        }

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.as_dict(), indent=indent, separators=(",", ":") if indent is None else None)


def to_primitive(value: Any) -> Any:
    """Convert nested value objects into JSON-serialisable primitives.

    Examples
    --------
    >>> to_primitive(AllocationStrategy(AllocationType.RANDOM, concurrency=2))
    {'type': 'random', 'concurrency': 2, 'refresh': None}
    """

    if isinstance(value, TypedMessage):
        return value.to_dict()
    if isinstance(value, PortList):
        return [{"from": item.from_port, "to": item.to_port} for item in value.ranges]
    if isinstance(value, enum.Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_primitive(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Mapping):
        return {key: to_primitive(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_primitive(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(to_primitive(item) for item in value)
    return value


def _freeze_mapping(data: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType({key: _freeze_value(value) for key, value in data.items()})


def _freeze_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return _freeze_mapping(value)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze_value(item) for item in value)
    if isinstance(value, set):
        return frozenset(_freeze_value(item) for item in value)
    return value
