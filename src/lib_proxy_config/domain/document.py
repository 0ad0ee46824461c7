"""Human-authored configuration document model.

Purpose
-------
Describe the permissive, backward-compatible document exactly as operators
write it: camelCase keys, optional sub-documents, and the deprecated
single-listener fields kept for compatibility. The models only capture shape;
cross-field rules live in the application layer.

Contents
--------
* :class:`AllocationSpec`, :class:`SniffingSpec`, :class:`MuxSpec`,
  :class:`ProxySpec`, :class:`SocketSpec` – small sub-documents.
* :class:`StreamSpec` / :class:`TransportSpec` – per-transport settings blocks
  and the global transport defaults.
* :class:`InboundSpec` / :class:`OutboundSpec` – one listener / one sender.
* :class:`ConfigDocument` – the root; :meth:`ConfigDocument.from_mapping`
  is the decoding entry point.

System Role
-----------
Produced by the document loaders (or directly by callers holding a parsed
mapping) and consumed by :mod:`lib_proxy_config.application.merge` and
:mod:`lib_proxy_config.application.compiler`.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import ConfigDict, Field, NonNegativeInt, field_validator

from .decode import Schema, decode, field_value, string_list
from .net import Address, PortList, parse_address, parse_port, parse_port_list

RawObject = dict[str, Any]


class AllocationSpec(Schema):
    strategy: str = ""
    concurrency: NonNegativeInt | None = None
    refresh: NonNegativeInt | None = None


class SniffingSpec(Schema):
    """``destOverride``/``domainsExcluded`` keep ``None`` (absent) apart from ``()``."""

    enabled: bool = False
    dest_override: tuple[str, ...] | None = None
    domains_excluded: tuple[str, ...] | None = None
    metadata_only: bool = False
    route_only: bool = False

    @field_validator("dest_override", "domains_excluded", mode="plain")
    @classmethod
    def _string_list(cls, value: Any) -> tuple[str, ...] | None:
        return field_value(string_list, value)


class MuxSpec(Schema):
    enabled: bool = False
    concurrency: int = 0
    xudp_concurrency: int = 0
    xudp_proxy_udp443: str = Field(default="", alias="xudpProxyUDP443")


class ProxySpec(Schema):
    tag: str = ""
    transport_layer: bool = False


class SocketSpec(Schema):
    dialer_proxy: str = ""
    mark: int = 0
    tcp_fast_open: bool | None = None
    tproxy: str = ""
    domain_strategy: str = ""
    accept_proxy_protocol: bool = False


class StreamSpec(Schema):
    network: str = ""
    security: str = ""
    tls_settings: RawObject | None = None
    reality_settings: RawObject | None = None
    tcp_settings: RawObject | None = None
    kcp_settings: RawObject | None = None
    ws_settings: RawObject | None = None
    http_settings: RawObject | None = None
    ds_settings: RawObject | None = None
    socket_settings: SocketSpec | None = Field(default=None, alias="sockopt")


class TransportSpec(Schema):
    """Global per-transport defaults overlaid onto every listener and sender."""

    tcp_settings: RawObject | None = None
    kcp_settings: RawObject | None = None
    ws_settings: RawObject | None = None
    http_settings: RawObject | None = None
    ds_settings: RawObject | None = None


class InboundSpec(Schema):
    protocol: str = ""
    port: PortList | None = None
    listen: Address | None = None
    settings: RawObject | None = None
    tag: str = ""
    allocate: AllocationSpec | None = None
    stream_settings: StreamSpec | None = None
    domain_override: tuple[str, ...] | None = None
    sniffing: SniffingSpec | None = None

    @field_validator("port", mode="plain")
    @classmethod
    def _port_list(cls, value: Any) -> PortList | None:
        return value if isinstance(value, PortList) else field_value(parse_port_list, value)

    @field_validator("listen", mode="plain")
    @classmethod
    def _address(cls, value: Any) -> Address | None:
        return value if isinstance(value, Address) else field_value(parse_address, value)

    @field_validator("domain_override", mode="plain")
    @classmethod
    def _string_list(cls, value: Any) -> tuple[str, ...] | None:
        return field_value(string_list, value)


class OutboundSpec(Schema):
    protocol: str = ""
    send_through: Address | None = None
    tag: str = ""
    settings: RawObject | None = None
    stream_settings: StreamSpec | None = None
    proxy_settings: ProxySpec | None = None
    mux: MuxSpec | None = None

    @field_validator("send_through", mode="plain")
    @classmethod
    def _address(cls, value: Any) -> Address | None:
        return value if isinstance(value, Address) else field_value(parse_address, value)


class ConfigDocument(Schema):
    """Root of the human-authored configuration.

    Module sub-documents stay raw mappings here; their builders decode them
    during compilation so the override merger can replace them wholesale.
    The root is the one mutable model: the override merger edits its
    sections and its ``inbounds``/``outbounds`` lists in place.
    """

    model_config = ConfigDict(frozen=False)

    port: int = 0
    inbound: InboundSpec | None = None
    outbound: OutboundSpec | None = None
    inbound_detour: list[InboundSpec] | None = None
    outbound_detour: list[OutboundSpec] | None = None

    log: RawObject | None = None
    routing: RawObject | None = None
    dns: RawObject | None = None
    inbounds: list[InboundSpec] = Field(default_factory=list)
    outbounds: list[OutboundSpec] = Field(default_factory=list)
    transport: TransportSpec | None = None
    policy: RawObject | None = None
    api: RawObject | None = None
    metrics: RawObject | None = None
    stats: RawObject | None = None
    reverse: RawObject | None = None
    fake_dns: Any = None
    observatory: RawObject | None = None
    tun: RawObject | None = None

    @field_validator("port", mode="plain")
    @classmethod
    def _legacy_port(cls, value: Any) -> int:
        return field_value(parse_port, value) or 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConfigDocument":
        """Decode an already-parsed document.

        Examples
        --------
        >>> doc = ConfigDocument.from_mapping({"inbounds": [{"protocol": "socks", "port": 1080}]})
        >>> doc.inbounds[0].port.capacity
        1
        """

        return decode(cls, data)

    def deprecated_fields(self) -> tuple[str, ...]:
        """Return the JSON names of legacy fields that carry a value."""

        present = []
        if self.port:
            present.append("port")
        if self.inbound is not None:
            present.append("inbound")
        if self.outbound is not None:
            present.append("outbound")
        if self.inbound_detour:
            present.append("inboundDetour")
        if self.outbound_detour:
            present.append("outboundDetour")
        return tuple(present)
