"""Primitive builders for self-contained sub-documents.

Purpose
-------
Translate the small, independent pieces of a listener or sender
specification into runtime value objects. Each builder is stateless and
fails with a classified :class:`~lib_proxy_config.domain.errors.ConfigError`.

Contents
--------
* :class:`ListenKind` / :func:`classify_listen` – listen address rules.
* :func:`build_allocation` – port allocation strategy.
* :func:`build_sniffing` / :func:`build_domain_override` – sniffing vocabulary.
* :func:`build_mux` – multiplexing settings and the UDP/443 policy.
* :func:`build_proxy` – proxy-chain settings.
* :func:`build_stream` – stream/transport settings.
* :func:`apply_transport` – "fill only if unset" overlay of transport defaults.
"""

from __future__ import annotations

import enum
from typing import Any, Mapping

from ..domain.config import (
    AllocationStrategy,
    AllocationType,
    KnownProtocol,
    MultiplexingConfig,
    ProxyConfig,
    SniffingConfig,
    SocketConfig,
    StreamConfig,
    TypedMessage,
)
from ..domain.document import AllocationSpec, MuxSpec, ProxySpec, SniffingSpec, SocketSpec, StreamSpec, TransportSpec
from ..domain.errors import (
    InvalidPolicy,
    UnknownSniffingProtocol,
    UnknownStrategy,
    UnknownTransport,
    UnsupportedAddress,
    ValidationError,
)
from ..domain.net import Address

_STRATEGIES = {
    "always": AllocationType.ALWAYS,
    "random": AllocationType.RANDOM,
    "external": AllocationType.EXTERNAL,
}

_SNIFFING_PROTOCOLS = {
    "http": "http",
    "tls": "tls",
    "https": "tls",
    "ssl": "tls",
    "quic": "quic",
    "fakedns": "fakedns",
    "fakedns+others": "fakedns+others",
}

_DOMAIN_OVERRIDE = {
    "http": KnownProtocol.HTTP,
    "tls": KnownProtocol.TLS,
    "https": KnownProtocol.TLS,
    "ssl": KnownProtocol.TLS,
}

_UDP443_POLICIES = ("reject", "allow", "skip")

_NETWORKS = {
    "": "tcp",
    "tcp": "tcp",
    "kcp": "mkcp",
    "mkcp": "mkcp",
    "ws": "websocket",
    "websocket": "websocket",
    "http": "http",
    "h2": "http",
    "ds": "domainsocket",
    "domainsocket": "domainsocket",
}

_SECURITY = {"": "", "none": "", "tls": "tls", "reality": "reality"}

# (document attribute, runtime transport name)
_TRANSPORT_BLOCKS = (
    ("tcp_settings", "tcp"),
    ("kcp_settings", "mkcp"),
    ("ws_settings", "websocket"),
    ("http_settings", "http"),
    ("ds_settings", "domainsocket"),
)


class ListenKind(enum.Enum):
    ANY = "any"
    IP = "ip"
    SOCKET = "socket"


def classify_listen(address: Address | None) -> ListenKind:
    """Classify a listen address.

    Examples
    --------
    >>> classify_listen(None), classify_listen(Address("localhost"))
    (<ListenKind.ANY: 'any'>, <ListenKind.IP: 'ip'>)
    >>> classify_listen(Address("@abstract"))
    <ListenKind.SOCKET: 'socket'>
    >>> classify_listen(Address("example.com"))
    Traceback (most recent call last):
    ...
    lib_proxy_config.domain.errors.UnsupportedAddress: unable to listen on domain address: example.com
    """

    if address is None:
        return ListenKind.ANY
    if address.is_ip or address.is_localhost:
        return ListenKind.IP
    if address.is_socket_path:
        return ListenKind.SOCKET
    raise UnsupportedAddress(f"unable to listen on domain address: {address}")


def build_allocation(spec: AllocationSpec) -> AllocationStrategy:
    try:
        kind = _STRATEGIES[spec.strategy.lower()]
    except KeyError as exc:
        raise UnknownStrategy(f"unknown allocation strategy: {spec.strategy}") from exc
    return AllocationStrategy(type=kind, concurrency=spec.concurrency, refresh=spec.refresh)


def build_sniffing(spec: SniffingSpec) -> SniffingConfig:
    """Normalise destination-override keywords and lower-case excluded domains."""

    destinations = None
    if spec.dest_override is not None:
        destinations = []
        for keyword in spec.dest_override:
            try:
                destinations.append(_SNIFFING_PROTOCOLS[keyword.lower()])
            except KeyError as exc:
                raise UnknownSniffingProtocol(f"unknown protocol: {keyword}") from exc
    excluded = None
    if spec.domains_excluded is not None:
        excluded = tuple(domain.lower() for domain in spec.domains_excluded)
    return SniffingConfig(
        enabled=spec.enabled,
        destination_override=tuple(destinations) if destinations is not None else None,
        domains_excluded=excluded,
        metadata_only=spec.metadata_only,
        route_only=spec.route_only,
    )


def build_domain_override(keywords: tuple[str, ...]) -> tuple[KnownProtocol, ...]:
    protocols = []
    for keyword in keywords:
        try:
            protocols.append(_DOMAIN_OVERRIDE[keyword.lower()])
        except KeyError as exc:
            raise UnknownSniffingProtocol(f"unknown protocol: {keyword}") from exc
    return tuple(protocols)


def build_mux(spec: MuxSpec) -> MultiplexingConfig:
    """Build mux settings; a negative concurrency (mux fully off) passes through untouched.

    Examples
    --------
    >>> build_mux(MuxSpec(enabled=True)).xudp_proxy_udp443
    'reject'
    >>> build_mux(MuxSpec(xudp_proxy_udp443="bogus"))
    Traceback (most recent call last):
    ...
    lib_proxy_config.domain.errors.InvalidPolicy: unknown "xudpProxyUDP443": bogus
    """

    policy = spec.xudp_proxy_udp443 or "reject"
    if policy not in _UDP443_POLICIES:
        raise InvalidPolicy(f'unknown "xudpProxyUDP443": {spec.xudp_proxy_udp443}')
    return MultiplexingConfig(
        enabled=spec.enabled,
        concurrency=spec.concurrency,
        xudp_concurrency=spec.xudp_concurrency,
        xudp_proxy_udp443=policy,
    )


def build_proxy(spec: ProxySpec) -> ProxyConfig:
    if not spec.tag:
        raise ValidationError("proxy tag is not set")
    return ProxyConfig(tag=spec.tag, transport_layer_proxy=spec.transport_layer)


def build_socket(spec: SocketSpec) -> SocketConfig:
    return SocketConfig(
        dialer_proxy=spec.dialer_proxy,
        mark=spec.mark,
        tcp_fast_open=spec.tcp_fast_open,
        tproxy=spec.tproxy,
        domain_strategy=spec.domain_strategy,
        accept_proxy_protocol=spec.accept_proxy_protocol,
    )


def build_stream(spec: StreamSpec) -> StreamConfig:
    """Translate stream settings into the runtime form.

    Only transport blocks that were actually given are emitted; ``security``
    settings are attached when a security layer is selected.
    """

    try:
        network = _NETWORKS[spec.network.lower()]
    except KeyError as exc:
        raise UnknownTransport(f"unknown transport protocol: {spec.network}") from exc
    try:
        security = _SECURITY[spec.security.lower()]
    except KeyError as exc:
        raise UnknownTransport(f"unknown security type: {spec.security}") from exc

    transports = []
    for attribute, name in _TRANSPORT_BLOCKS:
        block = getattr(spec, attribute)
        if block is not None:
            transports.append(_transport_message(name, block))

    security_settings: tuple[TypedMessage, ...] = ()
    if security == "tls":
        security_settings = (TypedMessage("xray.transport.internet.tls.Config", spec.tls_settings or {}),)
    elif security == "reality":
        if not spec.reality_settings:
            raise ValidationError("reality security requires realitySettings")
        security_settings = (TypedMessage("xray.transport.internet.reality.Config", spec.reality_settings),)

    return StreamConfig(
        protocol_name=network,
        transport_settings=tuple(transports),
        security_type=security,
        security_settings=security_settings,
        socket_settings=build_socket(spec.socket_settings) if spec.socket_settings is not None else None,
    )


def apply_transport(stream: StreamSpec | None, transport: TransportSpec) -> StreamSpec:
    """Fill transport blocks left unset in *stream* from the global defaults.

    Blocks already present are never touched, so applying the same defaults
    twice yields the same result as applying them once.

    Examples
    --------
    >>> defaults = TransportSpec(tcp_settings={"header": {"type": "none"}})
    >>> apply_transport(None, defaults).tcp_settings
    {'header': {'type': 'none'}}
    >>> apply_transport(StreamSpec(tcp_settings={}), defaults).tcp_settings
    {}
    """

    base = stream if stream is not None else StreamSpec()
    updates: dict[str, Any] = {}
    for attribute, _ in _TRANSPORT_BLOCKS:
        if getattr(base, attribute) is None and getattr(transport, attribute) is not None:
            updates[attribute] = getattr(transport, attribute)
    return base.model_copy(update=updates) if updates else base


def _transport_message(name: str, block: Mapping[str, Any]) -> TypedMessage:
    if name == "mkcp":
        _check_range(block, "mtu", 576, 1460, "invalid mKCP MTU size")
        _check_range(block, "tti", 10, 100, "invalid mKCP TTI")
    if name == "tcp":
        header = block.get("header") or {}
        header_type = str(header.get("type", "none")).lower() if isinstance(header, Mapping) else ""
        if header_type not in ("none", "http"):
            raise UnknownTransport(f"unknown tcp header type: {header_type or header!r}")
    return TypedMessage(f"xray.transport.internet.{name}.Config", block)


def _check_range(block: Mapping[str, Any], key: str, low: int, high: int, message: str) -> None:
    value = block.get(key)
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ValidationError(f"{message}: {value}")
