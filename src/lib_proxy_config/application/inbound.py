"""Inbound compiler: one listener specification -> one inbound handler.

The listen/port rules:

* no listen address: listen on any address, a port specification is required;
* an IP literal or ``localhost``: a port specification is required;
* a ``/path`` or ``@abstract`` domain socket: any port specification is dropped;
* any other domain name: rejected.
"""

from __future__ import annotations

from ..domain.config import AllocationStrategy, AllocationType, InboundHandlerConfig, ReceiverConfig
from ..domain.document import InboundSpec
from ..domain.errors import ConfigError, InsufficientPorts, MissingPort
from ..domain.net import PortList
from ..observability import log_debug
from ..protocols.inbound import DokodemoInboundSettings
from .builders import ListenKind, build_allocation, build_domain_override, build_sniffing, build_stream, classify_listen
from .registry import ProtocolRegistry


def compile_inbound(spec: InboundSpec, registry: ProtocolRegistry) -> InboundHandlerConfig:
    """Validate and assemble one listener's configuration.

    Why
    ----
    Listener rules span several fields (address, ports, allocation); checking
    them in one place keeps every inbound compiled under identical rules.

    Parameters
    ----------
    spec:
        Listener specification, already overlaid with transport defaults.
    registry:
        Inbound protocol registry used to decode ``settings``.

    Returns
    -------
    InboundHandlerConfig
        Tag, receiver settings, and built protocol settings.

    Raises
    ------
    MissingPort, UnsupportedAddress, InsufficientPorts
        Listen/port/allocation rules are violated.
    SchemaError, DecodeError
        A keyword or payload is invalid.

    Every error message names the step that failed.
    """

    try:
        port_list = _resolve_ports(spec)
    except ConfigError as exc:
        raise exc.with_context("invalid listen address") from exc

    allocation = None
    if spec.allocate is not None:
        try:
            allocation = build_allocation(spec.allocate)
            _check_capacity(allocation, spec.port)
        except ConfigError as exc:
            raise exc.with_context("failed to build allocation strategy") from exc

    stream = None
    if spec.stream_settings is not None:
        try:
            stream = build_stream(spec.stream_settings)
        except ConfigError as exc:
            raise exc.with_context("failed to build stream settings") from exc

    sniffing = None
    if spec.sniffing is not None:
        try:
            sniffing = build_sniffing(spec.sniffing)
        except ConfigError as exc:
            raise exc.with_context("failed to build sniffing config") from exc

    domain_override = None
    if spec.domain_override is not None:
        try:
            domain_override = build_domain_override(spec.domain_override)
        except ConfigError as exc:
            raise exc.with_context("failed to parse inbound domainOverride") from exc

    try:
        settings = registry.load(spec.settings or {}, spec.protocol)
    except ConfigError as exc:
        raise exc.with_context("failed to load inbound settings") from exc

    receive_original = False
    if isinstance(settings, DokodemoInboundSettings):
        receive_original = settings.redirect

    try:
        proxy_settings = settings.build()
    except ConfigError as exc:
        raise exc.with_context("failed to build inbound protocol settings") from exc

    receiver = ReceiverConfig(
        port_list=port_list,
        listen=spec.listen.build() if spec.listen is not None else None,
        allocation_strategy=allocation,
        stream_settings=stream,
        receive_original_destination=receive_original,
        sniffing_settings=sniffing,
        domain_override=domain_override,
    )
    handler = InboundHandlerConfig(tag=spec.tag, receiver_settings=receiver, proxy_settings=proxy_settings)
    log_debug("inbound_compiled", tag=spec.tag, protocol=settings.protocol, listen=receiver.listen)
    return handler


def _resolve_ports(spec: InboundSpec) -> PortList | None:
    """Apply the listen/port rules; a domain socket drops its ports."""

    kind = classify_listen(spec.listen)
    if kind is ListenKind.ANY and spec.port is None:
        raise MissingPort("listen on AnyIP but no port(s) set in inbound")
    if kind is ListenKind.IP and spec.port is None:
        raise MissingPort(f"listen on specific ip {spec.listen} without port in inbound")
    if kind is ListenKind.SOCKET:
        return None
    return spec.port


def _check_capacity(allocation: AllocationStrategy, ports: PortList | None) -> None:
    """Random allocation needs more ports than concurrent listeners.

    Capacity counts the declared ports, even when a socket listener drops them.
    """

    if allocation.type is not AllocationType.RANDOM or allocation.concurrency is None:
        return
    capacity = ports.capacity if ports is not None else 0
    if allocation.concurrency >= capacity:
        raise InsufficientPorts(f"not enough ports. concurrency = {allocation.concurrency} ports: {ports or 'none'}")
