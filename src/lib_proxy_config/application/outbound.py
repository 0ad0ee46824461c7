"""Outbound compiler: one sender specification -> one outbound handler."""

from __future__ import annotations

from dataclasses import replace

from ..domain.config import OutboundHandlerConfig, SenderConfig, SocketConfig, StreamConfig
from ..domain.document import OutboundSpec
from ..domain.errors import ConfigError, ConflictError, UnsupportedAddress
from ..observability import log_debug
from .builders import build_mux, build_proxy, build_stream
from .registry import ProtocolRegistry


def check_chain_proxy(spec: OutboundSpec) -> None:
    """Reject senders that set both ``proxySettings.tag`` and ``sockopt.dialerProxy``."""

    stream = spec.stream_settings
    if stream is None or spec.proxy_settings is None or stream.socket_settings is None:
        return
    if spec.proxy_settings.tag and stream.socket_settings.dialer_proxy:
        raise ConflictError("proxySettings.tag is conflicted with sockopt.dialerProxy")


def compile_outbound(spec: OutboundSpec, registry: ProtocolRegistry) -> OutboundHandlerConfig:
    """Validate and assemble one sender's configuration.

    A transport-layer chain proxy is expressed purely as a socket-level
    dialer redirection: its tag moves into ``sockopt.dialerProxy`` and no
    proxy-settings block is emitted.
    """

    try:
        check_chain_proxy(spec)
    except ConfigError as exc:
        raise exc.with_context("invalid chain proxy settings") from exc

    via = None
    if spec.send_through is not None:
        try:
            via = _send_through(spec)
        except ConfigError as exc:
            raise exc.with_context("invalid send-through address") from exc

    stream = None
    if spec.stream_settings is not None:
        try:
            stream = build_stream(spec.stream_settings)
        except ConfigError as exc:
            raise exc.with_context("failed to build stream settings") from exc

    proxy = None
    if spec.proxy_settings is not None:
        try:
            proxy = build_proxy(spec.proxy_settings)
        except ConfigError as exc:
            raise exc.with_context("invalid outbound proxy settings") from exc
        if proxy.transport_layer_proxy:
            stream = _with_dialer_proxy(stream, proxy.tag)
            proxy = None

    mux = None
    if spec.mux is not None:
        try:
            mux = build_mux(spec.mux)
        except ConfigError as exc:
            raise exc.with_context("failed to build mux config") from exc

    try:
        settings = registry.load(spec.settings or {}, spec.protocol)
    except ConfigError as exc:
        raise exc.with_context("failed to load outbound settings") from exc

    try:
        proxy_settings = settings.build()
    except ConfigError as exc:
        raise exc.with_context("failed to build outbound protocol settings") from exc

    sender = SenderConfig(via=via, stream_settings=stream, proxy_settings=proxy, multiplex_settings=mux)
    handler = OutboundHandlerConfig(tag=spec.tag, sender_settings=sender, proxy_settings=proxy_settings)
    log_debug("outbound_compiled", tag=spec.tag, protocol=settings.protocol, via=via)
    return handler


def _send_through(spec: OutboundSpec) -> str:
    if spec.send_through.is_domain:
        raise UnsupportedAddress(f"unable to send through: {spec.send_through}")
    return spec.send_through.build()


def _with_dialer_proxy(stream: StreamConfig | None, tag: str) -> StreamConfig:
    if stream is None:
        return StreamConfig(socket_settings=SocketConfig(dialer_proxy=tag))
    socket = stream.socket_settings or SocketConfig()
    return replace(stream, socket_settings=replace(socket, dialer_proxy=tag))
