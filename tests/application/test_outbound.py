from __future__ import annotations

import pytest

from lib_proxy_config.application.outbound import check_chain_proxy, compile_outbound
from lib_proxy_config.application.registry import OUTBOUND_REGISTRY
from lib_proxy_config.domain.document import MuxSpec, OutboundSpec, ProxySpec, SocketSpec, StreamSpec
from lib_proxy_config.domain.errors import (
    ConflictError,
    InvalidPolicy,
    SchemaError,
    UnknownTransport,
    UnsupportedAddress,
    ValidationError,
)
from lib_proxy_config.domain.net import Address


def test_minimal_outbound() -> None:
    handler = compile_outbound(OutboundSpec(protocol="freedom", tag="direct"), OUTBOUND_REGISTRY)

    assert handler.tag == "direct"
    assert handler.sender_settings.via is None
    assert handler.sender_settings.stream_settings is None
    assert handler.sender_settings.proxy_settings is None
    assert handler.sender_settings.multiplex_settings is None
    assert handler.proxy_settings.type == "xray.proxy.freedom.Config"
    assert handler.proxy_settings.value["domain_strategy"] == "AS_IS"


def test_chain_proxy_conflict() -> None:
    spec = OutboundSpec(
        protocol="freedom",
        proxy_settings=ProxySpec(tag="chain"),
        stream_settings=StreamSpec(socket_settings=SocketSpec(dialer_proxy="dialer")),
    )

    with pytest.raises(ConflictError):
        compile_outbound(spec, OUTBOUND_REGISTRY)


def test_chain_proxy_without_dialer_is_fine() -> None:
    check_chain_proxy(OutboundSpec(proxy_settings=ProxySpec(tag="chain"), stream_settings=StreamSpec(socket_settings=SocketSpec())))
    check_chain_proxy(OutboundSpec(stream_settings=StreamSpec(socket_settings=SocketSpec(dialer_proxy="dialer"))))


def test_send_through_domain_is_rejected() -> None:
    with pytest.raises(UnsupportedAddress, match="example.com"):
        compile_outbound(OutboundSpec(protocol="freedom", send_through=Address("example.com")), OUTBOUND_REGISTRY)


def test_send_through_ip_is_normalised() -> None:
    handler = compile_outbound(OutboundSpec(protocol="freedom", send_through=Address("2001:db8:0:0:0:0:0:1")), OUTBOUND_REGISTRY)
    assert handler.sender_settings.via == "2001:db8::1"


def test_plain_chain_proxy_is_kept() -> None:
    spec = OutboundSpec(protocol="freedom", proxy_settings=ProxySpec(tag="chain"))

    sender = compile_outbound(spec, OUTBOUND_REGISTRY).sender_settings

    assert sender.proxy_settings.tag == "chain"
    assert sender.proxy_settings.transport_layer_proxy is False
    assert sender.stream_settings is None


def test_transport_layer_chain_becomes_dialer_proxy() -> None:
    spec = OutboundSpec(
        protocol="freedom",
        proxy_settings=ProxySpec(tag="chain", transport_layer=True),
        stream_settings=StreamSpec(network="ws", socket_settings=SocketSpec(mark=9)),
    )

    sender = compile_outbound(spec, OUTBOUND_REGISTRY).sender_settings

    assert sender.proxy_settings is None
    assert sender.stream_settings.protocol_name == "websocket"
    assert sender.stream_settings.socket_settings.dialer_proxy == "chain"
    assert sender.stream_settings.socket_settings.mark == 9


def test_transport_layer_chain_without_stream_settings() -> None:
    spec = OutboundSpec(protocol="freedom", proxy_settings=ProxySpec(tag="chain", transport_layer=True))

    sender = compile_outbound(spec, OUTBOUND_REGISTRY).sender_settings

    assert sender.proxy_settings is None
    assert sender.stream_settings.protocol_name == "tcp"
    assert sender.stream_settings.socket_settings.dialer_proxy == "chain"


def test_missing_proxy_tag_names_the_step() -> None:
    with pytest.raises(ValidationError, match="^invalid outbound proxy settings: proxy tag is not set$"):
        compile_outbound(OutboundSpec(protocol="freedom", proxy_settings=ProxySpec()), OUTBOUND_REGISTRY)


def test_mux_defaults_to_reject() -> None:
    spec = OutboundSpec(protocol="freedom", mux=MuxSpec(enabled=True, concurrency=8))

    mux = compile_outbound(spec, OUTBOUND_REGISTRY).sender_settings.multiplex_settings

    assert mux.xudp_proxy_udp443 == "reject"
    assert mux.concurrency == 8


def test_mux_bogus_policy_keeps_schema_classification() -> None:
    with pytest.raises(InvalidPolicy, match="^failed to build mux config") as captured:
        compile_outbound(OutboundSpec(protocol="freedom", mux=MuxSpec(xudp_proxy_udp443="bogus")), OUTBOUND_REGISTRY)
    assert isinstance(captured.value, SchemaError)


def test_protocol_settings_are_loaded() -> None:
    spec = OutboundSpec(
        protocol="VMess",
        settings={"vnext": [{"address": "proxy.example.com", "port": 443, "users": [{"id": "abc", "security": "aes-128-gcm"}]}]},
    )

    settings = compile_outbound(spec, OUTBOUND_REGISTRY).proxy_settings

    assert settings.type == "xray.proxy.vmess.outbound.Config"
    assert settings.value["receivers"][0]["users"][0]["security"] == "AES128_GCM"


@pytest.mark.parametrize(
    ("spec", "error", "context"),
    [
        (
            OutboundSpec(
                protocol="freedom",
                proxy_settings=ProxySpec(tag="chain"),
                stream_settings=StreamSpec(socket_settings=SocketSpec(dialer_proxy="dialer")),
            ),
            ConflictError,
            "invalid chain proxy settings",
        ),
        (OutboundSpec(protocol="freedom", send_through=Address("example.com")), UnsupportedAddress, "invalid send-through address"),
        (OutboundSpec(protocol="freedom", stream_settings=StreamSpec(network="carrier-pigeon")), UnknownTransport, "failed to build stream settings"),
        (
            OutboundSpec(protocol="freedom", settings={"redirect": "127.0.0.1"}),
            ValidationError,
            "failed to build outbound protocol settings",
        ),
    ],
)
def test_each_step_names_itself_in_the_context(spec: OutboundSpec, error: type, context: str) -> None:
    with pytest.raises(error) as captured:
        compile_outbound(spec, OUTBOUND_REGISTRY)

    assert captured.value.context[0] == context
    assert str(captured.value).startswith(f"{context}: ")
