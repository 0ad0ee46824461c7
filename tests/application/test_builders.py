from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_proxy_config.application.builders import (
    ListenKind,
    apply_transport,
    build_allocation,
    build_domain_override,
    build_mux,
    build_proxy,
    build_sniffing,
    build_stream,
    classify_listen,
)
from lib_proxy_config.domain.config import AllocationType, KnownProtocol
from lib_proxy_config.domain.document import (
    AllocationSpec,
    MuxSpec,
    ProxySpec,
    SniffingSpec,
    SocketSpec,
    StreamSpec,
    TransportSpec,
)
from lib_proxy_config.domain.errors import (
    InvalidPolicy,
    SchemaError,
    UnknownSniffingProtocol,
    UnknownStrategy,
    UnknownTransport,
    UnsupportedAddress,
    ValidationError,
)
from lib_proxy_config.domain.net import Address


@pytest.mark.parametrize(
    ("address", "kind"),
    [
        (None, ListenKind.ANY),
        (Address("0.0.0.0"), ListenKind.IP),
        (Address("::"), ListenKind.IP),
        (Address("localhost"), ListenKind.IP),
        (Address("/var/run/proxy.sock"), ListenKind.SOCKET),
        (Address("@proxy"), ListenKind.SOCKET),
    ],
)
def test_classify_listen(address: Address | None, kind: ListenKind) -> None:
    assert classify_listen(address) is kind


def test_classify_listen_rejects_domains() -> None:
    with pytest.raises(UnsupportedAddress, match="example.com"):
        classify_listen(Address("example.com"))


@pytest.mark.parametrize(("name", "kind"), [("always", AllocationType.ALWAYS), ("Random", AllocationType.RANDOM), ("EXTERNAL", AllocationType.EXTERNAL)])
def test_allocation_strategy_is_case_insensitive(name: str, kind: AllocationType) -> None:
    strategy = build_allocation(AllocationSpec(strategy=name, concurrency=3, refresh=5))
    assert strategy.type is kind
    assert (strategy.concurrency, strategy.refresh) == (3, 5)


def test_allocation_strategy_unknown() -> None:
    with pytest.raises(UnknownStrategy, match="sometimes"):
        build_allocation(AllocationSpec(strategy="sometimes"))


def test_sniffing_normalises_vocabulary() -> None:
    config = build_sniffing(
        SniffingSpec(
            enabled=True,
            dest_override=("HTTP", "https", "ssl", "quic", "fakedns", "fakedns+others"),
            domains_excluded=("Courier.PUSH.Apple.com",),
            metadata_only=True,
        )
    )

    assert config.destination_override == ("http", "tls", "tls", "quic", "fakedns", "fakedns+others")
    assert config.domains_excluded == ("courier.push.apple.com",)
    assert config.enabled and config.metadata_only and not config.route_only


def test_sniffing_keeps_absent_and_empty_distinct() -> None:
    assert build_sniffing(SniffingSpec()).destination_override is None
    assert build_sniffing(SniffingSpec(dest_override=())).destination_override == ()


def test_sniffing_unknown_keyword() -> None:
    with pytest.raises(UnknownSniffingProtocol, match="unknown protocol: bittorrent"):
        build_sniffing(SniffingSpec(dest_override=("bittorrent",)))


def test_domain_override() -> None:
    assert build_domain_override(("http", "SSL")) == (KnownProtocol.HTTP, KnownProtocol.TLS)
    with pytest.raises(UnknownSniffingProtocol):
        build_domain_override(("quic",))


@pytest.mark.parametrize(("given_policy", "expected"), [("", "reject"), ("reject", "reject"), ("allow", "allow"), ("skip", "skip")])
def test_mux_policy(given_policy: str, expected: str) -> None:
    assert build_mux(MuxSpec(enabled=True, xudp_proxy_udp443=given_policy)).xudp_proxy_udp443 == expected


def test_mux_unknown_policy_is_schema_error() -> None:
    with pytest.raises(InvalidPolicy) as captured:
        build_mux(MuxSpec(xudp_proxy_udp443="bogus"))
    assert isinstance(captured.value, SchemaError)


def test_mux_negative_concurrency_passes_through() -> None:
    config = build_mux(MuxSpec(enabled=True, concurrency=-1))
    assert config.enabled is True
    assert config.concurrency == -1


def test_proxy_requires_tag() -> None:
    assert build_proxy(ProxySpec(tag="chain", transport_layer=True)).transport_layer_proxy is True
    with pytest.raises(ValidationError, match="proxy tag is not set"):
        build_proxy(ProxySpec())


def test_stream_defaults_to_tcp() -> None:
    config = build_stream(StreamSpec())

    assert config.protocol_name == "tcp"
    assert config.transport_settings == ()
    assert config.security_type == ""
    assert config.socket_settings is None


@pytest.mark.parametrize(("network", "name"), [("kcp", "mkcp"), ("ws", "websocket"), ("h2", "http"), ("ds", "domainsocket"), ("TCP", "tcp")])
def test_stream_network_aliases(network: str, name: str) -> None:
    assert build_stream(StreamSpec(network=network)).protocol_name == name


def test_stream_emits_given_blocks_and_security() -> None:
    config = build_stream(
        StreamSpec(
            network="ws",
            security="tls",
            tls_settings={"serverName": "example.com"},
            ws_settings={"path": "/ws"},
            socket_settings=SocketSpec(dialer_proxy="chain", mark=7),
        )
    )

    assert [message.type for message in config.transport_settings] == ["xray.transport.internet.websocket.Config"]
    assert config.security_type == "tls"
    assert config.security_settings[0].value["serverName"] == "example.com"
    assert config.socket_settings.dialer_proxy == "chain"
    assert config.socket_settings.mark == 7


@pytest.mark.parametrize(
    "spec",
    [
        StreamSpec(network="carrier"),
        StreamSpec(security="ssl3"),
        StreamSpec(tcp_settings={"header": {"type": "srtp"}}),
    ],
)
def test_stream_unknown_names(spec: StreamSpec) -> None:
    with pytest.raises(UnknownTransport):
        build_stream(spec)


@pytest.mark.parametrize("block", [{"mtu": 100}, {"tti": 500}, {"mtu": "1350"}])
def test_stream_kcp_ranges(block: dict) -> None:
    with pytest.raises(ValidationError):
        build_stream(StreamSpec(network="kcp", kcp_settings=block))


def test_stream_reality_requires_settings() -> None:
    with pytest.raises(ValidationError, match="realitySettings"):
        build_stream(StreamSpec(security="reality"))


def test_apply_transport_fills_only_unset_blocks() -> None:
    defaults = TransportSpec(tcp_settings={"header": {"type": "none"}}, ws_settings={"path": "/default"})
    own = {"path": "/mine"}

    result = apply_transport(StreamSpec(network="ws", ws_settings=own), defaults)

    assert result.ws_settings is own
    assert result.tcp_settings == {"header": {"type": "none"}}
    assert result.network == "ws"


BLOCK = st.one_of(st.none(), st.dictionaries(st.sampled_from(["path", "mtu", "host"]), st.integers(), max_size=2))


@given(BLOCK, BLOCK, BLOCK, BLOCK)
def test_apply_transport_is_idempotent_and_non_destructive(own_tcp, own_ws, default_tcp, default_ws) -> None:
    stream = StreamSpec(tcp_settings=own_tcp, ws_settings=own_ws)
    defaults = TransportSpec(tcp_settings=default_tcp, ws_settings=default_ws)

    once = apply_transport(stream, defaults)
    twice = apply_transport(once, defaults)

    assert once == twice
    if own_tcp is not None:
        assert once.tcp_settings is own_tcp
    if own_ws is not None:
        assert once.ws_settings is own_ws
