"""Outbound (sender) protocol settings variants."""

from __future__ import annotations

import ipaddress

from pydantic import Field

from ..domain.config import TypedMessage
from ..domain.decode import Schema
from ..domain.errors import ValidationError
from .base import ProtocolSettings, choose, looks_like_key, require
from .inbound import SHADOWSOCKS_CIPHERS, Account

_DOMAIN_STRATEGIES = {
    "asis": "AS_IS",
    "useip": "USE_IP",
    "useipv4": "USE_IP4",
    "useipv6": "USE_IP6",
    "useipv4v6": "USE_IP46",
    "useipv6v4": "USE_IP64",
    "forceip": "FORCE_IP",
    "forceipv4": "FORCE_IP4",
    "forceipv6": "FORCE_IP6",
}

_VMESS_SECURITY = {
    "auto": "AUTO",
    "aes-128-gcm": "AES128_GCM",
    "chacha20-poly1305": "CHACHA20_POLY1305",
    "none": "NONE",
    "zero": "ZERO",
}


def _check_endpoint(kind: str, index: int, address: str, port: int) -> None:
    require(bool(address), f"{kind} servers[{index}]: address is not set")
    require(0 < port <= 65535, f"{kind} servers[{index}]: invalid port {port}")


class BlackholeResponse(Schema):
    type: str = "none"


class BlackholeOutboundSettings(ProtocolSettings):
    protocol = "blackhole"
    message_type = "xray.proxy.blackhole.Config"

    response: BlackholeResponse | None = None

    def build(self) -> TypedMessage:
        kind = self.response.type if self.response else "none"
        return self.message(response=choose(kind, {"none": "none", "http": "http"}, "blackhole response", default="none"))


class LoopbackOutboundSettings(ProtocolSettings):
    protocol = "loopback"
    message_type = "xray.proxy.loopback.Config"

    inbound_tag: str = ""

    def build(self) -> TypedMessage:
        require(bool(self.inbound_tag), "loopback inboundTag is not set")
        return self.message(inbound_tag=self.inbound_tag)


class FreedomOutboundSettings(ProtocolSettings):
    protocol = "freedom"
    message_type = "xray.proxy.freedom.Config"

    domain_strategy: str = ""
    redirect: str = ""
    user_level: int = 0

    def build(self) -> TypedMessage:
        strategy = choose(self.domain_strategy, _DOMAIN_STRATEGIES, "freedom domainStrategy", default="AS_IS")
        destination = None
        if self.redirect:
            host, sep, port = self.redirect.rpartition(":")
            require(bool(sep) and port.isdigit() and int(port) <= 65535, f"invalid freedom redirect: {self.redirect}")
            destination = {"address": host.strip("[]") or None, "port": int(port)}
        return self.message(domain_strategy=strategy, destination_override=destination, user_level=self.user_level)


class HTTPServer(Schema):
    address: str = ""
    port: int = 0
    users: tuple[Account, ...] = ()


class HTTPOutboundSettings(ProtocolSettings):
    protocol = "http"
    message_type = "xray.proxy.http.ClientConfig"

    servers: tuple[HTTPServer, ...] = ()

    def build(self) -> TypedMessage:
        require(bool(self.servers), "http outbound: no servers configured")
        for index, server in enumerate(self.servers):
            _check_endpoint("http", index, server.address, server.port)
        return self.message(
            servers=[
                {"address": s.address, "port": s.port, "users": {u.user: u.password for u in s.users}}
                for s in self.servers
            ]
        )


class ShadowsocksServer(Schema):
    address: str = ""
    port: int = 0
    method: str = ""
    password: str = ""
    email: str = ""
    level: int = 0


class ShadowsocksOutboundSettings(ProtocolSettings):
    protocol = "shadowsocks"
    message_type = "xray.proxy.shadowsocks.ClientConfig"

    servers: tuple[ShadowsocksServer, ...] = ()

    def build(self) -> TypedMessage:
        require(bool(self.servers), "shadowsocks outbound: no servers configured")
        built = []
        for index, server in enumerate(self.servers):
            _check_endpoint("shadowsocks", index, server.address, server.port)
            cipher = choose(server.method, SHADOWSOCKS_CIPHERS, "shadowsocks cipher")
            require(cipher == "NONE" or bool(server.password), f"shadowsocks servers[{index}]: password is not set")
            built.append(
                {
                    "address": server.address,
                    "port": server.port,
                    "cipher": cipher,
                    "password": server.password,
                    "email": server.email,
                    "level": server.level,
                }
            )
        return self.message(servers=built)


class SocksServer(Schema):
    address: str = ""
    port: int = 0
    users: tuple[Account, ...] = ()


class SocksOutboundSettings(ProtocolSettings):
    protocol = "socks"
    message_type = "xray.proxy.socks.ClientConfig"

    servers: tuple[SocksServer, ...] = ()

    def build(self) -> TypedMessage:
        require(bool(self.servers), "socks outbound: no servers configured")
        for index, server in enumerate(self.servers):
            _check_endpoint("socks", index, server.address, server.port)
        return self.message(
            servers=[
                {"address": s.address, "port": s.port, "users": [{"user": u.user, "pass": u.password} for u in s.users]}
                for s in self.servers
            ]
        )


class VLessUser(Schema):
    id: str = ""
    encryption: str = ""
    flow: str = ""
    level: int = 0


class VLessServer(Schema):
    address: str = ""
    port: int = 0
    users: tuple[VLessUser, ...] = ()


class VLessOutboundSettings(ProtocolSettings):
    protocol = "vless"
    message_type = "xray.proxy.vless.outbound.Config"

    vnext: tuple[VLessServer, ...] = ()

    def build(self) -> TypedMessage:
        require(bool(self.vnext), "VLESS settings: vnext is empty")
        for index, server in enumerate(self.vnext):
            _check_endpoint("VLESS", index, server.address, server.port)
            require(len(server.users) == 1, f"VLESS vnext[{index}]: exactly one user is required")
            user = server.users[0]
            require(bool(user.id), f"VLESS vnext[{index}]: user id is not set")
            require(user.encryption == "none", 'VLESS users: please add/set "encryption":"none" for every user')
        return self.message(
            vnext=[
                {
                    "address": s.address,
                    "port": s.port,
                    "user": {"id": s.users[0].id, "encryption": "none", "flow": s.users[0].flow, "level": s.users[0].level},
                }
                for s in self.vnext
            ]
        )


class VMessUser(Schema):
    id: str = ""
    security: str = ""
    level: int = 0
    email: str = ""


class VMessServer(Schema):
    address: str = ""
    port: int = 0
    users: tuple[VMessUser, ...] = ()


class VMessOutboundSettings(ProtocolSettings):
    protocol = "vmess"
    message_type = "xray.proxy.vmess.outbound.Config"

    vnext: tuple[VMessServer, ...] = ()

    def build(self) -> TypedMessage:
        require(bool(self.vnext), "0 VMess receiver configured")
        servers = []
        for index, server in enumerate(self.vnext):
            _check_endpoint("VMess", index, server.address, server.port)
            require(bool(server.users), f"VMess vnext[{index}]: 0 user configured")
            users = []
            for user in server.users:
                require(bool(user.id), f"VMess vnext[{index}]: user id is not set")
                security = choose(user.security, _VMESS_SECURITY, "VMess security", default="AUTO")
                users.append({"id": user.id, "security": security, "level": user.level, "email": user.email})
            servers.append({"address": server.address, "port": server.port, "users": users})
        return self.message(receivers=servers)


class TrojanServer(Schema):
    address: str = ""
    port: int = 0
    password: str = ""
    email: str = ""
    level: int = 0
    flow: str = ""


class TrojanOutboundSettings(ProtocolSettings):
    protocol = "trojan"
    message_type = "xray.proxy.trojan.ClientConfig"

    servers: tuple[TrojanServer, ...] = ()

    def build(self) -> TypedMessage:
        require(bool(self.servers), "0 Trojan server configured")
        for index, server in enumerate(self.servers):
            _check_endpoint("trojan", index, server.address, server.port)
            require(bool(server.password), f"trojan servers[{index}]: password is not set")
        return self.message(
            servers=[
                {"address": s.address, "port": s.port, "password": s.password, "email": s.email, "level": s.level, "flow": s.flow}
                for s in self.servers
            ]
        )


class MTProtoOutboundSettings(ProtocolSettings):
    protocol = "mtproto"
    message_type = "xray.proxy.mtproto.ClientConfig"

    def build(self) -> TypedMessage:
        return self.message()


class DNSOutboundSettings(ProtocolSettings):
    protocol = "dns"
    message_type = "xray.proxy.dns.Config"

    network: str = ""
    address: str = ""
    port: int = 0

    def build(self) -> TypedMessage:
        network = choose(self.network, {"tcp": "tcp", "udp": "udp"}, "dns network", default="")
        require(0 <= self.port <= 65535, f"dns outbound port out of range: {self.port}")
        server = None
        if self.address or self.port or network:
            server = {"network": network or None, "address": self.address or None, "port": self.port}
        return self.message(server=server)


class WireGuardPeer(Schema):
    public_key: str = ""
    pre_shared_key: str = ""
    endpoint: str = ""
    keep_alive: int = 0
    allowed_ips: tuple[str, ...] = Field(alias="allowedIPs", default=())


class WireGuardOutboundSettings(ProtocolSettings):
    protocol = "wireguard"
    message_type = "xray.proxy.wireguard.DeviceConfig"

    secret_key: str = ""
    address: tuple[str, ...] = ()
    peers: tuple[WireGuardPeer, ...] = ()
    mtu: int = 0
    workers: int = 0
    reserved: tuple[int, ...] = ()

    def build(self) -> TypedMessage:
        require(looks_like_key(self.secret_key), "wireguard secretKey appears invalid format")
        addresses = list(self.address) or ["10.0.0.1", "fd59:7153:2388:b5fd:0000:0000:0000:0001"]
        for entry in addresses:
            try:
                ipaddress.ip_interface(entry)
            except ValueError as exc:
                raise ValidationError(f"wireguard address invalid: {entry}") from exc
        require(bool(self.peers), "wireguard outbound: no peers configured")
        peers = []
        for index, peer in enumerate(self.peers):
            require(looks_like_key(peer.public_key), f"wireguard peers[{index}].publicKey appears invalid format")
            if peer.pre_shared_key:
                require(looks_like_key(peer.pre_shared_key), f"wireguard peers[{index}].preSharedKey appears invalid format")
            require(bool(peer.endpoint), f"wireguard peers[{index}]: endpoint is not set")
            peers.append(
                {
                    "public_key": peer.public_key,
                    "pre_shared_key": peer.pre_shared_key,
                    "endpoint": peer.endpoint,
                    "keep_alive": peer.keep_alive,
                    "allowed_ips": list(peer.allowed_ips) or ["0.0.0.0/0", "::0/0"],
                }
            )
        require(len(self.reserved) in (0, 3), "wireguard reserved must hold exactly 3 bytes")
        return self.message(
            secret_key=self.secret_key,
            endpoint=addresses,
            peers=peers,
            mtu=self.mtu or 1420,
            num_workers=self.workers,
            reserved=list(self.reserved),
        )


OUTBOUND_VARIANTS: tuple[type[ProtocolSettings], ...] = (
    BlackholeOutboundSettings,
    LoopbackOutboundSettings,
    FreedomOutboundSettings,
    HTTPOutboundSettings,
    ShadowsocksOutboundSettings,
    SocksOutboundSettings,
    VLessOutboundSettings,
    VMessOutboundSettings,
    TrojanOutboundSettings,
    MTProtoOutboundSettings,
    DNSOutboundSettings,
    WireGuardOutboundSettings,
)
