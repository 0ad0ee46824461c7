"""Inbound (listener) protocol settings variants."""

from __future__ import annotations

import re
from typing import Any

from pydantic import Field

from ..domain.config import TypedMessage
from ..domain.decode import Schema
from .base import ProtocolSettings, choose, require

_NETWORKS = {"tcp": "tcp", "udp": "udp"}

SHADOWSOCKS_CIPHERS = {
    "aes-128-gcm": "AES_128_GCM",
    "aes-256-gcm": "AES_256_GCM",
    "chacha20-poly1305": "CHACHA20_POLY1305",
    "chacha20-ietf-poly1305": "CHACHA20_POLY1305",
    "xchacha20-poly1305": "XCHACHA20_POLY1305",
    "xchacha20-ietf-poly1305": "XCHACHA20_POLY1305",
    "none": "NONE",
    "plain": "NONE",
    "2022-blake3-aes-128-gcm": "2022-blake3-aes-128-gcm",
    "2022-blake3-aes-256-gcm": "2022-blake3-aes-256-gcm",
    "2022-blake3-chacha20-poly1305": "2022-blake3-chacha20-poly1305",
}


def parse_networks(value: str) -> list[str]:
    """``"tcp,udp"`` style network list; empty means TCP only."""

    if not value:
        return ["tcp"]
    return [choose(part.strip(), _NETWORKS, "network") for part in value.split(",") if part.strip()]


class Account(Schema):
    user: str = ""
    password: str = Field(alias="pass", default="")


class DokodemoInboundSettings(ProtocolSettings):
    """Transparent proxy; ``followRedirect`` receives the original destination."""

    protocol = "dokodemo-door"
    message_type = "xray.proxy.dokodemo.Config"

    address: str = ""
    port: int = 0
    network: str = ""
    timeout: int = 0
    follow_redirect: bool = False
    user_level: int = 0

    @property
    def redirect(self) -> bool:
        return self.follow_redirect

    def build(self) -> TypedMessage:
        require(0 <= self.port <= 65535, f"dokodemo-door port out of range: {self.port}")
        require(bool(self.address) or self.follow_redirect, "dokodemo-door requires an address unless followRedirect is set")
        return self.message(
            address=self.address or None,
            port=self.port,
            networks=parse_networks(self.network),
            timeout=self.timeout,
            follow_redirect=self.follow_redirect,
            user_level=self.user_level,
        )


class HTTPInboundSettings(ProtocolSettings):
    protocol = "http"
    message_type = "xray.proxy.http.ServerConfig"

    timeout: int = 0
    accounts: tuple[Account, ...] = ()
    allow_transparent: bool = False
    user_level: int = 0

    def build(self) -> TypedMessage:
        return self.message(
            timeout=self.timeout,
            accounts={account.user: account.password for account in self.accounts},
            allow_transparent=self.allow_transparent,
            user_level=self.user_level,
        )


class ShadowsocksUser(Schema):
    method: str = ""
    password: str = ""
    email: str = ""
    level: int = 0


class ShadowsocksInboundSettings(ProtocolSettings):
    protocol = "shadowsocks"
    message_type = "xray.proxy.shadowsocks.ServerConfig"

    method: str = ""
    password: str = ""
    email: str = ""
    level: int = 0
    clients: tuple[ShadowsocksUser, ...] = ()
    network: str = ""

    def build(self) -> TypedMessage:
        users = list(self.clients) or [
            ShadowsocksUser(method=self.method, password=self.password, email=self.email, level=self.level)
        ]
        built = []
        for user in users:
            cipher = choose(user.method or self.method, SHADOWSOCKS_CIPHERS, "shadowsocks cipher")
            require(cipher == "NONE" or bool(user.password or self.password), "shadowsocks password is not set")
            built.append({"cipher": cipher, "password": user.password or self.password, "email": user.email, "level": user.level})
        return self.message(users=built, networks=parse_networks(self.network))


class SocksInboundSettings(ProtocolSettings):
    protocol = "socks"
    message_type = "xray.proxy.socks.ServerConfig"

    auth: str = ""
    accounts: tuple[Account, ...] = ()
    udp: bool = False
    ip: str = ""
    user_level: int = 0

    def build(self) -> TypedMessage:
        auth_type = choose(self.auth, {"noauth": "NO_AUTH", "password": "PASSWORD"}, "socks auth method", default="NO_AUTH")
        require(auth_type != "PASSWORD" or bool(self.accounts), "socks password auth requires accounts")
        return self.message(
            auth_type=auth_type,
            accounts={account.user: account.password for account in self.accounts},
            udp_enabled=self.udp,
            address=self.ip or None,
            user_level=self.user_level,
        )


class VLessClient(Schema):
    id: str = ""
    flow: str = ""
    email: str = ""
    level: int = 0


class VLessInboundSettings(ProtocolSettings):
    protocol = "vless"
    message_type = "xray.proxy.vless.inbound.Config"

    clients: tuple[VLessClient, ...] = ()
    decryption: str = ""
    fallbacks: tuple[dict[str, Any], ...] = ()

    def build(self) -> TypedMessage:
        require(self.decryption == "none", f'VLESS clients: "decryption" must be "none", got "{self.decryption}"')
        for index, client in enumerate(self.clients):
            require(bool(client.id), f"VLESS clients[{index}]: id is not set")
        return self.message(
            clients=[{"id": c.id, "flow": c.flow, "email": c.email, "level": c.level} for c in self.clients],
            decryption=self.decryption,
            fallbacks=[dict(item) for item in self.fallbacks],
        )


class VMessClient(Schema):
    id: str = ""
    level: int = 0
    email: str = ""


class VMessDetour(Schema):
    to: str = ""


class VMessInboundSettings(ProtocolSettings):
    protocol = "vmess"
    message_type = "xray.proxy.vmess.inbound.Config"

    clients: tuple[VMessClient, ...] = ()
    default: dict[str, Any] | None = None
    detour: VMessDetour | None = None

    def build(self) -> TypedMessage:
        for index, client in enumerate(self.clients):
            require(bool(client.id), f"VMess clients[{index}]: id is not set")
        return self.message(
            users=[{"id": c.id, "level": c.level, "email": c.email} for c in self.clients],
            default=dict(self.default) if self.default else None,
            detour=self.detour.to if self.detour else None,
        )


class TrojanClient(Schema):
    password: str = ""
    email: str = ""
    level: int = 0
    flow: str = ""


class TrojanInboundSettings(ProtocolSettings):
    protocol = "trojan"
    message_type = "xray.proxy.trojan.ServerConfig"

    clients: tuple[TrojanClient, ...] = ()
    fallbacks: tuple[dict[str, Any], ...] = ()

    def build(self) -> TypedMessage:
        for index, client in enumerate(self.clients):
            require(bool(client.password), f"trojan clients[{index}]: password is not set")
        return self.message(
            users=[{"password": c.password, "email": c.email, "level": c.level, "flow": c.flow} for c in self.clients],
            fallbacks=[dict(item) for item in self.fallbacks],
        )


_SECRET = re.compile(r"^[0-9a-fA-F]{32}$")


class MTProtoUser(Schema):
    email: str = ""
    level: int = 0
    secret: str = ""


class MTProtoInboundSettings(ProtocolSettings):
    protocol = "mtproto"
    message_type = "xray.proxy.mtproto.ServerConfig"

    users: tuple[MTProtoUser, ...] = ()

    def build(self) -> TypedMessage:
        for index, user in enumerate(self.users):
            require(bool(_SECRET.match(user.secret)), f"mtproto users[{index}]: secret must be 32 hex characters")
        return self.message(users=[{"email": u.email, "level": u.level, "secret": u.secret.lower()} for u in self.users])


INBOUND_VARIANTS: tuple[type[ProtocolSettings], ...] = (
    DokodemoInboundSettings,
    HTTPInboundSettings,
    ShadowsocksInboundSettings,
    SocksInboundSettings,
    VLessInboundSettings,
    VMessInboundSettings,
    TrojanInboundSettings,
    MTProtoInboundSettings,
)
