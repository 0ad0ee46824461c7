"""Network value objects: addresses, port ranges, and port lists.

Purpose
-------
Parse the permissive address and port notations accepted in listener and
sender specifications into small immutable values the compilers classify.

Contents
--------
* :class:`Address` – IP literal or domain (including socket paths).
* :class:`PortRange` / :class:`PortList` – inclusive ranges and their union.
* :func:`parse_address` / :func:`parse_port_list` / :func:`parse_port` –
  decoders used by the document schema.
"""

from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass
from typing import Iterable

from .errors import DecodeError

_MAX_PORT = 65535


@dataclass(frozen=True, slots=True)
class Address:
    """An IP literal or a domain name as written in the document.

    Examples
    --------
    >>> Address("127.0.0.1").is_ip, Address("localhost").is_localhost
    (True, True)
    >>> Address("/run/proxy.sock").is_socket_path
    True
    >>> Address("::1").build()
    '::1'
    """

    value: str

    @property
    def family(self) -> str:
        try:
            ip = ipaddress.ip_address(self.value)
        except ValueError:
            return "domain"
        return "ipv4" if ip.version == 4 else "ipv6"

    @property
    def is_ip(self) -> bool:
        return self.family != "domain"

    @property
    def is_domain(self) -> bool:
        return self.family == "domain"

    @property
    def is_localhost(self) -> bool:
        return self.is_domain and self.value == "localhost"

    @property
    def is_socket_path(self) -> bool:
        """Filesystem (``/``) or abstract (``@``) domain-socket address."""

        return self.is_domain and self.value[:1] in ("/", "@")

    def build(self) -> str:
        if self.is_ip:
            return str(ipaddress.ip_address(self.value))
        return self.value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class PortRange:
    """Inclusive port range ``[from_port, to_port]``."""

    from_port: int
    to_port: int

    @property
    def size(self) -> int:
        return self.to_port - self.from_port + 1

    def __str__(self) -> str:
        return f"{self.from_port}-{self.to_port}"


@dataclass(frozen=True, slots=True)
class PortList:
    """Ordered union of port ranges; overlaps are kept as written.

    Examples
    --------
    >>> ports = parse_port_list("80,1000-1009")
    >>> ports.capacity
    11
    >>> str(ports)
    '80-80 1000-1009'
    """

    ranges: tuple[PortRange, ...] = ()

    @property
    def capacity(self) -> int:
        return sum(item.size for item in self.ranges)

    def __iter__(self):
        return iter(self.ranges)

    def __str__(self) -> str:
        return " ".join(str(item) for item in self.ranges)


def parse_address(value: object) -> Address:
    if not isinstance(value, str):
        raise DecodeError(f"expected an address string, got {type(value).__name__}")
    if not value:
        raise DecodeError("empty address")
    return Address(value)


def parse_port(value: object) -> int:
    """Decode a single port number (the deprecated top-level ``port``)."""

    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"expected a port number, got {type(value).__name__}")
    return _check_port(value)


def parse_port_list(value: object) -> PortList:
    """Parse every port notation the document accepts.

    Accepted forms: ``1080``, ``"1080"``, ``"1000-2000"``,
    ``"80,443,1000-2000"``, a JSON list of those, and ``"env:NAME"``
    which reads the port (or range) from environment variable ``NAME``.

    Examples
    --------
    >>> parse_port_list([80, "443", "8000-8001"]).ranges
    (PortRange(from_port=80, to_port=80), PortRange(from_port=443, to_port=443), PortRange(from_port=8000, to_port=8001))
    """

    if isinstance(value, list):
        ranges: list[PortRange] = []
        for item in value:
            ranges.extend(_parse_item(item))
        return PortList(tuple(ranges))
    return PortList(tuple(_parse_item(value)))


def _parse_item(value: object) -> Iterable[PortRange]:
    if isinstance(value, bool):
        raise DecodeError("expected a port or port range, got bool")
    if isinstance(value, int):
        port = _check_port(value)
        return [PortRange(port, port)]
    if isinstance(value, str):
        return [_parse_range(part) for part in value.split(",") if part.strip()]
    raise DecodeError(f"expected a port or port range, got {type(value).__name__}")


def _parse_range(text: str) -> PortRange:
    text = text.strip()
    if text.startswith("env:"):
        name = text[len("env:"):]
        resolved = os.environ.get(name)
        if not resolved:
            raise DecodeError(f"environment variable {name} for port is not set")
        text = resolved.strip()
    low, sep, high = text.partition("-")
    start = _to_port(low, text)
    end = _to_port(high, text) if sep else start
    if start > end:
        raise DecodeError(f"invalid port range: {text}")
    return PortRange(start, end)


def _to_port(text: str, original: str) -> int:
    try:
        port = int(text.strip())
    except ValueError as exc:
        raise DecodeError(f"invalid port: {original}") from exc
    return _check_port(port)


def _check_port(port: int) -> int:
    if port < 0 or port > _MAX_PORT:
        raise DecodeError(f"port out of range: {port}")
    return port
