"""Builders for the optional runtime modules.

Each builder takes the raw sub-document exactly as it appears under its
top-level key and returns the module's :class:`TypedMessage`. Modules whose
behaviour lives entirely in the runtime (routing rules, DNS servers, policy
levels) are passed through after the handful of checks the compiler can make
on its own.
"""

from __future__ import annotations

import ipaddress
from typing import Any, Mapping

from pydantic import Field

from ..domain.config import TypedMessage
from ..domain.decode import Schema, decode
from ..domain.errors import DecodeError, UnknownTransport, ValidationError

DISPATCHER = "xray.app.dispatcher.Config"
INBOUND_MANAGER = "xray.app.proxyman.InboundConfig"
OUTBOUND_MANAGER = "xray.app.proxyman.OutboundConfig"
LOG = "xray.app.log.Config"
API = "xray.app.commander.Config"
METRICS = "xray.app.metrics.Config"
STATS = "xray.app.stats.Config"
ROUTER = "xray.app.router.Config"
DNS = "xray.app.dns.Config"
POLICY = "xray.app.policy.Config"
REVERSE = "xray.app.reverse.Config"
FAKEDNS = "xray.app.dns.fakedns.FakeDnsPoolMulti"
OBSERVATORY = "xray.app.observatory.Config"
TUN = "xray.app.tun.Config"

_LOG_LEVELS = {"debug": "Debug", "info": "Info", "warning": "Warning", "error": "Error"}
_ROUTING_STRATEGIES = {"asis": "AsIs", "ipifnonmatch": "IpIfNonMatch", "ipondemand": "IpOnDemand"}
_QUERY_STRATEGIES = {"useip": "USE_IP", "useipv4": "USE_IP4", "useipv6": "USE_IP6"}
_TUN_STACKS = ("", "system", "gvisor", "mixed")


def core_modules() -> list[TypedMessage]:
    """Dispatcher and the two connection managers, always present."""

    return [TypedMessage(DISPATCHER), TypedMessage(INBOUND_MANAGER), TypedMessage(OUTBOUND_MANAGER)]


class LogSpec(Schema):
    access: str = ""
    error: str = ""
    loglevel: str = ""
    dns_log: bool = False


def default_log() -> TypedMessage:
    """Access log off, errors to console at warning level."""

    return TypedMessage(LOG, {"access_log_type": "None", "error_log_type": "Console", "error_log_level": "Warning", "enable_dns_log": False})


def build_log(raw: Mapping[str, Any] | None) -> TypedMessage:
    if raw is None:
        return default_log()
    spec = decode(LogSpec, raw, path="log")
    value: dict[str, Any] = {"enable_dns_log": spec.dns_log}
    value.update(_log_target("access", spec.access))
    value.update(_log_target("error", spec.error))
    level = spec.loglevel.lower()
    if level == "none":
        value["access_log_type"] = "None"
        value["error_log_type"] = "None"
        value["error_log_level"] = "Warning"
    else:
        value["error_log_level"] = _LOG_LEVELS.get(level, "Warning")
    return TypedMessage(LOG, value)


def _log_target(kind: str, target: str) -> dict[str, Any]:
    if target.lower() == "none":
        return {f"{kind}_log_type": "None"}
    if target:
        return {f"{kind}_log_type": "File", f"{kind}_log_path": target}
    return {f"{kind}_log_type": "Console"}


class ApiSpec(Schema):
    tag: str = ""
    services: tuple[str, ...] = ()


def build_api(raw: Mapping[str, Any]) -> TypedMessage:
    spec = decode(ApiSpec, raw, path="api")
    if not spec.tag:
        raise ValidationError("API tag can't be empty")
    return TypedMessage(API, {"tag": spec.tag, "services": list(spec.services)})


class MetricsSpec(Schema):
    tag: str = ""


def build_metrics(raw: Mapping[str, Any]) -> TypedMessage:
    spec = decode(MetricsSpec, raw, path="metrics")
    if not spec.tag:
        raise ValidationError("metrics tag can't be empty")
    return TypedMessage(METRICS, {"tag": spec.tag})


def build_stats(raw: Mapping[str, Any]) -> TypedMessage:
    return TypedMessage(STATS)


def build_routing(raw: Mapping[str, Any]) -> TypedMessage:
    strategy = _choose(raw.get("domainStrategy", ""), _ROUTING_STRATEGIES, "routing domainStrategy", "AsIs")
    return TypedMessage(
        ROUTER,
        {
            "domain_strategy": strategy,
            "rules": _list(raw, "rules", "routing"),
            "balancers": _list(raw, "balancers", "routing"),
        },
    )


def build_dns(raw: Mapping[str, Any]) -> TypedMessage:
    strategy = _choose(raw.get("queryStrategy", ""), _QUERY_STRATEGIES, "dns queryStrategy", "USE_IP")
    hosts = raw.get("hosts") or {}
    if not isinstance(hosts, Mapping):
        raise DecodeError("dns.hosts: expected an object")
    return TypedMessage(
        DNS,
        {
            "servers": _list(raw, "servers", "dns"),
            "hosts": dict(hosts),
            "client_ip": raw.get("clientIp") or None,
            "tag": raw.get("tag") or "",
            "query_strategy": strategy,
        },
    )


def build_policy(raw: Mapping[str, Any]) -> TypedMessage:
    levels = raw.get("levels") or {}
    if not isinstance(levels, Mapping):
        raise DecodeError("policy.levels: expected an object")
    for level in levels:
        if not str(level).isdigit():
            raise ValidationError(f"invalid policy level: {level}")
    return TypedMessage(POLICY, {"levels": dict(levels), "system": dict(raw.get("system") or {})})


class ReverseEndpoint(Schema):
    tag: str = ""
    domain: str = ""


class ReverseSpec(Schema):
    bridges: tuple[ReverseEndpoint, ...] = ()
    portals: tuple[ReverseEndpoint, ...] = ()


def build_reverse(raw: Mapping[str, Any]) -> TypedMessage:
    spec = decode(ReverseSpec, raw, path="reverse")
    for kind, endpoints in (("bridges", spec.bridges), ("portals", spec.portals)):
        for index, endpoint in enumerate(endpoints):
            if not endpoint.tag or not endpoint.domain:
                raise ValidationError(f"reverse.{kind}[{index}]: tag and domain are both required")
    return TypedMessage(
        REVERSE,
        {
            "bridge_config": [{"tag": e.tag, "domain": e.domain} for e in spec.bridges],
            "portal_config": [{"tag": e.tag, "domain": e.domain} for e in spec.portals],
        },
    )


class FakeDNSPool(Schema):
    ip_pool: str = "198.18.0.0/15"
    pool_size: int = 65535


def build_fake_dns(raw: Any) -> TypedMessage:
    """Accept one pool object or a list of pools."""

    entries = raw if isinstance(raw, list) else [raw]
    pools = []
    for index, entry in enumerate(entries):
        pool = decode(FakeDNSPool, entry, path=f"fakeDns[{index}]")
        try:
            network = ipaddress.ip_network(pool.ip_pool, strict=False)
        except ValueError as exc:
            raise ValidationError(f"fakeDns[{index}]: invalid ipPool {pool.ip_pool}") from exc
        if pool.pool_size <= 0 or pool.pool_size > network.num_addresses:
            raise ValidationError(f"fakeDns[{index}]: poolSize {pool.pool_size} does not fit {pool.ip_pool}")
        pools.append({"ip_pool": str(network), "lru_size": pool.pool_size})
    return TypedMessage(FAKEDNS, {"pools": pools})


class ObservatorySpec(Schema):
    subject_selector: tuple[str, ...] = ()
    check_url: str = Field(alias="probeURL", default="")
    check_interval: str = Field(alias="probeInterval", default="")


def build_observatory(raw: Mapping[str, Any]) -> TypedMessage:
    spec = decode(ObservatorySpec, raw, path="observatory")
    return TypedMessage(
        OBSERVATORY,
        {"subject_selector": list(spec.subject_selector), "check_url": spec.check_url, "check_interval": spec.check_interval},
    )


class TunSpec(Schema):
    interface_name: str = ""
    inet4_address: tuple[str, ...] = ()
    inet6_address: tuple[str, ...] = ()
    mtu: int = 0
    auto_route: bool = False
    strict_route: bool = False
    inet4_route_address: tuple[str, ...] = ()
    inet6_route_address: tuple[str, ...] = ()
    endpoint_independent_nat: bool = False
    udp_timeout: int = 0
    stack: str = ""
    include_uid: tuple[int, ...] = ()
    include_uid_range: tuple[str, ...] = ()
    exclude_uid: tuple[int, ...] = ()
    exclude_uid_range: tuple[str, ...] = ()
    include_android_user: tuple[int, ...] = ()
    include_package: tuple[str, ...] = ()
    exclude_package: tuple[str, ...] = ()
    auto_detect_interface: bool = False
    override_android_vpn: bool = False


def build_tun(raw: Mapping[str, Any]) -> TypedMessage:
    spec = decode(TunSpec, raw, path="tun")
    if spec.stack.lower() not in _TUN_STACKS:
        raise UnknownTransport(f"unknown tun stack: {spec.stack}")
    for field_name in ("inet4_address", "inet6_address", "inet4_route_address", "inet6_route_address"):
        for entry in getattr(spec, field_name):
            try:
                ipaddress.ip_interface(entry)
            except ValueError as exc:
                raise ValidationError(f"tun.{field_name}: invalid prefix {entry}") from exc
    value = {
        name: list(current) if isinstance(current, tuple) else current
        for name, current in spec.model_dump().items()
    }
    value["stack"] = spec.stack.lower()
    return TypedMessage(TUN, value)


def _choose(value: Any, choices: Mapping[str, str], what: str, default: str) -> str:
    if not isinstance(value, str):
        raise DecodeError(f"{what}: expected a string")
    if not value:
        return default
    try:
        return choices[value.lower()]
    except KeyError as exc:
        raise UnknownTransport(f"unknown {what}: {value}") from exc


def _list(raw: Mapping[str, Any], key: str, section: str) -> list[Any]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"{section}.{key}: expected a list")
    return list(value)
