"""Top-level compiler: one document -> one :class:`CompiledConfig`.

Purpose
-------
Fold the deprecated listener/sender fields into the modern lists, overlay the
global transport defaults, delegate to the inbound/outbound compilers, and
assemble the runtime module list in its start-up order.

Contents
--------
* :func:`reconcile_inbounds` / :func:`reconcile_outbounds` – legacy folding.
* :func:`assemble_modules` – ordered runtime module list.
* :func:`compile_document` – the full pass.

System Role
-----------
Called by :func:`lib_proxy_config.core.compile_config`. The input document is
never mutated: overlays and legacy fixes produce new specification objects.
Handlers are compiled before the module list, so a broken listener or sender
is reported ahead of a broken module section such as ``dns``.
"""

from __future__ import annotations

from typing import TypeVar

from ..domain.config import CompiledConfig, TypedMessage
from ..domain.document import ConfigDocument, InboundSpec, OutboundSpec, TransportSpec
from ..domain.errors import ConfigError
from ..domain.net import PortList, PortRange
from ..observability import log_warning
from . import apps
from .builders import apply_transport
from .inbound import compile_inbound
from .outbound import compile_outbound
from .registry import DEFAULT_REGISTRIES, Registries

S = TypeVar("S", InboundSpec, OutboundSpec)


def reconcile_inbounds(document: ConfigDocument) -> list[InboundSpec]:
    """Concatenate ``inbound``, ``inboundDetour``, ``inbounds`` in that order.

    When the first resulting entry has no port and the deprecated top-level
    ``port`` is set, that port becomes its port specification.
    """

    inbounds: list[InboundSpec] = []
    if document.inbound is not None:
        inbounds.append(document.inbound)
    inbounds.extend(document.inbound_detour or ())
    inbounds.extend(document.inbounds)
    if inbounds and inbounds[0].port is None and document.port > 0:
        legacy = PortList((PortRange(document.port, document.port),))
        inbounds[0] = inbounds[0].model_copy(update={"port": legacy})
    return inbounds


def reconcile_outbounds(document: ConfigDocument) -> list[OutboundSpec]:
    """Concatenate ``outbound``, ``outboundDetour``, ``outbounds`` in that order."""

    outbounds: list[OutboundSpec] = []
    if document.outbound is not None:
        outbounds.append(document.outbound)
    outbounds.extend(document.outbound_detour or ())
    outbounds.extend(document.outbounds)
    return outbounds


def assemble_modules(document: ConfigDocument) -> tuple[TypedMessage, ...]:
    """Build the runtime modules in start-up order.

    Order: fake-DNS (if any), log, dispatcher, inbound manager, outbound
    manager, api, metrics, stats, router, dns, policy, reverse, observatory,
    tun. The log module precedes everything that may emit diagnostics; only
    fake-DNS starts earlier.
    """

    modules = apps.core_modules()
    if document.api is not None:
        modules.append(apps.build_api(document.api))
    if document.metrics is not None:
        modules.append(apps.build_metrics(document.metrics))
    if document.stats is not None:
        modules.append(apps.build_stats(document.stats))

    modules.insert(0, apps.build_log(document.log))

    if document.routing is not None:
        modules.append(apps.build_routing(document.routing))
    if document.dns is not None:
        try:
            modules.append(apps.build_dns(document.dns))
        except ConfigError as exc:
            raise exc.with_context("failed to parse DNS config") from exc
    if document.policy is not None:
        modules.append(apps.build_policy(document.policy))
    if document.reverse is not None:
        modules.append(apps.build_reverse(document.reverse))
    if document.fake_dns is not None:
        modules.insert(0, apps.build_fake_dns(document.fake_dns))
    if document.observatory is not None:
        modules.append(apps.build_observatory(document.observatory))
    if document.tun is not None:
        modules.append(apps.build_tun(document.tun))
    return tuple(modules)


def compile_document(document: ConfigDocument, registries: Registries = DEFAULT_REGISTRIES) -> CompiledConfig:
    """Compile *document* into the runtime configuration.

    Why
    ----
    This is the only place cross-field rules, legacy reconciliation, and
    module ordering meet; the pass either returns a complete result or raises
    one terminal :class:`ConfigError`.

    Parameters
    ----------
    document:
        Decoded (and already override-merged) document; not mutated.
    registries:
        Protocol registries used by the inbound/outbound compilers.
    """

    for name in document.deprecated_fields():
        log_warning("deprecated_field", field=name)

    transport = document.transport

    inbound_handlers = []
    for index, spec in enumerate(reconcile_inbounds(document)):
        if transport is not None:
            spec = _overlay(spec, transport)
        try:
            inbound_handlers.append(compile_inbound(spec, registries.inbound))
        except ConfigError as exc:
            raise exc.with_context(f"inbound {_label(spec.tag, index)}") from exc

    outbound_handlers = []
    for index, spec in enumerate(reconcile_outbounds(document)):
        if transport is not None:
            spec = _overlay(spec, transport)
        try:
            outbound_handlers.append(compile_outbound(spec, registries.outbound))
        except ConfigError as exc:
            raise exc.with_context(f"outbound {_label(spec.tag, index)}") from exc

    return CompiledConfig(
        app=assemble_modules(document),
        inbound=tuple(inbound_handlers),
        outbound=tuple(outbound_handlers),
    )


def _label(tag: str, index: int) -> str:
    return repr(tag) if tag else f"#{index}"


def _overlay(spec: S, transport: TransportSpec) -> S:
    return spec.model_copy(update={"stream_settings": apply_transport(spec.stream_settings, transport)})
