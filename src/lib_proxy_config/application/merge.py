"""Application-layer override policy.

Purpose
-------
Reconcile a base document with an override document supplied from a
secondary source (an override file, a management call). Free of I/O so any
driver can reuse it.

Contents
    - ``merge_override``: public entry point, edits the base in place.
    - ``MergeOutcome`` / ``MergeReport``: what happened to each handler list.
    - ``_merge_list``: tag-targeted update / append / prepend of one list.

System Role
-----------
Called by :func:`lib_proxy_config.core.merge_documents` once per override
source, before the top-level compiler runs. Singleton sections are replaced
wholesale; handler lists follow the rules below.

* override list empty: base list untouched;
* override list with more than one entry, or empty base list: replaced;
* exactly one override entry whose (non-empty) tag matches a base entry:
  that base entry is replaced at its index;
* exactly one override entry matching nothing: appended (inbounds), and for
  outbounds appended when ``append_unmatched_outbound`` is set, otherwise
  prepended.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

from ..domain.document import ConfigDocument
from ..observability import log_info

# Sections replaced wholesale when present in the override. The deprecated
# single-listener fields follow the same rule; the deprecated ``port`` does not.
_SINGLETONS = (
    "log",
    "routing",
    "dns",
    "transport",
    "policy",
    "api",
    "metrics",
    "stats",
    "reverse",
    "fake_dns",
    "observatory",
    "tun",
    "inbound",
    "outbound",
    "inbound_detour",
    "outbound_detour",
)


class Tagged(Protocol):
    tag: str


H = TypeVar("H", bound=Tagged)


class MergeOutcome(str, enum.Enum):
    UNCHANGED = "unchanged"
    REPLACED = "replaced"
    UPDATED = "updated"
    APPENDED = "appended"
    PREPENDED = "prepended"


@dataclass(frozen=True)
class MergeReport:
    inbounds: MergeOutcome
    outbounds: MergeOutcome
    sections: tuple[str, ...] = ()


def merge_override(
    base: ConfigDocument,
    override: ConfigDocument,
    *,
    append_unmatched_outbound: bool = False,
    source: str | None = None,
) -> MergeReport:
    """Apply *override* onto *base* in place and report what changed.

    Why
    ----
    Operators ship small override files that retarget one handler by tag
    without restating the whole document.

    Parameters
    ----------
    base:
        Document edited in place.
    override:
        Document whose present sections win.
    append_unmatched_outbound:
        Insert an unmatched single outbound at the tail instead of the head.
    source:
        Name of the override source, used only in log events.

    Examples
    --------
    >>> from lib_proxy_config.domain.document import OutboundSpec
    >>> base = ConfigDocument(outbounds=[OutboundSpec(protocol="freedom", tag="direct")])
    >>> patch = ConfigDocument(outbounds=[OutboundSpec(protocol="blackhole", tag="block")])
    >>> merge_override(base, patch).outbounds
    <MergeOutcome.PREPENDED: 'prepended'>
    >>> [o.tag for o in base.outbounds]
    ['block', 'direct']
    """

    sections = []
    for name in _SINGLETONS:
        value = getattr(override, name)
        if value is not None:
            setattr(base, name, value)
            sections.append(name)

    inbounds = _merge_list(base.inbounds, override.inbounds, append_unmatched=True)
    outbounds = _merge_list(base.outbounds, override.outbounds, append_unmatched=append_unmatched_outbound)

    report = MergeReport(inbounds=inbounds, outbounds=outbounds, sections=tuple(sections))
    log_info(
        "document_merged",
        source=source,
        sections=report.sections,
        inbounds=inbounds.value,
        outbounds=outbounds.value,
        tags={"inbound": _single_tag(override.inbounds), "outbound": _single_tag(override.outbounds)},
    )
    return report


def find_tag(handlers: Sequence[Tagged], tag: str) -> int:
    """Index of the first handler carrying *tag*; ``-1`` when absent or *tag* is empty."""

    if not tag:
        return -1
    for index, handler in enumerate(handlers):
        if handler.tag == tag:
            return index
    return -1


def _merge_list(target: list[H], incoming: list[H], *, append_unmatched: bool) -> MergeOutcome:
    if not incoming:
        return MergeOutcome.UNCHANGED
    if len(incoming) > 1 or not target:
        target[:] = incoming
        return MergeOutcome.REPLACED
    entry = incoming[0]
    index = find_tag(target, entry.tag)
    if index > -1:
        target[index] = entry
        return MergeOutcome.UPDATED
    if append_unmatched:
        target.append(entry)
        return MergeOutcome.APPENDED
    target.insert(0, entry)
    return MergeOutcome.PREPENDED


def _single_tag(handlers: Sequence[Tagged]) -> str | None:
    return handlers[0].tag if len(handlers) == 1 else None
