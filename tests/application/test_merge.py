from __future__ import annotations

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_proxy_config.application.merge import MergeOutcome, find_tag, merge_override
from lib_proxy_config.domain.document import ConfigDocument, InboundSpec, OutboundSpec


def _inbounds(*tags: str) -> list[InboundSpec]:
    return [InboundSpec(protocol="socks", tag=tag) for tag in tags]


def _outbounds(*tags: str) -> list[OutboundSpec]:
    return [OutboundSpec(protocol="freedom", tag=tag) for tag in tags]


def test_single_matching_inbound_updates_in_place() -> None:
    base = ConfigDocument(inbounds=_inbounds("a", "b", "c"))
    replacement = InboundSpec(protocol="http", tag="b")

    report = merge_override(base, ConfigDocument(inbounds=[replacement]))

    assert report.inbounds is MergeOutcome.UPDATED
    assert [entry.tag for entry in base.inbounds] == ["a", "b", "c"]
    assert base.inbounds[1] is replacement


def test_single_unmatched_inbound_is_appended() -> None:
    base = ConfigDocument(inbounds=_inbounds("a"))

    report = merge_override(base, ConfigDocument(inbounds=_inbounds("z")))

    assert report.inbounds is MergeOutcome.APPENDED
    assert [entry.tag for entry in base.inbounds] == ["a", "z"]


def test_single_unmatched_outbound_is_prepended_by_default() -> None:
    base = ConfigDocument(outbounds=_outbounds("direct", "block"))

    report = merge_override(base, ConfigDocument(outbounds=_outbounds("proxy")))

    assert report.outbounds is MergeOutcome.PREPENDED
    assert [entry.tag for entry in base.outbounds] == ["proxy", "direct", "block"]


def test_single_unmatched_outbound_is_appended_on_request() -> None:
    base = ConfigDocument(outbounds=_outbounds("direct", "block"))

    report = merge_override(base, ConfigDocument(outbounds=_outbounds("proxy")), append_unmatched_outbound=True)

    assert report.outbounds is MergeOutcome.APPENDED
    assert [entry.tag for entry in base.outbounds] == ["direct", "block", "proxy"]


def test_single_matching_outbound_ignores_insertion_flag() -> None:
    base = ConfigDocument(outbounds=_outbounds("direct", "block"))
    replacement = OutboundSpec(protocol="blackhole", tag="direct")

    report = merge_override(base, ConfigDocument(outbounds=[replacement]), append_unmatched_outbound=True)

    assert report.outbounds is MergeOutcome.UPDATED
    assert base.outbounds[0] is replacement


def test_multiple_entries_replace_whole_list() -> None:
    base = ConfigDocument(inbounds=_inbounds("a", "b"), outbounds=_outbounds("direct"))

    report = merge_override(base, ConfigDocument(inbounds=_inbounds("b", "x")))

    assert report.inbounds is MergeOutcome.REPLACED
    assert report.outbounds is MergeOutcome.UNCHANGED
    assert [entry.tag for entry in base.inbounds] == ["b", "x"]
    assert [entry.tag for entry in base.outbounds] == ["direct"]


def test_empty_base_is_replaced() -> None:
    base = ConfigDocument()

    report = merge_override(base, ConfigDocument(outbounds=_outbounds("direct")))

    assert report.outbounds is MergeOutcome.REPLACED
    assert [entry.tag for entry in base.outbounds] == ["direct"]


def test_empty_tag_never_matches() -> None:
    base = ConfigDocument(inbounds=_inbounds("", "a"))

    report = merge_override(base, ConfigDocument(inbounds=_inbounds("")))

    assert report.inbounds is MergeOutcome.APPENDED
    assert len(base.inbounds) == 3
    assert find_tag(base.inbounds, "") == -1


def test_singleton_sections_are_replaced_wholesale() -> None:
    base = ConfigDocument(log={"loglevel": "debug", "access": "/tmp/a"}, routing={"rules": []}, port=1080)
    override = ConfigDocument(log={"loglevel": "error"}, fake_dns={"ipPool": "198.18.0.0/16"}, inbound=InboundSpec(tag="legacy"))

    report = merge_override(base, override)

    assert base.log == {"loglevel": "error"}
    assert base.routing == {"rules": []}
    assert base.fake_dns == {"ipPool": "198.18.0.0/16"}
    assert base.inbound.tag == "legacy"
    assert base.port == 1080
    assert report.sections == ("log", "fake_dns", "inbound")


def test_merge_event_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="lib_proxy_config")

    merge_override(ConfigDocument(outbounds=_outbounds("a")), ConfigDocument(outbounds=_outbounds("b")), source="head.json")

    record = caplog.records[-1]
    assert record.getMessage() == "document_merged"
    assert record.context["source"] == "head.json"
    assert record.context["outbounds"] == "prepended"
    assert record.context["tags"] == {"inbound": None, "outbound": "b"}


TAGS = st.lists(st.text(alphabet="abcdef", min_size=1, max_size=4), min_size=1, max_size=8, unique=True)


@given(TAGS, st.data())
def test_matching_update_preserves_order_and_neighbours(tags: list[str], data: st.DataObject) -> None:
    base = ConfigDocument(outbounds=_outbounds(*tags))
    before = list(base.outbounds)
    index = data.draw(st.integers(min_value=0, max_value=len(tags) - 1))
    replacement = OutboundSpec(protocol="blackhole", tag=tags[index])

    merge_override(base, ConfigDocument(outbounds=[replacement]))

    assert base.outbounds[index] is replacement
    assert [entry for i, entry in enumerate(base.outbounds) if i != index] == [
        entry for i, entry in enumerate(before) if i != index
    ]


@given(TAGS, st.text(alphabet="xyz", min_size=1, max_size=4), st.booleans())
def test_unmatched_outbound_lands_at_one_end(tags: list[str], new_tag: str, append: bool) -> None:
    base = ConfigDocument(outbounds=_outbounds(*tags))
    entry = OutboundSpec(protocol="blackhole", tag=new_tag)

    merge_override(base, ConfigDocument(outbounds=[entry]), append_unmatched_outbound=append)

    assert len(base.outbounds) == len(tags) + 1
    assert (base.outbounds[-1] if append else base.outbounds[0]) is entry
