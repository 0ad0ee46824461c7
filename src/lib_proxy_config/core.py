"""Composition root for ``lib_proxy_config``.

Purpose
-------
Provide the entry points that orchestrate document loading, override merging,
and compilation while emitting structured observability signals. This module
wires the file loader adapters to the application layer and exports only
stable, consumer-ready APIs.

Contents
--------
* :func:`load_document` – parse one file into a :class:`ConfigDocument`.
* :func:`merge_documents` – load a base file and apply override files onto it.
* :func:`compile_config` – compile an in-memory document or mapping.
* :func:`read_config` – files in, :class:`CompiledConfig` out.

System Role
-----------
The CLI and embedding applications call these functions; they never reach
into adapters or compilers directly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Sequence

from .adapters.file_loaders.structured import LOADERS
from .application.compiler import compile_document
from .application.merge import merge_override
from .application.registry import DEFAULT_REGISTRIES, Registries
from .domain.config import CompiledConfig
from .domain.document import ConfigDocument
from .domain.errors import ConfigError, InvalidFormat
from .observability import bind_trace_id, log_error, log_info, make_event


def load_document(path: str | Path) -> ConfigDocument:
    """Parse the file at *path* into a :class:`ConfigDocument`.

    The format is chosen by suffix (``.json``, ``.yaml``, ``.yml``,
    ``.toml``). Decoding failures carry the file path as context.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> target = Path(tmp.name) / "config.json"
    >>> _ = target.write_text('{"outbounds": [{"protocol": "freedom", "tag": "direct"}]}', encoding="utf-8")
    >>> load_document(target).outbounds[0].tag
    'direct'
    >>> tmp.cleanup()
    """

    location = str(path)
    loader = LOADERS.get(Path(location).suffix.lower())
    if loader is None:
        raise InvalidFormat(f"Unsupported configuration format: {location}")
    data = loader.load(location)
    try:
        document = ConfigDocument.from_mapping(data)
    except ConfigError as exc:
        raise exc.with_context(location) from exc
    log_info("document_loaded", **make_event("load", None, {"path": location, "keys": len(data)}))
    return document


def merge_documents(
    paths: Sequence[str | Path],
    *,
    append_unmatched_outbound: bool | None = None,
) -> ConfigDocument:
    """Load ``paths[0]`` and apply every following file onto it as an override.

    Why
    ----
    Operators keep a base document and drop small override files next to it
    that retarget single handlers by tag.

    Parameters
    ----------
    paths:
        Base document followed by override documents, applied in order.
    append_unmatched_outbound:
        Insertion policy for a single unmatched override outbound. ``None``
        keeps the file-name convention: an override whose file name contains
        ``tail`` appends, any other prepends.
    """

    if not paths:
        raise ConfigError("no configuration files given")
    base = load_document(paths[0])
    for path in paths[1:]:
        override = load_document(path)
        append = append_unmatched_outbound
        if append is None:
            append = "tail" in Path(path).name.lower()
        merge_override(base, override, append_unmatched_outbound=append, source=str(path))
    return base


def compile_config(
    source: ConfigDocument | Mapping[str, Any],
    *,
    registries: Registries = DEFAULT_REGISTRIES,
    trace_id: str | None = None,
) -> CompiledConfig:
    """Compile an in-memory document (or its raw mapping) into a :class:`CompiledConfig`.

    Side Effects
    ------------
    Binds *trace_id* for the duration of the pass; emits ``config_compiled``
    on success and ``compile_failed`` before re-raising a :class:`ConfigError`.

    Examples
    --------
    >>> config = compile_config({"outbounds": [{"protocol": "freedom", "tag": "direct"}]})
    >>> [handler.tag for handler in config.outbound]
    ['direct']
    >>> config.app_types[0]
    'xray.app.log.Config'
    """

    bind_trace_id(trace_id)
    try:
        document = source if isinstance(source, ConfigDocument) else ConfigDocument.from_mapping(source)
        return _compile(document, registries)
    except ConfigError as exc:
        log_error("compile_failed", error=str(exc), kind=type(exc).__name__)
        raise


def read_config(
    paths: Sequence[str | Path],
    *,
    append_unmatched_outbound: bool | None = None,
    registries: Registries = DEFAULT_REGISTRIES,
    trace_id: str | None = None,
) -> CompiledConfig:
    """Load, merge, and compile the configuration files in *paths*.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> base = Path(tmp.name) / "base.json"
    >>> _ = base.write_text('{"inbounds": [{"protocol": "socks", "port": 1080, "tag": "in"}]}', encoding="utf-8")
    >>> [handler.tag for handler in read_config([base]).inbound]
    ['in']
    >>> tmp.cleanup()
    """

    bind_trace_id(trace_id)
    try:
        document = merge_documents(paths, append_unmatched_outbound=append_unmatched_outbound)
        return _compile(document, registries)
    except ConfigError as exc:
        log_error("compile_failed", error=str(exc), kind=type(exc).__name__, paths=[str(p) for p in paths])
        raise


def _compile(document: ConfigDocument, registries: Registries) -> CompiledConfig:
    config = compile_document(document, registries)
    log_info(
        "config_compiled",
        modules=len(config.app),
        inbounds=len(config.inbound),
        outbounds=len(config.outbound),
    )
    return config


__all__ = [
    "compile_config",
    "load_document",
    "merge_documents",
    "read_config",
]
