"""Public package surface of ``lib_proxy_config``.

Compile human-authored proxy configuration documents (plus override
documents) into the typed configuration a proxy runtime starts from. The
composition root in :mod:`lib_proxy_config.core` and the value objects below
are the stable API; everything else is an implementation detail.
"""

from __future__ import annotations

from .application.merge import MergeOutcome, MergeReport, merge_override
from .application.registry import DEFAULT_REGISTRIES, ProtocolRegistry, Registries
from .core import compile_config, load_document, merge_documents, read_config
from .domain.config import CompiledConfig, InboundHandlerConfig, OutboundHandlerConfig, TypedMessage
from .domain.document import ConfigDocument
from .domain.errors import (
    ConfigError,
    ConflictError,
    DecodeError,
    InsufficientPorts,
    InvalidFormat,
    InvalidPolicy,
    MissingPort,
    NotFound,
    SchemaError,
    UnknownProtocol,
    UnknownSniffingProtocol,
    UnknownStrategy,
    UnknownTransport,
    UnsupportedAddress,
    ValidationError,
)
from .observability import bind_trace_id, get_logger

__all__ = [
    "CompiledConfig",
    "ConfigDocument",
    "ConfigError",
    "ConflictError",
    "DEFAULT_REGISTRIES",
    "DecodeError",
    "InboundHandlerConfig",
    "InsufficientPorts",
    "InvalidFormat",
    "InvalidPolicy",
    "MergeOutcome",
    "MergeReport",
    "MissingPort",
    "NotFound",
    "OutboundHandlerConfig",
    "ProtocolRegistry",
    "Registries",
    "SchemaError",
    "TypedMessage",
    "UnknownProtocol",
    "UnknownSniffingProtocol",
    "UnknownStrategy",
    "UnknownTransport",
    "UnsupportedAddress",
    "ValidationError",
    "bind_trace_id",
    "compile_config",
    "get_logger",
    "load_document",
    "merge_documents",
    "merge_override",
    "read_config",
]
