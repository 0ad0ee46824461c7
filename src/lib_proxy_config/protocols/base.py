"""Shared capability for protocol settings variants.

Every registered protocol contributes one frozen pydantic model deriving
from :class:`ProtocolSettings`. Decoding is schema driven (see
:mod:`lib_proxy_config.domain.decode`); :meth:`ProtocolSettings.build` is the
single extension point that turns a decoded payload into the runtime's typed
settings message. Subclasses that forget ``build`` cannot be instantiated.
"""

from __future__ import annotations

import abc
import base64
from typing import Any, ClassVar, Mapping, TypeVar

from ..domain.config import TypedMessage
from ..domain.decode import Schema, decode
from ..domain.errors import ValidationError

S = TypeVar("S", bound="ProtocolSettings")


class ProtocolSettings(Schema):
    """Base class of all inbound and outbound settings variants."""

    protocol: ClassVar[str]
    message_type: ClassVar[str]

    @classmethod
    def decode(cls: type[S], payload: Mapping[str, Any]) -> S:
        return decode(cls, payload)

    @abc.abstractmethod
    def build(self) -> TypedMessage:
        """Return the runtime settings message or raise a ``ConfigError``."""

    def message(self, **value: Any) -> TypedMessage:
        return TypedMessage(self.message_type, value)


def require(condition: bool, message: str) -> None:
    if not condition:
        raise ValidationError(message)


def choose(value: str, choices: Mapping[str, str], what: str, *, default: str | None = None) -> str:
    """Map *value* case-insensitively onto *choices* or fail with a ValidationError."""

    key = value.lower()
    if not key and default is not None:
        return default
    try:
        return choices[key]
    except KeyError as exc:
        raise ValidationError(f"unknown {what}: {value}") from exc


def looks_like_key(value: str) -> bool:
    """32 raw bytes, base64 encoded (X25519 keys, pre-shared keys)."""

    try:
        raw = base64.b64decode(value, validate=True)
    except ValueError:
        return False
    return len(raw) == 32
