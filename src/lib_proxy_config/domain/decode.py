"""Pydantic schema base for the human-authored document.

Purpose
-------
Turn the permissive, camelCase, human-authored document into frozen pydantic
models without scattering ``isinstance`` checks across every schema. Field
names stay snake_case; the JSON key comes from the camelCase alias generator
unless a field spells its key out with ``Field(alias=...)``.

Contents
--------
* :class:`Schema` – frozen ``BaseModel`` base with camelCase aliases.
* :func:`decode` – validate a mapping into a schema, raising
  :class:`DecodeError` with the dotted path of the offending field.
* :func:`string_list` – list-or-comma-string parser.
* :func:`field_value` – run a parser inside a ``field_validator`` so its
  :class:`DecodeError` is reported at the field's location.

System Role
-----------
Used by :mod:`lib_proxy_config.domain.document`, the protocol settings
variants, and the module builders. Unknown keys are ignored and ``null``
leaves a field at its default, matching how the runtime's own JSON reader
treats the document.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .errors import DecodeError

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


class Schema(BaseModel):
    """Frozen model keyed by camelCase aliases.

    Examples
    --------
    >>> class Demo(Schema):
    ...     user_level: int = 0
    >>> decode(Demo, {"userLevel": 2, "unknown": True})
    Demo(user_level=2)
    >>> Demo(user_level=3).user_level
    3
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        arbitrary_types_allowed=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data


def decode(cls: type[M], payload: object, *, path: str = "") -> M:
    """Validate *payload* into an instance of schema *cls*.

    Parameters
    ----------
    cls:
        Schema type to instantiate.
    payload:
        JSON-like mapping.
    path:
        Dotted prefix used in error messages.

    Raises
    ------
    DecodeError
        When *payload* is not a mapping or a field has the wrong shape. Only
        the first failing field is reported.

    Examples
    --------
    >>> class Demo(Schema):
    ...     tags: tuple[str, ...] = ()
    >>> decode(Demo, {"tags": [1]}, path="demo")
    Traceback (most recent call last):
    ...
    lib_proxy_config.domain.errors.DecodeError: demo.tags[0]: Input should be a valid string
    """

    try:
        return cls.model_validate(payload)
    except ValidationError as exc:
        error = exc.errors()[0]
        where = location(path, error["loc"]) or path or cls.__name__
        raise DecodeError(f"{where}: {error['msg']}") from exc


def location(prefix: str, loc: tuple[int | str, ...]) -> str:
    """Render a pydantic ``loc`` as ``outer.items[0].name``."""

    rendered = prefix
    for part in loc:
        if isinstance(part, int):
            rendered += f"[{part}]"
        else:
            rendered = f"{rendered}.{part}" if rendered else str(part)
    return rendered


def field_value(parser: Callable[[Any], T], value: Any) -> T | None:
    """Apply *parser* to a non-null field value for a ``field_validator``."""

    if value is None:
        return None
    try:
        return parser(value)
    except DecodeError as exc:
        raise PydanticCustomError("decode_error", str(exc)) from exc


def string_list(value: object) -> tuple[str, ...]:
    """Accept a JSON list of strings or one comma-separated string.

    Examples
    --------
    >>> string_list("http, tls")
    ('http', 'tls')
    >>> string_list(["quic"])
    ('quic',)
    """

    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if not isinstance(item, str):
                raise DecodeError(f"expected a list of strings, found {type(item).__name__}")
            items.append(item)
        return tuple(items)
    raise DecodeError(f"expected a string or a list of strings, got {type(value).__name__}")
