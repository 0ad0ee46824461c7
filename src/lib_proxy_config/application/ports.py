"""Application-layer ports describing adapter responsibilities.

Purpose
-------
Define the structural contracts the composition root relies on so document
loaders and protocol settings variants can be swapped without touching the
compilers.

Contents
--------
* :class:`DocumentLoader` – parses one configuration artifact into a mapping.
* :class:`Buildable` – anything that produces a runtime :class:`TypedMessage`.

System Role
-----------
These protocols keep the application layer ignorant of file formats and of
the concrete protocol variants registered in a :class:`ProtocolRegistry`.
"""

from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable

from ..domain.config import TypedMessage


@runtime_checkable
class DocumentLoader(Protocol):
    """Parse a structured configuration file into a mapping.

    Why
    ----
    Segregate parsing concerns (JSON/YAML/TOML) from the merge and compile
    passes, which only ever see decoded mappings.
    """

    def load(self, path: str) -> Mapping[str, object]:
        """Read *path* and return its mapping or raise ``InvalidFormat``/``NotFound``."""


@runtime_checkable
class Buildable(Protocol):
    """Produce the runtime message for one decoded settings object.

    Why
    ----
    Registries store constructors, not instances; whatever a constructor
    returns only has to know how to build itself.
    """

    def build(self) -> TypedMessage:
        """Validate semantics and return the typed runtime message."""
