"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by the builders, the compilers, the
document loaders, and consuming applications. Every failure is terminal: the
compiler never retries and never returns partial output.

Contents
--------
* :class:`ConfigError` – umbrella base class carrying the context chain.
* :class:`InvalidFormat` / :class:`NotFound` – a document file cannot be
  parsed or does not exist.
* :class:`SchemaError` – a keyword is outside its closed vocabulary
  (protocol names, allocation strategies, sniffing keywords, UDP/443 policy,
  transport names).
* :class:`ValidationError` – a structurally valid document breaks a
  cross-field rule (missing port, insufficient ports, domain listen/bind
  address, conflicting chain-proxy tags).
* :class:`DecodeError` – a payload cannot populate its schema.

System Role
-----------
Inner steps wrap failures with :meth:`ConfigError.with_context` and re-raise
with ``from`` so callers see a single terminal error whose class is the root
classification and whose ``__cause__`` chain leads to the original failure.
"""

from __future__ import annotations

import copy


class ConfigError(Exception):
    """Base type for all exceptions emitted by ``lib_proxy_config``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling, plus the context-wrapping helper every compiler step uses.

    Examples
    --------
    >>> err = ValidationError("no port").with_context("inbound 'in-1'")
    >>> str(err)
    "inbound 'in-1': no port"
    >>> err.context
    ("inbound 'in-1'",)
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.context: tuple[str, ...] = ()

    def with_context(self, context: str) -> "ConfigError":
        """Return a copy of this error whose message is prefixed with *context*.

        The copy keeps the concrete class so ``except SchemaError`` still
        matches after any number of wrapping steps.
        """

        clone = copy.copy(self)
        clone.message = f"{context}: {self.message}" if self.message else context
        clone.context = (context, *self.context)
        clone.args = (clone.message,)
        return clone

    @property
    def root_cause(self) -> BaseException:
        """Follow ``__cause__`` down to the first failure that was raised."""

        current: BaseException = self
        while current.__cause__ is not None:
            current = current.__cause__
        return current

    def __str__(self) -> str:
        return self.message


class InvalidFormat(ConfigError):
    """Raised when a document file cannot be parsed into structured data."""


class NotFound(ConfigError):
    """Raised when a document file does not exist."""


class SchemaError(ConfigError):
    """A keyword lies outside the closed vocabulary its field accepts."""


class UnknownProtocol(SchemaError):
    """No settings variant is registered under the requested protocol name."""


class UnknownStrategy(SchemaError):
    """The port allocation strategy is not one of always/random/external."""


class UnknownSniffingProtocol(SchemaError):
    """A destination-override or domain-override keyword is not recognised."""


class InvalidPolicy(SchemaError):
    """The mux UDP/443 policy is not one of reject/allow/skip."""


class UnknownTransport(SchemaError):
    """A transport, security, or module enum value is not recognised."""


class ValidationError(ConfigError):
    """A syntactically valid document failed a cross-field rule."""


class MissingPort(ValidationError):
    """A listener bound to an IP (or to any address) declares no port."""


class InsufficientPorts(ValidationError):
    """Random allocation asks for at least as many ports as the range holds."""


class UnsupportedAddress(ValidationError):
    """A listen or bind address is a domain name the runtime cannot use."""


class ConflictError(ValidationError):
    """Chain-proxy tag and socket dialer-proxy tag are both set."""


class DecodeError(ConfigError):
    """A payload could not populate the schema it was decoded into."""
