"""Structured configuration document loaders.

Purpose
-------
Convert on-disk configuration documents into Python mappings that the
override merger and compiler understand. Adapters are small wrappers around
``json``/``yaml.safe_load``/``tomllib`` so error handling and observability
live in one place.

Contents
--------
* :class:`BaseFileLoader` – shared helpers for reading files and validating
  mapping outputs.
* :class:`JSONFileLoader` – the canonical document format.
* :class:`YAMLFileLoader` – YAML documents (``.yaml`` / ``.yml``).
* :class:`TOMLFileLoader` – TOML documents.
* :data:`LOADERS` – suffix -> loader table used by the composition root.

System Role
-----------
Invoked by :func:`lib_proxy_config.core.load_document`; every loader satisfies
:class:`lib_proxy_config.application.ports.DocumentLoader`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

try:  # Python >= 3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[no-redef]

import yaml

from ...domain.errors import InvalidFormat, NotFound
from ...observability import log_debug, log_error


class BaseFileLoader:
    """Common utilities shared by the structured document loaders."""

    format_name = ""

    def _read(self, path: str) -> bytes:
        """Read *path* as bytes, raising :class:`NotFound` when the file is missing.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile(delete=False)
        >>> _ = tmp.write(b'{"log": {}}')
        >>> tmp.close()
        >>> BaseFileLoader()._read(tmp.name)[:6]
        b'{"log"'
        >>> Path(tmp.name).unlink()
        """

        file_path = Path(path)
        if not file_path.is_file():
            raise NotFound(f"Configuration file not found: {path}")
        payload = file_path.read_bytes()
        log_debug("config_file_read", path=path, size=len(payload))
        return payload

    @staticmethod
    def _ensure_mapping(data: object, *, path: str) -> Mapping[str, object]:
        """Ensure *data* is a top-level object, otherwise raise ``InvalidFormat``.

        Examples
        --------
        >>> BaseFileLoader._ensure_mapping({"inbounds": []}, path="demo")
        {'inbounds': []}
        >>> BaseFileLoader._ensure_mapping([1, 2], path="demo")
        Traceback (most recent call last):
        ...
        lib_proxy_config.domain.errors.InvalidFormat: File demo did not produce a mapping
        """

        if not isinstance(data, Mapping):
            raise InvalidFormat(f"File {path} did not produce a mapping")
        return data

    def _invalid(self, path: str, exc: Exception) -> InvalidFormat:
        log_error("config_file_invalid", path=path, format=self.format_name, error=str(exc))
        return InvalidFormat(f"Invalid {self.format_name.upper()} in {path}: {exc}")

    def _loaded(self, data: object, path: str) -> Mapping[str, object]:
        result = self._ensure_mapping(data, path=path)
        log_debug("config_file_loaded", path=path, format=self.format_name, keys=len(result))
        return result


class JSONFileLoader(BaseFileLoader):
    """Load JSON documents."""

    format_name = "json"

    def load(self, path: str) -> Mapping[str, object]:
        """Return the mapping parsed from the JSON file at *path*.

        Examples
        --------
        >>> from tempfile import NamedTemporaryFile
        >>> tmp = NamedTemporaryFile('w', suffix='.json', delete=False, encoding='utf-8')
        >>> _ = tmp.write('{"outbounds": [{"protocol": "freedom"}]}')
        >>> tmp.close()
        >>> JSONFileLoader().load(tmp.name)["outbounds"][0]["protocol"]
        'freedom'
        >>> Path(tmp.name).unlink()
        """

        try:
            data = json.loads(self._read(path))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise self._invalid(path, exc) from exc
        return self._loaded(data, path)


class YAMLFileLoader(BaseFileLoader):
    """Load YAML documents; an empty file is an empty document."""

    format_name = "yaml"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = yaml.safe_load(self._read(path))
        except yaml.YAMLError as exc:
            raise self._invalid(path, exc) from exc
        if data is None:
            data = {}
        return self._loaded(data, path)


class TOMLFileLoader(BaseFileLoader):
    """Load TOML documents using the standard library parser."""

    format_name = "toml"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = tomllib.loads(self._read(path).decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            raise self._invalid(path, exc) from exc
        return self._loaded(data, path)


LOADERS: Mapping[str, BaseFileLoader] = {
    ".json": JSONFileLoader(),
    ".yaml": YAMLFileLoader(),
    ".yml": YAMLFileLoader(),
    ".toml": TOMLFileLoader(),
}
