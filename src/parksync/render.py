"""Render sinks: consumers of the whole feature collection.

A sink always receives the entire current collection and must not assume
it is a delta. The same data may be presented more than once.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

_logger = logging.getLogger(__name__)


class RenderSink(Protocol):
    def present(self, collection: dict[str, Any]) -> None:
        ...


class CallbackRenderSink:
    """Adapts a plain callable (e.g. a map source's ``set_data``) to a sink."""

    def __init__(self, callback: Callable[[dict[str, Any]], None]) -> None:
        self._callback = callback

    def present(self, collection: dict[str, Any]) -> None:
        self._callback(collection)


class GeoJsonFileSink:
    """Rewrites a GeoJSON file on every presentation.

    The file is replaced atomically so a map layer polling it never reads a
    half-written collection.
    """

    def __init__(self, path: str | Path, *, indent: int | None = None) -> None:
        self._path = Path(path)
        self._indent = indent
        self.writes = 0

    @property
    def path(self) -> Path:
        return self._path

    def present(self, collection: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(collection, handle, indent=self._indent)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.writes += 1
        _logger.debug("Wrote %d feature(s) to %s", len(collection.get("features", [])), self._path)
