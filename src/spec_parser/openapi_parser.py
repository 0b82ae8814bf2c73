"""Parse Swagger 2.0 and OpenAPI 3.x documents into :class:`Endpoint` records.

Keys are stable across runs:

* ``METHOD_OperationId`` when the operation declares an ``operationId``
  (first letter upper-cased);
* otherwise derived from the path, e.g. ``GET /customers/{id}`` becomes
  ``GET_CustomersById``.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

import yaml

from src.coverage_engine.cache import FileCache
from src.coverage_engine.text import normalize_path, path_segments
from src.shared.errors import ConfigurationError
from src.shared.models import Endpoint, HttpMethod

logger = logging.getLogger(__name__)

_HTTP_METHODS: tuple[str, ...] = ("get", "post", "put", "patch", "delete", "options", "head")
_NON_WORD_RE = re.compile(r"[^0-9A-Za-z]+")


def _camel(part: str) -> str:
    return "".join(chunk[:1].upper() + chunk[1:] for chunk in _NON_WORD_RE.split(part) if chunk)


def endpoint_key(method: str, path: str, operation_id: str | None = None) -> str:
    """Build the canonical key for one operation."""
    method = method.upper()
    if operation_id:
        cleaned = _NON_WORD_RE.sub("_", operation_id.strip()).strip("_")
        if cleaned:
            return f"{method}_{cleaned[0].upper()}{cleaned[1:]}"

    name_parts: list[str] = []
    for part in normalize_path(path).split("/"):
        if not part:
            continue
        if part.startswith("{") and part.endswith("}"):
            name_parts.append("By" + _camel(part[1:-1]))
        else:
            name_parts.append(_camel(part))
    return f"{method}_{''.join(name_parts) or 'Root'}"


class OpenAPIParser:
    """Extracts endpoints from a Swagger/OpenAPI file or document."""

    def __init__(self, cache: FileCache[list[Endpoint]] | None = None) -> None:
        self._cache = cache

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, source: Path | str) -> list[Endpoint]:
        """Parse a ``.json``, ``.yaml`` or ``.yml`` spec file.

        Raises:
            ConfigurationError: the file is missing, unreadable, malformed,
                or not a Swagger/OpenAPI document.
        """
        path = Path(source)
        if self._cache is not None:
            cached = self._cache.get(path)
            if cached is not None:
                return list(cached)

        document = self._load(path)
        endpoints = self.parse_document(document, source=str(path))
        if self._cache is not None:
            self._cache.put(path, endpoints)
        return endpoints

    def parse_document(self, document: Any, source: str = "") -> list[Endpoint]:
        """Extract endpoints from an already-loaded document."""
        if not isinstance(document, dict):
            raise ConfigurationError("API spec must be a mapping", source=source)
        if "swagger" not in document and "openapi" not in document:
            raise ConfigurationError(
                "Not a Swagger/OpenAPI document (no 'swagger' or 'openapi' field)",
                source=source,
            )
        paths = document.get("paths") or {}
        if not isinstance(paths, dict):
            raise ConfigurationError("'paths' must be a mapping", source=source)

        base_path = ""
        if "swagger" in document:
            base_path = str(document.get("basePath") or "").rstrip("/")

        endpoints: dict[str, Endpoint] = {}
        for raw_path, item in paths.items():
            if not isinstance(item, dict):
                continue
            full_path = normalize_path(f"{base_path}/{str(raw_path).lstrip('/')}")
            for method in _HTTP_METHODS:
                operation = item.get(method)
                if operation is None:
                    continue
                operation_id = operation.get("operationId") if isinstance(operation, dict) else None
                key = endpoint_key(method, full_path, operation_id)
                if key in endpoints:
                    raise ConfigurationError(
                        f"Duplicate endpoint key '{key}' for {method.upper()} {full_path}",
                        source=source,
                    )
                endpoints[key] = Endpoint(
                    key=key,
                    method=HttpMethod(method.upper()),
                    path_template=full_path,
                    path_segments=path_segments(full_path),
                )

        logger.info("Parsed %d endpoints from %s", len(endpoints), source or "<document>")
        return [endpoints[k] for k in sorted(endpoints)]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load(path: Path) -> Any:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read API spec: {exc}", source=str(path)) from exc

        suffix = path.suffix.lower()
        if suffix == ".json":
            try:
                return json.loads(text)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(
                    f"Invalid JSON: {exc.msg}", source=str(path), line=exc.lineno
                ) from exc
        if suffix in (".yaml", ".yml"):
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError as exc:
                mark = getattr(exc, "problem_mark", None)
                raise ConfigurationError(
                    f"Invalid YAML: {getattr(exc, 'problem', None) or exc}",
                    source=str(path),
                    line=mark.line + 1 if mark is not None else None,
                ) from exc
        raise ConfigurationError(f"Unsupported spec format '{suffix}'", source=str(path))
