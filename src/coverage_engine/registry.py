"""Endpoint registry: canonical identity and lookup for API operations.

The registry is built once per run and frozen before analysis starts.
``key`` is the only identity used for lookups; ``(method, path_template)``
is the mapping every key must resolve to.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Iterator

from src.coverage_engine.text import normalize_path, path_segments
from src.shared.errors import (
    ConfigurationError,
    DuplicateKeyError,
    RegistryFrozenError,
    UnknownEndpointError,
)
from src.shared.models import Endpoint, HttpMethod

logger = logging.getLogger(__name__)

_REFERENCE_RE = re.compile(r"^\s*([A-Za-z]+)\s+(/\S*)\s*$")


class EndpointRegistry:
    """Unique endpoint keys mapped to ``(method, path_template)`` pairs."""

    def __init__(self, source: str = "") -> None:
        self._source = source
        self._by_key: dict[str, Endpoint] = {}
        self._by_route: dict[tuple[HttpMethod, str], str] = {}
        self._frozen = False

    @classmethod
    def from_endpoints(cls, endpoints: Iterable[Endpoint], source: str = "") -> EndpointRegistry:
        """Register every endpoint and freeze the registry."""
        registry = cls(source=source)
        for endpoint in endpoints:
            registry.register(
                endpoint.key,
                endpoint.method,
                endpoint.path_template,
                endpoint.path_segments or None,
            )
        registry.freeze()
        return registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(
        self,
        key: str,
        method: HttpMethod | str,
        path_template: str,
        segments: Iterable[str] | None = None,
    ) -> Endpoint:
        """Register an endpoint.

        The template is stored exactly as given, so :meth:`resolve` returns
        the registered tuple unchanged.  Routes are compared in normalised
        form: ``/customers/:id/`` and ``/customers/{id}`` are the same route.
        Re-registering the same route under the same key is a no-op and
        returns the existing endpoint.

        Raises:
            DuplicateKeyError: *key* exists with a different route, or the
                route is already registered under another key.
            RegistryFrozenError: the registry has been frozen.
        """
        if self._frozen:
            raise RegistryFrozenError(key)

        try:
            method = _coerce_method(method)
        except ValueError:
            raise ConfigurationError(
                f"Endpoint '{key}' has unsupported HTTP method '{method}'",
                source=self._source,
            ) from None
        template = normalize_path(path_template)
        route = f"{method.value} {template}"

        existing = self._by_key.get(key)
        if existing is not None:
            if (existing.method, normalize_path(existing.path_template)) == (method, template):
                return existing
            raise DuplicateKeyError(
                key,
                f"{existing.method.value} {existing.path_template}",
                route,
                source=self._source,
            )

        owner = self._by_route.get((method, template))
        if owner is not None:
            raise DuplicateKeyError(owner, route, f"{route} (as '{key}')", source=self._source)

        endpoint = Endpoint(
            key=key,
            method=method,
            path_template=path_template,
            path_segments=(
                frozenset(s.lower() for s in segments)
                if segments is not None
                else path_segments(template)
            ),
        )
        self._by_key[key] = endpoint
        self._by_route[(method, template)] = key
        logger.debug("Registered endpoint %s -> %s", key, route)
        return endpoint

    def resolve(self, key: str) -> Endpoint:
        """Return the endpoint registered under *key*.

        Raises:
            UnknownEndpointError: no such key.
        """
        try:
            return self._by_key[key]
        except KeyError:
            raise UnknownEndpointError(key, source=self._source) from None

    def lookup(self, method: HttpMethod | str, path: str) -> Endpoint:
        """Return the endpoint registered for ``(method, path)``."""
        try:
            key = self._by_route[(_coerce_method(method), normalize_path(path))]
        except (KeyError, ValueError):
            name = method.value if isinstance(method, HttpMethod) else method
            raise UnknownEndpointError(f"{name} {path}", source=self._source) from None
        return self._by_key[key]

    def resolve_reference(self, reference: str) -> Endpoint:
        """Resolve a canonical key or a ``"METHOD /path"`` reference."""
        if reference in self._by_key:
            return self._by_key[reference]
        match = _REFERENCE_RE.match(reference)
        if match:
            return self.lookup(match.group(1), match.group(2))
        raise UnknownEndpointError(reference, source=self._source)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def keys(self) -> list[str]:
        """All keys in sorted order."""
        return sorted(self._by_key)

    def endpoints(self) -> list[Endpoint]:
        return [self._by_key[k] for k in self.keys()]

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self.endpoints())

    def __len__(self) -> int:
        return len(self._by_key)


def _coerce_method(method: HttpMethod | str) -> HttpMethod:
    if isinstance(method, HttpMethod):
        return method
    return HttpMethod(method.strip().upper())
