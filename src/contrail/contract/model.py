from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional

from contrail.contract.paths import normalize_numeric_tail, strip_query

Schema = dict[str, Any]
EndpointKey = tuple[str, str]


@dataclass(frozen=True)
class EndpointDescriptor:
    """
    Resolved contract metadata for one (method, path template) pair.

    Built once by the registry builder and read-only afterwards.
    """

    method: str                                  # GET, POST, ...
    path_template: str                           # /orders/{id}
    requires_auth: bool = False
    request_schema: Optional[Schema] = None      # None when absent or unresolvable
    response_schemas: Mapping[str, Schema] = field(default_factory=dict)  # "200" -> schema
    summary: str = ""
    description: str = ""

    @property
    def key(self) -> EndpointKey:
        return (self.method, self.path_template)

    @property
    def label(self) -> str:
        return f"{self.method} {self.path_template}"


@dataclass(frozen=True)
class EndpointRegistry:
    endpoints: Mapping[EndpointKey, EndpointDescriptor]
    protected: frozenset[EndpointKey]
    login_path: str
    register_path: str
    security_schemes: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.endpoints)

    def __iter__(self) -> Iterator[EndpointDescriptor]:
        return iter(self.endpoints.values())

    def _candidates(self, method: str, uri: str) -> tuple[EndpointKey, EndpointKey]:
        m = (method or "").upper()
        path = strip_query(uri)
        return (m, path), (m, normalize_numeric_tail(path))

    def lookup(self, method: str, uri: str) -> Optional[EndpointDescriptor]:
        """Exact match first, then the {id}-normalized template. A miss is None."""
        for key in self._candidates(method, uri):
            found = self.endpoints.get(key)
            if found is not None:
                return found
        return None

    def is_protected(self, method: str, uri: str) -> bool:
        return any(key in self.protected for key in self._candidates(method, uri))


def lookup(registry: EndpointRegistry, method: str, uri: str) -> Optional[EndpointDescriptor]:
    return registry.lookup(method, uri)
