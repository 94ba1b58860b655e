from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping, Optional

import structlog

from contrail.config import DEFAULT_LOGIN_ENDPOINT, DEFAULT_REGISTER_ENDPOINT
from contrail.contract.model import EndpointDescriptor, EndpointKey, EndpointRegistry, Schema
from contrail.errors import ContractLoadError

logger = structlog.get_logger()

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "options", "head")

SCHEMA_REF_PREFIX = "#/components/schemas/"

LOGIN_PATTERNS = ("login", "signin", "auth", "authenticate", "session")
REGISTER_PATTERNS = ("register", "signup", "create", "account")


def iter_operations(document: Mapping[str, Any]) -> Iterable[tuple[str, str, Mapping[str, Any]]]:
    """Yield (METHOD, path, operation) for every HTTP operation, in document order."""
    paths = document.get("paths")
    if not isinstance(paths, Mapping):
        return
    for path_key, path_item in paths.items():
        if not isinstance(path_item, Mapping):
            continue
        for method, operation in path_item.items():
            # path items also carry "parameters", "summary", "servers", ...
            if str(method).lower() not in HTTP_METHODS or not isinstance(operation, Mapping):
                continue
            yield str(method).upper(), str(path_key), operation


def json_media_schema(content: Any) -> Optional[Any]:
    """Schema of the JSON media type in a content map (application/json or +json)."""
    if not isinstance(content, Mapping):
        return None
    media = content.get("application/json")
    if media is None:
        for media_type, candidate in content.items():
            if str(media_type).split(";")[0].strip().endswith("json"):
                media = candidate
                break
    if not isinstance(media, Mapping):
        return None
    return media.get("schema")


def resolve_ref(schema: Any, components: Mapping[str, Any]) -> Optional[Schema]:
    """
    Follow one internal "#/components/schemas/Name" pointer.

    Returns a deep copy so descriptors never alias the document. Foreign or
    dangling references resolve to None.
    """
    if not isinstance(schema, Mapping):
        return None
    ref = schema.get("$ref")
    if ref is None:
        return copy.deepcopy(dict(schema))
    if not isinstance(ref, str) or not ref.startswith(SCHEMA_REF_PREFIX):
        return None
    target = components.get(ref[len(SCHEMA_REF_PREFIX):])
    if not isinstance(target, Mapping):
        return None
    return copy.deepcopy(dict(target))


def resolve_schema(schema: Any, components: Mapping[str, Any]) -> Optional[Schema]:
    """The schema itself plus its direct properties, one reference level each."""
    resolved = resolve_ref(schema, components)
    if resolved is None:
        return None

    props = resolved.get("properties")
    if isinstance(props, Mapping):
        out: dict[str, Any] = {}
        for name, prop in props.items():
            if isinstance(prop, Mapping) and "$ref" in prop:
                # unresolvable property refs stay as-is; synthesis treats them as untyped
                out[name] = resolve_ref(prop, components) or dict(prop)
            else:
                out[name] = prop
        resolved["properties"] = out
    return resolved


def requires_auth(operation: Mapping[str, Any]) -> bool:
    """True iff the operation lists at least one non-empty security requirement."""
    security = operation.get("security")
    if not isinstance(security, list):
        return False
    return any(isinstance(req, Mapping) and len(req) > 0 for req in security)


def _components_schemas(document: Mapping[str, Any]) -> Mapping[str, Any]:
    components = document.get("components")
    if not isinstance(components, Mapping):
        return {}
    schemas = components.get("schemas")
    return schemas if isinstance(schemas, Mapping) else {}


def _security_schemes(document: Mapping[str, Any]) -> dict[str, Mapping[str, Any]]:
    components = document.get("components")
    if not isinstance(components, Mapping):
        return {}
    schemes = components.get("securitySchemes")
    if not isinstance(schemes, Mapping):
        return {}
    return {str(k): copy.deepcopy(dict(v)) for k, v in schemes.items() if isinstance(v, Mapping)}


def _request_schema(
    method: str, path: str, operation: Mapping[str, Any], components: Mapping[str, Any]
) -> Optional[Schema]:
    body = operation.get("requestBody")
    if body is None:
        return None
    if not isinstance(body, Mapping):
        logger.debug("request_body_malformed", method=method, path=path)
        return None

    raw = json_media_schema(body.get("content"))
    if raw is None:
        return None

    resolved = resolve_schema(raw, components)
    if resolved is None:
        ref = raw.get("$ref") if isinstance(raw, Mapping) else None
        logger.debug("request_schema_unresolved", method=method, path=path, ref=ref)
    return resolved


def _response_schemas(operation: Mapping[str, Any], components: Mapping[str, Any]) -> dict[str, Schema]:
    responses = operation.get("responses")
    if not isinstance(responses, Mapping):
        return {}
    out: dict[str, Schema] = {}
    for status, response in responses.items():
        if not isinstance(response, Mapping):
            continue
        resolved = resolve_schema(json_media_schema(response.get("content")), components)
        if resolved is not None:
            out[str(status)] = resolved
    return out


def _text_of(operation: Mapping[str, Any]) -> str:
    return " ".join(str(operation.get(k) or "") for k in ("summary", "description")).lower()


def _match_score(path: str, operation: Mapping[str, Any], patterns: tuple[str, ...]) -> int:
    if any(p in path.lower() for p in patterns):
        return 2
    if any(p in _text_of(operation) for p in patterns):
        return 1
    return 0


def discover_auth_endpoints(document: Mapping[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """
    Guess (login_path, register_path) from POST operations.

    A pattern in the path scores higher than one in summary/description. An
    operation counts for whichever kind it scores higher on, register on a
    tie, so /auth/register is never taken as the login endpoint. Among equal
    scores the first in document order wins.
    """
    best: dict[str, tuple[int, str]] = {}

    for method, path, operation in iter_operations(document):
        if method != "POST":
            continue
        register = _match_score(path, operation, REGISTER_PATTERNS)
        login = _match_score(path, operation, LOGIN_PATTERNS)
        if register == 0 and login == 0:
            continue

        kind, score = ("register", register) if register >= login else ("login", login)
        if score > best.get(kind, (0, ""))[0]:
            best[kind] = (score, path)

    login = best.get("login")
    register = best.get("register")
    return (login[1] if login else None, register[1] if register else None)


def build_registry(
    document: Mapping[str, Any],
    *,
    auto_discovery: bool = False,
    login_path: str = DEFAULT_LOGIN_ENDPOINT,
    register_path: str = DEFAULT_REGISTER_ENDPOINT,
) -> EndpointRegistry:
    """
    Contract document -> EndpointRegistry.

    Malformed schema entries degrade to request_schema=None; only a
    document that is not a mapping is fatal.
    """
    if not isinstance(document, Mapping):
        raise ContractLoadError("<document>", f"expected a mapping, got {type(document).__name__}")

    components = _components_schemas(document)
    endpoints: dict[EndpointKey, EndpointDescriptor] = {}
    protected: set[EndpointKey] = set()

    for method, path, operation in iter_operations(document):
        descriptor = EndpointDescriptor(
            method=method,
            path_template=path,
            requires_auth=requires_auth(operation),
            request_schema=_request_schema(method, path, operation, components),
            response_schemas=_response_schemas(operation, components),
            summary=str(operation.get("summary") or ""),
            description=str(operation.get("description") or ""),
        )
        endpoints[descriptor.key] = descriptor
        if descriptor.requires_auth:
            protected.add(descriptor.key)

    if auto_discovery:
        found_login, found_register = discover_auth_endpoints(document)
        # explicit configuration always wins over discovery
        if found_login and login_path == DEFAULT_LOGIN_ENDPOINT:
            logger.debug("auth_endpoint_discovered", kind="login", path=found_login)
            login_path = found_login
        if found_register and register_path == DEFAULT_REGISTER_ENDPOINT:
            logger.debug("auth_endpoint_discovered", kind="register", path=found_register)
            register_path = found_register

    registry = EndpointRegistry(
        endpoints=endpoints,
        protected=frozenset(protected),
        login_path=login_path,
        register_path=register_path,
        security_schemes=_security_schemes(document),
    )
    logger.info(
        "registry_built",
        endpoints=len(endpoints),
        protected=sorted(f"{m} {p}" for m, p in protected),
        login_path=login_path,
        register_path=register_path,
    )
    return registry
