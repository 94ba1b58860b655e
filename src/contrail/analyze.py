from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from contrail.classify.fields import FieldPatterns, FieldRole
from contrail.contract.builder import (
    LOGIN_PATTERNS,
    REGISTER_PATTERNS,
    discover_auth_endpoints,
    iter_operations,
    json_media_schema,
    requires_auth,
    resolve_schema,
)

# Broader than the run-time defaults: the analyzer reports candidates, it does not decide.
ANALYZER_PATTERNS = FieldPatterns.from_lists(
    email=["email", "mail"],
    password=["password", "passwd", "pwd"],
    token=["token", "jwt", "auth"],
    identifier=["id"],
)

_ID_TYPES = frozenset({"number", "integer", "string"})


@dataclass(frozen=True)
class AuthEndpoint:
    kind: str       # login | register
    method: str
    path: str


@dataclass(frozen=True)
class SecurityScheme:
    name: str
    type: str = ""
    scheme: Optional[str] = None
    bearer_format: Optional[str] = None
    location: Optional[str] = None      # "in" for apiKey schemes
    header_name: Optional[str] = None


@dataclass
class ContractAnalysis:
    auth_endpoints: list[AuthEndpoint] = field(default_factory=list)
    login_path: Optional[str] = None
    register_path: Optional[str] = None
    protected_endpoints: list[str] = field(default_factory=list)
    security_schemes: list[SecurityScheme] = field(default_factory=list)
    fields: dict[FieldRole, list[str]] = field(default_factory=dict)

    def add_field(self, role: FieldRole, name: str) -> None:
        seen = self.fields.setdefault(role, [])
        if name not in seen:
            seen.append(name)


def _categorize(analysis: ContractAnalysis, name: str, schema: Any, patterns: FieldPatterns) -> None:
    # a field may land in several categories; this is a survey, not classification
    if not isinstance(schema, Mapping):
        schema = {}
    lowered = name.lower()

    if schema.get("format") == "email" or any(p in lowered for p in patterns.email):
        analysis.add_field(FieldRole.EMAIL, name)
    if any(p in lowered for p in patterns.password):
        analysis.add_field(FieldRole.PASSWORD, name)
    if any(p in lowered for p in patterns.token):
        analysis.add_field(FieldRole.TOKEN, name)
    if any(p in lowered for p in patterns.identifier) and schema.get("type") in _ID_TYPES:
        analysis.add_field(FieldRole.IDENTIFIER, name)


def _categorize_schema(
    analysis: ContractAnalysis,
    schema: Any,
    components: Mapping[str, Any],
    patterns: FieldPatterns,
) -> None:
    resolved = resolve_schema(schema, components)
    if resolved is None:
        return
    props = resolved.get("properties")
    if not isinstance(props, Mapping):
        return
    for name, prop in props.items():
        _categorize(analysis, str(name), prop, patterns)


def analyze_contract(
    document: Mapping[str, Any], patterns: FieldPatterns = ANALYZER_PATTERNS
) -> ContractAnalysis:
    """
    Survey a contract for hook configuration: auth endpoints, protected
    operations, security schemes and field names seen in request bodies and
    2xx responses.
    """
    analysis = ContractAnalysis()
    components = document.get("components")
    if not isinstance(components, Mapping):
        components = {}
    schemas = components.get("schemas")
    if not isinstance(schemas, Mapping):
        schemas = {}
    schemes = components.get("securitySchemes")
    if not isinstance(schemes, Mapping):
        schemes = {}

    for method, path, operation in iter_operations(document):
        if method == "POST":
            text = " ".join(str(operation.get(k) or "") for k in ("summary", "description")).lower()
            haystack = (path.lower(), text)
            if any(p in h for p in LOGIN_PATTERNS for h in haystack):
                analysis.auth_endpoints.append(AuthEndpoint("login", method, path))
            if any(p in h for p in REGISTER_PATTERNS for h in haystack):
                analysis.auth_endpoints.append(AuthEndpoint("register", method, path))

        if requires_auth(operation):
            analysis.protected_endpoints.append(f"{method} {path}")

        body = operation.get("requestBody")
        if isinstance(body, Mapping):
            _categorize_schema(analysis, json_media_schema(body.get("content")), schemas, patterns)

        responses = operation.get("responses")
        if isinstance(responses, Mapping):
            for status, response in responses.items():
                if str(status).startswith("2") and isinstance(response, Mapping):
                    _categorize_schema(analysis, json_media_schema(response.get("content")), schemas, patterns)

    analysis.login_path, analysis.register_path = discover_auth_endpoints(document)

    for name, scheme in schemes.items():
        if not isinstance(scheme, Mapping):
            continue
        analysis.security_schemes.append(
            SecurityScheme(
                name=str(name),
                type=str(scheme.get("type") or ""),
                scheme=scheme.get("scheme"),
                bearer_format=scheme.get("bearerFormat"),
                location=scheme.get("in"),
                header_name=scheme.get("name"),
            )
        )
    return analysis


def recommend_env(analysis: ContractAnalysis) -> list[str]:
    """.env lines matching the analysed contract."""
    lines: list[str] = []

    if analysis.login_path:
        lines.append(f"AUTH_LOGIN_ENDPOINT={analysis.login_path}")
    if analysis.register_path:
        lines.append(f"AUTH_REGISTER_ENDPOINT={analysis.register_path}")

    primary = analysis.security_schemes[0] if analysis.security_schemes else None
    if primary is not None:
        if primary.type == "http" and (primary.scheme or "").lower() == "bearer":
            lines += ["AUTH_TYPE=bearer", "AUTH_HEADER_NAME=Authorization", "AUTH_TOKEN_PREFIX=Bearer "]
        elif primary.type == "apiKey":
            lines += ["AUTH_TYPE=apikey", f"AUTH_HEADER_NAME={primary.header_name or primary.name}", "AUTH_TOKEN_PREFIX="]

    tokens = analysis.fields.get(FieldRole.TOKEN, [])
    if tokens:
        lines.append(f"AUTH_TOKEN_FIELD={tokens[0]}")
        if len(tokens) > 1:
            lines.append(f"TOKEN_FIELD_PATTERNS={','.join(tokens)}")

    for role, var in (
        (FieldRole.EMAIL, "EMAIL_FIELD_PATTERNS"),
        (FieldRole.PASSWORD, "PASSWORD_FIELD_PATTERNS"),
        (FieldRole.IDENTIFIER, "ID_FIELD_PATTERNS"),
    ):
        names = analysis.fields.get(role, [])
        if len(names) > 1:
            lines.append(f"{var}={','.join(names)}")

    lines += ["ENABLE_AUTO_DISCOVERY=true", "AUTO_DETECT_TOKEN_FIELDS=true"]
    return lines
