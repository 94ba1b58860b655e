from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import structlog

from contrail.contract.paths import resource_type as resource_type_of
from contrail.contract.paths import strip_query
from contrail.domain.result import Result
from contrail.session.state import RegisteredCredentials, SessionState

logger = structlog.get_logger()

HTTP_CREATED = 201

# checked in order; the first truthy one is the new resource's id
ID_FIELDS: tuple[str, ...] = ("id", "_id", "uuid", "identifier")

CREDENTIAL_FIELDS: tuple[str, ...] = ("email", "password", "first_name", "last_name")


@dataclass(frozen=True)
class CapturePolicy:
    """What capture needs from configuration and the registry."""

    login_path: str
    register_path: str
    success_status_codes: frozenset[int] = frozenset({200, 201, 202, 204})
    token_field_patterns: tuple[str, ...] = ("token",)
    auth_token_field: str = "token"
    auto_detect_token_fields: bool = True
    id_fields: tuple[str, ...] = ID_FIELDS


@dataclass(frozen=True)
class CaptureReport:
    token: Result[str]
    credentials: Result[RegisteredCredentials]
    resource_id: Result[tuple[str, str]]    # (resource_type, id)

    @property
    def captured_anything(self) -> bool:
        return self.token.is_ok or self.credentials.is_ok or self.resource_id.is_ok


def resolve_path(obj: Any, path: str) -> Any:
    """
    "data.token" -> obj["data"]["token"]

    Any missing key or non-object along the way yields None.
    """
    if not path:
        return None
    current = obj
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _as_token(value: Any) -> Optional[str]:
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        return None
    if value is None:
        return None
    text = str(value)
    return text or None


def find_token(response: Any, patterns: Iterable[str]) -> Result[str]:
    for pattern in patterns:
        token = _as_token(resolve_path(response, pattern))
        if token:
            return Result.ok(token)
    return Result.miss("field_absent", "no token field matched")


def parse_json(text: Optional[str]) -> Result[Any]:
    if not text:
        return Result.miss("no_response", "empty body")
    try:
        return Result.ok(json.loads(text))
    except (TypeError, ValueError):
        return Result.miss("not_json", "body is not JSON")


def _capture_token(
    response: Result[Any], method: str, status_code: int, path: str, policy: CapturePolicy
) -> Result[str]:
    if method != "POST" or status_code not in policy.success_status_codes:
        return Result.miss("not_applicable")
    if policy.login_path not in path and policy.register_path not in path:
        return Result.miss("not_applicable")
    if not response.is_ok:
        return Result.miss(response.error.kind, response.error.message)

    patterns = policy.token_field_patterns if policy.auto_detect_token_fields else (policy.auth_token_field,)
    return find_token(response.value, patterns)


def _capture_credentials(
    request_body: Optional[str], method: str, status_code: int, path: str, policy: CapturePolicy
) -> Result[RegisteredCredentials]:
    if method != "POST" or status_code != HTTP_CREATED or policy.register_path not in path:
        return Result.miss("not_applicable")
    sent = parse_json(request_body)
    if not sent.is_ok:
        return Result.miss(sent.error.kind, "registration request body unreadable")
    if not isinstance(sent.value, dict):
        return Result.miss("field_absent", "registration request body is not an object")

    values = {k: sent.value.get(k) for k in CREDENTIAL_FIELDS}
    if not any(values.values()):
        return Result.miss("field_absent", "no credential fields in registration body")
    return Result.ok(RegisteredCredentials(**{k: None if v is None else str(v) for k, v in values.items()}))


def _capture_resource_id(
    response: Result[Any], method: str, status_code: int, path: str, policy: CapturePolicy
) -> Result[tuple[str, str]]:
    if method != "POST" or status_code != HTTP_CREATED:
        return Result.miss("not_applicable")
    if not response.is_ok:
        return Result.miss(response.error.kind, response.error.message)
    if not isinstance(response.value, dict):
        return Result.miss("field_absent", "response is not an object")

    kind = resource_type_of(path)
    if kind is None:
        return Result.miss("field_absent", "no resource segment in path")

    for name in policy.id_fields:
        value = response.value.get(name)
        if value not in (None, "", 0, False):
            return Result.ok((kind, str(value)))
    return Result.miss("field_absent", "no id field in creation response")


def capture_from_response(
    state: SessionState,
    policy: CapturePolicy,
    method: str,
    status_code: Optional[int],
    response_body: Optional[str],
    uri: str,
    request_body: Optional[str] = None,
) -> CaptureReport:
    """
    Pull token, registered credentials and created ids out of a response.

    Best-effort: every miss is reported in the CaptureReport, nothing raises.
    """
    method = (method or "").upper()
    path = strip_query(uri)
    if status_code is None:
        miss = Result.miss("no_response", "transaction has no real response")
        return CaptureReport(token=miss, credentials=miss, resource_id=miss)

    response = parse_json(response_body)

    token = _capture_token(response, method, status_code, path, policy)
    if token.is_ok:
        state.auth_token = token.value
        logger.info("token_captured", path=path, token_prefix=token.value[:20] + "...")
    elif token.error.kind != "not_applicable":
        logger.debug("token_not_found", path=path, reason=token.error.message)

    credentials = _capture_credentials(request_body, method, status_code, path, policy)
    if credentials.is_ok:
        state.registered_credentials = credentials.value
        logger.info("credentials_captured", path=path, email=credentials.value.email)

    resource = _capture_resource_id(response, method, status_code, path, policy)
    if resource.is_ok:
        kind, value = resource.value
        state.remember_resource_id(kind, value)
        logger.info("resource_id_captured", path=path, resource_type=kind, id=value)

    return CaptureReport(token=token, credentials=credentials, resource_id=resource)
