from __future__ import annotations

import itertools
import random
import time
from typing import Any, Mapping, Optional

import structlog

from contrail.classify.fields import NUMERIC_TYPES, FieldPatterns, FieldRole, classify_field
from contrail.classify.outcome import OutcomeClass
from contrail.domain.result import Result
from contrail.session.state import SessionState

logger = structlog.get_logger()

VALID_PASSWORD = "testpassword123"
NUMERIC_SENTINEL = 42
INVALID_NUMBER = -999

CONFLICT_EMAIL = "conflict@example.com"
CONFLICT_PASSWORD = "conflictpassword"
CONFLICT_FIRST_NAME = "Conflict"
CONFLICT_LAST_NAME = "User"

FALLBACK_LOGIN = {"email": "fallback@example.com", "password": "fallbackpassword"}
INVALID_LOGIN = {"email": "nonexistent@example.com", "password": "wrongpassword"}

# name substring -> (low, high) for plausible monetary values
DEFAULT_AMOUNT_RANGES: dict[str, tuple[float, float]] = {
    "total": (50.0, 500.0),
    "price": (10.0, 200.0),
    "amount": (10.0, 500.0),
}

# nested objects deeper than this are cut off with an empty object
MAX_DEPTH = 8


class PayloadSynthesizer:
    """
    Builds request bodies from a request schema for an intended outcome.

    Which generator runs is decided by the outcome class alone; the field role
    then picks the value within that generator. Every (role, outcome) pair
    resolves to some value, nothing here raises on odd schemas.
    """

    def __init__(
        self,
        patterns: FieldPatterns,
        email_suffix: str = "@example.com",
        amount_ranges: Optional[Mapping[str, tuple[float, float]]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.patterns = patterns
        self.email_suffix = email_suffix
        self.amount_ranges = dict(DEFAULT_AMOUNT_RANGES if amount_ranges is None else amount_ranges)
        self._rng = rng or random.Random()
        self._seq = itertools.count()

    def synthesize(
        self,
        schema: Optional[Mapping[str, Any]],
        outcome: OutcomeClass,
        state: SessionState,
    ) -> Result[dict[str, Any]]:
        props = _properties(schema)
        if not props:
            return Result.miss("empty_schema", "schema has no object properties")

        body = self._object(props, outcome, state, depth=0)
        return Result.ok(body)

    # ----------------------------
    # Dispatch
    # ----------------------------

    def value_for(
        self,
        field_name: str,
        field_schema: Any,
        outcome: OutcomeClass,
        state: SessionState,
        depth: int = 0,
    ) -> Any:
        if not isinstance(field_schema, Mapping):
            field_schema = {}

        match outcome:
            case OutcomeClass.BAD_REQUEST:
                return self.invalid_value(field_name, field_schema, state, depth)
            case OutcomeClass.CONFLICT:
                return self.conflict_value(field_name, field_schema, state, depth)
            case _:
                return self.valid_value(field_name, field_schema, state, depth)

    def _object(
        self,
        props: Mapping[str, Any],
        outcome: OutcomeClass,
        state: SessionState,
        depth: int,
    ) -> dict[str, Any]:
        if depth >= MAX_DEPTH:
            return {}
        return {
            str(name): self.value_for(str(name), prop, outcome, state, depth + 1)
            for name, prop in props.items()
        }

    def _container(
        self,
        field_name: str,
        field_schema: Mapping[str, Any],
        outcome: OutcomeClass,
        state: SessionState,
        depth: int,
    ) -> Any:
        """Objects recurse field by field, arrays get one generated item."""
        if _type_of(field_schema) == "array":
            if depth >= MAX_DEPTH:
                return []
            return [self.value_for(field_name, field_schema.get("items"), outcome, state, depth + 1)]
        return self._object(_properties(field_schema) or {}, outcome, state, depth)

    # ----------------------------
    # Generators
    # ----------------------------

    def valid_value(
        self,
        field_name: str,
        field_schema: Mapping[str, Any],
        state: SessionState,
        depth: int = 0,
    ) -> Any:
        field_type = _type_of(field_schema)
        if field_type in ("object", "array"):
            return self._container(field_name, field_schema, OutcomeClass.SUCCESS, state, depth)

        role = classify_field(field_name, field_type, field_schema.get("format"), self.patterns)
        lowered = field_name.lower()

        match role:
            case FieldRole.EMAIL:
                return self.unique_email()
            case FieldRole.PASSWORD:
                return VALID_PASSWORD
            case FieldRole.IDENTIFIER if field_type in NUMERIC_TYPES:
                return 1
            case _:
                pass

        if field_type in NUMERIC_TYPES:
            for key, (low, high) in self.amount_ranges.items():
                if key in lowered:
                    return round(self._rng.uniform(low, high), 2)
            return NUMERIC_SENTINEL
        if field_type == "string":
            return f"test-{field_name}-value"
        if field_type == "boolean":
            return True
        return f"test-{field_name}"

    def invalid_value(
        self,
        field_name: str,
        field_schema: Mapping[str, Any],
        state: SessionState,
        depth: int = 0,
    ) -> Any:
        field_type = _type_of(field_schema)
        if field_type in ("object", "array"):
            return self._container(field_name, field_schema, OutcomeClass.BAD_REQUEST, state, depth)
        if field_type in NUMERIC_TYPES:
            return INVALID_NUMBER
        # empty string violates "required" for strings and the type for everything else
        return ""

    def conflict_value(
        self,
        field_name: str,
        field_schema: Mapping[str, Any],
        state: SessionState,
        depth: int = 0,
    ) -> Any:
        field_type = _type_of(field_schema)
        if field_type in ("object", "array"):
            return self._container(field_name, field_schema, OutcomeClass.CONFLICT, state, depth)

        creds = state.registered_credentials
        role = classify_field(field_name, field_type, field_schema.get("format"), self.patterns)
        lowered = field_name.lower()

        match role:
            case FieldRole.EMAIL:
                return creds.email if creds and creds.email else CONFLICT_EMAIL
            case FieldRole.PASSWORD:
                return creds.password if creds and creds.password else CONFLICT_PASSWORD
            case _:
                pass

        if "name" in lowered and field_type in ("string", None):
            if "first" in lowered:
                return creds.first_name if creds and creds.first_name else CONFLICT_FIRST_NAME
            return creds.last_name if creds and creds.last_name else CONFLICT_LAST_NAME

        return self.valid_value(field_name, field_schema, state, depth)

    def unique_email(self) -> str:
        # millisecond timestamp + process-wide sequence + random tail
        return (
            f"test{int(time.time() * 1000)}"
            f"{next(self._seq)}{self._rng.randrange(1000):03d}{self.email_suffix}"
        )


def login_credentials(outcome: OutcomeClass, state: SessionState) -> Optional[dict[str, str]]:
    """
    Fixed two-field body for the login endpoint.

    SUCCESS mirrors the last registration (or a documented fallback pair when
    no registration was captured); UNAUTHORIZED uses a known-bad pair. Other
    outcomes keep whatever the synthesizer produced.
    """
    if outcome is OutcomeClass.SUCCESS:
        creds = state.registered_credentials
        if creds and creds.email and creds.password:
            return {"email": creds.email, "password": creds.password}
        logger.warning("login_without_registration", fallback=FALLBACK_LOGIN["email"])
        return dict(FALLBACK_LOGIN)
    if outcome is OutcomeClass.UNAUTHORIZED:
        return dict(INVALID_LOGIN)
    return None


def _type_of(schema: Mapping[str, Any]) -> Optional[str]:
    t = schema.get("type")
    if isinstance(t, list):
        # OpenAPI 3.1 style ["string", "null"]
        t = next((x for x in t if x != "null"), None)
    if t is None and isinstance(schema.get("properties"), Mapping):
        return "object"
    return t if isinstance(t, str) else None


def _properties(schema: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(schema, Mapping):
        return None
    props = schema.get("properties")
    if not isinstance(props, Mapping) or not props:
        return None
    return props
