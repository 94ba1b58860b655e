from __future__ import annotations

import enum
import re


class OutcomeClass(str, enum.Enum):
    SUCCESS = "success"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    UNSPECIFIED = "unspecified"


_STATUS = re.compile(r"(?<!\d)(\d{3})(?!\d)")

_EXACT: dict[int, OutcomeClass] = {
    400: OutcomeClass.BAD_REQUEST,
    422: OutcomeClass.BAD_REQUEST,
    401: OutcomeClass.UNAUTHORIZED,
    403: OutcomeClass.UNAUTHORIZED,
    404: OutcomeClass.NOT_FOUND,
    409: OutcomeClass.CONFLICT,
}


def outcome_for_status(code: int) -> OutcomeClass:
    if code in _EXACT:
        return _EXACT[code]
    if 200 <= code < 300:
        return OutcomeClass.SUCCESS
    if 500 <= code < 600:
        return OutcomeClass.SERVER_ERROR
    return OutcomeClass.UNSPECIFIED


def classify_outcome(label: str | None) -> OutcomeClass:
    """
    Intended outcome of a transaction, sniffed from its free-text name.

    Runner names look like "/orders/{id} > Cancel order > 404". Standalone
    3-digit runs are tried left to right; the first one with a known class
    wins. Nothing recognisable yields UNSPECIFIED.

    This is the only place that reads status codes out of labels.
    """
    for m in _STATUS.finditer(label or ""):
        outcome = outcome_for_status(int(m.group(1)))
        if outcome is not OutcomeClass.UNSPECIFIED:
            return outcome
    return OutcomeClass.UNSPECIFIED
