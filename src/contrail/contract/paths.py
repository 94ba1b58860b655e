from __future__ import annotations

import re
from typing import Optional

ID_PLACEHOLDER = "{id}"

_TRAILING_NUMERIC = re.compile(r"/\d+$")
_NUMERIC_SEGMENT = re.compile(r"^\d+$")
_PARAM_SEGMENT = re.compile(r"^\{[A-Za-z_][A-Za-z0-9_]*\}$")


def strip_query(uri: str) -> str:
    return (uri or "").split("?", 1)[0]


def normalize_numeric_tail(path: str) -> str:
    """
    /orders/42 -> /orders/{id}

    Only a single trailing numeric segment is replaced. Multi-parameter paths
    (/users/1/orders/2) and non-numeric identifiers (UUIDs) are left as-is.
    """
    return _TRAILING_NUMERIC.sub("/" + ID_PLACEHOLDER, path)


def has_numeric_tail(path: str) -> bool:
    return _TRAILING_NUMERIC.search(path) is not None


def has_param_tail(path_template: str) -> bool:
    last = path_template.rstrip("/").rsplit("/", 1)[-1]
    return _PARAM_SEGMENT.match(last) is not None


def replace_tail(uri: str, segment: str) -> str:
    # /orders/42?x=1 + 7 -> /orders/7?x=1
    path, sep, query = (uri or "").partition("?")
    head, _, _ = path.rstrip("/").rpartition("/")
    return f"{head}/{segment}{sep}{query}"


def resource_type(path: str) -> Optional[str]:
    """
    Last non-numeric, non-placeholder segment: /api/orders/42 -> orders.
    """
    segments = [
        s
        for s in strip_query(path).split("/")
        if s and not _NUMERIC_SEGMENT.match(s) and not _PARAM_SEGMENT.match(s)
    ]
    return segments[-1] if segments else None


def with_query_param(uri: str, name: str, value: str) -> str:
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}{name}={value}"
