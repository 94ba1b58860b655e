from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Optional


class FieldRole(str, enum.Enum):
    EMAIL = "email"
    PASSWORD = "password"
    IDENTIFIER = "identifier"
    TOKEN = "token"
    UNKNOWN = "unknown"


# A name like "emailToken" matches more than one pattern set; first role wins.
ROLE_PRECEDENCE: tuple[FieldRole, ...] = (
    FieldRole.EMAIL,
    FieldRole.PASSWORD,
    FieldRole.TOKEN,
    FieldRole.IDENTIFIER,
)

NUMERIC_TYPES = frozenset({"number", "integer"})


@dataclass(frozen=True)
class FieldPatterns:
    """Lower-cased substring patterns per role."""

    email: tuple[str, ...] = ()
    password: tuple[str, ...] = ()
    identifier: tuple[str, ...] = ()
    token: tuple[str, ...] = ()

    @classmethod
    def from_lists(
        cls,
        email: Iterable[str] = (),
        password: Iterable[str] = (),
        identifier: Iterable[str] = (),
        token: Iterable[str] = (),
    ) -> "FieldPatterns":
        return cls(
            email=_lowered(email),
            password=_lowered(password),
            identifier=_lowered(identifier),
            token=_lowered(token),
        )

    def for_role(self, role: FieldRole) -> tuple[str, ...]:
        match role:
            case FieldRole.EMAIL:
                return self.email
            case FieldRole.PASSWORD:
                return self.password
            case FieldRole.TOKEN:
                return self.token
            case FieldRole.IDENTIFIER:
                return self.identifier
            case _:
                return ()


def _lowered(patterns: Iterable[str]) -> tuple[str, ...]:
    return tuple(p.strip().lower() for p in patterns if p and p.strip())


def classify_field(
    field_name: str,
    field_type: Optional[str],
    field_format: Optional[str],
    patterns: FieldPatterns,
) -> FieldRole:
    """
    Map a schema field to its semantic role.

    format "email" forces EMAIL. Otherwise the lower-cased name is checked
    against each pattern set in ROLE_PRECEDENCE order (email > password >
    token > identifier); first substring hit wins, no hit is UNKNOWN.
    field_type does not influence the role; generators decide what a role
    means for a given type.
    """
    if (field_format or "").lower() == "email":
        return FieldRole.EMAIL

    name = (field_name or "").lower()
    for role in ROLE_PRECEDENCE:
        if any(p in name for p in patterns.for_role(role)):
            return role
    return FieldRole.UNKNOWN
