from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RegisteredCredentials:
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass
class SessionState:
    """
    Cross-transaction memory for one test run.

    Written only by post-response capture, read by request preparation.
    One instance per run; nothing here is shared between runs.
    """

    auth_token: Optional[str] = None
    captured_resource_ids: dict[str, str] = field(default_factory=dict)
    registered_credentials: Optional[RegisteredCredentials] = None

    def resource_id(self, resource_type: Optional[str], fallback: str) -> str:
        """Most recently captured id for resource_type, else fallback."""
        if resource_type and resource_type in self.captured_resource_ids:
            return self.captured_resource_ids[resource_type]
        return fallback

    def remember_resource_id(self, resource_type: str, value: object) -> str:
        self.captured_resource_ids[resource_type] = str(value)
        return self.captured_resource_ids[resource_type]
