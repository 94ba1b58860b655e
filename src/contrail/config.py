"""Run configuration loaded from the environment (and an optional .env file)."""
from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from contrail.classify.fields import FieldPatterns

CsvList = Annotated[list[str], NoDecode]
CsvIntList = Annotated[list[int], NoDecode]

DEFAULT_LOGIN_ENDPOINT = "/auth/login"
DEFAULT_REGISTER_ENDPOINT = "/auth/register"


class Settings(BaseSettings):
    """
    Every knob of a run. Environment variable names match the field names
    upper-cased (API_BASE_URL, AUTH_HEADER_NAME, ...).

    List values are comma separated: TOKEN_FIELD_PATTERNS=token,data.token
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_base_url: str = Field(default="http://localhost:3000")
    openapi_schema_path: str = Field(default="schemas/api-schema.yaml")
    unique_email_suffix: str = Field(default="@example.com")

    # Authentication
    auth_type: str = Field(default="bearer", description="bearer|apikey|basic|oauth2|custom")
    auth_header_name: str = Field(default="Authorization")
    auth_token_prefix: str = Field(default="Bearer ")
    auth_login_endpoint: str = Field(default=DEFAULT_LOGIN_ENDPOINT)
    auth_register_endpoint: str = Field(default=DEFAULT_REGISTER_ENDPOINT)
    auth_token_field: str = Field(default="token")

    # Response patterns
    success_status_codes: CsvIntList = Field(default_factory=lambda: [200, 201, 202, 204])
    error_status_codes: CsvIntList = Field(
        default_factory=lambda: [400, 401, 403, 404, 409, 422, 500]
    )

    # Discovery
    enable_auto_discovery: bool = False
    auto_detect_token_fields: bool = True
    auto_detect_id_fields: bool = True

    # Field patterns
    token_field_patterns: CsvList = Field(
        default_factory=lambda: [
            "token", "access_token", "accessToken", "authToken", "jwt",
            "auth.token", "data.token", "result.token",
        ]
    )
    id_field_patterns: CsvList = Field(
        default_factory=lambda: ["id", "_id", "uuid", "identifier", "pk", "objectId"]
    )
    email_field_patterns: CsvList = Field(
        default_factory=lambda: ["email", "emailAddress", "userEmail", "mail"]
    )
    password_field_patterns: CsvList = Field(
        default_factory=lambda: ["password", "passwd", "pwd", "pass"]
    )

    # Behaviour toggles
    enable_debug_logging: bool = False
    log_format: str = Field(default="console", description="console|json")
    enable_dynamic_data_generation: bool = True
    enable_error_simulation: bool = True
    auto_skip_tests: bool = False
    skip_patterns: CsvList = Field(default_factory=list)

    # Target rewriting conventions of the system under test
    simulate_query_param: str = "simulate"
    nonexistent_resource_id: str = "999999"
    fallback_resource_id: str = "65"

    # dredd.yml generation
    dredd_reporter: str = "spec"
    dredd_dry_run: bool = False
    dredd_hooks_path: Optional[str] = None
    dredd_log_level: str = "warning"
    server_wait_time: int = 0

    @field_validator(
        "token_field_patterns",
        "id_field_patterns",
        "email_field_patterns",
        "password_field_patterns",
        "skip_patterns",
        mode="before",
    )
    @classmethod
    def split_csv(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("success_status_codes", "error_status_codes", mode="before")
    @classmethod
    def split_status_codes(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return [int(p) for p in v.split(",") if p.strip()]
            except ValueError as e:
                raise ValueError(f"status code list must be integers: {v!r}") from e
        return v

    def field_patterns(self) -> FieldPatterns:
        return FieldPatterns.from_lists(
            email=self.email_field_patterns,
            password=self.password_field_patterns,
            identifier=self.id_field_patterns,
            token=self.token_field_patterns,
        )

    def auth_header_value(self, credential: str) -> str:
        return f"{self.auth_token_prefix}{credential}"
