from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TransactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    method: str
    uri: str
    headers: dict[str, Any] = Field(default_factory=dict)
    body: str = ""


class RealResponse(BaseModel):
    """What the system under test actually answered."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status_code: int = Field(alias="statusCode")
    body: str = ""
    # node keeps repeated headers (set-cookie) as lists
    headers: dict[str, Any] = Field(default_factory=dict)


class Transaction(BaseModel):
    """
    One request/response pair as handed over by the contract-test runner.

    Field aliases follow the runner's JSON (statusCode, fullPath) so events can
    be validated straight from its wire format. Keys the runner sends that are
    not modelled here are kept, never dropped.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = ""
    request: TransactionRequest
    real: Optional[RealResponse] = None
    skip: bool = False
    full_path: Optional[str] = Field(default=None, alias="fullPath")

    @property
    def method(self) -> str:
        return self.request.method.upper()

    @property
    def path(self) -> str:
        # uri without the query string
        return self.request.uri.split("?", 1)[0]

    @classmethod
    def essentials(cls, event: dict[str, Any]) -> "Transaction":
        """
        Just the fields capture reads (method, uri, request body, status, response body).

        For events whose other fields do not validate.
        """
        request = event.get("request") or {}
        real = event.get("real") or {}
        return cls.model_validate(
            {
                "name": str(event.get("name") or ""),
                "request": {
                    "method": str(request.get("method") or ""),
                    "uri": str(request.get("uri") or ""),
                    "body": _text(request.get("body")),
                },
                "real": (
                    {"statusCode": real["statusCode"], "body": _text(real.get("body"))}
                    if real.get("statusCode") is not None
                    else None
                ),
            }
        )


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
