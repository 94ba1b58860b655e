from __future__ import annotations


class ContrailError(Exception):
    """Base class for errors raised by contrail."""


class ContractLoadError(ContrailError):
    """The contract document is missing, unreadable or not a mapping.

    Fatal: nothing downstream can run without a contract.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot load contract {path!r}: {reason}")
        self.path = path
        self.reason = reason
