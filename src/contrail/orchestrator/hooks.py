from __future__ import annotations

import enum
import fnmatch
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal, Optional

import structlog
from pydantic import ValidationError

from contrail.classify.outcome import OutcomeClass, classify_outcome
from contrail.config import Settings
from contrail.contract.builder import build_registry
from contrail.contract.loader import load_contract
from contrail.contract.model import EndpointDescriptor, EndpointRegistry
from contrail.domain.models import Transaction
from contrail.domain.result import Result
from contrail.orchestrator.rewrite import Rewrite, SimulationPolicy, rewrite_target
from contrail.session.capture import ID_FIELDS, CapturePolicy, CaptureReport, capture_from_response
from contrail.session.state import SessionState
from contrail.synth.payload import PayloadSynthesizer, login_credentials

logger = structlog.get_logger()

INVALID_TOKEN = "invalid-token"

AuthDecision = Literal["not_required", "invalid", "token", "missing"]


class Stage(str, enum.Enum):
    PENDING = "pending"
    SKIPPED = "skipped"
    AUTH_INJECTED = "auth_injected"
    PAYLOAD_SYNTHESIZED = "payload_synthesized"
    TARGET_REWRITTEN = "target_rewritten"
    DISPATCHED = "dispatched"
    CAPTURED = "captured"
    DONE = "done"


@dataclass
class Preparation:
    """What before_each did to one transaction."""

    name: str
    outcome: OutcomeClass
    stages: list[Stage] = field(default_factory=lambda: [Stage.PENDING])
    endpoint: Optional[EndpointDescriptor] = None
    auth: AuthDecision = "not_required"
    payload: Optional[Result[dict[str, Any]]] = None
    rewrite: Optional[Rewrite] = None

    @property
    def skipped(self) -> bool:
        return Stage.SKIPPED in self.stages

    @property
    def stage(self) -> Stage:
        return self.stages[-1]


def _id_fields(settings: Settings) -> tuple[str, ...]:
    # configured id names extend the built-in ones, never reorder them
    if not settings.auto_detect_id_fields:
        return ID_FIELDS
    extra = tuple(f for f in settings.id_field_patterns if f not in ID_FIELDS)
    return ID_FIELDS + extra


class TransactionOrchestrator:
    """
    Per-transaction hook logic for one contract test run.

    The runner calls before_each, sends the request, then calls after_each,
    strictly one transaction at a time. The orchestrator owns the run's
    SessionState, so a later transaction sees what an earlier one captured.
    """

    def __init__(
        self,
        registry: EndpointRegistry,
        settings: Optional[Settings] = None,
        state: Optional[SessionState] = None,
        synthesizer: Optional[PayloadSynthesizer] = None,
    ) -> None:
        self.registry = registry
        self.settings = settings or Settings()
        self.state = state or SessionState()
        self.synthesizer = synthesizer or PayloadSynthesizer(
            self.settings.field_patterns(),
            email_suffix=self.settings.unique_email_suffix,
        )
        self.simulation = SimulationPolicy(
            query_param=self.settings.simulate_query_param,
            nonexistent_id=self.settings.nonexistent_resource_id,
            fallback_id=self.settings.fallback_resource_id,
        )
        self.capture_policy = CapturePolicy(
            login_path=registry.login_path,
            register_path=registry.register_path,
            success_status_codes=frozenset(self.settings.success_status_codes),
            token_field_patterns=tuple(self.settings.token_field_patterns),
            auth_token_field=self.settings.auth_token_field,
            auto_detect_token_fields=self.settings.auto_detect_token_fields,
            id_fields=_id_fields(self.settings),
        )
        self.prepared = 0
        self.skipped = 0

    @classmethod
    def from_settings(
        cls, settings: Settings, contract_path: str | Path | None = None
    ) -> "TransactionOrchestrator":
        """Load the contract and build the registry. Raises ContractLoadError."""
        document = load_contract(contract_path or settings.openapi_schema_path)
        registry = build_registry(
            document,
            auto_discovery=settings.enable_auto_discovery,
            login_path=settings.auth_login_endpoint,
            register_path=settings.auth_register_endpoint,
        )
        return cls(registry, settings=settings)

    # ----------------------------
    # Run-level hooks
    # ----------------------------

    def before_all(self, transactions: Iterable[Any] = ()) -> None:
        logger.info(
            "run_started",
            base_url=self.settings.api_base_url,
            auth_type=self.settings.auth_type,
            transactions=sum(1 for _ in transactions),
            endpoints=len(self.registry),
            protected=len(self.registry.protected),
        )

    def after_all(self, transactions: Iterable[Any] = ()) -> None:
        logger.info(
            "run_finished",
            prepared=self.prepared,
            skipped=self.skipped,
            captured_resources=sorted(self.state.captured_resource_ids),
            has_token=self.state.auth_token is not None,
        )

    # ----------------------------
    # Per-transaction hooks
    # ----------------------------

    def should_skip(self, name: str) -> bool:
        if self.settings.auto_skip_tests:
            return True
        return any(fnmatch.fnmatchcase(name, p) for p in self.settings.skip_patterns)

    def before_each(self, txn: Transaction) -> Preparation:
        prep = Preparation(name=txn.name, outcome=classify_outcome(txn.name))

        if self.should_skip(txn.name):
            txn.skip = True
            prep.stages.append(Stage.SKIPPED)
            self.skipped += 1
            logger.debug("transaction_skipped", name=txn.name)
            return prep

        method, path = txn.method, txn.path
        prep.endpoint = self.registry.lookup(method, path)
        log = logger.bind(method=method, path=path, outcome=prep.outcome.value)

        self._inject_auth(txn, prep, log)
        self._replace_body(txn, prep, log)
        self._rewrite_target(txn, prep, log)

        prep.stages.append(Stage.DISPATCHED)
        self.prepared += 1
        return prep

    def after_each(self, txn: Transaction, prep: Optional[Preparation] = None) -> CaptureReport:
        """Capture session state from the real response. Never raises."""
        real = txn.real
        try:
            report = capture_from_response(
                self.state,
                self.capture_policy,
                method=txn.method,
                status_code=real.status_code if real else None,
                response_body=real.body if real else None,
                uri=txn.request.uri,
                request_body=txn.request.body,
            )
        except Exception:
            logger.warning("capture_failed", name=txn.name, exc_info=True)
            miss: Result[Any] = Result.miss("no_response", "capture failed")
            report = CaptureReport(token=miss, credentials=miss, resource_id=miss)

        if prep is not None:
            if report.captured_anything:
                prep.stages.append(Stage.CAPTURED)
            prep.stages.append(Stage.DONE)
        return report

    # Runner wire format: plain dicts mutated in place.

    def before_each_wire(self, event: dict[str, Any]) -> Preparation:
        txn = Transaction.model_validate(event)
        prep = self.before_each(txn)

        # write back only what preparation may change; other runner keys stay as sent
        request = event.setdefault("request", {})
        request["uri"] = txn.request.uri
        request["headers"] = txn.request.headers
        request["body"] = txn.request.body
        event["skip"] = txn.skip
        if txn.full_path is not None:
            event["fullPath"] = txn.full_path
        return prep

    def after_each_wire(self, event: dict[str, Any]) -> CaptureReport:
        try:
            txn = Transaction.model_validate(event)
        except ValidationError as e:
            logger.debug("transaction_partially_unreadable", name=event.get("name"), errors=e.error_count())
            try:
                txn = Transaction.essentials(event)
            except (ValidationError, AttributeError, TypeError):
                logger.warning("transaction_unreadable", name=event.get("name"))
                miss: Result[Any] = Result.miss("no_response", "transaction event unreadable")
                return CaptureReport(token=miss, credentials=miss, resource_id=miss)
        return self.after_each(txn)

    # ----------------------------
    # Steps
    # ----------------------------

    def _inject_auth(self, txn: Transaction, prep: Preparation, log: Any) -> None:
        if prep.endpoint is None or not prep.endpoint.requires_auth:
            return

        header = self.settings.auth_header_name
        if prep.outcome is OutcomeClass.UNAUTHORIZED:
            txn.request.headers[header] = self.settings.auth_header_value(INVALID_TOKEN)
            prep.auth = "invalid"
            log.info("auth_invalid_token")
        elif self.state.auth_token:
            txn.request.headers[header] = self.settings.auth_header_value(self.state.auth_token)
            prep.auth = "token"
            log.debug("auth_token_added")
        else:
            # a 401 from the target is an acceptable result here
            prep.auth = "missing"
            log.warning("auth_token_missing")
            return
        prep.stages.append(Stage.AUTH_INJECTED)

    def _replace_body(self, txn: Transaction, prep: Preparation, log: Any) -> None:
        body: Optional[dict[str, Any]] = None

        if self.settings.enable_dynamic_data_generation and prep.endpoint is not None:
            prep.payload = self.synthesizer.synthesize(
                prep.endpoint.request_schema, prep.outcome, self.state
            )
            if prep.payload.is_ok:
                body = prep.payload.value

        if txn.path == self.registry.login_path:
            login = login_credentials(prep.outcome, self.state)
            if login is not None:
                body = login

        if body is None:
            return
        txn.request.body = json.dumps(body)
        prep.stages.append(Stage.PAYLOAD_SYNTHESIZED)
        log.debug("payload_synthesized", fields=sorted(body))

    def _rewrite_target(self, txn: Transaction, prep: Preparation, log: Any) -> None:
        if not self.settings.enable_error_simulation:
            return
        rewrite = rewrite_target(txn.method, txn.request.uri, prep.outcome, self.state, self.simulation)
        if rewrite is None:
            return
        txn.request.uri = rewrite.uri
        txn.full_path = rewrite.uri
        prep.rewrite = rewrite
        prep.stages.append(Stage.TARGET_REWRITTEN)
        log.info("target_rewritten", uri=rewrite.uri, reason=rewrite.reason)
