from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from contrail.classify.outcome import OutcomeClass
from contrail.contract.paths import (
    has_numeric_tail,
    has_param_tail,
    replace_tail,
    resource_type,
    strip_query,
    with_query_param,
)
from contrail.session.state import SessionState

logger = structlog.get_logger()


@dataclass(frozen=True)
class SimulationPolicy:
    """
    How the system under test is asked to produce a given status.

    query_param=404 etc. is a per-deployment convention; the target has to
    understand it for the rewritten request to mean anything.
    """

    query_param: str = "simulate"
    nonexistent_id: str = "999999"
    fallback_id: str = "65"


@dataclass(frozen=True)
class Rewrite:
    uri: str
    reason: str


def _id_tailed(path: str) -> bool:
    return has_numeric_tail(path) or has_param_tail(path)


def rewrite_target(
    method: str,
    uri: str,
    outcome: OutcomeClass,
    state: SessionState,
    policy: SimulationPolicy,
) -> Optional[Rewrite]:
    """
    New request target for outcomes that need provoking, or None to keep it.

    Rules, first match wins:
      DELETE /things/<id>  SUCCESS/UNAUTHORIZED -> latest captured id (or fallback)
                           NOT_FOUND            -> nonexistent id
                           BAD_REQUEST          -> captured/fallback id + simulate=400
      NOT_FOUND            id-tailed path -> nonexistent id, else simulate=404
      SERVER_ERROR         simulate=500
      BAD_REQUEST          id-tailed path -> simulate=400
    """
    method = (method or "").upper()
    path = strip_query(uri)
    id_tailed = _id_tailed(path)

    if method == "DELETE" and id_tailed:
        kind = resource_type(path)
        match outcome:
            case OutcomeClass.SUCCESS | OutcomeClass.UNAUTHORIZED:
                rid = state.resource_id(kind, policy.fallback_id)
                return Rewrite(replace_tail(uri, rid), f"latest {kind} id")
            case OutcomeClass.NOT_FOUND:
                return Rewrite(replace_tail(uri, policy.nonexistent_id), "nonexistent id")
            case OutcomeClass.BAD_REQUEST:
                rid = state.resource_id(kind, policy.fallback_id)
                target = with_query_param(replace_tail(uri, rid), policy.query_param, "400")
                return Rewrite(target, f"latest {kind} id with simulated 400")
            case _:
                logger.debug("delete_target_unchanged", path=path, outcome=outcome.value)
                return None

    match outcome:
        case OutcomeClass.NOT_FOUND if id_tailed:
            return Rewrite(replace_tail(uri, policy.nonexistent_id), "nonexistent id")
        case OutcomeClass.NOT_FOUND:
            return Rewrite(with_query_param(uri, policy.query_param, "404"), "simulated 404")
        case OutcomeClass.SERVER_ERROR:
            return Rewrite(with_query_param(uri, policy.query_param, "500"), "simulated 500")
        case OutcomeClass.BAD_REQUEST if id_tailed:
            return Rewrite(with_query_param(uri, policy.query_param, "400"), "simulated 400")
        case _:
            return None
