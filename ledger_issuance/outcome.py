"""
Submission outcome — the terminal record of one submission chain.

An outcome is produced exactly once per chain and never mutated. It is
where "did it happen?" gets a three-way answer:

    - VALIDATED_SUCCESS: in a validated ledger with tesSUCCESS.
    - VALIDATED_FAILURE: in a validated ledger with a failure code
      (fee claimed, no effect).
    - REJECTED: the network refused it up front; it will never apply.
    - INDETERMINATE: cannot know yet. Callers must not treat this as
      success or as failure.

Every outcome carries the transaction id so operators can check it on an
explorer, and failures carry the engine result code.

State machine:
    BUILT → SUBMITTED (accepted for relay)
    BUILT → REJECTED (immediate refusal)
    SUBMITTED → VALIDATED (found in a validated ledger)
    SUBMITTED → EXPIRED (validated ledger passed LastLedgerSequence)
    SUBMITTED → REJECTED (refusal on re-check)
    VALIDATED, EXPIRED, REJECTED → (terminal)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from ledger_issuance.errors import IllegalTransition


class TxState(StrEnum):
    BUILT = "BUILT"
    SUBMITTED = "SUBMITTED"
    VALIDATED = "VALIDATED"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"


class OutcomeStatus(StrEnum):
    VALIDATED_SUCCESS = "VALIDATED_SUCCESS"
    VALIDATED_FAILURE = "VALIDATED_FAILURE"
    REJECTED = "REJECTED"
    INDETERMINATE = "INDETERMINATE"


class IndeterminateReason(StrEnum):
    """Why an outcome is indeterminate."""

    EXPIRED = "EXPIRED"  # LastLedgerSequence passed, tx not found
    RETRY_RESOLVE = "RETRY_RESOLVE"  # sequence/expiry stale, tx not found
    CANCELLED = "CANCELLED"  # caller stopped waiting
    TIMEOUT = "TIMEOUT"  # wall-clock deadline hit before expiry was observed
    UNCLASSIFIED = "UNCLASSIFIED"  # result code not in the table
    SUBMIT_ERROR = "SUBMIT_ERROR"  # node refused the request itself


# Re-resolving and resubmitting is safe only for these: the old tx is
# known not to be in any ledger and can no longer get into one.
RETRYABLE_REASONS = frozenset({IndeterminateReason.EXPIRED, IndeterminateReason.RETRY_RESOLVE})

_TRANSITIONS: dict[TxState, frozenset[TxState]] = {
    TxState.BUILT: frozenset({TxState.SUBMITTED, TxState.REJECTED}),
    TxState.SUBMITTED: frozenset({TxState.VALIDATED, TxState.EXPIRED, TxState.REJECTED}),
    TxState.VALIDATED: frozenset(),
    TxState.EXPIRED: frozenset(),
    TxState.REJECTED: frozenset(),
}


def check_transition(current: TxState, target: TxState) -> TxState:
    """Return ``target`` if the edge is allowed, else raise IllegalTransition."""
    if target not in _TRANSITIONS[current]:
        raise IllegalTransition(f"{current} -> {target}")
    return target


@dataclass(frozen=True)
class SubmissionOutcome:
    """Terminal result of a submission chain.

    Attributes:
        status: One of OutcomeStatus.
        tx_hash: Id of the last transaction submitted in the chain.
        state: State the confirmation state machine stopped in.
        result_code: Engine result backing the status, if any.
        reason: Why the outcome is indeterminate (INDETERMINATE only).
        ledger_index: Validated ledger holding the tx (validated only).
        attempts: Number of signed artifacts submitted in the chain.
        detail: Free-form diagnostics.
    """

    status: OutcomeStatus
    tx_hash: str
    state: TxState
    result_code: str | None = None
    reason: IndeterminateReason | None = None
    ledger_index: int | None = None
    attempts: int = 1
    detail: str | None = None

    def __post_init__(self) -> None:
        if (self.status == OutcomeStatus.INDETERMINATE) != (self.reason is not None):
            raise ValueError("reason is required for, and only for, INDETERMINATE outcomes")
        if self.status in (OutcomeStatus.VALIDATED_SUCCESS, OutcomeStatus.VALIDATED_FAILURE):
            if self.state != TxState.VALIDATED or self.ledger_index is None:
                raise ValueError("validated outcomes need state VALIDATED and a ledger_index")

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.VALIDATED_SUCCESS

    @property
    def is_indeterminate(self) -> bool:
        return self.status == OutcomeStatus.INDETERMINATE

    @property
    def retryable(self) -> bool:
        """Safe to re-resolve and resubmit the same intent."""
        return self.reason in RETRYABLE_REASONS

    def explorer_url(self, base: str) -> str:
        return f"{base.rstrip('/')}/{self.tx_hash}"

    def to_dict(self) -> dict[str, object]:
        d: dict[str, object] = {
            "status": str(self.status),
            "tx_hash": self.tx_hash,
            "state": str(self.state),
            "attempts": self.attempts,
        }
        if self.result_code is not None:
            d["result_code"] = self.result_code
        if self.reason is not None:
            d["reason"] = str(self.reason)
        if self.ledger_index is not None:
            d["ledger_index"] = self.ledger_index
        if self.detail is not None:
            d["detail"] = self.detail
        return d
