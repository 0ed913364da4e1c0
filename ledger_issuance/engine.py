"""
Submission & confirmation engine.

Drives a SignedArtifact from BUILT to a terminal outcome:

    BUILT ──submit──▶ SUBMITTED ──poll──▶ VALIDATED  (success / failure)
      │                   │
      │                   └──────────▶ EXPIRED    (indeterminate)
      └──────────────────────────────▶ REJECTED   (terminal)

Submit phase (provisional engine result, classified by the result table):
    - REJECTED      → terminal Rejected; never retried.
    - RETRY_RESOLVE → the blob's sequence/expiry is stale. One lookup by
                      id: an identical blob already in a ledger is
                      followed to its outcome; otherwise Indeterminate
                      (RETRY_RESOLVE).
    - anything else → SUBMITTED, then polled.
    A transport failure on submit leaves the blob's fate unknown, so it
    is polled by id like an accepted one. A server-level error (request
    refused outright) is Indeterminate (SUBMIT_ERROR).

Confirm phase:
    Polls at a fixed interval with an interruptible wait (no busy loop).
    Each tick looks the id up in validated state; once the validated
    ledger passes LastLedgerSequence it looks one last time and then
    reports EXPIRED. A wall-clock deadline of (window + 2) ledger closes
    bounds the wait even if the ledger stalls. Transient query errors are
    logged and retried on the next tick.

Idempotency:
    The transaction id is the key. Submitting an artifact whose id is in
    flight joins the existing confirmation; one already settled as
    validated or rejected returns the cached outcome. Neither touches
    the network again. Indeterminate outcomes are not cached, and settled
    ones are forgotten once a poll sees the validated ledger pass their
    LastLedgerSequence; a later resubmission of such a blob converges
    through the by-id lookup instead.

Cancellation:
    ``ConfirmationHandle.cancel()`` stops waiting and settles the handle
    as Indeterminate (CANCELLED). The submitted transaction is left
    alone; the ledger may still validate it.

Retries:
    ``submit_and_confirm`` is the only place that retries, and only once,
    and only after an EXPIRED / RETRY_RESOLVE outcome whose id is
    confirmed absent from the ledger.
"""

from __future__ import annotations

import asyncio
import logging

from ledger_issuance.config import DEFAULT_EXPLORER_URL
from ledger_issuance.errors import NetworkError
from ledger_issuance.identity import Identity
from ledger_issuance.intent import TransactionIntent
from ledger_issuance.outcome import (
    IndeterminateReason,
    OutcomeStatus,
    SubmissionOutcome,
    TxState,
    check_transition,
)
from ledger_issuance.query import LedgerQueryService
from ledger_issuance.resolver import NetworkStateResolver
from ledger_issuance.signer import SignedArtifact, sign
from ledger_issuance.xrpl.client import TxStatusResult, XRPLClient
from ledger_issuance.xrpl.results import DEFAULT_RESULT_TABLE, ResultClass, ResultTable

log = logging.getLogger(__name__)

# Resolve-sign-submit cycles in submit_and_confirm (first try + one retry).
MAX_CHAIN_ATTEMPTS = 2


class ConfirmationHandle:
    """One submitted artifact on its way to a terminal outcome.

    Obtained from ``SubmissionEngine.submit()``. Any number of callers
    may ``wait()`` on the same handle; they all receive the same outcome.
    """

    def __init__(self, artifact: SignedArtifact, *, attempt: int = 1) -> None:
        self.artifact = artifact
        self.attempt = attempt
        self._state = TxState.BUILT
        self._cancel_event = asyncio.Event()
        self._cancel_reason: IndeterminateReason | None = None
        self._result: asyncio.Future[SubmissionOutcome] = (
            asyncio.get_running_loop().create_future()
        )
        self._task: asyncio.Task[None] | None = None

    @property
    def tx_hash(self) -> str:
        return self.artifact.tx_hash

    @property
    def state(self) -> TxState:
        return self._state

    @property
    def done(self) -> bool:
        return self._result.done()

    @property
    def outcome(self) -> SubmissionOutcome | None:
        """The settled outcome, or None while still in flight."""
        if self._result.done() and self._result.exception() is None:
            return self._result.result()
        return None

    @property
    def cancel_reason(self) -> IndeterminateReason | None:
        return self._cancel_reason

    def cancel(self, reason: IndeterminateReason = IndeterminateReason.CANCELLED) -> None:
        """Stop waiting. The outcome becomes Indeterminate(reason)."""
        if self._result.done() or self._cancel_reason is not None:
            return
        self._cancel_reason = reason
        self._cancel_event.set()

    async def wait(self, timeout: float | None = None) -> SubmissionOutcome:
        """Wait for the terminal outcome.

        Args:
            timeout: Seconds to wait. On expiry the handle is cancelled
                and settles as Indeterminate (TIMEOUT).
        """
        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout)
        except TimeoutError:
            self.cancel(IndeterminateReason.TIMEOUT)
            return await asyncio.shield(self._result)

    # -- engine-side ----------------------------------------------------

    def _advance(self, target: TxState) -> None:
        self._state = check_transition(self._state, target)

    async def _pause(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except TimeoutError:
            pass


class SubmissionEngine:
    """Submits signed artifacts and drives them to terminal outcomes.

    Args:
        client: XRPL client (shared connection).
        query: Query service used for confirmation lookups. Defaults to
            one over ``client``.
        resolver: Resolver used by ``submit_and_confirm``. Defaults to one
            over ``client``.
        result_table: Engine result classification.
        poll_interval: Seconds between confirmation polls.
        ledger_close_seconds: Expected ledger cadence, for the wall-clock
            deadline.
        explorer_url: Prefix for operator-facing links in logs.
    """

    def __init__(
        self,
        client: XRPLClient,
        query: LedgerQueryService | None = None,
        resolver: NetworkStateResolver | None = None,
        *,
        result_table: ResultTable = DEFAULT_RESULT_TABLE,
        poll_interval: float = 1.0,
        ledger_close_seconds: float = 4.0,
        explorer_url: str = DEFAULT_EXPLORER_URL,
    ) -> None:
        self._client = client
        self._query = query or LedgerQueryService(client)
        self._resolver = resolver or NetworkStateResolver(client)
        self._table = result_table
        self._poll_interval = poll_interval
        self._ledger_close_seconds = ledger_close_seconds
        self._explorer_url = explorer_url
        self._handles: dict[str, ConfirmationHandle] = {}

    @property
    def result_table(self) -> ResultTable:
        return self._table

    def is_tracked(self, tx_hash: str) -> bool:
        """True while ``tx_hash`` is in flight or its outcome is cached."""
        return tx_hash in self._handles

    # =================================================================
    # Public API
    # =================================================================

    async def submit(
        self,
        artifact: SignedArtifact,
        *,
        attempt: int = 1,
    ) -> ConfirmationHandle:
        """Submit ``artifact`` and start confirming it in the background.

        Returns the existing handle if the same transaction id is already
        in flight or settled as validated/rejected.
        """
        existing = self._handles.get(artifact.tx_hash)
        if existing is not None:
            log.info("tx %s already tracked (%s); not resubmitting", artifact.tx_hash, existing.state)
            return existing

        handle = ConfirmationHandle(artifact, attempt=attempt)
        self._handles[artifact.tx_hash] = handle
        try:
            outcome = await self._submit_phase(handle)
        except BaseException:
            # Fate of the blob unknown; joined waiters must still get an outcome.
            self._finish(handle, self._indeterminate(handle, IndeterminateReason.CANCELLED))
            raise

        if outcome is not None:
            self._finish(handle, outcome)
        else:
            handle._task = asyncio.create_task(self._run_confirm(handle))
        return handle

    async def submit_and_wait(
        self,
        artifact: SignedArtifact,
        *,
        attempt: int = 1,
        timeout: float | None = None,
    ) -> SubmissionOutcome:
        """Submit and block until a terminal outcome.

        If the calling task is cancelled, the handle is cancelled too (so
        its outcome is recorded as Indeterminate) and the cancellation
        propagates.
        """
        handle = await self.submit(artifact, attempt=attempt)
        try:
            return await handle.wait(timeout)
        except asyncio.CancelledError:
            handle.cancel()
            raise

    async def submit_and_confirm(
        self,
        identity: Identity,
        intent: TransactionIntent,
        resolver: NetworkStateResolver | None = None,
    ) -> SubmissionOutcome:
        """Resolve, sign, submit and confirm, with one re-resolve on expiry.

        The retry happens only when the first outcome is EXPIRED or
        RETRY_RESOLVE and a fresh lookup confirms the first transaction is
        not in the ledger. Validation, identity and network errors from
        resolve/sign propagate to the caller.
        """
        resolver = resolver or self._resolver
        attempt = 1
        while True:
            resolved = await resolver.resolve(identity, intent)
            artifact = sign(identity, resolved)
            log.info(
                "submitting %s %s from %s (intent %s, attempt %d, seq=%d, lls=%d)",
                intent.kind, artifact.tx_hash, resolved.account,
                intent.intent_digest()[:16], attempt,
                resolved.sequence, resolved.last_ledger_sequence,
            )
            outcome = await self.submit_and_wait(artifact, attempt=attempt)
            if not outcome.retryable or attempt >= MAX_CHAIN_ATTEMPTS:
                return outcome

            landed = await self._recheck(artifact, outcome)
            if landed is not None:
                return landed
            log.warning(
                "tx %s %s without reaching the ledger; re-resolving once",
                artifact.tx_hash, outcome.reason,
            )
            attempt += 1

    # =================================================================
    # Submit phase
    # =================================================================

    async def _submit_phase(self, handle: ConfirmationHandle) -> SubmissionOutcome | None:
        """Submit the blob. Returns an outcome if already terminal."""
        artifact = handle.artifact
        try:
            result = await self._client.submit(artifact.tx_blob)
        except Exception as exc:
            log.warning(
                "submit of %s failed in transport (%s); polling by id", artifact.tx_hash, exc
            )
            handle._advance(TxState.SUBMITTED)
            return None

        if result.engine_result is None:
            return self._indeterminate(
                handle, IndeterminateReason.SUBMIT_ERROR, detail=result.detail
            )

        engine_result = result.engine_result
        result_class = self._table.classify(engine_result)
        log.debug("submit %s: %s (%s)", artifact.tx_hash, engine_result, result_class)

        if result_class == ResultClass.REJECTED:
            handle._advance(TxState.REJECTED)
            return SubmissionOutcome(
                status=OutcomeStatus.REJECTED,
                tx_hash=artifact.tx_hash,
                state=TxState.REJECTED,
                result_code=engine_result,
                attempts=handle.attempt,
                detail=result.detail,
            )

        handle._advance(TxState.SUBMITTED)
        if result_class == ResultClass.RETRY_RESOLVE:
            return await self._probe_stale(handle, engine_result)
        if handle.cancel_reason is not None:
            return self._indeterminate(handle, handle.cancel_reason)
        return None

    async def _probe_stale(
        self,
        handle: ConfirmationHandle,
        engine_result: str,
    ) -> SubmissionOutcome | None:
        """A stale-sequence result: is an identical blob already in?"""
        try:
            status = await self._query.transaction_status(handle.tx_hash)
        except NetworkError as exc:
            log.warning("probe of %s failed (%s); polling", handle.tx_hash, exc)
            return None
        if status.found and status.validated:
            return self._validated_outcome(handle, status)
        if status.found:
            return None
        handle._advance(TxState.EXPIRED)
        return self._indeterminate(
            handle,
            IndeterminateReason.RETRY_RESOLVE,
            result_code=engine_result,
        )

    # =================================================================
    # Confirm phase
    # =================================================================

    async def _run_confirm(self, handle: ConfirmationHandle) -> None:
        try:
            outcome = await self._confirm(handle)
        except Exception as exc:
            self._handles.pop(handle.tx_hash, None)
            log.exception("confirmation of %s crashed", handle.tx_hash)
            handle._result.set_exception(exc)
            return
        self._finish(handle, outcome)

    async def _confirm(self, handle: ConfirmationHandle) -> SubmissionOutcome:
        loop = asyncio.get_running_loop()
        window = max(handle.artifact.resolved.expiry_window, 1)
        deadline = loop.time() + (window + 2) * self._ledger_close_seconds

        while True:
            if handle.cancel_reason is not None:
                return self._indeterminate(handle, handle.cancel_reason)
            outcome = await self._poll_once(handle)
            if outcome is not None:
                return outcome
            if loop.time() >= deadline:
                return self._indeterminate(handle, IndeterminateReason.TIMEOUT)
            await handle._pause(self._poll_interval)

    async def _poll_once(self, handle: ConfirmationHandle) -> SubmissionOutcome | None:
        tx_hash = handle.tx_hash
        lls = handle.artifact.last_ledger_sequence
        try:
            status = await self._query.transaction_status(tx_hash)
            if status.found and status.validated:
                return self._validated_outcome(handle, status)
            validated_index = await self._query.validated_ledger_index()
            log.debug("poll %s: found=%s validated_ledger=%d lls=%d",
                      tx_hash, status.found, validated_index, lls)
            self._forget_settled(validated_index)
            if validated_index <= lls:
                return None
            # A ledger may have closed between the two lookups.
            status = await self._query.transaction_status(tx_hash)
        except NetworkError as exc:
            log.warning("poll of %s failed (%s); retrying next tick", tx_hash, exc)
            return None

        if status.found and status.validated:
            return self._validated_outcome(handle, status)
        handle._advance(TxState.EXPIRED)
        return self._indeterminate(handle, IndeterminateReason.EXPIRED)

    # =================================================================
    # Outcomes
    # =================================================================

    def _validated_outcome(
        self,
        handle: ConfirmationHandle,
        status: TxStatusResult,
    ) -> SubmissionOutcome:
        handle._advance(TxState.VALIDATED)
        return self._classify_validated(handle.tx_hash, status, handle.attempt)

    def _classify_validated(
        self,
        tx_hash: str,
        status: TxStatusResult,
        attempts: int,
    ) -> SubmissionOutcome:
        ledger_index = status.ledger_index
        result_class = self._table.classify(status.engine_result)
        if result_class == ResultClass.SUCCESS and ledger_index is not None:
            return SubmissionOutcome(
                status=OutcomeStatus.VALIDATED_SUCCESS,
                tx_hash=tx_hash,
                state=TxState.VALIDATED,
                result_code=status.engine_result,
                ledger_index=ledger_index,
                attempts=attempts,
            )
        if result_class in (ResultClass.FAILURE, ResultClass.REJECTED) and ledger_index is not None:
            return SubmissionOutcome(
                status=OutcomeStatus.VALIDATED_FAILURE,
                tx_hash=tx_hash,
                state=TxState.VALIDATED,
                result_code=status.engine_result,
                ledger_index=ledger_index,
                attempts=attempts,
            )
        return SubmissionOutcome(
            status=OutcomeStatus.INDETERMINATE,
            tx_hash=tx_hash,
            state=TxState.VALIDATED,
            result_code=status.engine_result,
            reason=IndeterminateReason.UNCLASSIFIED,
            ledger_index=ledger_index,
            attempts=attempts,
        )

    def _indeterminate(
        self,
        handle: ConfirmationHandle,
        reason: IndeterminateReason,
        *,
        result_code: str | None = None,
        ledger_index: int | None = None,
        detail: str | None = None,
    ) -> SubmissionOutcome:
        return SubmissionOutcome(
            status=OutcomeStatus.INDETERMINATE,
            tx_hash=handle.tx_hash,
            state=handle.state,
            result_code=result_code,
            reason=reason,
            ledger_index=ledger_index,
            attempts=handle.attempt,
            detail=detail,
        )

    def _finish(self, handle: ConfirmationHandle, outcome: SubmissionOutcome) -> None:
        if outcome.is_indeterminate:
            # Not cached: the same blob may be submitted again and re-probed.
            self._handles.pop(handle.tx_hash, None)
            log.warning(
                "tx %s indeterminate (%s): %s",
                outcome.tx_hash, outcome.reason, outcome.explorer_url(self._explorer_url),
            )
        elif outcome.succeeded:
            log.info(
                "tx %s validated in ledger %s: %s",
                outcome.tx_hash, outcome.ledger_index,
                outcome.explorer_url(self._explorer_url),
            )
        else:
            log.warning(
                "tx %s %s with %s: %s",
                outcome.tx_hash, outcome.status, outcome.result_code,
                outcome.explorer_url(self._explorer_url),
            )
        if not handle._result.done():
            handle._result.set_result(outcome)

    def _forget_settled(self, validated_index: int) -> None:
        """Drop settled handles whose LastLedgerSequence has passed.

        Such a blob can never apply again; resubmitting it gets a stale
        sequence result and the by-id lookup still finds the outcome.
        """
        stale = [
            tx_hash
            for tx_hash, handle in self._handles.items()
            if handle.done and handle.artifact.last_ledger_sequence < validated_index
        ]
        for tx_hash in stale:
            del self._handles[tx_hash]
        if stale:
            log.debug("forgot %d settled tx(s) below ledger %d", len(stale), validated_index)

    async def _recheck(
        self,
        artifact: SignedArtifact,
        outcome: SubmissionOutcome,
    ) -> SubmissionOutcome | None:
        """Before retrying, make sure the first transaction did not land.

        Returns an outcome to report instead of retrying, or None when a
        retry is safe.
        """
        try:
            status = await self._query.transaction_status(artifact.tx_hash)
        except NetworkError as exc:
            log.warning("cannot rule out %s (%s); not retrying", artifact.tx_hash, exc)
            return outcome
        if not status.found:
            return None
        if status.validated:
            log.warning(
                "tx %s turned up in ledger %s after %s", artifact.tx_hash,
                status.ledger_index, outcome.reason,
            )
            return self._classify_validated(artifact.tx_hash, status, outcome.attempts)
        return outcome
