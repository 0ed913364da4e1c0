"""
Network state resolver — attaches the dynamic fields an intent needs.

A ResolvedTransaction is an intent plus everything the network decides:
Sequence, Fee and LastLedgerSequence. It is a snapshot: valid only while
the validated ledger has not passed its LastLedgerSequence. After that it
is stale and must be re-resolved, never re-signed.

The three lookups (account sequence, fee, validated ledger) are issued
concurrently over the one shared client.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass

from ledger_issuance.errors import (
    AccountNotFound,
    FeeTooHigh,
    NetworkError,
    NetworkUnavailable,
)
from ledger_issuance.identity import Identity
from ledger_issuance.intent import TransactionIntent
from ledger_issuance.xrpl.client import ACCOUNT_NOT_FOUND, XRPLClient

log = logging.getLogger(__name__)

DEFAULT_EXPIRY_WINDOW = 20
DEFAULT_MAX_FEE_DROPS = 1000


@dataclass(frozen=True)
class ResolvedTransaction:
    """An intent bound to an account and a network snapshot.

    Attributes:
        intent: The unsigned intent.
        account: Signing account the fields were resolved for.
        sequence: Account sequence to use.
        fee_drops: Transaction cost in drops.
        last_ledger_sequence: Expiry: the tx cannot be included after this.
        source_ledger_index: Validated ledger the snapshot was taken at.
    """

    intent: TransactionIntent
    account: str
    sequence: int
    fee_drops: int
    last_ledger_sequence: int
    source_ledger_index: int

    @property
    def expiry_window(self) -> int:
        return self.last_ledger_sequence - self.source_ledger_index

    def is_expired(self, validated_ledger_index: int) -> bool:
        """True once the validated ledger is past LastLedgerSequence."""
        return validated_ledger_index > self.last_ledger_sequence

    def to_tx_dict(self) -> dict[str, object]:
        """Unsigned transaction JSON with the dynamic fields attached."""
        tx = self.intent.to_tx_dict(self.account)
        tx["Sequence"] = self.sequence
        tx["Fee"] = str(self.fee_drops)
        tx["LastLedgerSequence"] = self.last_ledger_sequence
        return tx


class NetworkStateResolver:
    """Resolves intents against current network state.

    Args:
        client: XRPL client (shared connection).
        expiry_window: Ledgers between the snapshot and LastLedgerSequence.
        fee_multiplier: Scale applied to the network fee (>= 1.0).
        max_fee_drops: Ceiling; resolving above it raises FeeTooHigh.
    """

    def __init__(
        self,
        client: XRPLClient,
        *,
        expiry_window: int = DEFAULT_EXPIRY_WINDOW,
        fee_multiplier: float = 1.0,
        max_fee_drops: int = DEFAULT_MAX_FEE_DROPS,
    ) -> None:
        if expiry_window < 1:
            raise ValueError(f"expiry_window must be >= 1, got {expiry_window}")
        self._client = client
        self._expiry_window = expiry_window
        self._fee_multiplier = fee_multiplier
        self._max_fee_drops = max_fee_drops

    @property
    def expiry_window(self) -> int:
        return self._expiry_window

    async def resolve(
        self,
        identity: Identity,
        intent: TransactionIntent,
    ) -> ResolvedTransaction:
        """Fetch sequence, fee and expiry for ``intent``.

        The signing account is the intent's own account when it names
        one, otherwise the identity's address. A mismatch is left for the
        signer to reject.

        Raises:
            NetworkUnavailable: On transport failure or server error.
            AccountNotFound: If the account is not in the ledger yet.
            FeeTooHigh: If the scaled fee exceeds the ceiling.
        """
        account = intent.signing_account or identity.address
        try:
            info, fee, validated = await asyncio.gather(
                self._client.account_info(account, ledger_index="current"),
                self._client.fee(),
                self._client.validated_ledger_index(),
            )
        except NetworkError:
            raise
        except Exception as exc:
            raise NetworkUnavailable(f"resolve failed: {exc}") from exc

        if not info.found:
            if info.error_code == ACCOUNT_NOT_FOUND:
                raise AccountNotFound(account)
            raise NetworkUnavailable(f"account_info failed: {info.detail}")

        sequence = int(info.account_data["Sequence"])
        fee_drops = self._scaled_fee(max(fee.base_fee, fee.open_ledger_fee))

        resolved = ResolvedTransaction(
            intent=intent,
            account=account,
            sequence=sequence,
            fee_drops=fee_drops,
            last_ledger_sequence=validated + self._expiry_window,
            source_ledger_index=validated,
        )
        log.debug(
            "resolved %s for %s: seq=%d fee=%d lls=%d (validated=%d)",
            intent.kind, account, sequence, fee_drops,
            resolved.last_ledger_sequence, validated,
        )
        return resolved

    def _scaled_fee(self, network_fee: int) -> int:
        fee = math.ceil(network_fee * self._fee_multiplier)
        if fee > self._max_fee_drops:
            raise FeeTooHigh(
                f"fee {fee} drops exceeds ceiling of {self._max_fee_drops} drops"
            )
        return fee
