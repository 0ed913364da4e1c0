"""
XRPL client protocol — the network boundary.

Defines the interface that the resolver, query service and engine depend
on, not a concrete implementation. This keeps them testable and keeps
HTTP out of business logic.

Concrete implementations:
    - JsonRpcClient (jsonrpc_client.py)
    - FakeClient / FakeLedger (tests)

All methods return boring frozen dataclasses. Expected ledger-level
failures (``actNotFound``, ``txnNotFound``, server errors) are captured in
the result objects. Transport failures (connection refused, timeout)
propagate as exceptions; callers map them to ``NetworkUnavailable``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

# Error codes carried on results.
SERVER_ERROR = "SERVER_ERROR"
ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"


# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class SubmitResult:
    """Result of submitting a signed transaction blob.

    Attributes:
        accepted: Whether the node accepted the blob for relay. True does
            NOT mean validated.
        tx_hash: Transaction hash reported by the node, if any.
        engine_result: Provisional engine result (e.g. "tesSUCCESS",
            "tecPATH_DRY"). None on server-level errors.
        error_code: Machine-readable category when the request itself
            failed (SERVER_ERROR).
        detail: Human-readable detail for diagnostics.
    """

    accepted: bool
    tx_hash: str | None = None
    engine_result: str | None = None
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class TxStatusResult:
    """Result of looking a transaction up by hash.

    Attributes:
        found: Whether the node knows the transaction at all.
        validated: Whether it is in a validated ledger.
        ledger_index: Ledger that included it (validated only).
        engine_result: Final result from meta.TransactionResult.
        error_code: Set if the lookup itself failed.
        detail: Human-readable detail for diagnostics.
    """

    found: bool
    validated: bool = False
    ledger_index: int | None = None
    engine_result: str | None = None
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class AccountInfoResult:
    """Result of account_info. ``account_data`` is the raw AccountRoot."""

    found: bool
    account_data: dict[str, Any] = field(default_factory=dict)
    ledger_index: int | None = None
    validated: bool = False
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class AccountLinesResult:
    """One page of account_lines. ``marker`` is set when more pages exist."""

    found: bool
    lines: tuple[dict[str, Any], ...] = ()
    marker: Any = None
    ledger_index: int | None = None
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class GatewayBalancesResult:
    """Result of gateway_balances from the issuer's perspective.

    Attributes:
        obligations: currency → total issued outside hot wallets.
        balances: hot wallet address → list of {"currency", "value"}.
    """

    found: bool
    obligations: dict[str, str] = field(default_factory=dict)
    balances: dict[str, list[dict[str, str]]] = field(default_factory=dict)
    ledger_index: int | None = None
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class FeeResult:
    """Fee levels in drops, from the ``fee`` command."""

    base_fee: int
    open_ledger_fee: int
    minimum_fee: int
    ledger_current_index: int | None = None


# =========================================================================
# Protocol
# =========================================================================


@runtime_checkable
class XRPLClient(Protocol):
    """Interface for XRPL network operations.

    One client wraps one connection. Implementations must allow many
    outstanding calls at once (independent transaction chains share it).
    """

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult:
        """Submit a signed transaction blob."""
        ...

    async def get_tx(self, tx_hash: str) -> TxStatusResult:
        """Look up a transaction by hash."""
        ...

    async def account_info(
        self, address: str, *, ledger_index: str | int = "validated"
    ) -> AccountInfoResult:
        """Fetch an AccountRoot."""
        ...

    async def account_lines(
        self,
        address: str,
        *,
        peer: str | None = None,
        marker: Any = None,
        ledger_index: str | int = "validated",
    ) -> AccountLinesResult:
        """Fetch one page of trust lines."""
        ...

    async def gateway_balances(
        self,
        address: str,
        hotwallets: list[str],
        *,
        ledger_index: str | int = "validated",
    ) -> GatewayBalancesResult:
        """Fetch aggregated issuer balances."""
        ...

    async def fee(self) -> FeeResult:
        """Fetch current fee levels."""
        ...

    async def validated_ledger_index(self) -> int:
        """Return the most recent validated ledger index."""
        ...
