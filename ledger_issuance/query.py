"""
Ledger query service — read-only lookups against validated state.

Every query pins ``ledger_index="validated"``: balances and flags reported
here cannot be rolled back. The engine uses the same service to
corroborate submissions (transaction lookup, validated ledger index).

Failures:
    - AccountNotFound when the account is not in the validated ledger.
    - NetworkUnavailable on transport failure or server error.
    An account with no trust lines yields an empty tuple, not an error.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, TypeVar

from ledger_issuance.errors import AccountNotFound, NetworkError, NetworkUnavailable
from ledger_issuance.xrpl.client import ACCOUNT_NOT_FOUND, TxStatusResult, XRPLClient
from ledger_issuance.xrpl.flags import (
    LSF_DEFAULT_RIPPLE,
    LSF_DISALLOW_XRP,
    LSF_REQUIRE_AUTH,
    LSF_REQUIRE_DEST_TAG,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

VALIDATED = "validated"

# Upper bound on account_lines pages followed for one account.
MAX_TRUST_LINE_PAGES = 100


# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class AccountState:
    """Validated snapshot of an AccountRoot."""

    address: str
    balance_drops: int
    sequence: int
    owner_count: int
    flags: int
    domain: str | None = None
    ledger_index: int | None = None

    @property
    def requires_destination_tag(self) -> bool:
        return bool(self.flags & LSF_REQUIRE_DEST_TAG)

    @property
    def disallows_direct_asset(self) -> bool:
        return bool(self.flags & LSF_DISALLOW_XRP)

    @property
    def default_ripple(self) -> bool:
        return bool(self.flags & LSF_DEFAULT_RIPPLE)

    @property
    def requires_auth(self) -> bool:
        return bool(self.flags & LSF_REQUIRE_AUTH)


@dataclass(frozen=True)
class TrustLine:
    """A trust line, oriented holder → issuer.

    ``limit`` is the holder's limit and ``balance`` the amount the holder
    holds, whichever side the line was read from. Observed, never owned.
    """

    holder: str
    issuer: str
    currency: str
    limit: str
    balance: str


@dataclass(frozen=True)
class IssuerBalances:
    """Aggregated balances from an issuer's perspective.

    Attributes:
        obligations: currency → total held outside the listed holders.
        holder_balances: holder → currency → value.
    """

    issuer: str
    obligations: Mapping[str, str] = field(default_factory=dict)
    holder_balances: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    ledger_index: int | None = None

    def holder_balance(self, holder: str, currency: str) -> str:
        """Balance of ``currency`` held by ``holder``; "0" when none."""
        return self.holder_balances.get(holder, {}).get(currency, "0")


# =========================================================================
# Helpers
# =========================================================================


def _decode_domain(domain_hex: str | None) -> str | None:
    if not domain_hex:
        return None
    try:
        return bytes.fromhex(domain_hex).decode("utf-8", errors="replace")
    except ValueError:
        return None


def _orient_line(address: str, line: dict[str, Any]) -> TrustLine:
    """Orient an account_lines entry as holder → issuer.

    A positive balance means ``address`` holds the peer's asset. A
    negative one means the peer holds ``address``'s asset. At zero the
    side that set a non-zero limit is the holder.
    """
    peer = line["account"]
    raw_balance = str(line.get("balance", "0"))
    balance = Decimal(raw_balance)
    limit = Decimal(str(line.get("limit", "0")))
    limit_peer = Decimal(str(line.get("limit_peer", "0")))

    address_holds = balance > 0 or (balance == 0 and (limit > 0 or limit_peer <= 0))
    if address_holds:
        return TrustLine(
            holder=address,
            issuer=peer,
            currency=line["currency"],
            limit=str(line.get("limit", "0")),
            balance=raw_balance,
        )
    return TrustLine(
        holder=peer,
        issuer=address,
        currency=line["currency"],
        limit=str(line.get("limit_peer", "0")),
        balance=raw_balance.lstrip("-"),
    )


# =========================================================================
# Service
# =========================================================================


class LedgerQueryService:
    """Read-only queries over one XRPL client."""

    def __init__(self, client: XRPLClient) -> None:
        self._client = client

    async def _guard(self, call: Awaitable[T], what: str) -> T:
        try:
            return await call
        except NetworkError:
            raise
        except Exception as exc:
            raise NetworkUnavailable(f"{what} failed: {exc}") from exc

    async def account_info(self, address: str) -> AccountState:
        result = await self._guard(
            self._client.account_info(address, ledger_index=VALIDATED),
            "account_info",
        )
        if not result.found:
            if result.error_code == ACCOUNT_NOT_FOUND:
                raise AccountNotFound(address)
            raise NetworkUnavailable(f"account_info failed: {result.detail}")
        data = result.account_data
        return AccountState(
            address=data.get("Account", address),
            balance_drops=int(data.get("Balance", 0)),
            sequence=int(data.get("Sequence", 0)),
            owner_count=int(data.get("OwnerCount", 0)),
            flags=int(data.get("Flags", 0)),
            domain=_decode_domain(data.get("Domain")),
            ledger_index=result.ledger_index,
        )

    async def requires_destination_tag(self, address: str) -> bool:
        """Whether payments to ``address`` must carry a destination tag."""
        return (await self.account_info(address)).requires_destination_tag

    async def trust_lines(
        self,
        address: str,
        peer: str | None = None,
    ) -> tuple[TrustLine, ...]:
        """All trust lines of ``address`` (optionally only with ``peer``).

        Follows pagination markers, pinning later pages to the ledger the
        first page was read from.
        """
        lines: list[TrustLine] = []
        marker: Any = None
        ledger_index: str | int = VALIDATED
        for _ in range(MAX_TRUST_LINE_PAGES):
            page = await self._guard(
                self._client.account_lines(
                    address, peer=peer, marker=marker, ledger_index=ledger_index
                ),
                "account_lines",
            )
            if not page.found:
                if page.error_code == ACCOUNT_NOT_FOUND:
                    raise AccountNotFound(address)
                raise NetworkUnavailable(f"account_lines failed: {page.detail}")
            lines.extend(_orient_line(address, line) for line in page.lines)
            if page.marker is None:
                return tuple(lines)
            marker = page.marker
            if page.ledger_index is not None:
                ledger_index = page.ledger_index
        raise NetworkUnavailable(
            f"account_lines for {address} exceeded {MAX_TRUST_LINE_PAGES} pages"
        )

    async def issuer_balances(
        self,
        issuer: str,
        holders: list[str],
    ) -> IssuerBalances:
        """Aggregated balances of ``issuer``'s assets, split out per holder."""
        result = await self._guard(
            self._client.gateway_balances(issuer, list(holders), ledger_index=VALIDATED),
            "gateway_balances",
        )
        if not result.found:
            if result.error_code == ACCOUNT_NOT_FOUND:
                raise AccountNotFound(issuer)
            raise NetworkUnavailable(f"gateway_balances failed: {result.detail}")
        per_holder: dict[str, dict[str, str]] = {}
        for holder, entries in result.balances.items():
            per_holder[holder] = {e["currency"]: str(e["value"]) for e in entries}
        return IssuerBalances(
            issuer=issuer,
            obligations=dict(result.obligations),
            holder_balances=per_holder,
            ledger_index=result.ledger_index,
        )

    async def transaction_status(self, tx_hash: str) -> TxStatusResult:
        """Look a transaction up by id. Not-found is a result, not an error."""
        result = await self._guard(self._client.get_tx(tx_hash), "tx")
        if result.error_code is not None:
            raise NetworkUnavailable(f"tx lookup failed: {result.detail}")
        return result

    async def validated_ledger_index(self) -> int:
        return await self._guard(self._client.validated_ledger_index(), "ledger")
