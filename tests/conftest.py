"""
Shared fixtures: deterministic identities and an in-memory FakeLedger.

FakeLedger implements the XRPLClient protocol without a network. Signed
blobs are decoded with the xrpl-py binary codec and their signatures
verified, so everything the engine submits goes through the real
encoding path. Semantics are a small subset of the ledger's:

    - Sequence: equal → applied; lower → tefPAST_SEQ; higher → terPRE_SEQ.
    - LastLedgerSequence before the open ledger → tefMAX_LEDGER.
    - AccountSet: tfRequireDestTag / tfDisallowXRP flags, Set/ClearFlag
      DefaultRipple, Domain, TickSize, TransferRate.
    - TrustSet: creates or updates a holder → issuer line.
    - Payment (issued currency): issuer → holder, holder → issuer, and
      holder → holder through an issuer with DefaultRipple. Missing
      lines or capacity → tecPATH_DRY.
    - tec results consume the sequence and fee, like the real ledger.

Applied transactions are validated at the next ledger close. Every call
to ``validated_ledger_index()`` closes one ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import pytest
from xrpl.constants import CryptoAlgorithm
from xrpl.core.addresscodec import encode_seed
from xrpl.core.binarycodec import decode, encode_for_signing
from xrpl.core.keypairs import derive_classic_address, is_valid_message

from ledger_issuance.identity import Identity, Role, resolve_identity
from ledger_issuance.integrity import transaction_id
from ledger_issuance.xrpl.client import (
    ACCOUNT_NOT_FOUND,
    AccountInfoResult,
    AccountLinesResult,
    FeeResult,
    GatewayBalancesResult,
    SubmitResult,
    TxStatusResult,
)
from ledger_issuance.xrpl.flags import (
    ASF_DEFAULT_RIPPLE,
    LSF_DEFAULT_RIPPLE,
    LSF_DISALLOW_XRP,
    LSF_REQUIRE_DEST_TAG,
    TF_DISALLOW_XRP,
    TF_REQUIRE_DEST_TAG,
)

BASE_FEE = 10
STARTING_DROPS = 100_000_000
GENESIS_LEDGER = 1000


def make_seed(n: int) -> str:
    """Deterministic ed25519 family seed for test account ``n``."""
    return encode_seed(bytes([n]) * 16, CryptoAlgorithm.ED25519)


def _fmt(value: Decimal) -> str:
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


# ---------------------------------------------------------------------------
# Ledger objects
# ---------------------------------------------------------------------------


@dataclass
class FakeAccount:
    address: str
    balance: int = STARTING_DROPS
    sequence: int = 1
    flags: int = 0
    owner_count: int = 0
    domain: str | None = None
    tick_size: int | None = None
    transfer_rate: int | None = None

    def to_account_data(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "Account": self.address,
            "Balance": str(self.balance),
            "Sequence": self.sequence,
            "OwnerCount": self.owner_count,
            "Flags": self.flags,
        }
        if self.domain is not None:
            data["Domain"] = self.domain
        return data


@dataclass
class FakeLine:
    holder: str
    issuer: str
    currency: str
    limit: Decimal
    balance: Decimal = Decimal(0)


@dataclass
class FakeTx:
    tx_hash: str
    tx: dict[str, Any]
    result: str
    ledger_index: int | None = None


# ---------------------------------------------------------------------------
# FakeLedger
# ---------------------------------------------------------------------------


@dataclass
class FakeLedger:
    """In-memory XRPLClient. See module docstring for semantics."""

    validated: int = GENESIS_LEDGER
    page_size: int = 200
    accounts: dict[str, FakeAccount] = field(default_factory=dict)
    lines: dict[tuple[str, str, str], FakeLine] = field(default_factory=dict)
    txs: dict[str, FakeTx] = field(default_factory=dict)
    submitted: list[str] = field(default_factory=list)
    drop_next: int = 0
    base_fee: int = BASE_FEE

    # -- setup ------------------------------------------------------------

    def fund(self, address: str, drops: int = STARTING_DROPS) -> FakeAccount:
        account = FakeAccount(address=address, balance=drops)
        self.accounts[address] = account
        return account

    def line(self, holder: str, issuer: str, currency: str) -> FakeLine | None:
        return self.lines.get((holder, issuer, currency))

    def balance(self, holder: str, issuer: str, currency: str) -> Decimal:
        line = self.line(holder, issuer, currency)
        return line.balance if line is not None else Decimal(0)

    # -- XRPLClient -------------------------------------------------------

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult:
        tx_hash = transaction_id(signed_tx_blob_hex)
        self.submitted.append(tx_hash)
        if tx_hash in self.txs:
            return SubmitResult(accepted=False, tx_hash=tx_hash, engine_result="tefALREADY")
        if self.drop_next > 0:
            # Lost in relay: the node says yes, the ledger never sees it.
            self.drop_next -= 1
            return SubmitResult(accepted=True, tx_hash=tx_hash, engine_result="tesSUCCESS")

        tx = decode(signed_tx_blob_hex)
        result = self._preflight(tx)
        if result is not None:
            return SubmitResult(accepted=False, tx_hash=tx_hash, engine_result=result)

        account = self.accounts[tx["Account"]]
        account.sequence += 1
        account.balance -= int(tx["Fee"])
        result = self._apply(tx)
        self.txs[tx_hash] = FakeTx(tx_hash=tx_hash, tx=tx, result=result)
        return SubmitResult(
            accepted=result == "tesSUCCESS",
            tx_hash=tx_hash,
            engine_result=result,
        )

    async def get_tx(self, tx_hash: str) -> TxStatusResult:
        record = self.txs.get(tx_hash)
        if record is None:
            return TxStatusResult(found=False)
        return TxStatusResult(
            found=True,
            validated=record.ledger_index is not None,
            ledger_index=record.ledger_index,
            engine_result=record.result,
        )

    async def account_info(
        self, address: str, *, ledger_index: str | int = "validated"
    ) -> AccountInfoResult:
        account = self.accounts.get(address)
        if account is None:
            return AccountInfoResult(found=False, error_code=ACCOUNT_NOT_FOUND)
        return AccountInfoResult(
            found=True,
            account_data=account.to_account_data(),
            ledger_index=self.validated,
            validated=ledger_index == "validated",
        )

    async def account_lines(
        self,
        address: str,
        *,
        peer: str | None = None,
        marker: Any = None,
        ledger_index: str | int = "validated",
    ) -> AccountLinesResult:
        if address not in self.accounts:
            return AccountLinesResult(found=False, error_code=ACCOUNT_NOT_FOUND)
        entries = [
            self._line_entry(address, line)
            for line in self.lines.values()
            if address in (line.holder, line.issuer)
        ]
        if peer is not None:
            entries = [e for e in entries if e["account"] == peer]
        start = int(marker or 0)
        end = start + self.page_size
        return AccountLinesResult(
            found=True,
            lines=tuple(entries[start:end]),
            marker=end if end < len(entries) else None,
            ledger_index=self.validated,
        )

    async def gateway_balances(
        self,
        address: str,
        hotwallets: list[str],
        *,
        ledger_index: str | int = "validated",
    ) -> GatewayBalancesResult:
        if address not in self.accounts:
            return GatewayBalancesResult(found=False, error_code=ACCOUNT_NOT_FOUND)
        obligations: dict[str, Decimal] = {}
        balances: dict[str, list[dict[str, str]]] = {}
        for line in self.lines.values():
            if line.issuer != address or line.balance == 0:
                continue
            if line.holder in hotwallets:
                balances.setdefault(line.holder, []).append(
                    {"currency": line.currency, "value": _fmt(line.balance)}
                )
            else:
                obligations[line.currency] = (
                    obligations.get(line.currency, Decimal(0)) + line.balance
                )
        return GatewayBalancesResult(
            found=True,
            obligations={c: _fmt(v) for c, v in obligations.items()},
            balances=balances,
            ledger_index=self.validated,
        )

    async def fee(self) -> FeeResult:
        return FeeResult(
            base_fee=self.base_fee,
            open_ledger_fee=self.base_fee,
            minimum_fee=self.base_fee,
            ledger_current_index=self.validated + 1,
        )

    async def validated_ledger_index(self) -> int:
        self.close_ledger()
        return self.validated

    # -- ledger mechanics --------------------------------------------------

    def close_ledger(self) -> None:
        self.validated += 1
        for record in self.txs.values():
            if record.ledger_index is None:
                record.ledger_index = self.validated

    def _line_entry(self, address: str, line: FakeLine) -> dict[str, Any]:
        if line.holder == address:
            return {
                "account": line.issuer,
                "currency": line.currency,
                "balance": _fmt(line.balance),
                "limit": _fmt(line.limit),
                "limit_peer": "0",
            }
        return {
            "account": line.holder,
            "currency": line.currency,
            "balance": _fmt(-line.balance),
            "limit": "0",
            "limit_peer": _fmt(line.limit),
        }

    def _preflight(self, tx: dict[str, Any]) -> str | None:
        """Checks that reject a tx without touching the ledger."""
        signing_key = tx.get("SigningPubKey", "")
        signature = tx.get("TxnSignature", "")
        unsigned = {k: v for k, v in tx.items() if k != "TxnSignature"}
        if not signing_key or derive_classic_address(signing_key) != tx["Account"]:
            return "temBAD_SIGNATURE"
        if not is_valid_message(
            bytes.fromhex(encode_for_signing(unsigned)),
            bytes.fromhex(signature),
            signing_key,
        ):
            return "temBAD_SIGNATURE"
        account = self.accounts.get(tx["Account"])
        if account is None:
            return "terNO_ACCOUNT"
        if tx["LastLedgerSequence"] <= self.validated:
            return "tefMAX_LEDGER"
        if tx["Sequence"] < account.sequence:
            return "tefPAST_SEQ"
        if tx["Sequence"] > account.sequence:
            return "terPRE_SEQ"
        return None

    def _apply(self, tx: dict[str, Any]) -> str:
        kind = tx["TransactionType"]
        if kind == "AccountSet":
            return self._apply_account_set(tx)
        if kind == "TrustSet":
            return self._apply_trust_set(tx)
        if kind == "Payment":
            return self._apply_payment(tx)
        return "temUNKNOWN"

    def _apply_account_set(self, tx: dict[str, Any]) -> str:
        account = self.accounts[tx["Account"]]
        flags = tx.get("Flags", 0)
        if flags & TF_REQUIRE_DEST_TAG:
            account.flags |= LSF_REQUIRE_DEST_TAG
        if flags & TF_DISALLOW_XRP:
            account.flags |= LSF_DISALLOW_XRP
        if tx.get("SetFlag") == ASF_DEFAULT_RIPPLE:
            account.flags |= LSF_DEFAULT_RIPPLE
        if tx.get("ClearFlag") == ASF_DEFAULT_RIPPLE:
            account.flags &= ~LSF_DEFAULT_RIPPLE
        if "Domain" in tx:
            account.domain = tx["Domain"] or None
        if "TickSize" in tx:
            account.tick_size = tx["TickSize"]
        if "TransferRate" in tx:
            account.transfer_rate = tx["TransferRate"]
        return "tesSUCCESS"

    def _apply_trust_set(self, tx: dict[str, Any]) -> str:
        holder = tx["Account"]
        limit_amount = tx["LimitAmount"]
        issuer = limit_amount["issuer"]
        if issuer not in self.accounts:
            return "tecNO_DST"
        key = (holder, issuer, limit_amount["currency"])
        limit = Decimal(limit_amount["value"])
        line = self.lines.get(key)
        if line is None:
            self.lines[key] = FakeLine(holder, issuer, limit_amount["currency"], limit)
            self.accounts[holder].owner_count += 1
        else:
            line.limit = limit
        return "tesSUCCESS"

    def _apply_payment(self, tx: dict[str, Any]) -> str:
        source = tx["Account"]
        destination = tx["Destination"]
        amount = tx["Amount"]
        if not isinstance(amount, dict):
            return "temBAD_AMOUNT"
        dest_account = self.accounts.get(destination)
        if dest_account is None:
            return "tecNO_DST"
        if dest_account.flags & LSF_REQUIRE_DEST_TAG and "DestinationTag" not in tx:
            return "tecDST_TAG_NEEDED"

        issuer = amount["issuer"]
        currency = amount["currency"]
        value = Decimal(amount["value"])

        if source != issuer:
            out_line = self.line(source, issuer, currency)
            if out_line is None or out_line.balance < value:
                return "tecPATH_DRY"
            if destination != issuer:
                issuer_account = self.accounts.get(issuer)
                if issuer_account is None or not issuer_account.flags & LSF_DEFAULT_RIPPLE:
                    return "tecPATH_DRY"
        if destination != issuer:
            in_line = self.line(destination, issuer, currency)
            if in_line is None or in_line.balance + value > in_line.limit:
                return "tecPATH_DRY"

        if source != issuer:
            self.lines[(source, issuer, currency)].balance -= value
        if destination != issuer:
            self.lines[(destination, issuer, currency)].balance += value
        return "tesSUCCESS"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def issuer() -> Identity:
    return resolve_identity(make_seed(1), Role.ISSUER)


@pytest.fixture
def holder_a() -> Identity:
    return resolve_identity(make_seed(2), Role.HOLDER)


@pytest.fixture
def holder_b() -> Identity:
    return resolve_identity(make_seed(3), Role.HOLDER)


@pytest.fixture
def ledger(issuer: Identity, holder_a: Identity, holder_b: Identity) -> FakeLedger:
    fake = FakeLedger()
    for identity in (issuer, holder_a, holder_b):
        fake.fund(identity.address)
    return fake
