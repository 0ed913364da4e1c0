"""
Tests for the network state resolver.

Test plan:
- Sequence, fee and LastLedgerSequence attached from a FakeLedger
- Signing account: intent's account if given, else identity's address
- Fee: max(base, open ledger) scaled and rounded up; ceiling → FeeTooHigh
- Missing account → AccountNotFound; transport failure → NetworkUnavailable
- ResolvedTransaction: expiry check and tx dict shape
"""

from typing import Any

import pytest
from conftest import FakeLedger

from ledger_issuance.errors import AccountNotFound, FeeTooHigh, NetworkUnavailable
from ledger_issuance.identity import Identity, Role
from ledger_issuance.intent import build_account_configure, build_trust_authorize
from ledger_issuance.resolver import NetworkStateResolver
from ledger_issuance.xrpl.client import FeeResult


class BrokenLedger(FakeLedger):
    """account_info raises like a dropped connection."""

    async def account_info(self, address: str, **kwargs: Any):  # type: ignore[override]
        raise ConnectionError("connection reset")


class BusyLedger(FakeLedger):
    """Open-ledger fee above the base fee."""

    async def fee(self) -> FeeResult:
        return FeeResult(base_fee=10, open_ledger_fee=333, minimum_fee=10)


class TestResolve:
    @pytest.mark.asyncio
    async def test_attaches_dynamic_fields(
        self, ledger: FakeLedger, issuer: Identity, holder_a: Identity
    ) -> None:
        ledger.accounts[holder_a.address].sequence = 7
        resolver = NetworkStateResolver(ledger, expiry_window=5)
        intent = build_trust_authorize(holder_a.address, issuer.address, "SON", "10500")

        resolved = await resolver.resolve(holder_a, intent)

        assert resolved.account == holder_a.address
        assert resolved.sequence == 7
        assert resolved.fee_drops == 10
        assert resolved.last_ledger_sequence == resolved.source_ledger_index + 5
        assert resolved.expiry_window == 5

    @pytest.mark.asyncio
    async def test_unbound_configure_uses_identity(
        self, ledger: FakeLedger, issuer: Identity
    ) -> None:
        resolver = NetworkStateResolver(ledger)
        resolved = await resolver.resolve(issuer, build_account_configure(Role.ISSUER, "x.io"))
        assert resolved.account == issuer.address
        assert resolved.to_tx_dict()["Account"] == issuer.address

    @pytest.mark.asyncio
    async def test_tx_dict_has_dynamic_fields(
        self, ledger: FakeLedger, issuer: Identity, holder_a: Identity
    ) -> None:
        resolver = NetworkStateResolver(ledger, expiry_window=3)
        intent = build_trust_authorize(holder_a.address, issuer.address, "SON", "10500")
        resolved = await resolver.resolve(holder_a, intent)
        tx = resolved.to_tx_dict()
        assert tx["Sequence"] == 1
        assert tx["Fee"] == "10"
        assert tx["LastLedgerSequence"] == resolved.last_ledger_sequence

    @pytest.mark.asyncio
    async def test_fee_scaled_and_rounded_up(
        self, issuer: Identity, holder_a: Identity
    ) -> None:
        busy = BusyLedger()
        busy.fund(holder_a.address)
        resolver = NetworkStateResolver(busy, fee_multiplier=1.5)
        intent = build_trust_authorize(holder_a.address, issuer.address, "SON", "1")
        resolved = await resolver.resolve(holder_a, intent)
        assert resolved.fee_drops == 500  # ceil(333 * 1.5)

    @pytest.mark.asyncio
    async def test_fee_ceiling(self, issuer: Identity, holder_a: Identity) -> None:
        busy = BusyLedger()
        busy.fund(holder_a.address)
        resolver = NetworkStateResolver(busy, max_fee_drops=100)
        intent = build_trust_authorize(holder_a.address, issuer.address, "SON", "1")
        with pytest.raises(FeeTooHigh):
            await resolver.resolve(holder_a, intent)

    @pytest.mark.asyncio
    async def test_unfunded_account(self, issuer: Identity, holder_a: Identity) -> None:
        resolver = NetworkStateResolver(FakeLedger())
        intent = build_trust_authorize(holder_a.address, issuer.address, "SON", "1")
        with pytest.raises(AccountNotFound) as exc_info:
            await resolver.resolve(holder_a, intent)
        assert exc_info.value.address == holder_a.address

    @pytest.mark.asyncio
    async def test_transport_failure(self, issuer: Identity, holder_a: Identity) -> None:
        resolver = NetworkStateResolver(BrokenLedger())
        intent = build_trust_authorize(holder_a.address, issuer.address, "SON", "1")
        with pytest.raises(NetworkUnavailable):
            await resolver.resolve(holder_a, intent)

    def test_window_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            NetworkStateResolver(FakeLedger(), expiry_window=0)


class TestResolvedTransaction:
    @pytest.mark.asyncio
    async def test_expiry(
        self, ledger: FakeLedger, issuer: Identity, holder_a: Identity
    ) -> None:
        resolver = NetworkStateResolver(ledger, expiry_window=2)
        intent = build_trust_authorize(holder_a.address, issuer.address, "SON", "1")
        resolved = await resolver.resolve(holder_a, intent)
        lls = resolved.last_ledger_sequence
        assert not resolved.is_expired(lls)
        assert resolved.is_expired(lls + 1)
