"""
Issuance scenario: configure an issuer, open holder trust lines, issue.

The building blocks here are thin: each one builds an intent and hands it
to ``SubmissionEngine.submit_and_confirm``. Outcomes are returned, never
raised; validation, identity and network errors propagate.

    async with open_session(Settings.from_env()) as session:
        report = await run_issuance(session, issuer, [holder_a, holder_b])
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from ledger_issuance.config import Settings
from ledger_issuance.engine import SubmissionEngine
from ledger_issuance.identity import Identity, Role
from ledger_issuance.intent import (
    build_account_configure,
    build_asset_payment,
    build_trust_authorize,
)
from ledger_issuance.outcome import SubmissionOutcome
from ledger_issuance.query import IssuerBalances, LedgerQueryService
from ledger_issuance.resolver import NetworkStateResolver
from ledger_issuance.xrpl.client import XRPLClient
from ledger_issuance.xrpl.jsonrpc_client import JsonRpcClient
from ledger_issuance.xrpl.results import load_result_table
from ledger_issuance.xrpl.transport import HttpxTransport

log = logging.getLogger(__name__)

CURRENCY = "SON"
TRUST_LIMIT = "10500"
ISSUE_AMOUNT = "250"
DOMAIN = "example.com"
TICK_SIZE = 5
DESTINATION_TAG = 1


@dataclass(frozen=True)
class Session:
    """Services sharing one connection."""

    client: XRPLClient
    query: LedgerQueryService
    resolver: NetworkStateResolver
    engine: SubmissionEngine


def build_session(client: XRPLClient, settings: Settings | None = None) -> Session:
    """Wire query service, resolver and engine over ``client``."""
    settings = settings or Settings()
    query = LedgerQueryService(client)
    resolver = NetworkStateResolver(
        client,
        expiry_window=settings.expiry_window,
        fee_multiplier=settings.fee_multiplier,
        max_fee_drops=settings.max_fee_drops,
    )
    engine = SubmissionEngine(
        client,
        query,
        resolver,
        result_table=load_result_table(settings.result_table_path),
        poll_interval=settings.poll_interval,
        ledger_close_seconds=settings.ledger_close_seconds,
        explorer_url=settings.explorer_url,
    )
    return Session(client=client, query=query, resolver=resolver, engine=engine)


@asynccontextmanager
async def open_session(settings: Settings) -> AsyncIterator[Session]:
    """Open a JSON-RPC connection and yield a wired Session over it."""
    client = JsonRpcClient(settings.xrpl_url, HttpxTransport(timeout=settings.http_timeout))
    async with client:
        log.info("connected to %s", settings.xrpl_url)
        yield build_session(client, settings)


# =========================================================================
# Steps
# =========================================================================


async def configure_issuer(
    session: Session,
    issuer: Identity,
    *,
    domain: str = DOMAIN,
    tick_size: int = TICK_SIZE,
    transfer_rate_permille: int = 0,
) -> SubmissionOutcome:
    """AccountSet on the issuer: DefaultRipple on, direct XRP off, tags required."""
    intent = build_account_configure(
        Role.ISSUER,
        domain,
        transfer_rate_permille=transfer_rate_permille,
        tick_size=tick_size,
        require_destination_tag=True,
        disallow_direct_asset=True,
        default_ripple=True,
        account=issuer.address,
    )
    return await session.engine.submit_and_confirm(issuer, intent)


async def configure_holder(
    session: Session,
    holder: Identity,
    *,
    domain: str = DOMAIN,
) -> SubmissionOutcome:
    """AccountSet on a holder: direct XRP off, tags required."""
    intent = build_account_configure(
        Role.HOLDER,
        domain,
        require_destination_tag=True,
        disallow_direct_asset=True,
        account=holder.address,
    )
    return await session.engine.submit_and_confirm(holder, intent)


async def open_trust_line(
    session: Session,
    holder: Identity,
    issuer_address: str,
    *,
    currency: str = CURRENCY,
    limit: str = TRUST_LIMIT,
) -> SubmissionOutcome:
    intent = build_trust_authorize(holder.address, issuer_address, currency, limit)
    return await session.engine.submit_and_confirm(holder, intent)


async def issue_payment(
    session: Session,
    issuer: Identity,
    destination: str,
    *,
    currency: str = CURRENCY,
    amount: str = ISSUE_AMOUNT,
    destination_tag: int | None = DESTINATION_TAG,
) -> SubmissionOutcome:
    """Pay ``amount`` of the issuer's asset to ``destination``.

    The destination's tag requirement is looked up first so a missing tag
    fails locally instead of costing a fee.
    """
    requires_tag = await session.query.requires_destination_tag(destination)
    intent = build_asset_payment(
        issuer.address,
        destination,
        issuer.address,
        currency,
        amount,
        destination_tag,
        destination_requires_tag=requires_tag,
    )
    return await session.engine.submit_and_confirm(issuer, intent)


async def transfer(
    session: Session,
    source: Identity,
    destination: str,
    issuer_address: str,
    *,
    currency: str = CURRENCY,
    amount: str = ISSUE_AMOUNT,
    destination_tag: int | None = DESTINATION_TAG,
) -> SubmissionOutcome:
    """Holder-to-holder payment of the issuer's asset."""
    requires_tag = await session.query.requires_destination_tag(destination)
    intent = build_asset_payment(
        source.address,
        destination,
        issuer_address,
        currency,
        amount,
        destination_tag,
        destination_requires_tag=requires_tag,
    )
    return await session.engine.submit_and_confirm(source, intent)


# =========================================================================
# Full run
# =========================================================================


@dataclass(frozen=True)
class IssuanceReport:
    """Everything one issuance run produced, in order."""

    issuer_configured: SubmissionOutcome
    holders_configured: tuple[SubmissionOutcome, ...] = ()
    trust_lines: tuple[SubmissionOutcome, ...] = ()
    payments: tuple[SubmissionOutcome, ...] = ()
    balances: IssuerBalances | None = None
    stopped_at: str | None = None

    @property
    def outcomes(self) -> tuple[SubmissionOutcome, ...]:
        return (
            (self.issuer_configured,)
            + self.holders_configured
            + self.trust_lines
            + self.payments
        )

    @property
    def succeeded(self) -> bool:
        return self.stopped_at is None and all(o.succeeded for o in self.outcomes)


async def run_issuance(
    session: Session,
    issuer: Identity,
    holders: Sequence[Identity],
    *,
    currency: str = CURRENCY,
    limit: str = TRUST_LIMIT,
    amount: str = ISSUE_AMOUNT,
    destination_tag: int | None = DESTINATION_TAG,
) -> IssuanceReport:
    """Configure, authorize and issue to every holder, then report balances.

    Holder chains are independent and run concurrently. The run stops
    after the first stage whose outcomes are not all validated successes;
    ``stopped_at`` names that stage.
    """
    issuer_outcome = await configure_issuer(session, issuer)
    if not issuer_outcome.succeeded:
        return IssuanceReport(issuer_configured=issuer_outcome, stopped_at="configure_issuer")

    configured = tuple(
        await asyncio.gather(*(configure_holder(session, h) for h in holders))
    )
    if not all(o.succeeded for o in configured):
        return IssuanceReport(issuer_outcome, configured, stopped_at="configure_holders")

    lines = tuple(
        await asyncio.gather(
            *(
                open_trust_line(session, h, issuer.address, currency=currency, limit=limit)
                for h in holders
            )
        )
    )
    if not all(o.succeeded for o in lines):
        return IssuanceReport(issuer_outcome, configured, lines, stopped_at="trust_lines")

    # Payments share the issuer's sequence, so they go one at a time.
    payments: list[SubmissionOutcome] = []
    for holder in holders:
        payments.append(
            await issue_payment(
                session,
                issuer,
                holder.address,
                currency=currency,
                amount=amount,
                destination_tag=destination_tag,
            )
        )

    balances = await session.query.issuer_balances(
        issuer.address, [h.address for h in holders]
    )
    stopped_at = None if all(p.succeeded for p in payments) else "payments"
    return IssuanceReport(
        issuer_outcome, configured, lines, tuple(payments), balances, stopped_at
    )
