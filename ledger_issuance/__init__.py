"""
Issued-asset submission and confirmation engine for the XRP Ledger.

Public API:

    Pure layer (no I/O):
        - ``resolve_identity()`` — secret → Identity (keys never leave it).
        - ``build_account_configure()``, ``build_trust_authorize()``,
          ``build_asset_payment()`` — validated transaction intents.
        - ``sign()`` — ResolvedTransaction → SignedArtifact.

    Impure layer (network I/O):
        - ``NetworkStateResolver`` — attaches Sequence, Fee and
          LastLedgerSequence.
        - ``SubmissionEngine`` — submit, confirm, and the one-retry
          ``submit_and_confirm`` chain.
        - ``LedgerQueryService`` — validated account, trust line and
          balance lookups.

    Scenario:
        - ``open_session()``, ``run_issuance()`` and the step functions in
          ``ledger_issuance.scenario``.

    Outcomes:
        - ``SubmissionOutcome`` with ``OutcomeStatus`` and, when
          indeterminate, ``IndeterminateReason``.
"""

from ledger_issuance.config import Settings, secret_from_env
from ledger_issuance.engine import ConfirmationHandle, SubmissionEngine
from ledger_issuance.errors import (
    AccountNotFound,
    ConfigError,
    IdentityError,
    LedgerIssuanceError,
    NetworkError,
    NetworkUnavailable,
    ValidationError,
)
from ledger_issuance.identity import Identity, Role, resolve_identity
from ledger_issuance.intent import (
    AccountConfigure,
    AssetPayment,
    TransactionIntent,
    TrustAuthorize,
    build_account_configure,
    build_asset_payment,
    build_trust_authorize,
)
from ledger_issuance.outcome import (
    IndeterminateReason,
    OutcomeStatus,
    SubmissionOutcome,
    TxState,
)
from ledger_issuance.query import AccountState, IssuerBalances, LedgerQueryService, TrustLine
from ledger_issuance.resolver import NetworkStateResolver, ResolvedTransaction
from ledger_issuance.signer import SignedArtifact, sign

__version__ = "0.1.0"

__all__ = [
    "AccountConfigure",
    "AccountNotFound",
    "AccountState",
    "AssetPayment",
    "ConfigError",
    "ConfirmationHandle",
    "Identity",
    "IdentityError",
    "IndeterminateReason",
    "IssuerBalances",
    "LedgerIssuanceError",
    "LedgerQueryService",
    "NetworkError",
    "NetworkStateResolver",
    "NetworkUnavailable",
    "OutcomeStatus",
    "ResolvedTransaction",
    "Role",
    "Settings",
    "SignedArtifact",
    "SubmissionEngine",
    "SubmissionOutcome",
    "TransactionIntent",
    "TrustAuthorize",
    "TrustLine",
    "TxState",
    "ValidationError",
    "build_account_configure",
    "build_asset_payment",
    "build_trust_authorize",
    "resolve_identity",
    "secret_from_env",
    "sign",
]
