"""
Error taxonomy for the issuance engine.

Three families, each with a different caller contract:

    - ``ValidationError``: local, raised before any network call. The
      intent is malformed and will never reach the ledger.
    - ``NetworkError``: transient. Raised by the resolver and the query
      service; the caller decides whether to retry. Nothing here loops.
    - ``IdentityError``: fatal for the identity involved (bad credential,
      unfunded account, cross-wired roles).

Rejected and indeterminate submissions are NOT exceptions — they are
``SubmissionOutcome`` values (see outcome.py), because a caller must be
able to tell them apart from success without a try/except.
"""

from __future__ import annotations


class LedgerIssuanceError(Exception):
    """Base class for all errors raised by this package."""


# =========================================================================
# Validation (pre-submission)
# =========================================================================


class ValidationError(LedgerIssuanceError, ValueError):
    """An intent failed local validation."""


class DomainTooLong(ValidationError):
    pass


class InvalidLimit(ValidationError):
    pass


class InvalidCurrencyCode(ValidationError):
    pass


class InvalidAmount(ValidationError):
    pass


class InvalidAddress(ValidationError):
    pass


class InvalidTransferRate(ValidationError):
    pass


class InvalidTickSize(ValidationError):
    pass


class InvalidDestinationTag(ValidationError):
    pass


class MissingDestinationTag(ValidationError):
    """Destination requires a destination tag and none was supplied."""


# =========================================================================
# Network (transient, caller retries)
# =========================================================================


class NetworkError(LedgerIssuanceError):
    """A ledger node could not be reached or answered unusably."""


class NetworkUnavailable(NetworkError):
    pass


class FeeTooHigh(NetworkError):
    """The network fee exceeds the configured ceiling (congestion)."""


class ResponseMismatch(NetworkError):
    """A JSON-RPC response carried an id other than the request's."""


# =========================================================================
# Identity (fatal for that identity)
# =========================================================================


class IdentityError(LedgerIssuanceError):
    """A signing identity cannot be used."""


class InvalidCredential(IdentityError):
    pass


class IdentityMismatch(IdentityError):
    """A resolved transaction was handed to the wrong identity."""


class AccountNotFound(IdentityError):
    """The account does not exist in the validated ledger (unfunded)."""

    def __init__(self, address: str) -> None:
        super().__init__(f"account not found: {address}")
        self.address = address


# =========================================================================
# Misc
# =========================================================================


class ConfigError(LedgerIssuanceError, ValueError):
    """An environment setting or result-table file is invalid."""


class IllegalTransition(LedgerIssuanceError):
    """The confirmation state machine was driven along a forbidden edge."""
