"""
Transaction intents — what you want the ledger to do.

A TransactionIntent is a validated, immutable description of one
transaction, before any network state is attached. It is:

    - **Pure**: built from explicit arguments only; no I/O, no globals.
    - **Typed**: one frozen dataclass per kind, so required fields are
      enforced at construction time.
    - **Network-free**: no Sequence, Fee, LastLedgerSequence, or
      SigningPubKey. Those are attached by the resolver and signer.
    - **Hashable**: deterministic canonical JSON → SHA256 digest, logged with
      each submission so both attempts of one intent correlate.

Kinds:
    - AccountConfigure → AccountSet
    - TrustAuthorize   → TrustSet
    - AssetPayment     → Payment (issued currency)

Validation failures raise a ``ValidationError`` subclass and never reach
the network.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Union

from xrpl.core.addresscodec import is_valid_classic_address

from ledger_issuance.canonical_json import canonical_json_bytes
from ledger_issuance.errors import (
    DomainTooLong,
    InvalidAddress,
    InvalidAmount,
    InvalidCurrencyCode,
    InvalidDestinationTag,
    InvalidLimit,
    InvalidTickSize,
    InvalidTransferRate,
    MissingDestinationTag,
    ValidationError,
)
from ledger_issuance.identity import Role
from ledger_issuance.integrity import sha256_digest
from ledger_issuance.xrpl.flags import (
    ASF_DEFAULT_RIPPLE,
    TF_DISALLOW_XRP,
    TF_REQUIRE_DEST_TAG,
)

# Protocol limits
MAX_DOMAIN_BYTES = 256
MAX_TRANSFER_RATE_PERMILLE = 1000
MAX_SIGNIFICANT_DIGITS = 16
# Issued-currency exponent range, with the mantissa normalized to 16 digits
MIN_AMOUNT_EXPONENT = -96
MAX_AMOUNT_EXPONENT = 80
MAX_DESTINATION_TAG = 2**32 - 1
_TRANSFER_RATE_UNITY = 1_000_000_000
_TICK_SIZE_RANGE = range(3, 16)

# Currency codes: 3-char standard (not "XRP") or 160-bit hex.
_STANDARD_CURRENCY_RE = re.compile(r"^[A-Za-z0-9?!@#$%^&*<>(){}\[\]|]{3}$")
_HEX_CURRENCY_RE = re.compile(r"^[0-9A-Fa-f]{40}$")


class IntentKind(StrEnum):
    ACCOUNT_CONFIGURE = "account_configure"
    TRUST_AUTHORIZE = "trust_authorize"
    ASSET_PAYMENT = "asset_payment"


# =========================================================================
# Validation helpers
# =========================================================================


def validate_address(value: object, field_name: str) -> str:
    """Raise InvalidAddress unless value is a classic r-address."""
    if not isinstance(value, str) or not is_valid_classic_address(value):
        raise InvalidAddress(f"{field_name} must be a classic r-address, got: {value!r}")
    return value


def normalize_currency_code(code: object) -> str:
    """Validate a currency code and return its canonical form.

    3-char standard codes are returned as given; 40-hex codes are
    upper-cased.

    Raises:
        InvalidCurrencyCode: On anything else, including "XRP".
    """
    if isinstance(code, str):
        if _STANDARD_CURRENCY_RE.match(code):
            if code.upper() == "XRP":
                raise InvalidCurrencyCode("'XRP' is reserved for the native asset")
            return code
        if _HEX_CURRENCY_RE.match(code):
            upper = code.upper()
            # First byte 0x00 is the standard-code encoding.
            if upper.startswith("00"):
                raise InvalidCurrencyCode(
                    f"hex currency code must not start with 0x00, got: {code!r}"
                )
            return upper
    raise InvalidCurrencyCode(
        f"currency code must be 3 chars or 40 hex chars, got: {code!r}"
    )


def _positive_decimal(
    value: object,
    field_name: str,
    error_cls: type[ValidationError],
) -> str:
    """Parse a positive decimal string and return its plain form."""
    if not isinstance(value, str):
        raise error_cls(f"{field_name} must be a decimal string, got: {value!r}")
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation:
        raise error_cls(f"{field_name} is not a decimal number: {value!r}") from None
    if not parsed.is_finite() or parsed <= 0:
        raise error_cls(f"{field_name} must be positive, got: {value!r}")
    _, digits, raw_exponent = parsed.as_tuple()
    significant = "".join(map(str, digits)).lstrip("0")
    mantissa = significant.rstrip("0")
    if len(mantissa) > MAX_SIGNIFICANT_DIGITS:
        raise error_cls(
            f"{field_name} exceeds {MAX_SIGNIFICANT_DIGITS} significant digits: {value!r}"
        )
    # Scale to a 16-digit mantissa the way the ledger stores it.
    exponent = int(raw_exponent) + len(significant) - len(mantissa)
    exponent -= MAX_SIGNIFICANT_DIGITS - len(mantissa)
    if not MIN_AMOUNT_EXPONENT <= exponent <= MAX_AMOUNT_EXPONENT:
        raise error_cls(f"{field_name} is out of range for an issued amount: {value!r}")
    return format(parsed, "f")


def _encode_domain(domain: str | bytes) -> str:
    raw = domain.encode("utf-8") if isinstance(domain, str) else bytes(domain)
    if len(raw) > MAX_DOMAIN_BYTES:
        raise DomainTooLong(
            f"domain exceeds {MAX_DOMAIN_BYTES} bytes (got {len(raw)} bytes)"
        )
    return raw.hex().upper()


def _encode_transfer_rate(permille: int) -> int:
    if isinstance(permille, bool) or not isinstance(permille, int):
        raise InvalidTransferRate(f"transfer rate must be an int, got: {permille!r}")
    if not 0 <= permille <= MAX_TRANSFER_RATE_PERMILLE:
        raise InvalidTransferRate(
            f"transfer rate must be 0-{MAX_TRANSFER_RATE_PERMILLE} permille, got: {permille}"
        )
    if permille == 0:
        return 0
    return _TRANSFER_RATE_UNITY + permille * 1_000_000


def _validate_tick_size(tick_size: int) -> int:
    if isinstance(tick_size, bool) or not isinstance(tick_size, int):
        raise InvalidTickSize(f"tick size must be an int, got: {tick_size!r}")
    if tick_size != 0 and tick_size not in _TICK_SIZE_RANGE:
        raise InvalidTickSize(f"tick size must be 0 or 3-15, got: {tick_size}")
    return tick_size


def _validate_destination_tag(tag: int) -> int:
    if isinstance(tag, bool) or not isinstance(tag, int):
        raise InvalidDestinationTag(f"destination tag must be an int, got: {tag!r}")
    if not 0 <= tag <= MAX_DESTINATION_TAG:
        raise InvalidDestinationTag(f"destination tag out of range: {tag}")
    return tag


# =========================================================================
# Intent variants
# =========================================================================


class _IntentBase:
    """Digest helpers shared by all intent kinds."""

    def to_canonical_dict(self) -> dict[str, object]:
        raise NotImplementedError

    def intent_digest(self) -> str:
        """SHA256 over the canonical dict (raw hex, 64 chars)."""
        return sha256_digest(canonical_json_bytes(self.to_canonical_dict()))


@dataclass(frozen=True)
class AccountConfigure(_IntentBase):
    """AccountSet for an issuer or holder account.

    ``account`` may be left None; the resolver then binds the intent to
    the signing identity's address.
    """

    role: Role
    domain_hex: str | None = None
    transfer_rate: int | None = None
    tick_size: int | None = None
    flags: int = 0
    set_flag: int | None = None
    clear_flag: int | None = None
    account: str | None = None

    kind = IntentKind.ACCOUNT_CONFIGURE
    transaction_type = "AccountSet"

    @property
    def signing_account(self) -> str | None:
        return self.account

    def to_tx_dict(self, account: str | None = None) -> dict[str, object]:
        tx: dict[str, object] = {
            "TransactionType": self.transaction_type,
            "Account": account or self.account,
        }
        if self.domain_hex is not None:
            tx["Domain"] = self.domain_hex
        if self.transfer_rate is not None:
            tx["TransferRate"] = self.transfer_rate
        if self.tick_size is not None:
            tx["TickSize"] = self.tick_size
        if self.set_flag is not None:
            tx["SetFlag"] = self.set_flag
        if self.clear_flag is not None:
            tx["ClearFlag"] = self.clear_flag
        if self.flags:
            tx["Flags"] = self.flags
        return tx

    def to_canonical_dict(self) -> dict[str, object]:
        d = self.to_tx_dict()
        d["kind"] = str(self.kind)
        d["role"] = str(self.role)
        if d["Account"] is None:
            del d["Account"]
        return d


@dataclass(frozen=True)
class TrustAuthorize(_IntentBase):
    """TrustSet from a holder to an issuer."""

    holder: str
    issuer: str
    currency: str
    limit: str

    kind = IntentKind.TRUST_AUTHORIZE
    transaction_type = "TrustSet"

    @property
    def signing_account(self) -> str:
        return self.holder

    def to_tx_dict(self, account: str | None = None) -> dict[str, object]:
        return {
            "TransactionType": self.transaction_type,
            "Account": self.holder,
            "LimitAmount": {
                "currency": self.currency,
                "issuer": self.issuer,
                "value": self.limit,
            },
        }

    def to_canonical_dict(self) -> dict[str, object]:
        d = self.to_tx_dict()
        d["kind"] = str(self.kind)
        return d


@dataclass(frozen=True)
class AssetPayment(_IntentBase):
    """Payment of an issued currency."""

    source: str
    destination: str
    issuer: str
    currency: str
    amount: str
    destination_tag: int | None = None

    kind = IntentKind.ASSET_PAYMENT
    transaction_type = "Payment"

    @property
    def signing_account(self) -> str:
        return self.source

    def to_tx_dict(self, account: str | None = None) -> dict[str, object]:
        tx: dict[str, object] = {
            "TransactionType": self.transaction_type,
            "Account": self.source,
            "Destination": self.destination,
            "Amount": {
                "currency": self.currency,
                "issuer": self.issuer,
                "value": self.amount,
            },
        }
        if self.destination_tag is not None:
            tx["DestinationTag"] = self.destination_tag
        return tx

    def to_canonical_dict(self) -> dict[str, object]:
        d = self.to_tx_dict()
        d["kind"] = str(self.kind)
        return d


TransactionIntent = Union[AccountConfigure, TrustAuthorize, AssetPayment]


# =========================================================================
# Builders
# =========================================================================


def build_account_configure(
    role: Role,
    domain: str | bytes | None = None,
    *,
    transfer_rate_permille: int | None = None,
    tick_size: int | None = None,
    require_destination_tag: bool = False,
    disallow_direct_asset: bool = False,
    default_ripple: bool | None = None,
    account: str | None = None,
) -> AccountConfigure:
    """Build an AccountSet intent.

    Args:
        role: Role of the account being configured.
        domain: Human-readable domain; hex-encoded into the Domain field.
        transfer_rate_permille: Fee charged on holder-to-holder transfers,
            0-1000 permille. 0 clears the fee.
        tick_size: Significant digits for exchange rates (0 or 3-15).
        require_destination_tag: Sets tfRequireDestTag.
        disallow_direct_asset: Sets tfDisallowXRP.
        default_ripple: True sets, False clears asfDefaultRipple; None
            leaves it untouched.
        account: Optional explicit account; otherwise bound at resolve time.

    Raises:
        DomainTooLong, InvalidTransferRate, InvalidTickSize, InvalidAddress.
    """
    if account is not None:
        validate_address(account, "account")

    flags = 0
    if require_destination_tag:
        flags |= TF_REQUIRE_DEST_TAG
    if disallow_direct_asset:
        flags |= TF_DISALLOW_XRP

    return AccountConfigure(
        role=Role(role),
        domain_hex=_encode_domain(domain) if domain is not None else None,
        transfer_rate=(
            _encode_transfer_rate(transfer_rate_permille)
            if transfer_rate_permille is not None
            else None
        ),
        tick_size=_validate_tick_size(tick_size) if tick_size is not None else None,
        flags=flags,
        set_flag=ASF_DEFAULT_RIPPLE if default_ripple is True else None,
        clear_flag=ASF_DEFAULT_RIPPLE if default_ripple is False else None,
        account=account,
    )


def build_trust_authorize(
    holder: str,
    issuer: str,
    currency: str,
    limit: str,
) -> TrustAuthorize:
    """Build a TrustSet intent from holder to issuer.

    Raises:
        InvalidLimit: If limit is not a positive decimal string.
        InvalidCurrencyCode: If currency is not 3-char or 40-hex.
        InvalidAddress: If either address is malformed or they are equal.
    """
    validate_address(holder, "holder")
    validate_address(issuer, "issuer")
    if holder == issuer:
        raise InvalidAddress("holder and issuer must differ")
    return TrustAuthorize(
        holder=holder,
        issuer=issuer,
        currency=normalize_currency_code(currency),
        limit=_positive_decimal(limit, "limit", InvalidLimit),
    )


def build_asset_payment(
    source: str,
    destination: str,
    issuer: str,
    currency: str,
    amount: str,
    destination_tag: int | None = None,
    *,
    destination_requires_tag: bool | None = None,
) -> AssetPayment:
    """Build an issued-currency Payment intent.

    Args:
        destination_requires_tag: Whether the destination is known to
            require a destination tag (from a prior account_info lookup).
            None means unknown; the ledger then has the final word.

    Raises:
        InvalidAmount: If amount is not a positive decimal string.
        MissingDestinationTag: If the destination requires a tag and
            none was given.
        InvalidDestinationTag, InvalidCurrencyCode, InvalidAddress.
    """
    validate_address(source, "source")
    validate_address(destination, "destination")
    validate_address(issuer, "issuer")
    if source == destination:
        raise InvalidAddress("source and destination must differ")
    currency = normalize_currency_code(currency)
    value = _positive_decimal(amount, "amount", InvalidAmount)
    if destination_tag is not None:
        _validate_destination_tag(destination_tag)
    elif destination_requires_tag:
        raise MissingDestinationTag(
            f"destination {destination} requires a destination tag"
        )
    return AssetPayment(
        source=source,
        destination=destination,
        issuer=issuer,
        currency=currency,
        amount=value,
        destination_tag=destination_tag,
    )
