"""
Identity provider — the secrets boundary.

Turns a secret seed into a signing identity. Key material lives only
inside ``Identity``: the rest of the package sees the address, the
public key, and a ``sign_message`` callable. Identities refuse to be
pickled or copied, and their repr carries no key material.

The address is recomputed from the public key on every access, so it can
never drift from the keys that actually sign.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import NoReturn

from xrpl.core.addresscodec import XRPLAddressCodecException
from xrpl.core.keypairs import (
    XRPLKeypairsException,
    derive_classic_address,
    derive_keypair,
)
from xrpl.core.keypairs import sign as keypairs_sign

from ledger_issuance.errors import InvalidCredential


class Role(StrEnum):
    """Account role in an issuance setup."""

    ISSUER = "issuer"  # cold
    HOLDER = "holder"  # hot


@dataclass(frozen=True)
class Identity:
    """A signing identity derived from one secret.

    Attributes:
        role: Issuer (cold) or holder (hot).
        public_key: Hex public key, safe to log and to put in transactions.
    """

    role: Role
    public_key: str
    _private_key: str = field(repr=False, compare=False)

    @property
    def address(self) -> str:
        """Classic r-address, derived from the public key."""
        return derive_classic_address(self.public_key)

    @property
    def key_id(self) -> str:
        """Public identifier of the signing key (safe for logging)."""
        return self.public_key

    def sign_message(self, message: bytes) -> str:
        """Sign raw bytes, returning the upper-case hex signature."""
        return keypairs_sign(message, self._private_key)

    def __reduce_ex__(self, protocol: object) -> NoReturn:
        raise TypeError("Identity holds key material and cannot be serialized")


def resolve_identity(secret: str, role: Role = Role.HOLDER) -> Identity:
    """Derive a signing identity from a secret seed.

    Pure: no network, no I/O, no caching.

    Args:
        secret: Family seed (``s...``), as supplied by the credential source.
        role: Role the identity plays.

    Returns:
        Identity for the seed.

    Raises:
        InvalidCredential: If the seed cannot be decoded into key material.
            The secret itself is never included in the message.
    """
    if not isinstance(secret, str) or not secret.strip():
        raise InvalidCredential("secret must be a non-empty string")
    try:
        public_key, private_key = derive_keypair(secret.strip())
    except (XRPLAddressCodecException, XRPLKeypairsException, ValueError) as exc:
        raise InvalidCredential(
            f"secret could not be decoded ({type(exc).__name__})"
        ) from None
    return Identity(role=Role(role), public_key=public_key, _private_key=private_key)
