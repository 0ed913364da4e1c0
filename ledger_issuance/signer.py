"""
Signer — turns a resolved transaction into a submittable artifact.

The signer never sees raw key material: it asks the Identity to sign the
canonical signing bytes produced by the xrpl-py binary codec. Output is a
SignedArtifact holding the blob, its transaction id, and the resolved
transaction it came from.

Output format: signed transaction blob as upper-case hex. The id is
``SHA512Half(0x54584E00 || blob)`` and depends only on the blob, so it
serves as the idempotency key for confirmation polling.

Ed25519 signatures are deterministic and xrpl-py's secp256k1 uses
RFC6979 nonces, so signing the same ResolvedTransaction twice yields
the same blob and id.
"""

from __future__ import annotations

from dataclasses import dataclass

from xrpl.core.binarycodec import encode, encode_for_signing

from ledger_issuance.errors import IdentityMismatch
from ledger_issuance.identity import Identity
from ledger_issuance.intent import AccountConfigure
from ledger_issuance.integrity import transaction_id
from ledger_issuance.resolver import ResolvedTransaction


@dataclass(frozen=True)
class SignedArtifact:
    """A signed transaction, ready for submission. Single-use.

    Attributes:
        tx_blob: Hex-encoded signed transaction blob.
        tx_hash: Transaction id (64 upper-case hex chars).
        resolved: The resolved transaction that was signed.
        key_id: Public identifier of the signing key (safe for logging).
    """

    tx_blob: str
    tx_hash: str
    resolved: ResolvedTransaction
    key_id: str

    @property
    def last_ledger_sequence(self) -> int:
        return self.resolved.last_ledger_sequence


def sign(identity: Identity, resolved: ResolvedTransaction) -> SignedArtifact:
    """Sign a resolved transaction with ``identity``.

    Raises:
        IdentityMismatch: If the resolved account is not the identity's
            address, or an AccountConfigure intent names a different role.
    """
    if resolved.account != identity.address:
        raise IdentityMismatch(
            f"resolved for {resolved.account}, identity is {identity.address}"
        )
    intent = resolved.intent
    if isinstance(intent, AccountConfigure) and intent.role != identity.role:
        raise IdentityMismatch(
            f"{intent.role} configuration cannot be signed by a {identity.role} identity"
        )

    tx = resolved.to_tx_dict()
    tx["SigningPubKey"] = identity.public_key
    signing_bytes = bytes.fromhex(encode_for_signing(tx))
    tx["TxnSignature"] = identity.sign_message(signing_bytes)
    blob = encode(tx)

    return SignedArtifact(
        tx_blob=blob,
        tx_hash=transaction_id(blob),
        resolved=resolved,
        key_id=identity.key_id,
    )
