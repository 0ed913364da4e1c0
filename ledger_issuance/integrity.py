"""
Hashing utilities: SHA-256 digests and XRPL transaction identifiers.
"""

import hashlib

# HashPrefix::transactionID ("TXN\0")
TRANSACTION_ID_PREFIX = bytes.fromhex("54584E00")


def sha256_digest(data: bytes) -> str:
    """Compute SHA256 hex digest of bytes."""
    return hashlib.sha256(data).hexdigest()


def sha512_half(data: bytes) -> bytes:
    """First 32 bytes of SHA-512, the XRPL's standard hash."""
    return hashlib.sha512(data).digest()[:32]


def transaction_id(signed_blob_hex: str) -> str:
    """Compute the transaction identifier of a signed blob.

    The identifier is ``SHA512Half(0x54584E00 || blob)``, upper-case hex.
    It depends only on the blob bytes, so it doubles as the idempotency
    key when polling for confirmation.

    Raises:
        ValueError: If ``signed_blob_hex`` is not valid hex.
    """
    return sha512_half(TRANSACTION_ID_PREFIX + bytes.fromhex(signed_blob_hex)).hex().upper()
