"""
XRPL flag constants used by AccountSet and by account_info decoding.

Reference:
    https://xrpl.org/docs/references/protocol/transactions/types/accountset
    https://xrpl.org/docs/references/protocol/ledger-data/ledger-entry-types/accountroot
"""

# AccountSet transaction flags (tf*), combinable in the Flags field.
TF_REQUIRE_DEST_TAG = 0x00010000
TF_OPTIONAL_DEST_TAG = 0x00020000
TF_REQUIRE_AUTH = 0x00040000
TF_OPTIONAL_AUTH = 0x00080000
TF_DISALLOW_XRP = 0x00100000
TF_ALLOW_XRP = 0x00200000

# AccountSet SetFlag/ClearFlag values (asf*), one per transaction.
ASF_REQUIRE_DEST = 1
ASF_REQUIRE_AUTH = 2
ASF_DISALLOW_XRP = 3
ASF_DEFAULT_RIPPLE = 8

# AccountRoot ledger flags (lsf*), as reported by account_info.
LSF_DEFAULT_RIPPLE = 0x00800000
LSF_DISALLOW_XRP = 0x00080000
LSF_REQUIRE_AUTH = 0x00040000
LSF_REQUIRE_DEST_TAG = 0x00020000
