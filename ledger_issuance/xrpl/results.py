"""
XRPL result classification — engine result codes to outcome classes.

Table-driven and fail-closed: a code is looked up exactly first, then by
the longest matching prefix; anything unmatched is INDETERMINATE, never
success or failure.

XRPL engine result prefixes:
    - tes: success (tesSUCCESS)
    - tec: claimed cost — included in a ledger, fee burned, no effect
    - tef: local failure — not forwarded
    - tem: malformed — will never succeed
    - ter: retry — may succeed later (queued, sequence gap)
    - tel: local node error — may still be relayed later

The table is data, not code: operators overlay new codes with a JSON file
(``LEDGER_RESULT_TABLE``) validated against RESULT_TABLE_SCHEMA:

    {"codes": {"tecNEW_CODE": "REJECTED"}, "prefixes": {"tex": "FAILURE"}}

Reference:
    https://xrpl.org/docs/references/protocol/transactions/transaction-results
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

import jsonschema  # type: ignore[import-untyped]

from ledger_issuance.errors import ConfigError


class ResultClass(StrEnum):
    """What an engine result code means for a submission."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    REJECTED = "REJECTED"
    RETRY_RESOLVE = "RETRY_RESOLVE"
    INDETERMINATE = "INDETERMINATE"


_CLASS_NAMES = [c.value for c in ResultClass]

RESULT_TABLE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "codes": {
            "type": "object",
            "propertyNames": {"pattern": "^[a-z]{3}[A-Z0-9_]+$"},
            "additionalProperties": {"enum": _CLASS_NAMES},
        },
        "prefixes": {
            "type": "object",
            "propertyNames": {"pattern": "^[a-z]{3}[A-Z0-9_]*$"},
            "additionalProperties": {"enum": _CLASS_NAMES},
        },
    },
    "additionalProperties": False,
}


@dataclass(frozen=True)
class ResultTable:
    """Mapping from engine result codes to ResultClass.

    Attributes:
        codes: Exact code → class. Checked first.
        prefixes: Code prefix → class. Longest match wins.
    """

    codes: Mapping[str, ResultClass] = field(default_factory=dict)
    prefixes: Mapping[str, ResultClass] = field(default_factory=dict)

    def classify(self, engine_result: str | None) -> ResultClass:
        """Classify a code. None and unknown codes are INDETERMINATE."""
        if not engine_result:
            return ResultClass.INDETERMINATE
        exact = self.codes.get(engine_result)
        if exact is not None:
            return exact
        for prefix in sorted(self.prefixes, key=len, reverse=True):
            if engine_result.startswith(prefix):
                return self.prefixes[prefix]
        return ResultClass.INDETERMINATE

    def merged(self, overlay: ResultTable) -> ResultTable:
        """Return a new table with overlay's entries taking precedence."""
        return ResultTable(
            codes={**self.codes, **overlay.codes},
            prefixes={**self.prefixes, **overlay.prefixes},
        )

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {
            "codes": {k: str(v) for k, v in sorted(self.codes.items())},
            "prefixes": {k: str(v) for k, v in sorted(self.prefixes.items())},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResultTable:
        """Build a table from its JSON form.

        Raises:
            ConfigError: If data does not match RESULT_TABLE_SCHEMA.
        """
        try:
            jsonschema.validate(instance=data, schema=RESULT_TABLE_SCHEMA)
        except jsonschema.ValidationError as exc:
            raise ConfigError(f"invalid result table: {exc.message}") from None
        return cls(
            codes={k: ResultClass(v) for k, v in data.get("codes", {}).items()},
            prefixes={k: ResultClass(v) for k, v in data.get("prefixes", {}).items()},
        )

    @classmethod
    def load(cls, path: str | Path) -> ResultTable:
        p = Path(path)
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"cannot read result table {p}: {exc}") from None
        return cls.from_dict(data)


DEFAULT_RESULT_TABLE = ResultTable(
    codes={
        "tesSUCCESS": ResultClass.SUCCESS,
        # Sequence/expiry problems: the blob can never apply as-is, but an
        # identical blob may already be in a ledger, so probe before retrying.
        "tefPAST_SEQ": ResultClass.RETRY_RESOLVE,
        "tefALREADY": ResultClass.RETRY_RESOLVE,
        "tefMAX_LEDGER": ResultClass.RETRY_RESOLVE,
        "terPRE_SEQ": ResultClass.RETRY_RESOLVE,
        # No executable path / unfunded / missing line: will not succeed
        # without a change of ledger state the engine does not make.
        "tecPATH_DRY": ResultClass.REJECTED,
        "tecPATH_PARTIAL": ResultClass.REJECTED,
        "tecNO_LINE": ResultClass.REJECTED,
        "tecNO_LINE_INSUF_RESERVE": ResultClass.REJECTED,
        "tecINSUF_RESERVE_LINE": ResultClass.REJECTED,
        "tecUNFUNDED_PAYMENT": ResultClass.REJECTED,
        "tecNO_DST": ResultClass.REJECTED,
        "tecNO_DST_INSUF_XRP": ResultClass.REJECTED,
        "tecDST_TAG_NEEDED": ResultClass.REJECTED,
        "tecNO_AUTH": ResultClass.REJECTED,
        "tecNO_PERMISSION": ResultClass.REJECTED,
        "tecNO_ISSUER": ResultClass.REJECTED,
    },
    prefixes={
        "tem": ResultClass.REJECTED,
        "tef": ResultClass.REJECTED,
        "tec": ResultClass.FAILURE,
        "ter": ResultClass.INDETERMINATE,
        "tel": ResultClass.INDETERMINATE,
    },
)

# Codes that mean "no executable path" for reporting.
NO_PATH_CODES = frozenset({"tecPATH_DRY", "tecPATH_PARTIAL", "tecNO_LINE"})


def classify_engine_result(
    engine_result: str | None,
    table: ResultTable = DEFAULT_RESULT_TABLE,
) -> ResultClass:
    """Map an XRPL engine result code to a ResultClass.

    Args:
        engine_result: XRPL engine result string. None means the engine
            never responded.
        table: Classification table. Defaults to DEFAULT_RESULT_TABLE.

    Returns:
        ResultClass; INDETERMINATE for unrecognized codes or None.
    """
    return table.classify(engine_result)


def load_result_table(path: str | Path | None) -> ResultTable:
    """Default table, overlaid with the JSON file at ``path`` if given."""
    if path is None:
        return DEFAULT_RESULT_TABLE
    return DEFAULT_RESULT_TABLE.merged(ResultTable.load(path))
