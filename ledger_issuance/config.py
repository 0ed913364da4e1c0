"""
Runtime settings read from the environment.

Every knob has a default suited to the public testnet. Values are parsed
once into a frozen ``Settings``; nothing reads ``os.environ`` after that.

Variables:
    XRPL_URL               JSON-RPC endpoint.
    LEDGER_EXPIRY_WINDOW   Ledgers added to the validated index for
                           LastLedgerSequence.
    LEDGER_POLL_INTERVAL   Seconds between confirmation polls.
    LEDGER_CLOSE_SECONDS   Expected ledger close cadence (wall-clock bound).
    LEDGER_FEE_MULTIPLIER  Scale applied to the network fee.
    LEDGER_MAX_FEE_DROPS   Refuse to sign above this fee.
    LEDGER_HTTP_TIMEOUT    Per-request timeout in seconds.
    LEDGER_RESULT_TABLE    Optional JSON file overlaid on the default
                           result-classification table.
    LEDGER_EXPLORER_URL    Prefix for operator-facing transaction links.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from ledger_issuance.errors import ConfigError

DEFAULT_XRPL_URL = "https://s.altnet.rippletest.net:51234"
DEFAULT_EXPLORER_URL = "https://testnet.xrpl.org/transactions/"

# Credential variable names used by the issuance scenario.
ISSUER_SECRET_ENV = "COLD_SECRET_1"
HOLDER_SECRET_ENVS = ("HOT_SECRET_1", "HOT_SECRET_2")


@dataclass(frozen=True)
class Settings:
    xrpl_url: str = DEFAULT_XRPL_URL
    expiry_window: int = 20
    poll_interval: float = 1.0
    ledger_close_seconds: float = 4.0
    fee_multiplier: float = 1.0
    max_fee_drops: int = 1000
    http_timeout: float = 30.0
    result_table_path: str | None = None
    explorer_url: str = DEFAULT_EXPLORER_URL

    def __post_init__(self) -> None:
        if not self.xrpl_url:
            raise ConfigError("XRPL_URL must be non-empty")
        if self.expiry_window < 1:
            raise ConfigError(f"expiry_window must be >= 1, got {self.expiry_window}")
        if self.poll_interval < 0:
            raise ConfigError(f"poll_interval must be >= 0, got {self.poll_interval}")
        if self.ledger_close_seconds <= 0:
            raise ConfigError(
                f"ledger_close_seconds must be > 0, got {self.ledger_close_seconds}"
            )
        if self.fee_multiplier < 1.0:
            raise ConfigError(f"fee_multiplier must be >= 1.0, got {self.fee_multiplier}")
        if self.max_fee_drops < 1:
            raise ConfigError(f"max_fee_drops must be >= 1, got {self.max_fee_drops}")
        if self.http_timeout <= 0:
            raise ConfigError(f"http_timeout must be > 0, got {self.http_timeout}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            xrpl_url=env.get("XRPL_URL", DEFAULT_XRPL_URL),
            expiry_window=_int(env, "LEDGER_EXPIRY_WINDOW", 20),
            poll_interval=_float(env, "LEDGER_POLL_INTERVAL", 1.0),
            ledger_close_seconds=_float(env, "LEDGER_CLOSE_SECONDS", 4.0),
            fee_multiplier=_float(env, "LEDGER_FEE_MULTIPLIER", 1.0),
            max_fee_drops=_int(env, "LEDGER_MAX_FEE_DROPS", 1000),
            http_timeout=_float(env, "LEDGER_HTTP_TIMEOUT", 30.0),
            result_table_path=env.get("LEDGER_RESULT_TABLE") or None,
            explorer_url=env.get("LEDGER_EXPLORER_URL", DEFAULT_EXPLORER_URL),
        )


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got: {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got: {raw!r}") from None


def secret_from_env(name: str, environ: Mapping[str, str] | None = None) -> str:
    """Read a credential from the environment.

    The value itself never appears in the raised message.

    Raises:
        ConfigError: If the variable is unset or empty.
    """
    env = os.environ if environ is None else environ
    value = env.get(name)
    if not value:
        raise ConfigError(f"credential variable {name} is not set")
    return value
