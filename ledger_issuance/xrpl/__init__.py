"""
XRPL network boundary for the issuance engine.

Public API:

    Protocols (for dependency injection):
        - ``XRPLClient`` — network boundary (submit, lookups, fees).
        - ``JsonRpcTransport`` — injectable transport for JSON-RPC.

    Concrete implementations:
        - ``JsonRpcClient`` — JSON-RPC implementation of XRPLClient.
        - ``HttpxTransport`` — default httpx-based transport.

    Result types:
        - ``SubmitResult``, ``TxStatusResult``, ``AccountInfoResult``,
          ``AccountLinesResult``, ``GatewayBalancesResult``, ``FeeResult``.

    Result classification:
        - ``ResultTable`` / ``DEFAULT_RESULT_TABLE`` — engine result → class.
        - ``classify_engine_result()``, ``load_result_table()``.
"""

from ledger_issuance.xrpl.client import (
    AccountInfoResult,
    AccountLinesResult,
    FeeResult,
    GatewayBalancesResult,
    SubmitResult,
    TxStatusResult,
    XRPLClient,
)
from ledger_issuance.xrpl.jsonrpc_client import JsonRpcClient
from ledger_issuance.xrpl.results import (
    DEFAULT_RESULT_TABLE,
    ResultClass,
    ResultTable,
    classify_engine_result,
    load_result_table,
)
from ledger_issuance.xrpl.transport import HttpxTransport, JsonRpcTransport

__all__ = [
    "AccountInfoResult",
    "AccountLinesResult",
    "DEFAULT_RESULT_TABLE",
    "FeeResult",
    "GatewayBalancesResult",
    "HttpxTransport",
    "JsonRpcClient",
    "JsonRpcTransport",
    "ResultClass",
    "ResultTable",
    "SubmitResult",
    "TxStatusResult",
    "XRPLClient",
    "classify_engine_result",
    "load_result_table",
]
