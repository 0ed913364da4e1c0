"""
XRPL JSON-RPC client — real network implementation of XRPLClient.

Translates rippled JSON-RPC responses into the result dataclasses of
client.py. Uses an injectable transport (JsonRpcTransport) so the HTTP
layer can be swapped for test fakes without changing parsing logic.

No retry loops. No secrets. No ledger logic beyond response parsing.

Response parsing targets rippled JSON-RPC conventions:
    - Successful responses: {"result": {"status": "success", ...}}
    - Error responses: {"result": {"status": "error", "error": "...", ...}}
"""

from __future__ import annotations

import itertools
from types import TracebackType
from typing import Any

from ledger_issuance.errors import NetworkUnavailable, ResponseMismatch
from ledger_issuance.xrpl.client import (
    ACCOUNT_NOT_FOUND,
    SERVER_ERROR,
    AccountInfoResult,
    AccountLinesResult,
    FeeResult,
    GatewayBalancesResult,
    SubmitResult,
    TxStatusResult,
)
from ledger_issuance.xrpl.transport import HttpxTransport, JsonRpcTransport


class JsonRpcClient:
    """XRPL JSON-RPC client implementing the XRPLClient protocol.

    Request ids are unique per client instance, so concurrent calls over
    the shared transport can be told apart; a response echoing a
    different id raises ResponseMismatch.

    Args:
        url: The rippled JSON-RPC endpoint URL.
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(
        self,
        url: str,
        transport: JsonRpcTransport | None = None,
    ) -> None:
        self._url = url
        self._transport = transport or HttpxTransport()
        self._ids = itertools.count(1)

    @property
    def url(self) -> str:
        return self._url

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> JsonRpcClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        request_id = next(self._ids)
        payload = {"method": method, "params": [params], "id": request_id}
        response = await self._transport.post_json(self._url, payload)
        echoed = response.get("id")
        if echoed is not None and echoed != request_id:
            raise ResponseMismatch(
                f"{method}: response id {echoed!r} does not match request id {request_id}"
            )
        result: dict[str, Any] = response.get("result", {})
        return result

    # -----------------------------------------------------------------
    # XRPLClient protocol methods
    # -----------------------------------------------------------------

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult:
        result = await self._call("submit", {"tx_blob": signed_tx_blob_hex})
        return _parse_submit_response(result)

    async def get_tx(self, tx_hash: str) -> TxStatusResult:
        result = await self._call("tx", {"transaction": tx_hash, "binary": False})
        return _parse_tx_response(result)

    async def account_info(
        self, address: str, *, ledger_index: str | int = "validated"
    ) -> AccountInfoResult:
        result = await self._call(
            "account_info",
            {"account": address, "ledger_index": ledger_index, "strict": True},
        )
        return _parse_account_info_response(result)

    async def account_lines(
        self,
        address: str,
        *,
        peer: str | None = None,
        marker: Any = None,
        ledger_index: str | int = "validated",
    ) -> AccountLinesResult:
        params: dict[str, Any] = {"account": address, "ledger_index": ledger_index}
        if peer is not None:
            params["peer"] = peer
        if marker is not None:
            params["marker"] = marker
        result = await self._call("account_lines", params)
        return _parse_account_lines_response(result)

    async def gateway_balances(
        self,
        address: str,
        hotwallets: list[str],
        *,
        ledger_index: str | int = "validated",
    ) -> GatewayBalancesResult:
        params: dict[str, Any] = {
            "account": address,
            "ledger_index": ledger_index,
            "strict": True,
        }
        if hotwallets:
            params["hotwallet"] = list(hotwallets)
        result = await self._call("gateway_balances", params)
        return _parse_gateway_balances_response(result)

    async def fee(self) -> FeeResult:
        result = await self._call("fee", {})
        if result.get("status") == "error":
            raise NetworkUnavailable(f"fee: {_error_detail(result)}")
        return _parse_fee_response(result)

    async def validated_ledger_index(self) -> int:
        result = await self._call("ledger", {"ledger_index": "validated"})
        if result.get("status") == "error":
            raise NetworkUnavailable(f"ledger: {_error_detail(result)}")
        index = result.get("ledger_index")
        if index is None and isinstance(result.get("ledger"), dict):
            index = result["ledger"].get("ledger_index")
        if index is None:
            raise NetworkUnavailable("ledger: no validated ledger index in response")
        return int(index)


# =====================================================================
# Response parsing (pure functions, no I/O)
# =====================================================================


def _error_detail(result: dict[str, Any]) -> str:
    return str(result.get("error_message") or result.get("error") or "unknown server error")


def _parse_submit_response(result: dict[str, Any]) -> SubmitResult:
    """Parse a rippled submit result into SubmitResult.

    Handles:
        - Successful submit (engine_result present)
        - Server-level errors (status == "error")
        - Missing engine_result (returns accepted=False with detail)
    """
    if result.get("status") == "error":
        return SubmitResult(
            accepted=False,
            error_code=SERVER_ERROR,
            detail=_error_detail(result),
        )

    engine_result = result.get("engine_result")
    if engine_result is None:
        return SubmitResult(
            accepted=False,
            error_code=SERVER_ERROR,
            detail="no engine_result in submit response",
        )

    tx_hash = None
    tx_json = result.get("tx_json")
    if isinstance(tx_json, dict):
        tx_hash = tx_json.get("hash")

    # Older servers omit "accepted"; fall back to the result prefix.
    accepted = result.get("accepted")
    if accepted is None:
        accepted = engine_result == "tesSUCCESS" or engine_result.startswith("ter")

    return SubmitResult(
        accepted=bool(accepted),
        tx_hash=tx_hash,
        engine_result=engine_result,
        detail=result.get("engine_result_message"),
    )


def _parse_tx_response(result: dict[str, Any]) -> TxStatusResult:
    """Parse a rippled tx result into TxStatusResult.

    Handles:
        - Transaction found and validated
        - Transaction found but not yet validated
        - Transaction not found (txnNotFound error)
        - Server-level errors
    """
    if result.get("status") == "error":
        if result.get("error") == "txnNotFound":
            return TxStatusResult(found=False)
        return TxStatusResult(
            found=False,
            error_code=SERVER_ERROR,
            detail=_error_detail(result),
        )

    validated = bool(result.get("validated", False))
    ledger_index = result.get("ledger_index")

    engine_result = None
    meta = result.get("meta")
    if isinstance(meta, dict):
        engine_result = meta.get("TransactionResult")

    return TxStatusResult(
        found=True,
        validated=validated,
        ledger_index=int(ledger_index) if validated and ledger_index is not None else None,
        engine_result=engine_result,
    )


def _parse_account_info_response(result: dict[str, Any]) -> AccountInfoResult:
    if result.get("status") == "error":
        if result.get("error") == "actNotFound":
            return AccountInfoResult(found=False, error_code=ACCOUNT_NOT_FOUND)
        return AccountInfoResult(
            found=False,
            error_code=SERVER_ERROR,
            detail=_error_detail(result),
        )
    ledger_index = result.get("ledger_index", result.get("ledger_current_index"))
    return AccountInfoResult(
        found=True,
        account_data=dict(result.get("account_data") or {}),
        ledger_index=int(ledger_index) if ledger_index is not None else None,
        validated=bool(result.get("validated", False)),
    )


def _parse_account_lines_response(result: dict[str, Any]) -> AccountLinesResult:
    if result.get("status") == "error":
        if result.get("error") == "actNotFound":
            return AccountLinesResult(found=False, error_code=ACCOUNT_NOT_FOUND)
        return AccountLinesResult(
            found=False,
            error_code=SERVER_ERROR,
            detail=_error_detail(result),
        )
    ledger_index = result.get("ledger_index")
    return AccountLinesResult(
        found=True,
        lines=tuple(result.get("lines") or ()),
        marker=result.get("marker"),
        ledger_index=int(ledger_index) if ledger_index is not None else None,
    )


def _parse_gateway_balances_response(result: dict[str, Any]) -> GatewayBalancesResult:
    if result.get("status") == "error":
        if result.get("error") == "actNotFound":
            return GatewayBalancesResult(found=False, error_code=ACCOUNT_NOT_FOUND)
        return GatewayBalancesResult(
            found=False,
            error_code=SERVER_ERROR,
            detail=_error_detail(result),
        )
    ledger_index = result.get("ledger_index")
    return GatewayBalancesResult(
        found=True,
        obligations=dict(result.get("obligations") or {}),
        balances={
            holder: list(entries)
            for holder, entries in (result.get("balances") or {}).items()
        },
        ledger_index=int(ledger_index) if ledger_index is not None else None,
    )


def _parse_fee_response(result: dict[str, Any]) -> FeeResult:
    drops = result.get("drops") or {}
    base_fee = int(drops.get("base_fee", 10))
    current_index = result.get("ledger_current_index")
    return FeeResult(
        base_fee=base_fee,
        open_ledger_fee=int(drops.get("open_ledger_fee", base_fee)),
        minimum_fee=int(drops.get("minimum_fee", base_fee)),
        ledger_current_index=int(current_index) if current_index is not None else None,
    )
