from typing import Any, Dict, Optional

import httpx
from loguru import logger

from ...domain.models.deposit import Deposit
from ...domain.models.primitives import Amount
from ...ports.ledger_reader import LedgerReaderPort, LedgerReadError


class HttpLedgerReader(LedgerReaderPort):
    """
    Pull-based ledger reader over a JSON HTTP indexer.

    - Balance via /accounts/{account}/balance
    - Deposit count via /accounts/{account}/deposits/count
    - Deposit records via /accounts/{account}/deposits/{index}

    No retries here: a failed read fails the poll cycle and the poller tries
    again on its next tick.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def get_balance(self, account: str, token_address: Optional[str] = None) -> Amount:
        params = {"token": token_address} if token_address else None
        data = await self._request(f"/accounts/{account}/balance", params=params)
        return _to_amount(data, "balance")

    async def get_deposit_count(self, account: str) -> int:
        data = await self._request(f"/accounts/{account}/deposits/count")
        return _to_amount(data, "count")

    async def get_deposit(self, account: str, index: int) -> Deposit:
        data = await self._request(f"/accounts/{account}/deposits/{index}")
        try:
            return Deposit(
                deposit_id=Deposit.derive_id(account, index),
                amount=int(data["amount"]),
                deposit_time=int(data["depositTime"]),
                lock_duration=int(data["lockDuration"]),
                is_emergency=bool(data.get("isEmergency", False)),
                correlation_key=data.get("correlationKey"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerReadError(f"Malformed deposit {account}#{index}: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, path: str, params: Optional[dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.warning(f"LEDGER_HTTP | transport error | {path} | {type(exc).__name__}: {exc}")
            raise LedgerReadError(f"GET {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            logger.warning(f"LEDGER_HTTP | status {resp.status_code} | {path}")
            raise LedgerReadError(f"GET {path} returned {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise LedgerReadError(f"GET {path} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise LedgerReadError(f"GET {path} returned {type(data).__name__}, expected object")
        return data


def _to_amount(data: Dict[str, Any], field: str) -> int:
    try:
        # Amounts may arrive as decimal strings to survive JS number precision.
        return int(data[field])
    except (KeyError, TypeError, ValueError) as exc:
        raise LedgerReadError(f"Missing or invalid '{field}' in ledger response") from exc
