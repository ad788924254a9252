import asyncio
import itertools
import json
from datetime import datetime
from http import HTTPStatus
from typing import Any

import aiohttp
from pydantic import TypeAdapter, ValidationError

from src.interfaces.errors import LedgerTimeoutError, LedgerUnreachableError, SubmissionRejectedError
from src.interfaces.ledger import LedgerTransaction, Transfer, TransferFrom
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

history_adapter = TypeAdapter(list[LedgerTransaction])


class LedgerClient:
    """Thin client over the ledger network REST API (history reads) and JSON-RPC API (submissions)."""

    def __init__(self, rest_api_url: str, json_rpc_url: str, timeout_seconds: float, history_limit: int = 25):
        self.rest_api_url = rest_api_url.rstrip("/")
        self.json_rpc_url = json_rpc_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.history_limit = history_limit
        self.__request_ids = itertools.count(1)

    async def account_history(self, address: str, offset: int = 0) -> list[LedgerTransaction]:
        """Page of the most recent transactions touching the account, pending ones included"""
        url = f"{self.rest_api_url}/account/{address}/history/{offset}/{self.history_limit}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status != HTTPStatus.OK:
                        body = await response.text()
                        logger.error(f"Ledger history request for {address} returned {response.status}: {body}")
                        raise LedgerUnreachableError(f"Ledger history API returned a non-200 code: {response.status}")
                    body = await response.text()
        except asyncio.TimeoutError:
            raise LedgerTimeoutError()
        except aiohttp.ClientError as e:
            logger.error(f"Error fetching ledger history of {address}: {str(e)}")
            raise LedgerUnreachableError()

        try:
            return history_adapter.validate_json(body)
        except ValidationError as e:
            logger.error(f"Malformed ledger history of {address}: {body} ({str(e)})")
            raise LedgerUnreachableError("Ledger history API returned a malformed response")

    async def submit_txs_batch(self, txs: list[tuple[dict[str, Any], str | None]]) -> list[str]:
        """
        Submit transactions as a single batch, executed all together or not at all.

        Args:
            txs: Pairs of serialized transaction and optional Ethereum signature

        Returns:
            The hashes of the submitted transactions
        """
        params = [
            [
                {
                    "tx": tx,
                    "signature": None
                    if eth_signature is None
                    else {"type": "EthereumSignature", "signature": eth_signature},
                }
                for tx, eth_signature in txs
            ]
        ]
        return await self.__rpc_call("submit_txs_batch", params)

    async def __rpc_call(self, method: str, params: list[Any]) -> Any:
        request = {"jsonrpc": "2.0", "id": next(self.__request_ids), "method": method, "params": params}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.json_rpc_url, json=request) as response:
                    if response.status != HTTPStatus.OK:
                        body = await response.text()
                        logger.error(f"Ledger JSON-RPC {method} returned {response.status}: {body}")
                        raise LedgerUnreachableError(f"Ledger JSON-RPC API returned a non-200 code: {response.status}")
                    body = await response.text()
        except asyncio.TimeoutError:
            raise LedgerTimeoutError()
        except aiohttp.ClientError as e:
            logger.error(f"Error calling ledger JSON-RPC {method}: {str(e)}")
            raise LedgerUnreachableError()

        try:
            data = json.loads(body)
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.error(f"Malformed ledger JSON-RPC {method} response: {body}")
            raise LedgerUnreachableError("Ledger JSON-RPC API returned a malformed response")

        if data.get("error") is not None:
            # The raw error stays in the logs
            logger.warning(f"Ledger JSON-RPC {method} rejected: {data['error']}")
            raise SubmissionRejectedError()
        return data.get("result")


def latest_activity(history: list[LedgerTransaction]) -> datetime | None:
    """
    Timestamp of the most recent transaction that is pending or succeeded.

    Failed transactions are ignored, so a single failed renewal doesn't freeze the
    subscription at its timestamp.
    """
    relevant = [tx for tx in history if not tx.failed]
    if not relevant:
        return None
    return max(tx.created_at for tx in relevant)


class LedgerStatusReader:
    def __init__(self, client: LedgerClient, max_pages: int = 10):
        self.client = client
        self.max_pages = max_pages

    async def last_activity(self, wallet: str) -> datetime | None:
        """
        Walks the history pages until one holds a pending or succeeded transaction.

        Raises:
            LedgerUnreachableError, LedgerTimeoutError: The activity is unknown, not absent
        """
        offset = 0
        for _ in range(self.max_pages):
            page = await self.client.account_history(wallet, offset)
            activity = latest_activity(page)
            if activity is not None or len(page) < self.client.history_limit:
                return activity
            offset += len(page)

        logger.warning(f"No successful transaction of {wallet} in the last {offset} history entries")
        raise LedgerUnreachableError("Wallet history holds too many failed transactions to be read")


class LedgerTransactionSubmitter:
    def __init__(self, client: LedgerClient):
        self.client = client

    async def submit_batch(self, transfer_to_sub: TransferFrom, burn_tx: Transfer, burn_tx_eth_signature: str) -> None:
        """Send the subscription transfer and its burn in one atomic batch, only the burn carries a signature"""
        txs = [
            (transfer_to_sub.model_dump(mode="json", by_alias=True), None),
            (burn_tx.model_dump(mode="json", by_alias=True), burn_tx_eth_signature),
        ]
        tx_hashes = await self.client.submit_txs_batch(txs)
        logger.debug(f"Submitted subscription batch to {transfer_to_sub.to}: {tx_hashes}")
