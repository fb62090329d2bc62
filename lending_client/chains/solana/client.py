"""Solana JSON-RPC client with fallback support."""
import asyncio
import base64
import logging
import ssl
from typing import Any

import aiohttp
import certifi
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from ...config import ClusterConfig
from ...errors import RpcError, TransactionError

logger = logging.getLogger(__name__)

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}

# JSON-RPC codes returned when the node rejects a transaction at preflight.
_TX_REJECTION_CODES = {-32002, -32003}


def _decode_account_data(account: dict[str, Any]) -> bytes:
    data = account.get("data") or ["", "base64"]
    return base64.b64decode(data[0])


def _raise_for_rpc_error(error: dict[str, Any]) -> None:
    message = error.get("message", str(error))
    data = error.get("data") or {}
    logs = data.get("logs") if isinstance(data, dict) else None
    if logs is not None or error.get("code") in _TX_REJECTION_CODES:
        raise TransactionError(message, logs or [])
    raise RpcError(f"RPC Error: {error}")


class SolanaClient:
    """Solana RPC client with automatic endpoint fallback.

    Only transport failures move on to the next endpoint. A JSON-RPC error
    is the ledger's answer and is raised immediately.
    """

    def __init__(self, config: ClusterConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.commitment = config.commitment
        self.poll_interval = config.confirm_poll_interval
        self.current_rpc_index = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

            if rpc_index != self.current_rpc_index:
                logger.info("Switched to RPC endpoint: %s", rpc_url)
                self.current_rpc_index = rpc_index

            if "error" in result:
                _raise_for_rpc_error(result["error"])
            return result.get("result")

        raise RpcError(f"All RPC endpoints failed. Last error: {last_error}")

    async def get_account_info(self, address: Pubkey) -> bytes | None:
        """Fetch raw account data, or None when the account does not exist."""
        result = await self.rpc_call(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": self.commitment}],
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        return _decode_account_data(value)

    async def get_program_accounts(
        self, program_id: Pubkey, filters: list[dict[str, Any]] | None = None
    ) -> list[tuple[Pubkey, bytes]]:
        """List every account owned by a program, optionally filtered."""
        options: dict[str, Any] = {"encoding": "base64", "commitment": self.commitment}
        if filters:
            options["filters"] = filters
        result = await self.rpc_call("getProgramAccounts", [str(program_id), options])
        return [
            (Pubkey.from_string(item["pubkey"]), _decode_account_data(item["account"]))
            for item in result or []
        ]

    async def get_latest_blockhash(self) -> tuple[Hash, int]:
        result = await self.rpc_call(
            "getLatestBlockhash", [{"commitment": self.commitment}]
        )
        value = result["value"]
        return Hash.from_string(value["blockhash"]), int(value["lastValidBlockHeight"])

    async def send_transaction(self, tx: Transaction) -> Signature:
        """Submit a signed transaction; preflight rejections raise TransactionError."""
        encoded = base64.b64encode(bytes(tx)).decode("ascii")
        result = await self.rpc_call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )
        return Signature.from_string(result)

    async def confirm_transaction(
        self, signature: Signature, last_valid_block_height: int
    ) -> None:
        """Wait until the signature reaches the configured commitment.

        Gives up only when the blockhash has expired, never on a timer.
        """
        wanted = _COMMITMENT_RANK.get(self.commitment, 1)
        while True:
            result = await self.rpc_call(
                "getSignatureStatuses",
                [[str(signature)], {"searchTransactionHistory": False}],
            )
            status = (result or {}).get("value", [None])[0]
            if status is not None:
                if status.get("err") is not None:
                    raise TransactionError(
                        f"Transaction {signature} failed: {status['err']}",
                        await self._transaction_logs(signature),
                    )
                reached = _COMMITMENT_RANK.get(status.get("confirmationStatus") or "", -1)
                if reached >= wanted:
                    logger.debug("Transaction %s reached %s", signature, self.commitment)
                    return
            else:
                height = await self.rpc_call(
                    "getBlockHeight", [{"commitment": self.commitment}]
                )
                if int(height) > last_valid_block_height:
                    raise TransactionError(
                        f"Transaction {signature} expired before confirmation"
                    )
            await asyncio.sleep(self.poll_interval)

    async def _transaction_logs(self, signature: Signature) -> list[str]:
        """Program logs of a landed transaction, empty if the node has none."""
        # getTransaction does not accept "processed"
        commitment = "confirmed" if self.commitment == "processed" else self.commitment
        result = await self.rpc_call(
            "getTransaction",
            [
                str(signature),
                {
                    "commitment": commitment,
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        meta = (result or {}).get("meta") or {}
        return list(meta.get("logMessages") or [])
