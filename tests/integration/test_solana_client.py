"""Integration tests for the Solana client — RPC fallback and error handling."""
from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

from lending_client.chains.solana import SolanaClient
from lending_client.config import ClusterConfig
from lending_client.errors import ErrorKind, RpcError, TransactionError, classify


@pytest.fixture()
def client() -> SolanaClient:
    return SolanaClient(
        ClusterConfig(
            rpc_endpoints=(
                "https://rpc1.example.com",
                "https://rpc2.example.com",
                "https://rpc3.example.com",
            ),
            rpc_timeout=5,
            confirm_poll_interval=0.0,
        )
    )


def _mock_response(response_data: dict) -> AsyncMock:
    mock_response = AsyncMock()
    mock_response.json = AsyncMock(return_value=response_data)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)
    return mock_response


def _mock_session(
    response_data: dict | list[dict] | None = None, error: Exception | None = None
):
    """Create a mock aiohttp session that returns given data (in order) or raises error."""
    mock_session = AsyncMock()
    if error:
        mock_session.post = MagicMock(side_effect=error)
    elif isinstance(response_data, list):
        mock_session.post = MagicMock(side_effect=[_mock_response(d) for d in response_data])
    else:
        mock_session.post = MagicMock(return_value=_mock_response(response_data or {}))
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    return mock_session


def _patched(mock_session):
    session = patch(
        "lending_client.chains.solana.client.aiohttp.ClientSession", return_value=mock_session
    )
    connector = patch("lending_client.chains.solana.client.aiohttp.TCPConnector")
    return session, connector


class TestRpcCall:
    @pytest.mark.asyncio
    async def test_successful_call(self, client: SolanaClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": {"data": "ok"}})

        session, connector = _patched(mock_session)
        with session, connector:
            result = await client.rpc_call("test_method", [])

        assert result == {"data": "ok"}

    @pytest.mark.asyncio
    async def test_rpc_error_raises_without_fallback(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "error": {"code": -32000, "message": "bad"}}
        )

        session, connector = _patched(mock_session)
        with session, connector:
            with pytest.raises(RpcError, match="RPC Error"):
                await client.rpc_call("test_method", [])

        assert mock_session.post.call_count == 1
        assert client.current_rpc_index == 0

    @pytest.mark.asyncio
    async def test_preflight_failure_carries_logs(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            {
                "jsonrpc": "2.0",
                "error": {
                    "code": -32002,
                    "message": "Transaction simulation failed",
                    "data": {"logs": ["Program log: account already in use"]},
                },
            }
        )

        session, connector = _patched(mock_session)
        with session, connector:
            with pytest.raises(TransactionError) as exc_info:
                await client.rpc_call("sendTransaction", [])

        assert exc_info.value.logs == ("Program log: account already in use",)

    @pytest.mark.asyncio
    async def test_fallback_on_connection_error(self, client: SolanaClient) -> None:
        """When first endpoint fails, should try the next one."""
        call_count = 0
        success_response = _mock_response({"jsonrpc": "2.0", "result": {"ok": True}})

        def side_effect(*args, **kwargs):
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise ConnectionError("first endpoint down")
            return success_response

        mock_session = AsyncMock()
        mock_session.post = MagicMock(side_effect=side_effect)
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=None)

        session, connector = _patched(mock_session)
        with session, connector:
            result = await client.rpc_call("test_method", [])

        assert result == {"ok": True}
        assert client.current_rpc_index == 1

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self, client: SolanaClient) -> None:
        mock_session = _mock_session(error=ConnectionError("down"))

        session, connector = _patched(mock_session)
        with session, connector:
            with pytest.raises(RpcError, match="All RPC endpoints failed"):
                await client.rpc_call("test_method", [])

        assert mock_session.post.call_count == 3


class TestGetAccountInfo:
    @pytest.mark.asyncio
    async def test_missing_account_is_none(self, client: SolanaClient) -> None:
        mock_session = _mock_session({"result": {"context": {"slot": 1}, "value": None}})

        session, connector = _patched(mock_session)
        with session, connector:
            assert await client.get_account_info(Pubkey.new_unique()) is None

    @pytest.mark.asyncio
    async def test_decodes_data(self, client: SolanaClient) -> None:
        raw = b"\x01\x02\x03"
        mock_session = _mock_session(
            {
                "result": {
                    "context": {"slot": 1},
                    "value": {"data": [base64.b64encode(raw).decode(), "base64"]},
                }
            }
        )

        session, connector = _patched(mock_session)
        with session, connector:
            assert await client.get_account_info(Pubkey.new_unique()) == raw

    @pytest.mark.asyncio
    async def test_transport_failure_propagates(self, client: SolanaClient) -> None:
        mock_session = _mock_session(error=ConnectionError("down"))

        session, connector = _patched(mock_session)
        with session, connector:
            with pytest.raises(RpcError):
                await client.get_account_info(Pubkey.new_unique())


class TestGetProgramAccounts:
    @pytest.mark.asyncio
    async def test_passes_filters(self, client: SolanaClient) -> None:
        address = Pubkey.new_unique()
        mock_session = _mock_session(
            {
                "result": [
                    {
                        "pubkey": str(address),
                        "account": {"data": [base64.b64encode(b"abc").decode(), "base64"]},
                    }
                ]
            }
        )
        filters = [{"memcmp": {"offset": 0, "bytes": "AAAA", "encoding": "base64"}}]

        session, connector = _patched(mock_session)
        with session, connector:
            accounts = await client.get_program_accounts(Pubkey.new_unique(), filters)

        assert accounts == [(address, b"abc")]
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["method"] == "getProgramAccounts"
        assert payload["params"][1]["filters"] == filters


class TestConfirmTransaction:
    @pytest.mark.asyncio
    async def test_confirmed(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            [
                {"result": {"value": [None]}},
                {"result": 10},
                {"result": {"value": [{"err": None, "confirmationStatus": "processed"}]}},
                {"result": {"value": [{"err": None, "confirmationStatus": "confirmed"}]}},
            ]
        )

        session, connector = _patched(mock_session)
        with session, connector:
            await client.confirm_transaction(Signature.default(), last_valid_block_height=100)

        assert mock_session.post.call_count == 4

    @pytest.mark.asyncio
    async def test_failed_transaction(self, client: SolanaClient) -> None:
        mock_session = _mock_session(
            [
                {"result": {"value": [{"err": {"InstructionError": [0, "Custom"]}}]}},
                {"result": None},
            ]
        )

        session, connector = _patched(mock_session)
        with session, connector:
            with pytest.raises(TransactionError, match="failed") as exc_info:
                await client.confirm_transaction(Signature.default(), 100)

        assert exc_info.value.logs == ()

    @pytest.mark.asyncio
    async def test_failed_transaction_fetches_logs(self, client: SolanaClient) -> None:
        """A race lost after preflight only shows up in the landed transaction's logs."""
        logs = [
            "Program 11111111111111111111111111111111 invoke [2]",
            "Allocate: account Address { address: Abc, base: None } already in use",
            "Program 11111111111111111111111111111111 failed: custom program error: 0x0",
        ]
        mock_session = _mock_session(
            [
                {"result": {"value": [{"err": {"InstructionError": [0, {"Custom": 0}]}}]}},
                {"result": {"slot": 5, "meta": {"err": {}, "logMessages": logs}}},
            ]
        )

        session, connector = _patched(mock_session)
        with session, connector:
            with pytest.raises(TransactionError) as exc_info:
                await client.confirm_transaction(Signature.default(), 100)

        assert exc_info.value.logs == tuple(logs)
        assert classify(exc_info.value).kind is ErrorKind.BENIGN_DUPLICATE
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["method"] == "getTransaction"
        assert payload["params"][1] == {
            "commitment": "confirmed",
            "encoding": "json",
            "maxSupportedTransactionVersion": 0,
        }

    @pytest.mark.asyncio
    async def test_expired_blockhash(self, client: SolanaClient) -> None:
        mock_session = _mock_session([{"result": {"value": [None]}}, {"result": 101}])

        session, connector = _patched(mock_session)
        with session, connector:
            with pytest.raises(TransactionError, match="expired"):
                await client.confirm_transaction(Signature.default(), 100)


class TestLatestBlockhash:
    @pytest.mark.asyncio
    async def test_parses(self, client: SolanaClient) -> None:
        blockhash = Hash.new_unique()
        mock_session = _mock_session(
            {
                "result": {
                    "value": {"blockhash": str(blockhash), "lastValidBlockHeight": 321}
                }
            }
        )

        session, connector = _patched(mock_session)
        with session, connector:
            assert await client.get_latest_blockhash() == (blockhash, 321)
