"""
Unit tests for the JSON-RPC node and Ankr clients.

Tests follow the Given/When/Then pattern for clarity.
"""

import json
from decimal import Decimal

import pytest
import responses

from bscscope.lib.errors import FetchError, RateLimited
from bscscope.lib.models import NATIVE_TOKEN_ADDRESS
from bscscope.lib.rpc_client import ANKR_MULTICHAIN_URL, AnkrClient, RpcClient

RPC_URL = "https://rpc.test"


def _result(result):
    return {"jsonrpc": "2.0", "id": 1, "result": result}


class TestRpcClient:
    """Tests for plain node methods."""

    @responses.activate
    def test_get_native_balance_parses_hex(self, sample_wallet_address):
        """
        Given a node returning a hex balance
        When fetching the native balance
        Then the integer wei amount should be returned
        """
        # Given
        client = RpcClient(RPC_URL)
        responses.add(responses.POST, RPC_URL, json=_result(hex(5 * 10**18)))

        # When
        balance = client.get_native_balance(sample_wallet_address)

        # Then
        assert balance == 5 * 10**18
        body = json.loads(responses.calls[0].request.body)
        assert body["method"] == "eth_getBalance"
        assert body["params"] == [sample_wallet_address, "latest"]

    @responses.activate
    def test_is_contract_checks_deployed_code(self, sample_wallet_address):
        client = RpcClient(RPC_URL)
        responses.add(responses.POST, RPC_URL, json=_result("0x6080604052"))
        responses.add(responses.POST, RPC_URL, json=_result("0x"))

        assert client.is_contract(sample_wallet_address) is True
        assert client.is_contract(sample_wallet_address) is False

    @responses.activate
    def test_rpc_error_message_is_preserved(self, sample_wallet_address):
        """
        Given a node that returns a JSON-RPC error
        When calling a method
        Then FetchError should carry the upstream message verbatim
        """
        client = RpcClient(RPC_URL)
        responses.add(
            responses.POST,
            RPC_URL,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "header not found"}},
        )

        with pytest.raises(FetchError, match="RPC error: header not found") as exc_info:
            client.get_code(sample_wallet_address)

        assert not isinstance(exc_info.value, RateLimited)

    @responses.activate
    def test_rpc_throttling_code_raises_rate_limited(self, sample_wallet_address):
        client = RpcClient(RPC_URL)
        responses.add(
            responses.POST,
            RPC_URL,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "limit exceeded"}},
        )

        with pytest.raises(RateLimited):
            client.get_code(sample_wallet_address)


class TestAnkrClient:
    """Tests for the Ankr advanced API wallet queries."""

    def test_url_includes_api_key(self):
        assert AnkrClient("secret").url == f"{ANKR_MULTICHAIN_URL}/secret"

    @responses.activate
    def test_get_account_balance_follows_page_tokens(self, sample_wallet_address):
        """
        Given a balance response split across two pages
        When fetching account balances
        Then both pages should be combined and the native asset mapped to the sentinel address
        """
        # Given
        client = AnkrClient(url=RPC_URL)
        responses.add(
            responses.POST,
            RPC_URL,
            json=_result(
                {
                    "assets": [
                        {
                            "tokenType": "NATIVE",
                            "tokenName": "BNB",
                            "tokenSymbol": "BNB",
                            "tokenDecimals": 18,
                            "balanceRawInteger": "2000000000000000000",
                            "tokenPrice": "300.5",
                        }
                    ],
                    "nextPageToken": "page-2",
                }
            ),
        )
        responses.add(
            responses.POST,
            RPC_URL,
            json=_result(
                {
                    "assets": [
                        {
                            "tokenType": "ERC20",
                            "contractAddress": "0x0E09FaBB73Bd3Ade0a17ECC321fD13a19e81cE82",
                            "tokenName": "PancakeSwap Token",
                            "tokenSymbol": "CAKE",
                            "tokenDecimals": 18,
                            "balanceRawInteger": "1000000000000000000",
                            "tokenPrice": "2",
                            "thumbnail": "https://img/cake.png",
                        }
                    ],
                    "nextPageToken": "",
                }
            ),
        )

        # When
        tokens = client.get_account_balance(sample_wallet_address)

        # Then
        assert [t.symbol for t in tokens] == ["BNB", "CAKE"]
        assert tokens[0].contract_address == NATIVE_TOKEN_ADDRESS
        assert tokens[0].raw_balance == 2 * 10**18
        assert tokens[0].price_per_token == Decimal("300.5")
        assert tokens[1].image_url == "https://img/cake.png"

        second = json.loads(responses.calls[1].request.body)
        assert second["method"] == "ankr_getAccountBalance"
        assert second["params"]["pageToken"] == "page-2"
        assert second["params"]["blockchain"] == "bsc"

    @responses.activate
    def test_get_nfts_parses_assets(self, sample_wallet_address):
        client = AnkrClient(url=RPC_URL)
        responses.add(
            responses.POST,
            RPC_URL,
            json=_result(
                {
                    "assets": [
                        {
                            "contractAddress": "0xnft",
                            "tokenId": 7,
                            "name": "Bunny #7",
                            "collectionName": "Pancake Bunnies",
                            "contractType": "ERC721",
                        }
                    ]
                }
            ),
        )

        nfts = client.get_nfts(sample_wallet_address)

        assert len(nfts) == 1
        assert nfts[0].token_id == "7"
        assert nfts[0].collection_name == "Pancake Bunnies"
        assert nfts[0].image_url is None
        assert len(responses.calls) == 1

    @responses.activate
    def test_http_429_raises_rate_limited(self, sample_wallet_address):
        client = AnkrClient(url=RPC_URL)
        responses.add(responses.POST, RPC_URL, status=429)

        with pytest.raises(RateLimited):
            client.get_account_balance(sample_wallet_address)
        assert len(responses.calls) == 1
