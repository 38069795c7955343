"""
JSON-RPC clients for the chain node and the Ankr advanced multichain API.

RpcClient covers the plain node methods (native balance, deployed code).
AnkrClient adds the indexed wallet queries used to build portfolios:
fungible balances with prices and NFT holdings, both paginated.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from .errors import FetchError, RateLimited
from .http import DEFAULT_TIMEOUT, HttpClient
from .models import NATIVE_TOKEN_ADDRESS, RawFungibleToken, RawNFT

DEFAULT_RPC_URL = "https://bsc-dataseed.binance.org"
ANKR_MULTICHAIN_URL = "https://rpc.ankr.com/multichain"

ANKR_BLOCKCHAIN = "bsc"

# JSON-RPC error codes providers use for throttling
RATE_LIMIT_ERROR_CODES = {429, -32005, -32090}


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class RpcClient(HttpClient):
    """Client for a chain node's JSON-RPC endpoint."""

    def __init__(
        self,
        url: str = DEFAULT_RPC_URL,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        super().__init__(timeout=timeout, **kwargs)
        self.url = url

    def _request(self, method: str, params: Any, request_id: int = 1) -> Any:
        """
        Make a JSON-RPC request.

        Args:
            method: JSON-RPC method name
            params: Method parameters
            request_id: JSON-RPC request ID

        Returns:
            The 'result' field from the JSON-RPC response

        Raises:
            RateLimited: When the node reports throttling
            FetchError: For HTTP and JSON-RPC errors
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": request_id,
        }

        data = self._post(self.url, payload)

        if isinstance(data, dict) and "error" in data:
            error = data["error"]
            if isinstance(error, dict):
                code = error.get("code")
                message = error.get("message", str(error))
            else:
                code = None
                message = str(error)
            message = self._sanitize_error_message(message)
            if code in RATE_LIMIT_ERROR_CODES or "rate limit" in message.lower():
                raise RateLimited(f"RPC error: {message}", status_code=code)
            raise FetchError(f"RPC error: {message}", status_code=code)

        if not isinstance(data, dict):
            raise FetchError(f"Unexpected RPC response for {method}")

        return data.get("result")

    def get_native_balance(self, address: str) -> int:
        """
        Get native BNB balance for a wallet.

        Returns:
            Balance in wei (as integer)
        """
        result = self._request("eth_getBalance", [address, "latest"])
        return int(result or "0x0", 16)

    def get_code(self, address: str) -> str:
        """Get the deployed bytecode at an address ("0x" for none)."""
        result = self._request("eth_getCode", [address, "latest"])
        return result or "0x"

    def is_contract(self, address: str) -> bool:
        """Return True if the address has deployed contract bytecode."""
        return self.get_code(address) not in ("0x", "0x0")


class AnkrClient(RpcClient):
    """
    Client for Ankr's advanced multichain API.

    Both wallet queries paginate through nextPageToken until exhausted.
    """

    def __init__(
        self,
        api_key: str = "",
        url: Optional[str] = None,
        blockchain: str = ANKR_BLOCKCHAIN,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        if url is None:
            url = f"{ANKR_MULTICHAIN_URL}/{api_key}" if api_key else ANKR_MULTICHAIN_URL
        super().__init__(url=url, timeout=timeout, secret=api_key or None, **kwargs)
        self.blockchain = blockchain

    def get_account_balance(self, address: str) -> List[RawFungibleToken]:
        """
        Get all fungible token balances (native included) for a wallet.

        The native asset has no contract address upstream and is mapped to
        NATIVE_TOKEN_ADDRESS.

        Args:
            address: Wallet address

        Returns:
            List of RawFungibleToken objects in upstream order
        """
        tokens: List[RawFungibleToken] = []
        page_token: Optional[str] = None

        while True:
            params: Dict[str, Any] = {
                "blockchain": self.blockchain,
                "walletAddress": address,
                "onlyWhitelisted": False,
                "pageSize": 100,
            }
            if page_token:
                params["pageToken"] = page_token

            result = self._request("ankr_getAccountBalance", params) or {}

            for asset in result.get("assets", []):
                contract = asset.get("contractAddress")
                if not contract:
                    if asset.get("tokenType") != "NATIVE":
                        continue
                    contract = NATIVE_TOKEN_ADDRESS

                tokens.append(
                    RawFungibleToken(
                        contract_address=contract,
                        name=asset.get("tokenName"),
                        symbol=asset.get("tokenSymbol"),
                        decimals=int(asset.get("tokenDecimals") or 0),
                        raw_balance=int(asset.get("balanceRawInteger") or 0),
                        price_per_token=_parse_decimal(asset.get("tokenPrice")),
                        image_url=asset.get("thumbnail") or None,
                    )
                )

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return tokens

    def get_nfts(self, address: str) -> List[RawNFT]:
        """
        Get all NFTs (ERC-721 and ERC-1155) owned by a wallet.

        Args:
            address: Wallet address

        Returns:
            List of RawNFT objects in upstream order
        """
        nfts: List[RawNFT] = []
        page_token: Optional[str] = None

        while True:
            params: Dict[str, Any] = {
                "blockchain": self.blockchain,
                "walletAddress": address,
                "pageSize": 50,
            }
            if page_token:
                params["pageToken"] = page_token

            result = self._request("ankr_getNFTsByOwner", params) or {}

            for asset in result.get("assets", []):
                nfts.append(
                    RawNFT(
                        contract_address=asset.get("contractAddress", ""),
                        token_id=str(asset.get("tokenId", "")),
                        name=asset.get("name"),
                        image_url=asset.get("imageUrl"),
                        collection_name=asset.get("collectionName"),
                        symbol=asset.get("symbol"),
                        contract_type=asset.get("contractType"),
                    )
                )

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return nfts
