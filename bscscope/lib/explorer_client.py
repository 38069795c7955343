"""
Block explorer API client (Etherscan-compatible v2 API, BNB Smart Chain).

The explorer wraps every response in a {status, message, result} envelope.
A status other than "1" signals an application-level error, which is
distinct from an HTTP failure and is mapped to FetchError here. Empty
"No ... found" envelopes on list endpoints are treated as empty results.
"""

import logging
from typing import Any, Dict, List

from .errors import FetchError, RateLimited, ResultWindowExceeded, TokenNotFound
from .http import DEFAULT_TIMEOUT, HttpClient
from .models import HolderBalance, TokenInfo, TransferEvent, TransferLog

logger = logging.getLogger(__name__)

DEFAULT_EXPLORER_URL = "https://api.etherscan.io/v2/api"
BSC_CHAIN_ID = 56

# Transfer log pagination
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES = 100

# page * offset may not exceed this on paged endpoints
RESULT_WINDOW = 10_000


def _is_no_data(message: str, result: Any) -> bool:
    return message.lower().startswith("no ") and not result


class ExplorerClient(HttpClient):
    """
    Client for the block explorer REST API.

    All calls are API-key authenticated and scoped to one chain id.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_EXPLORER_URL,
        chain_id: int = BSC_CHAIN_ID,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        """
        Initialize the explorer client.

        Args:
            api_key: Explorer API key
            base_url: API endpoint
            chain_id: EVM chain id passed as the chainid parameter
            timeout: Request timeout in seconds
        """
        super().__init__(timeout=timeout, secret=api_key, **kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self.chain_id = chain_id

    def _request(self, params: Dict[str, Any], allow_empty: bool = False) -> Any:
        """
        Make an explorer request and unwrap the response envelope.

        Args:
            params: Query parameters (module, action, ...)
            allow_empty: Treat "No ... found" envelopes as an empty list

        Returns:
            The 'result' field of the envelope

        Raises:
            RateLimited: When the explorer reports its rate limit
            ResultWindowExceeded: When a paged query asks past RESULT_WINDOW
            FetchError: For HTTP failures and application-level errors
        """
        query = {"chainid": self.chain_id, **params, "apikey": self.api_key}
        data = self._get(self.base_url, params=query)

        if not isinstance(data, dict) or "status" not in data:
            raise FetchError("Unexpected explorer response: missing status envelope")

        status = str(data.get("status"))
        message = str(data.get("message") or "")
        result = data.get("result")

        if status == "1":
            return result

        detail = result if isinstance(result, str) else ""
        if "rate limit" in detail.lower() or "rate limit" in message.lower():
            raise RateLimited(f"Explorer error: {detail or message}")

        if allow_empty and _is_no_data(message, result):
            return []

        text = f"{message}: {detail}" if detail else message
        if "result window" in text.lower():
            raise ResultWindowExceeded(f"Explorer error: {self._sanitize_error_message(text)}")
        raise FetchError(f"Explorer error: {self._sanitize_error_message(text)}")

    def get_token_info(self, contract: str) -> TokenInfo:
        """
        Get metadata (name, symbol, decimals, total supply) for a token contract.

        Args:
            contract: Token contract address

        Returns:
            TokenInfo object

        Raises:
            TokenNotFound: If the explorer has no such token
        """
        result = self._request(
            {"module": "token", "action": "tokeninfo", "contractaddress": contract},
            allow_empty=True,
        )
        if not result:
            raise TokenNotFound(f"Token not found: {contract}")

        item = result[0] if isinstance(result, list) else result
        return TokenInfo(
            contract_address=item.get("contractAddress") or contract,
            name=item.get("tokenName") or item.get("name") or "",
            symbol=item.get("symbol") or "",
            decimals=int(item.get("divisor") or item.get("decimals") or 0),
            total_supply=int(item.get("totalSupply") or 0),
        )

    def get_top_holders(self, contract: str, limit: int = 100) -> List[HolderBalance]:
        """
        Get the largest holders of a token from the explorer's indexer.

        Args:
            contract: Token contract address
            limit: Maximum number of holders to request

        Returns:
            List of HolderBalance objects with raw balances
        """
        result = self._request(
            {
                "module": "token",
                "action": "tokenholderlist",
                "contractaddress": contract,
                "page": 1,
                "offset": limit,
            },
            allow_empty=True,
        )
        return [
            HolderBalance(
                address=item.get("TokenHolderAddress", ""),
                raw_balance=int(item.get("TokenHolderQuantity") or 0),
            )
            for item in result
        ]

    def get_transfer_events(
        self, contract: str, page: int = 1, offset: int = DEFAULT_PAGE_SIZE
    ) -> List[TransferEvent]:
        """
        Get one page of token transfer events, oldest first.

        Args:
            contract: Token contract address
            page: 1-based page number
            offset: Page size

        Returns:
            List of TransferEvent objects in upstream order
        """
        result = self._request(
            {
                "module": "account",
                "action": "tokentx",
                "contractaddress": contract,
                "page": page,
                "offset": offset,
                "sort": "asc",
            },
            allow_empty=True,
        )
        return [
            TransferEvent(
                from_address=tx.get("from", ""),
                to_address=tx.get("to", ""),
                value=int(tx.get("value") or 0),
                block_number=int(tx.get("blockNumber") or 0),
                tx_hash=tx.get("hash", ""),
            )
            for tx in result
        ]

    def get_transfer_log(
        self,
        contract: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> TransferLog:
        """
        Fetch the transfer log of a token, page by page.

        Paging ends at a short or empty page, which means the whole log was
        read. It also ends, leaving the log incomplete, at the page cap, at
        the last page inside RESULT_WINDOW, or when the explorer answers with
        a result-window error.

        Args:
            contract: Token contract address
            page_size: Events per page
            max_pages: Maximum number of pages to fetch

        Returns:
            TransferLog with events in upstream order
        """
        last_page = min(max_pages, RESULT_WINDOW // page_size)
        events: List[TransferEvent] = []
        for page in range(1, last_page + 1):
            try:
                batch = self.get_transfer_events(contract, page=page, offset=page_size)
            except ResultWindowExceeded as e:
                logger.debug("Transfer log for %s stopped at page %d: %s", contract, page, e)
                return TransferLog(events=events, complete=False)
            events.extend(batch)
            if len(batch) < page_size:
                return TransferLog(events=events, complete=True)

        logger.debug("Transfer log for %s truncated after %d pages", contract, last_page)
        return TransferLog(events=events, complete=False)
