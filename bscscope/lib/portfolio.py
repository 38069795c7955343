"""
Wallet portfolio aggregation.

transform_to_portfolio merges raw fungible balances, prices and NFT records
into the canonical Portfolio shape. PortfolioService fetches the raw inputs
concurrently and applies the transform.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import List, Optional, Sequence, Set, Tuple, Union

from .errors import AggregationError, FetchError, RateLimited
from .models import (
    NATIVE_DECIMALS,
    NATIVE_NAME,
    NATIVE_SYMBOL,
    NATIVE_TOKEN_ADDRESS,
    NFT,
    WRAPPED_NATIVE_ADDRESS,
    NativeBalance,
    Portfolio,
    RawFungibleToken,
    RawNFT,
    Token,
    to_decimal,
)
from .price_client import PriceClient
from .rpc_client import AnkrClient, RpcClient
from .validators import require_address

logger = logging.getLogger(__name__)

Threshold = Union[Decimal, float, int, str]

# Minimum USD value for a token to appear in a portfolio
DEFAULT_DUST_THRESHOLD = Decimal("1")
# The agent-facing summary view
TOP_VIEW_DUST_THRESHOLD = Decimal("0.01")
TOP_VIEW_MAX_TOKENS = 10

_NATIVE_IDS = {NATIVE_TOKEN_ADDRESS.lower(), WRAPPED_NATIVE_ADDRESS.lower()}


def is_native_contract(contract_address: str) -> bool:
    """Return True for the native sentinel and the wrapped native contract."""
    return (contract_address or "").lower() in _NATIVE_IDS


def _as_decimal(value: Threshold) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _move_native_first(tokens: List[Token], native_symbol: str) -> List[Token]:
    for index, token in enumerate(tokens):
        if token.symbol == native_symbol:
            return [token] + tokens[:index] + tokens[index + 1 :]
    return tokens


def transform_to_portfolio(
    address: str,
    fungible_tokens: Sequence[RawFungibleToken],
    nfts: Sequence[RawNFT],
    dust_threshold: Threshold,
    native_symbol: str = NATIVE_SYMBOL,
    native_name: str = NATIVE_NAME,
) -> Portfolio:
    """
    Normalize raw wallet data into a Portfolio.

    - Wrapped BNB is displayed as the native asset (its balance is not
      merged with native BNB).
    - A token is kept if it is the native asset with a positive balance, or
      if balance * price exceeds dust_threshold.
    - Raw balances are converted to decimal units via token decimals.
    - Only the first entry with the native symbol is kept; duplicate
      contracts are collapsed.
    - The native entry is moved to index 0; other tokens keep upstream order.
    - NFTs are collapsed by (contract, token id), missing display fields
      default to "".

    Args:
        address: Wallet address
        fungible_tokens: Raw fungible balances from the provider
        nfts: Raw NFT records from the provider
        dust_threshold: Minimum USD value for non-native tokens

    Returns:
        Portfolio whose total_value is the sum of balance * price over tokens
    """
    threshold = _as_decimal(dust_threshold)

    tokens: List[Token] = []
    seen_contracts: Set[str] = set()
    native_seen = False

    for raw in fungible_tokens:
        native = is_native_contract(raw.contract_address)
        balance = to_decimal(raw.raw_balance, raw.decimals)
        price = raw.price_per_token if raw.price_per_token is not None else Decimal(0)

        if native:
            if raw.raw_balance <= 0:
                continue
        elif balance * price <= threshold:
            continue

        symbol = native_symbol if native else (raw.symbol or "")
        contract_key = raw.contract_address.lower()
        if contract_key in seen_contracts:
            continue
        if symbol == native_symbol:
            if native_seen:
                continue
            native_seen = True
        seen_contracts.add(contract_key)

        tokens.append(
            Token(
                contract_address=raw.contract_address,
                name=native_name if native else (raw.name or ""),
                symbol=symbol,
                decimals=raw.decimals,
                balance=balance,
                price_per_token=price,
                image_url=raw.image_url or "",
            )
        )

    total_value = sum((token.value for token in tokens), Decimal(0))

    canonical_nfts: List[NFT] = []
    seen_nfts: Set[Tuple[str, str]] = set()
    for raw_nft in nfts:
        key = (raw_nft.contract_address.lower(), raw_nft.token_id)
        if key in seen_nfts:
            continue
        seen_nfts.add(key)
        canonical_nfts.append(
            NFT(
                contract_address=raw_nft.contract_address,
                token_id=raw_nft.token_id,
                name=raw_nft.name or "",
                image_url=raw_nft.image_url or "",
                collection_name=raw_nft.collection_name or "",
                symbol=raw_nft.symbol or "",
            )
        )

    return Portfolio(
        address=address,
        total_value=total_value,
        tokens=_move_native_first(tokens, native_symbol),
        nfts=canonical_nfts,
    )


def top_tokens_view(
    portfolio: Portfolio,
    max_tokens: int = TOP_VIEW_MAX_TOKENS,
    dust_threshold: Threshold = TOP_VIEW_DUST_THRESHOLD,
    native_symbol: str = NATIVE_SYMBOL,
) -> Portfolio:
    """
    Reduce a portfolio to its most valuable tokens.

    The native entry stays first; the remaining tokens above the threshold
    are sorted by descending value and capped so that at most `max_tokens`
    entries are returned. total_value is recomputed over the returned list.
    """
    threshold = _as_decimal(dust_threshold)
    native = next((t for t in portfolio.tokens if t.symbol == native_symbol), None)
    others = sorted(
        (t for t in portfolio.tokens if t.symbol != native_symbol and t.value > threshold),
        key=lambda t: t.value,
        reverse=True,
    )

    if native is not None:
        tokens = [native] + others[: max(max_tokens - 1, 0)]
    else:
        tokens = others[:max_tokens]

    return Portfolio(
        address=portfolio.address,
        total_value=sum((t.value for t in tokens), Decimal(0)),
        tokens=tokens,
        nfts=list(portfolio.nfts),
    )


class PortfolioService:
    """
    Fetches and aggregates wallet data.

    Token balances are required: their failure raises AggregationError
    (RateLimited is re-raised unchanged so callers can back off). NFTs and
    prices are enrichment: their failure is logged and degraded.
    """

    def __init__(
        self,
        ankr: AnkrClient,
        rpc: Optional[RpcClient] = None,
        prices: Optional[PriceClient] = None,
        dust_threshold: Threshold = DEFAULT_DUST_THRESHOLD,
    ):
        """
        Initialize the service.

        Args:
            ankr: Provider for fungible balances and NFTs
            rpc: Node client for native balance lookups
            prices: Price feed for the native asset
            dust_threshold: Default minimum USD value for portfolio tokens
        """
        self.ankr = ankr
        self.rpc = rpc
        self.prices = prices
        self.dust_threshold = _as_decimal(dust_threshold)

    def get_portfolio(self, address: str, dust_threshold: Optional[Threshold] = None) -> Portfolio:
        """
        Build the portfolio of a wallet.

        Args:
            address: Wallet address
            dust_threshold: Override for the service's default threshold

        Returns:
            Normalized Portfolio

        Raises:
            ValidationError: If the address is malformed (no request is made)
            RateLimited: If the balance provider throttles the request
            AggregationError: If token balances cannot be fetched
        """
        require_address(address, "wallet address")
        threshold = self.dust_threshold if dust_threshold is None else dust_threshold

        with ThreadPoolExecutor(max_workers=2) as pool:
            tokens_future = pool.submit(self.ankr.get_account_balance, address)
            nfts_future = pool.submit(self.ankr.get_nfts, address)

            try:
                fungible = tokens_future.result()
            except RateLimited:
                raise
            except FetchError as e:
                raise AggregationError(f"Failed to fetch token balances for {address}: {e}") from e

            try:
                nfts = nfts_future.result()
            except FetchError as e:
                logger.warning("Failed to fetch NFTs for %s, continuing without them: %s", address, e)
                nfts = []

        return transform_to_portfolio(address, fungible, nfts, threshold)

    def get_top_portfolio(
        self,
        address: str,
        max_tokens: int = TOP_VIEW_MAX_TOKENS,
        dust_threshold: Threshold = TOP_VIEW_DUST_THRESHOLD,
    ) -> Portfolio:
        """
        Build the portfolio and reduce it with top_tokens_view.

        dust_threshold replaces the service default for this call, so tokens
        between the two thresholds are kept.
        """
        portfolio = self.get_portfolio(address, dust_threshold=dust_threshold)
        return top_tokens_view(portfolio, max_tokens=max_tokens, dust_threshold=dust_threshold)

    def get_native_balance(self, address: str) -> NativeBalance:
        """
        Get the native BNB balance of a wallet together with its USD price.

        Balance and price are fetched concurrently; a price failure degrades
        to a price of 0.

        Raises:
            ValidationError: If the address is malformed (no request is made)
            FetchError: If the balance lookup fails
        """
        require_address(address, "wallet address")
        if self.rpc is None or self.prices is None:
            raise AggregationError("Native balance lookup requires an RPC client and a price client")

        with ThreadPoolExecutor(max_workers=2) as pool:
            balance_future = pool.submit(self.rpc.get_native_balance, address)
            price_future = pool.submit(self.prices.get_native_price)

            wei = balance_future.result()
            try:
                price = price_future.result()
            except FetchError as e:
                logger.warning("Failed to fetch %s price: %s", NATIVE_SYMBOL, e)
                price = Decimal(0)

        return NativeBalance(address=address, balance=to_decimal(wei, NATIVE_DECIMALS), price=price)
