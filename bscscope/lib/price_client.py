"""
Price feed client (CoinGecko).
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from .errors import FetchError
from .http import DEFAULT_TIMEOUT, HttpClient
from .models import TokenPrice

DEFAULT_COINGECKO_URL = "https://api.coingecko.com/api/v3"
NATIVE_COINGECKO_ID = "binancecoin"
COINGECKO_PLATFORM = "binance-smart-chain"


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class PriceClient(HttpClient):
    """Client for CoinGecko spot prices."""

    def __init__(
        self,
        base_url: str = DEFAULT_COINGECKO_URL,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        super().__init__(timeout=timeout, secret=api_key, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"x-cg-demo-api-key": self.api_key}
        return {}

    def get_native_price(self) -> Decimal:
        """
        Get the current USD price of BNB.

        Raises:
            FetchError: If the feed has no price for the native asset
        """
        data = self._get(
            f"{self.base_url}/simple/price",
            params={"ids": NATIVE_COINGECKO_ID, "vs_currencies": "usd"},
            headers=self._headers(),
        )
        try:
            return Decimal(str(data[NATIVE_COINGECKO_ID]["usd"]))
        except (KeyError, TypeError) as e:
            raise FetchError(f"No price for {NATIVE_COINGECKO_ID} in response: {data}") from e

    def get_token_price(self, contract: str) -> Optional[TokenPrice]:
        """
        Get price and 24h statistics for a BEP-20 token by contract address.

        Args:
            contract: Token contract address

        Returns:
            TokenPrice, or None if the feed does not list the token
        """
        normalized = contract.lower()
        data = self._get(
            f"{self.base_url}/simple/token_price/{COINGECKO_PLATFORM}",
            params={
                "contract_addresses": normalized,
                "vs_currencies": "usd",
                "include_market_cap": "true",
                "include_24hr_vol": "true",
                "include_24hr_change": "true",
            },
            headers=self._headers(),
        )
        entry = data.get(normalized) if isinstance(data, dict) else None
        if not entry or entry.get("usd") is None:
            return None

        return TokenPrice(
            price=Decimal(str(entry["usd"])),
            market_cap=_optional_decimal(entry.get("usd_market_cap")),
            volume_24h=_optional_decimal(entry.get("usd_24h_vol")),
            price_change_24h=_optional_decimal(entry.get("usd_24h_change")),
        )
