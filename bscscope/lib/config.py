"""
Runtime settings.

Settings are read from BSCSCOPE_* environment variables. The CLI loads a
.env file first (python-dotenv) and lets command-line flags override
individual values.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from .domain_client import DEFAULT_DOMAIN_API_URL
from .errors import ValidationError
from .explorer_client import BSC_CHAIN_ID, DEFAULT_EXPLORER_URL
from .holders import DEFAULT_CHUNK_SIZE, STRATEGIES, STRATEGY_TOP_HOLDERS
from .http import DEFAULT_TIMEOUT
from .portfolio import DEFAULT_DUST_THRESHOLD, TOP_VIEW_DUST_THRESHOLD
from .price_client import DEFAULT_COINGECKO_URL
from .rpc_client import DEFAULT_RPC_URL
from .token_search import DEFAULT_CACHE_TTL, DEFAULT_TOKEN_LIST_URL

ENV_PREFIX = "BSCSCOPE_"


@dataclass
class Settings:
    """Endpoints, credentials and tuning knobs for all clients and services."""

    explorer_api_key: str = ""
    explorer_url: str = DEFAULT_EXPLORER_URL
    chain_id: int = BSC_CHAIN_ID
    rpc_url: str = DEFAULT_RPC_URL
    ankr_api_key: str = ""
    ankr_url: Optional[str] = None
    coingecko_url: str = DEFAULT_COINGECKO_URL
    coingecko_api_key: Optional[str] = None
    token_list_url: str = DEFAULT_TOKEN_LIST_URL
    domain_api_url: str = DEFAULT_DOMAIN_API_URL
    http_timeout: float = DEFAULT_TIMEOUT
    token_list_ttl: float = DEFAULT_CACHE_TTL
    dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD
    top_view_dust_threshold: Decimal = TOP_VIEW_DUST_THRESHOLD
    holder_strategy: str = STRATEGY_TOP_HOLDERS
    holder_chunk_size: int = DEFAULT_CHUNK_SIZE
    known_addresses_path: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)

        Returns:
            Settings with defaults for unset variables

        Raises:
            ValidationError: If a numeric or enumerated variable is malformed
        """
        env = os.environ if env is None else env

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        defaults = cls()
        settings = cls(
            explorer_api_key=get("EXPLORER_API_KEY") or "",
            explorer_url=get("EXPLORER_URL") or defaults.explorer_url,
            chain_id=_parse_int("CHAIN_ID", get("CHAIN_ID"), defaults.chain_id),
            rpc_url=get("RPC_URL") or defaults.rpc_url,
            ankr_api_key=get("ANKR_API_KEY") or "",
            ankr_url=get("ANKR_URL"),
            coingecko_url=get("COINGECKO_URL") or defaults.coingecko_url,
            coingecko_api_key=get("COINGECKO_API_KEY"),
            token_list_url=get("TOKEN_LIST_URL") or defaults.token_list_url,
            domain_api_url=get("DOMAIN_API_URL") or defaults.domain_api_url,
            http_timeout=_parse_float("HTTP_TIMEOUT", get("HTTP_TIMEOUT"), defaults.http_timeout),
            token_list_ttl=_parse_float(
                "TOKEN_LIST_TTL", get("TOKEN_LIST_TTL"), defaults.token_list_ttl
            ),
            dust_threshold=_parse_decimal(
                "DUST_THRESHOLD", get("DUST_THRESHOLD"), defaults.dust_threshold
            ),
            top_view_dust_threshold=_parse_decimal(
                "TOP_VIEW_DUST_THRESHOLD",
                get("TOP_VIEW_DUST_THRESHOLD"),
                defaults.top_view_dust_threshold,
            ),
            holder_strategy=get("HOLDER_STRATEGY") or defaults.holder_strategy,
            holder_chunk_size=_parse_int(
                "HOLDER_CHUNK_SIZE", get("HOLDER_CHUNK_SIZE"), defaults.holder_chunk_size
            ),
            known_addresses_path=get("KNOWN_ADDRESSES_PATH"),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Check enumerated and ranged values."""
        if self.holder_strategy not in STRATEGIES:
            raise ValidationError(
                f"Unsupported holder strategy: {self.holder_strategy}. "
                f"Supported: {', '.join(STRATEGIES)}"
            )
        if self.holder_chunk_size < 1:
            raise ValidationError("Holder chunk size must be at least 1")
        if self.http_timeout <= 0:
            raise ValidationError("HTTP timeout must be positive")


def _parse_int(name: str, value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValidationError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from e


def _parse_float(name: str, value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValidationError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from e


def _parse_decimal(name: str, value: Optional[str], default: Decimal) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise ValidationError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from e
