"""
Data models for BNB Smart Chain wallet and token insight.

This module defines the raw upstream shapes returned by the fetchers, the
canonical portfolio and holder models returned to callers, and the CSV
column layouts used for report output.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

# Synthetic identifier for the chain's native gas asset (BNB)
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"

# Wrapped BNB contract, displayed as the native asset
WRAPPED_NATIVE_ADDRESS = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"

NATIVE_SYMBOL = "BNB"
NATIVE_NAME = "BNB"
NATIVE_DECIMALS = 18

# CSV column order for output
TOKEN_CSV_COLUMNS = [
    "contract_address",
    "name",
    "symbol",
    "balance",
    "price_per_token",
    "value",
    "decimals",
]

NFT_CSV_COLUMNS = [
    "contract_address",
    "token_id",
    "name",
    "collection_name",
    "image_url",
]

HOLDER_CSV_COLUMNS = [
    "rank",
    "owner",
    "balance",
    "percentage",
    "classification",
]

TOKEN_LIST_CSV_COLUMNS = [
    "address",
    "name",
    "symbol",
    "decimals",
    "logo_uri",
]


def to_decimal(raw_balance: int, decimals: int) -> Decimal:
    """Convert a raw integer amount to decimal units (raw / 10**decimals)."""
    if decimals <= 0:
        return Decimal(raw_balance)
    return Decimal(raw_balance) / Decimal(10**decimals)


def format_decimal(value: Decimal) -> str:
    """Format a Decimal in fixed-point notation without trailing zeros."""
    formatted = format(value, "f")
    if "." in formatted:
        formatted = formatted.rstrip("0").rstrip(".")
    return formatted or "0"


@dataclass
class TokenInfo:
    """Token metadata as reported by the block explorer."""

    contract_address: str
    name: str
    symbol: str
    decimals: int
    total_supply: int  # Raw integer supply


@dataclass
class HolderBalance:
    """A raw holder balance from an indexer's top-holders query."""

    address: str
    raw_balance: int


@dataclass
class TransferEvent:
    """A single token transfer event from the explorer's transfer log."""

    from_address: str
    to_address: str
    value: int  # Raw integer amount
    block_number: int = 0
    tx_hash: str = ""


@dataclass
class TransferLog:
    """
    A token's transfer log as far as the explorer would page through it.

    `complete` is False when paging stopped at the page cap or the explorer's
    result window before reaching the end of the log.
    """

    events: List[TransferEvent] = field(default_factory=list)
    complete: bool = True


@dataclass(frozen=True)
class Holder:
    """
    One address holding a token.

    Holders are immutable once built; classification is attached by
    producing a new record with dataclasses.replace.
    """

    owner: str
    balance: Decimal
    classification: Optional[str] = None
    percentage: Optional[Decimal] = None  # Share of total supply, 0-100

    def to_csv_row(self, rank: int) -> List[str]:
        """Convert holder to a CSV row (list of strings)."""
        return [
            str(rank),
            self.owner,
            format_decimal(self.balance),
            format_decimal(self.percentage) if self.percentage is not None else "",
            self.classification or "",
        ]


@dataclass
class HolderStats:
    """Result of classifying the top holders of a token."""

    total_holders: int  # -1 when the owner set is too large to count
    top_holders: List[Holder]
    total_supply: Decimal
    token: Optional[TokenInfo] = None


@dataclass
class RawFungibleToken:
    """A fungible token balance as returned by the portfolio provider."""

    contract_address: str
    name: Optional[str]
    symbol: Optional[str]
    decimals: int
    raw_balance: int
    price_per_token: Optional[Decimal] = None
    image_url: Optional[str] = None


@dataclass
class RawNFT:
    """A non-fungible token record as returned by the portfolio provider."""

    contract_address: str
    token_id: str
    name: Optional[str] = None
    image_url: Optional[str] = None
    collection_name: Optional[str] = None
    symbol: Optional[str] = None
    contract_type: Optional[str] = None  # ERC721 or ERC1155


@dataclass
class Token:
    """Canonical fungible token entry in a portfolio."""

    contract_address: str
    name: str
    symbol: str
    decimals: int
    balance: Decimal  # Decimal units, raw / 10**decimals
    price_per_token: Decimal
    image_url: str = ""

    @property
    def value(self) -> Decimal:
        """USD value of the holding."""
        return self.balance * self.price_per_token

    def to_csv_row(self) -> List[str]:
        """Convert token to a CSV row (list of strings)."""
        return [
            self.contract_address,
            self.name,
            self.symbol,
            format_decimal(self.balance),
            format_decimal(self.price_per_token),
            format_decimal(self.value),
            str(self.decimals),
        ]


@dataclass
class NFT:
    """Canonical non-fungible token entry in a portfolio."""

    contract_address: str
    token_id: str
    name: str = ""
    image_url: str = ""
    collection_name: str = ""
    symbol: str = ""

    def to_csv_row(self) -> List[str]:
        """Convert NFT to a CSV row (list of strings)."""
        return [
            self.contract_address,
            self.token_id,
            self.name,
            self.collection_name,
            self.image_url,
        ]


@dataclass
class Portfolio:
    """
    Aggregated view of a wallet.

    total_value is the sum of balance * price_per_token over tokens. The
    native asset, when present, is always tokens[0].
    """

    address: str
    total_value: Decimal
    tokens: List[Token] = field(default_factory=list)
    nfts: List[NFT] = field(default_factory=list)


@dataclass
class TokenPrice:
    """Spot price and 24h statistics for a token."""

    price: Decimal
    market_cap: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    price_change_24h: Optional[Decimal] = None


@dataclass
class TokenListEntry:
    """An entry in the public token list used for search."""

    address: str
    name: str
    symbol: str
    decimals: int
    logo_uri: Optional[str] = None

    def to_csv_row(self) -> List[str]:
        """Convert entry to a CSV row (list of strings)."""
        return [
            self.address,
            self.name,
            self.symbol,
            str(self.decimals),
            self.logo_uri or "",
        ]


@dataclass
class NativeBalance:
    """Native asset balance of a wallet with its USD price."""

    address: str
    balance: Decimal
    price: Decimal

    @property
    def value(self) -> Decimal:
        return self.balance * self.price
