"""
Output formatters for portfolio, holder and token search reports.

This module handles CSV file generation with timestamp-based filenames,
conversion of result models to JSON-friendly structures, and the plain-text
presentation used by the agent tools.
"""

import csv
import dataclasses
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, TextIO, Tuple

from .models import (
    HOLDER_CSV_COLUMNS,
    NFT_CSV_COLUMNS,
    TOKEN_CSV_COLUMNS,
    TOKEN_LIST_CSV_COLUMNS,
    Holder,
    Portfolio,
    TokenListEntry,
)


def generate_timestamp() -> str:
    """
    Generate a timestamp string for filenames.

    Returns:
        Timestamp in YYYYMMDD_HHMMSS format
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def generate_filenames(
    base_path: str, timestamp: Optional[str] = None, companion: str = "nfts"
) -> Tuple[str, str]:
    """
    Generate timestamped filenames for a main CSV file and its companion.

    Args:
        base_path: Base output path (e.g., "portfolio.csv")
        timestamp: Optional timestamp to use (generates new one if not provided)
        companion: Suffix of the companion file

    Returns:
        Tuple of (main_file_path, companion_file_path)

    Examples:
        generate_filenames("portfolio.csv", "20241214_153022")
        -> ("portfolio_20241214_153022.csv", "portfolio_20241214_153022_nfts.csv")
    """
    if timestamp is None:
        timestamp = generate_timestamp()

    path = Path(base_path)
    stem = path.stem
    suffix = path.suffix or ".csv"
    parent = path.parent

    main_file = parent / f"{stem}_{timestamp}{suffix}"
    companion_file = parent / f"{stem}_{timestamp}_{companion}{suffix}"

    return str(main_file), str(companion_file)


def write_rows_to_stream(columns: Sequence[str], rows: Iterable[List[str]], stream: TextIO) -> None:
    """
    Write a header and rows to a CSV stream.

    Args:
        columns: Header row
        rows: Data rows
        stream: File-like object to write to
    """
    writer = csv.writer(stream)
    writer.writerow(columns)
    for row in rows:
        writer.writerow(row)


def _write_file(path: str, columns: Sequence[str], rows: Iterable[List[str]]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        write_rows_to_stream(columns, rows, f)


def write_portfolio_csv(
    portfolio: Portfolio,
    output_path: Optional[str] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Write a portfolio's tokens and NFTs to CSV files or stdout.

    Args:
        portfolio: Portfolio to write
        output_path: Base output path. If None, writes tokens to stdout.

    Returns:
        Tuple of (tokens_file_path, nfts_file_path) if output_path provided,
        otherwise (None, None). The NFT file is only written when the
        portfolio holds NFTs.
    """
    token_rows = [token.to_csv_row() for token in portfolio.tokens]

    if output_path is None:
        write_rows_to_stream(TOKEN_CSV_COLUMNS, token_rows, sys.stdout)
        return None, None

    tokens_file, nfts_file = generate_filenames(output_path)
    _write_file(tokens_file, TOKEN_CSV_COLUMNS, token_rows)

    if portfolio.nfts:
        _write_file(nfts_file, NFT_CSV_COLUMNS, [nft.to_csv_row() for nft in portfolio.nfts])
        return tokens_file, nfts_file

    return tokens_file, None


def write_holders_csv(holders: Sequence[Holder], output_path: Optional[str] = None) -> Optional[str]:
    """Write ranked holders to a timestamped CSV file, or stdout if no path is given."""
    rows = [holder.to_csv_row(rank) for rank, holder in enumerate(holders, start=1)]
    if output_path is None:
        write_rows_to_stream(HOLDER_CSV_COLUMNS, rows, sys.stdout)
        return None
    path, _ = generate_filenames(output_path)
    _write_file(path, HOLDER_CSV_COLUMNS, rows)
    return path


def write_tokens_csv(
    tokens: Sequence[TokenListEntry], output_path: Optional[str] = None
) -> Optional[str]:
    """Write token search results to a timestamped CSV file, or stdout if no path is given."""
    rows = [token.to_csv_row() for token in tokens]
    if output_path is None:
        write_rows_to_stream(TOKEN_LIST_CSV_COLUMNS, rows, sys.stdout)
        return None
    path, _ = generate_filenames(output_path)
    _write_file(path, TOKEN_LIST_CSV_COLUMNS, rows)
    return path


def to_jsonable(value: Any) -> Any:
    """
    Convert result models into JSON-friendly structures.

    Dataclasses become dicts (including their computed `value` where
    defined), Decimals become floats, and containers are converted
    recursively.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result = {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
        if isinstance(getattr(type(value), "value", None), property):
            result["value"] = to_jsonable(value.value)
        return result
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Mapping):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def _usd(amount: Any) -> str:
    return f"${float(amount or 0):,.2f}"


def _amount(amount: Any) -> str:
    return f"{float(amount or 0):,.6g}"


def render_error(error: str) -> str:
    return f"Error: {error}"


def render_portfolio(data: Mapping[str, Any]) -> str:
    """Render a portfolio dict (as produced by to_jsonable) as text."""
    lines = [
        f"Wallet {data['address']}",
        f"Total value: {_usd(data['total_value'])}",
    ]
    for token in data.get("tokens", []):
        lines.append(
            f"  {token['symbol'] or '?':<10} {_amount(token['balance']):>16} "
            f"@ {_usd(token['price_per_token'])} = {_usd(token.get('value'))}"
        )
    nfts = data.get("nfts", [])
    if nfts:
        lines.append(f"NFTs: {len(nfts)}")
        for nft in nfts:
            label = nft.get("name") or f"#{nft['token_id']}"
            collection = nft.get("collection_name")
            lines.append(f"  {label} ({collection})" if collection else f"  {label}")
    return "\n".join(lines)


def render_holders(data: Mapping[str, Any]) -> str:
    """Render holder stats as text."""
    total = data["total_holders"]
    total_text = "too many to count" if total == -1 else f"{total:,}"
    lines = [
        f"Total holders: {total_text}",
        f"Total supply: {_amount(data['total_supply'])}",
    ]
    for rank, holder in enumerate(data.get("top_holders", []), start=1):
        share = holder.get("percentage")
        share_text = f" ({share:.2f}%)" if share is not None else ""
        lines.append(
            f"  {rank:>2}. {holder['owner']} {_amount(holder['balance'])}{share_text} "
            f"[{holder.get('classification') or 'Unknown'}]"
        )
    return "\n".join(lines)


def render_tokens(data: Sequence[Mapping[str, Any]]) -> str:
    """Render token search results as text."""
    if not data:
        return "No tokens found"
    return "\n".join(f"{token['symbol']} - {token['name']} ({token['address']})" for token in data)


def render_token_price(data: Mapping[str, Any]) -> str:
    """Render a token with its price as text."""
    token = data["token"]
    price = data["price"]
    lines = [f"{token['symbol']} ({token['address']}): {_usd(price['price'])}"]
    if price.get("market_cap") is not None:
        lines.append(f"  Market cap: {_usd(price['market_cap'])}")
    if price.get("volume_24h") is not None:
        lines.append(f"  24h volume: {_usd(price['volume_24h'])}")
    if price.get("price_change_24h") is not None:
        lines.append(f"  24h change: {price['price_change_24h']:+.2f}%")
    return "\n".join(lines)


def render_native_balance(data: Mapping[str, Any]) -> str:
    """Render a native balance as text."""
    return (
        f"{data['address']}: {_amount(data['balance'])} BNB "
        f"@ {_usd(data['price'])} = {_usd(data.get('value'))}"
    )
