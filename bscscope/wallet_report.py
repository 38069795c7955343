#!/usr/bin/env python3
"""
Report BNB Smart Chain wallet and token data.

This script queries a wallet's portfolio, a token's top holders, the public
token list, or a token's price, and writes CSV reports (or a short text
summary for prices).
"""

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from dotenv import load_dotenv

from bscscope.lib.backoff import DEFAULT_MAX_RETRIES, call_with_backoff
from bscscope.lib.config import Settings
from bscscope.lib.errors import BscScopeError, RateLimited
from bscscope.lib.formatters import (
    write_holders_csv,
    write_portfolio_csv,
    write_tokens_csv,
)
from bscscope.lib.holders import STRATEGIES
from bscscope.lib.tools import Toolkit, create_toolkit
from bscscope.lib.validators import is_valid_domain


def log(message: str) -> None:
    """Log a progress message to stderr."""
    print(f"[bsc] {message}", file=sys.stderr)


def usd_threshold(value: str) -> Decimal:
    """argparse type for a non-negative USD amount."""
    try:
        threshold = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value!r}")
    if threshold < 0:
        raise argparse.ArgumentTypeError(f"amount must not be negative: {value!r}")
    return threshold


def resolve_wallet(toolkit: Toolkit, wallet: str) -> str:
    """Resolve a .bnb domain to an address; addresses are returned unchanged."""
    if not is_valid_domain(wallet):
        return wallet
    log(f"Resolving {wallet}...")
    address = toolkit.domains.resolve(wallet)
    if address is None:
        raise BscScopeError(f"Domain is not registered: {wallet}")
    log(f"{wallet} -> {address}")
    return address


def report_portfolio(toolkit: Toolkit, parsed_args: argparse.Namespace) -> None:
    wallet = resolve_wallet(toolkit, parsed_args.wallet)
    log(f"Fetching portfolio for {wallet}...")
    portfolio = call_with_backoff(
        lambda: toolkit.portfolio.get_portfolio(wallet, dust_threshold=parsed_args.threshold),
        max_retries=parsed_args.max_retries,
    )
    log(f"Found {len(portfolio.tokens)} tokens worth ${portfolio.total_value:,.2f}")
    if portfolio.nfts:
        log(f"Found {len(portfolio.nfts)} NFTs")

    tokens_file, nfts_file = write_portfolio_csv(portfolio, parsed_args.output)
    if tokens_file:
        print(f"\nResults written to: {tokens_file}", file=sys.stderr)
        if nfts_file:
            print(f"NFTs written to: {nfts_file}", file=sys.stderr)


def report_holders(toolkit: Toolkit, parsed_args: argparse.Namespace) -> None:
    holders = toolkit.holders
    if parsed_args.strategy:
        holders.strategy = parsed_args.strategy
    log(f"Fetching top {parsed_args.limit} holders of {parsed_args.token} ({holders.strategy})...")
    stats = call_with_backoff(
        lambda: holders.get_holders_classification(parsed_args.token, limit=parsed_args.limit),
        max_retries=parsed_args.max_retries,
    )
    if stats.total_holders < 0:
        log("Holder count: too many to count")
    else:
        log(f"Holder count: {stats.total_holders:,}")

    path = write_holders_csv(stats.top_holders, parsed_args.output)
    if path:
        print(f"\nResults written to: {path}", file=sys.stderr)


def report_search(toolkit: Toolkit, parsed_args: argparse.Namespace) -> None:
    log(f"Searching token list for {parsed_args.query!r}...")
    results = call_with_backoff(
        lambda: toolkit.search.search(parsed_args.query),
        max_retries=parsed_args.max_retries,
    )
    log(f"Found {len(results)} matching tokens")

    path = write_tokens_csv(results, parsed_args.output)
    if path:
        print(f"\nResults written to: {path}", file=sys.stderr)


def report_price(toolkit: Toolkit, parsed_args: argparse.Namespace) -> None:
    tool = toolkit.tools["getBSCTokenPrice"]
    result = call_with_backoff(
        lambda: _raise_if_rate_limited(tool.run({"tokenAddress": parsed_args.token})),
        max_retries=parsed_args.max_retries,
    )
    if not result["success"]:
        raise BscScopeError(result["error"])
    print(tool.present(result))


def _raise_if_rate_limited(result: dict) -> dict:
    if result.get("rate_limited"):
        raise RateLimited(result["error"])
    return result


COMMANDS = {
    "portfolio": report_portfolio,
    "holders": report_holders,
    "search": report_search,
    "price": report_price,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query BNB Smart Chain wallets and tokens and generate CSV reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Wallet portfolio, output to stdout
  %(prog)s portfolio 0x...

  # Resolve a domain and save the portfolio to file
  %(prog)s portfolio alice.bnb --output portfolio.csv

  # Top 20 holders of a token
  %(prog)s holders 0x... --limit 20 --output holders.csv

Settings are read from BSCSCOPE_* environment variables (a .env file is loaded).
        """,
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=DEFAULT_MAX_RETRIES,
        help=f"Retries when an upstream rate limits requests (default: {DEFAULT_MAX_RETRIES})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    portfolio = subparsers.add_parser("portfolio", help="Wallet token and NFT holdings")
    portfolio.add_argument("wallet", help="Wallet address or .bnb domain")
    portfolio.add_argument(
        "--threshold",
        type=usd_threshold,
        help="Minimum USD value for a token to be listed (default: BSCSCOPE_DUST_THRESHOLD or 1)",
    )
    portfolio.add_argument(
        "--output",
        help="Output file path (timestamp auto-appended). If not specified, outputs to stdout.",
    )

    holders = subparsers.add_parser("holders", help="Top holders of a token, classified")
    holders.add_argument("token", help="Token contract address")
    holders.add_argument("--limit", type=int, default=10, help="Number of holders (default: 10)")
    holders.add_argument(
        "--strategy",
        choices=STRATEGIES,
        help="Holder data source (default: BSCSCOPE_HOLDER_STRATEGY or top_holders)",
    )
    holders.add_argument(
        "--output",
        help="Output file path (timestamp auto-appended). If not specified, outputs to stdout.",
    )

    search = subparsers.add_parser("search", help="Search the token list")
    search.add_argument("query", help="Token name, symbol or address")
    search.add_argument(
        "--output",
        help="Output file path (timestamp auto-appended). If not specified, outputs to stdout.",
    )

    price = subparsers.add_parser("price", help="Current USD price of a token")
    price.add_argument("token", help="Token contract address")

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parsed_args = build_parser().parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    load_dotenv()

    try:
        settings = Settings.from_env()
        if parsed_args.command == "portfolio" and parsed_args.threshold is None:
            parsed_args.threshold = settings.dust_threshold
        toolkit = create_toolkit(settings)
        COMMANDS[parsed_args.command](toolkit, parsed_args)
    except BscScopeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
