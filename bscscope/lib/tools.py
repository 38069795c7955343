"""
Agent tool wrappers.

Each Tool binds a pydantic parameter schema, an execute function composing
the fetchers and services, and a plain-text presentation. Tool.run always
returns a tagged result:

    {"success": True, "data": ...}
    {"success": False, "error": "..."}            # plus "rate_limited": True on throttling

Parameters are validated before execute is called, so malformed input never
reaches a fetcher.

Usage:
    toolkit = create_toolkit(Settings.from_env())
    result = toolkit.run("getWalletPortfolio", {"walletAddress": "0x..."})
"""

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Dict, Mapping, Optional, Type, Union

import pydantic
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from . import formatters
from .config import Settings
from .domain_client import DomainClient
from .errors import BscScopeError, RateLimited, TokenNotFound
from .explorer_client import ExplorerClient
from .holders import HolderClassifier
from .known_addresses import load_known_addresses
from .portfolio import PortfolioService
from .price_client import PriceClient
from .rpc_client import AnkrClient, RpcClient
from .token_search import TokenListCache, TokenListClient, TokenSearch
from .validators import is_valid_address, is_valid_domain

logger = logging.getLogger(__name__)

MAX_HOLDER_LIMIT = 100
MAX_SEARCH_RESULTS = 50


def _check_address(value: str) -> str:
    if not is_valid_address(value):
        raise ValueError(f"Invalid address: {value!r}. Expected 0x followed by 40 hex characters.")
    return value


def _check_domain(value: str) -> str:
    if not is_valid_domain(value):
        raise ValueError("Invalid BNB domain format. Must be a valid BNB domain name.")
    return value


Address = Annotated[str, AfterValidator(_check_address)]
Domain = Annotated[str, AfterValidator(_check_domain)]


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class WalletParams(_Params):
    wallet_address: Address = Field(alias="walletAddress", description="BSC wallet address")


class TokenHoldersParams(_Params):
    mint: Address = Field(description="Token contract address")
    limit: int = Field(default=10, ge=1, le=MAX_HOLDER_LIMIT, description="Number of top holders")


class SearchTokenParams(_Params):
    query: str = Field(min_length=1, description="Token name, symbol, or address to search for")
    limit: int = Field(default=1, ge=1, le=MAX_SEARCH_RESULTS, description="Maximum results")


class TokenPriceParams(_Params):
    token_address: Address = Field(alias="tokenAddress", description="The token's contract address")


class DomainParams(_Params):
    domain: Domain = Field(description="A BNB domain name (e.g., example.bnb)")


def _validation_message(error: pydantic.ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def failure(error: str, **extra: Any) -> Dict[str, Any]:
    """Build a failure result."""
    return {"success": False, "error": error, **extra}


def success(data: Any) -> Dict[str, Any]:
    """Build a success result."""
    return {"success": True, "data": data}


@dataclass
class Tool:
    """
    A callable operation exposed to an agent orchestrator.

    execute receives the validated parameter model and returns any value
    accepted by formatters.to_jsonable.
    """

    name: str
    display_name: str
    description: str
    parameters: Type[BaseModel]
    execute: Callable[[Any], Any]
    render: Optional[Callable[[Any], str]] = None
    is_collapsible: bool = False

    def run(
        self, arguments: Union[Mapping[str, Any], str, bytes, None] = None
    ) -> Dict[str, Any]:
        """
        Validate arguments, execute, and return a tagged result.

        Arguments may be a mapping or a JSON object encoded as a string.
        No exception escapes this method.
        """
        if arguments is None:
            arguments = {}
        try:
            if isinstance(arguments, (str, bytes)):
                params = self.parameters.model_validate_json(arguments)
            elif isinstance(arguments, Mapping):
                params = self.parameters.model_validate(dict(arguments))
            else:
                return failure("Arguments must be an object")
        except pydantic.ValidationError as e:
            return failure(_validation_message(e))

        try:
            data = self.execute(params)
        except RateLimited as e:
            logger.warning("Tool %s rate limited: %s", self.name, e)
            return failure(str(e), rate_limited=True)
        except BscScopeError as e:
            return failure(str(e))
        except Exception as e:  # noqa: BLE001
            logger.exception("Tool %s failed", self.name)
            return failure(f"{self.display_name} failed: {e}")

        return success(formatters.to_jsonable(data))

    def present(self, result: Mapping[str, Any]) -> str:
        """Render a tagged result as text."""
        if not result.get("success"):
            return formatters.render_error(result.get("error", "Unknown error"))
        if self.render is None:
            return str(result.get("data"))
        return self.render(result["data"])

    def json_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool's parameters."""
        return self.parameters.model_json_schema(by_alias=True)


def build_tools(
    portfolio: PortfolioService,
    holders: HolderClassifier,
    search: TokenSearch,
    prices: PriceClient,
    domains: DomainClient,
    top_view_dust_threshold: Any = None,
) -> Dict[str, Tool]:
    """
    Build the tool registry from already constructed services.

    Returns:
        Mapping of tool name -> Tool
    """

    def get_wallet_portfolio(params: WalletParams):
        if top_view_dust_threshold is None:
            return portfolio.get_top_portfolio(params.wallet_address)
        return portfolio.get_top_portfolio(
            params.wallet_address, dust_threshold=top_view_dust_threshold
        )

    def get_token_holders(params: TokenHoldersParams):
        return holders.get_holders_classification(params.mint, limit=params.limit)

    def search_token(params: SearchTokenParams):
        results = search.search(params.query)
        if not results:
            raise TokenNotFound("No tokens found matching your query")
        return results[: params.limit]

    def get_token_price(params: TokenPriceParams):
        token = search.find_by_address(params.token_address)
        if token is None:
            raise TokenNotFound(f"Token not found: {params.token_address}")
        price = prices.get_token_price(params.token_address)
        if price is None:
            raise TokenNotFound(f"Price data not available for {params.token_address}")
        return {"token": token, "price": price}

    def get_native_balance(params: WalletParams):
        return portfolio.get_native_balance(params.wallet_address)

    def resolve_domain(params: DomainParams):
        address = domains.resolve(params.domain)
        if address is None:
            raise BscScopeError(f"Domain is not registered: {params.domain}")
        return {"domain": params.domain, "address": address}

    tools = [
        Tool(
            name="getWalletPortfolio",
            display_name="Wallet Portfolio",
            description=(
                "Get the portfolio of a BSC wallet, including detailed token "
                "information & total value, BNB value etc."
            ),
            parameters=WalletParams,
            execute=get_wallet_portfolio,
            render=formatters.render_portfolio,
        ),
        Tool(
            name="getTokenHolders",
            display_name="Token Holder Stats",
            description="Get the token holder stats for a BSC token",
            parameters=TokenHoldersParams,
            execute=get_token_holders,
            render=formatters.render_holders,
        ),
        Tool(
            name="searchBSCToken",
            display_name="Search BSC Token",
            description=(
                "Search for any BSC token by name, symbol, or address to get its "
                "contract address, along with detailed information."
            ),
            parameters=SearchTokenParams,
            execute=search_token,
            render=formatters.render_tokens,
            is_collapsible=True,
        ),
        Tool(
            name="getBSCTokenPrice",
            display_name="Get BSC Token Price",
            description=(
                "Get the current price of any BSC token in USD, including market "
                "cap, 24h volume and 24h change."
            ),
            parameters=TokenPriceParams,
            execute=get_token_price,
            render=formatters.render_token_price,
            is_collapsible=True,
        ),
        Tool(
            name="getNativeBalance",
            display_name="BNB Balance",
            description="Get the BNB balance of a BSC wallet and its USD value.",
            parameters=WalletParams,
            execute=get_native_balance,
            render=formatters.render_native_balance,
        ),
        Tool(
            name="resolveWalletAddressFromDomain",
            display_name="Resolve BSC Domain",
            description=(
                "Resolve a BSC domain name to an address. Useful for getting the "
                "address of a wallet from a domain name."
            ),
            parameters=DomainParams,
            execute=resolve_domain,
            is_collapsible=True,
        ),
    ]
    return {tool.name: tool for tool in tools}


@dataclass
class Toolkit:
    """Services and tool registry built once per process."""

    portfolio: PortfolioService
    holders: HolderClassifier
    search: TokenSearch
    prices: PriceClient
    domains: DomainClient
    tools: Dict[str, Tool] = field(default_factory=dict)

    def run(
        self, name: str, arguments: Union[Mapping[str, Any], str, bytes, None] = None
    ) -> Dict[str, Any]:
        """Run a tool by name, returning a tagged result."""
        tool = self.tools.get(name)
        if tool is None:
            return failure(f"Unknown tool: {name}")
        return tool.run(arguments)


def create_toolkit(settings: Optional[Settings] = None) -> Toolkit:
    """
    Construct clients, services and tools from settings.

    The known-address table and the token list cache are created here, once,
    and shared by reference.
    """
    settings = settings or Settings.from_env()
    timeout = settings.http_timeout

    explorer = ExplorerClient(
        settings.explorer_api_key,
        base_url=settings.explorer_url,
        chain_id=settings.chain_id,
        timeout=timeout,
    )
    rpc = RpcClient(settings.rpc_url, timeout=timeout)
    ankr = AnkrClient(settings.ankr_api_key, url=settings.ankr_url, timeout=timeout)
    prices = PriceClient(
        settings.coingecko_url, api_key=settings.coingecko_api_key, timeout=timeout
    )
    domains = DomainClient(settings.domain_api_url, timeout=timeout)
    token_list = TokenListClient(settings.token_list_url, chain_id=settings.chain_id, timeout=timeout)

    portfolio = PortfolioService(ankr, rpc=rpc, prices=prices, dust_threshold=settings.dust_threshold)
    holders = HolderClassifier(
        explorer,
        rpc,
        known_addresses=load_known_addresses(settings.known_addresses_path),
        strategy=settings.holder_strategy,
        chunk_size=settings.holder_chunk_size,
    )
    search = TokenSearch(TokenListCache(token_list.get_token_list, ttl=settings.token_list_ttl))

    return Toolkit(
        portfolio=portfolio,
        holders=holders,
        search=search,
        prices=prices,
        domains=domains,
        tools=build_tools(
            portfolio,
            holders,
            search,
            prices,
            domains,
            top_view_dust_threshold=settings.top_view_dust_threshold,
        ),
    )
