"""
Token holder enumeration and classification.

Holders are gathered either from the explorer's top-holders index or by
replaying the token's full transfer log, ranked by balance, and the top N
are labelled from the known-address table or by checking for deployed
contract code.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from decimal import Decimal
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from .errors import FetchError, ValidationError
from .explorer_client import DEFAULT_MAX_PAGES, DEFAULT_PAGE_SIZE, ExplorerClient
from .known_addresses import DEFAULT_KNOWN_ADDRESSES, lookup_label
from .models import Holder, HolderStats, TransferEvent, TransferLog, to_decimal
from .rpc_client import RpcClient
from .validators import require_address

logger = logging.getLogger(__name__)

T = TypeVar("T")

STRATEGY_TOP_HOLDERS = "top_holders"
STRATEGY_TRANSFER_LOG = "transfer_log"
STRATEGIES = (STRATEGY_TOP_HOLDERS, STRATEGY_TRANSFER_LOG)

DEFAULT_LIMIT = 10
DEFAULT_CHUNK_SIZE = 20
DEFAULT_CANDIDATE_POOL = 100

# Above this many observed owners the count is reported as UNCOUNTABLE; so is
# any count taken from a transfer log that could not be read to the end
HOLDER_COUNT_LIMIT = 50_000
UNCOUNTABLE = -1

CONTRACT_LABEL = "Contract"
EOA_LABEL = "EOA"


def chunk_list(items: Sequence[T], size: int) -> List[Sequence[T]]:
    """Split a sequence into consecutive chunks of at most `size` items."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [items[i : i + size] for i in range(0, len(items), size)]


def replay_transfers(events: Iterable[TransferEvent]) -> Dict[str, int]:
    """
    Build running raw balances by replaying transfer events in order.

    Each event debits the sender and credits the receiver. Events are
    processed in the order given; they are never re-sorted.

    Args:
        events: Transfer events in upstream order

    Returns:
        Mapping of address -> raw balance for every address seen, in
        first-seen order. Balances may be zero or negative.
    """
    balances: Dict[str, int] = {}
    for event in events:
        balances[event.from_address] = balances.get(event.from_address, 0) - event.value
        balances[event.to_address] = balances.get(event.to_address, 0) + event.value
    return balances


def count_holders(owners: Collection[str]) -> int:
    """Return the number of observed owners, or UNCOUNTABLE above HOLDER_COUNT_LIMIT."""
    count = len(owners)
    if count > HOLDER_COUNT_LIMIT:
        return UNCOUNTABLE
    return count


def rank_holders(
    balances: Mapping[str, int],
    decimals: int,
    limit: int,
    total_supply: int = 0,
) -> List[Holder]:
    """
    Drop non-positive balances, sort descending and keep the top `limit`.

    The sort is stable, so ties keep their first-seen order.

    Args:
        balances: Mapping of address -> raw balance
        decimals: Token decimals used to convert raw balances
        limit: Number of holders to keep
        total_supply: Raw total supply, used for the percentage share

    Returns:
        Unclassified Holder records, largest first
    """
    positive = [(owner, raw) for owner, raw in balances.items() if raw > 0]
    positive.sort(key=lambda item: item[1], reverse=True)

    holders: List[Holder] = []
    for owner, raw in positive[:limit]:
        percentage: Optional[Decimal] = None
        if total_supply > 0:
            percentage = Decimal(raw) * 100 / Decimal(total_supply)
        holders.append(
            Holder(owner=owner, balance=to_decimal(raw, decimals), percentage=percentage)
        )
    return holders


class HolderClassifier:
    """
    Computes holder statistics for a token.

    Strategies:
    - top_holders: the explorer's top-holders index supplies candidate
      balances; the transfer log is scanned only for the owner count.
    - transfer_log: the full transfer log is replayed to derive balances and
      the owner set in one pass. A log too long to read in full is an error.
    """

    def __init__(
        self,
        explorer: ExplorerClient,
        rpc: RpcClient,
        known_addresses: Mapping[str, str] = DEFAULT_KNOWN_ADDRESSES,
        strategy: str = STRATEGY_TOP_HOLDERS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        candidate_pool: int = DEFAULT_CANDIDATE_POOL,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ):
        """
        Initialize the classifier.

        Args:
            explorer: Explorer client for metadata, holders and transfer logs
            rpc: Node client used for deployed-code checks
            known_addresses: Lower-case address -> label table
            strategy: "top_holders" or "transfer_log"
            chunk_size: Addresses classified concurrently per batch
            candidate_pool: Holders requested from the top-holders index
            page_size: Transfer events per explorer page
            max_pages: Maximum transfer log pages to scan
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"Unsupported holder strategy: {strategy}")
        if chunk_size < 1:
            raise ValueError("Chunk size must be at least 1")
        self.explorer = explorer
        self.rpc = rpc
        self.known_addresses = known_addresses
        self.strategy = strategy
        self.chunk_size = chunk_size
        self.candidate_pool = candidate_pool
        self.page_size = page_size
        self.max_pages = max_pages

    def _transfer_log(self, token_address: str) -> TransferLog:
        return self.explorer.get_transfer_log(
            token_address, page_size=self.page_size, max_pages=self.max_pages
        )

    def _owner_count(self, token_address: str) -> int:
        log = self._transfer_log(token_address)
        if not log.complete:
            return UNCOUNTABLE
        owners = set()
        for event in log.events:
            owners.add(event.from_address)
            owners.add(event.to_address)
        return count_holders(owners)

    def get_holders_classification(
        self, token_address: str, limit: int = DEFAULT_LIMIT
    ) -> HolderStats:
        """
        Get total holder count, classified top holders and total supply.

        Args:
            token_address: Token contract address
            limit: Number of top holders to return

        Returns:
            HolderStats with at most `limit` holders, largest first

        Raises:
            ValidationError: If the address or limit is invalid (no request is made)
            TokenNotFound: If the explorer has no metadata for the token
            FetchError: If a required upstream call fails, or the transfer_log
                strategy cannot read the whole log
        """
        require_address(token_address, "token address")
        if limit < 1:
            raise ValidationError(f"Invalid limit: {limit}. Must be at least 1.")

        if self.strategy == STRATEGY_TOP_HOLDERS:
            with ThreadPoolExecutor(max_workers=3) as pool:
                info_future = pool.submit(self.explorer.get_token_info, token_address)
                holders_future = pool.submit(
                    self.explorer.get_top_holders,
                    token_address,
                    max(limit, self.candidate_pool),
                )
                count_future = pool.submit(self._owner_count, token_address)

                info = info_future.result()
                balances = {h.address: h.raw_balance for h in holders_future.result()}
                total_holders = count_future.result()
        else:
            info = self.explorer.get_token_info(token_address)
            log = self._transfer_log(token_address)
            if not log.complete:
                raise FetchError(
                    f"Transfer log for {token_address} is too long to replay; "
                    "use the top_holders strategy"
                )
            balances = replay_transfers(log.events)
            total_holders = count_holders(balances.keys())

        ranked = rank_holders(balances, info.decimals, limit, info.total_supply)
        logger.debug(
            "Token %s: %d candidate balances, %d holders",
            token_address,
            len(balances),
            total_holders,
        )

        return HolderStats(
            total_holders=total_holders,
            top_holders=self.classify(ranked),
            total_supply=to_decimal(info.total_supply, info.decimals),
            token=info,
        )

    def classify_address(self, address: str) -> Optional[str]:
        """
        Label a single address.

        The known-address table wins; otherwise the address is a "Contract"
        if it has deployed bytecode and an "EOA" if not. A failed lookup
        returns None.
        """
        label = lookup_label(self.known_addresses, address)
        if label is not None:
            return label

        try:
            return CONTRACT_LABEL if self.rpc.is_contract(address) else EOA_LABEL
        except FetchError as e:
            logger.warning("Could not classify holder %s: %s", address, e)
            return None

    def classify(self, holders: Sequence[Holder]) -> List[Holder]:
        """
        Attach classifications to holders in chunks.

        Members of a chunk are looked up concurrently; chunks run one after
        another to bound the number of in-flight requests.

        Returns:
            New Holder records in the same order
        """
        if not holders:
            return []

        classified: List[Holder] = []
        with ThreadPoolExecutor(max_workers=self.chunk_size) as pool:
            for chunk in chunk_list(holders, self.chunk_size):
                labels = list(pool.map(self.classify_address, [h.owner for h in chunk]))
                classified.extend(
                    replace(holder, classification=label) for holder, label in zip(chunk, labels)
                )
        return classified
