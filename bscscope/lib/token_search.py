"""
Token search over the public BSC token list.

The token list is large and changes rarely, so it is held in a
TokenListCache: one snapshot plus its fetch time, refreshed lazily after the
TTL expires. The cache is an explicit object constructed once by the caller
and shared by reference; tests build a fresh one per case.
"""

import logging
import time
from threading import Lock
from typing import Any, Callable, List, Optional, Tuple

from .errors import FetchError, ValidationError
from .http import DEFAULT_TIMEOUT, HttpClient
from .models import TokenListEntry

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIST_URL = "https://tokens.pancakeswap.finance/pancakeswap-extended.json"
DEFAULT_CACHE_TTL = 15 * 60  # seconds
BSC_CHAIN_ID = 56

# Search rank buckets
RANK_EXACT = 0
RANK_SYMBOL = 1
RANK_OTHER = 2


class TokenListClient(HttpClient):
    """Client for a Uniswap-format token list."""

    def __init__(
        self,
        url: str = DEFAULT_TOKEN_LIST_URL,
        chain_id: int = BSC_CHAIN_ID,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        super().__init__(timeout=timeout, **kwargs)
        self.url = url
        self.chain_id = chain_id

    def get_token_list(self) -> List[TokenListEntry]:
        """
        Fetch the token list.

        Returns:
            List of TokenListEntry objects for this chain
        """
        data = self._get(self.url)
        if not isinstance(data, dict) or not isinstance(data.get("tokens"), list):
            raise FetchError("Invalid token list format: missing 'tokens' array")

        entries: List[TokenListEntry] = []
        for token in data["tokens"]:
            if token.get("chainId", self.chain_id) != self.chain_id:
                continue
            entries.append(
                TokenListEntry(
                    address=token.get("address", ""),
                    name=token.get("name", ""),
                    symbol=token.get("symbol", ""),
                    decimals=int(token.get("decimals") or 0),
                    logo_uri=token.get("logoURI"),
                )
            )
        return entries


class TokenListCache:
    """
    Process-wide cache holding a single token list snapshot.

    - A fresh snapshot is returned without any upstream call.
    - After the TTL expires the next caller refreshes the snapshot.
    - Callers arriving while a refresh is in flight get the previous snapshot.
    - A failed refresh serves the previous snapshot; the error is raised only
      when there is nothing to serve.

    The snapshot and its timestamp are swapped together under a lock.
    """

    def __init__(
        self,
        fetch: Callable[[], List[TokenListEntry]],
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            fetch: Callable returning a fresh token list
            ttl: Snapshot lifetime in seconds
            clock: Monotonic time source
        """
        self._fetch = fetch
        self.ttl = ttl
        self._clock = clock
        self._snapshot: Optional[Tuple[TokenListEntry, ...]] = None
        self._fetched_at = 0.0
        self._lock = Lock()
        self._refresh_lock = Lock()

    def _current(self) -> Tuple[Optional[Tuple[TokenListEntry, ...]], float]:
        with self._lock:
            return self._snapshot, self._fetched_at

    def _is_fresh(self, snapshot: Optional[tuple], fetched_at: float) -> bool:
        return snapshot is not None and (self._clock() - fetched_at) < self.ttl

    def get(self) -> List[TokenListEntry]:
        """
        Return the token list, refreshing it if the snapshot has expired.

        Raises:
            FetchError: If the refresh fails and no previous snapshot exists
        """
        snapshot, fetched_at = self._current()
        if self._is_fresh(snapshot, fetched_at):
            return list(snapshot)

        # Only wait for an in-flight refresh when there is nothing to serve
        if not self._refresh_lock.acquire(blocking=snapshot is None):
            logger.debug("Token list refresh in flight, serving previous snapshot")
            return list(snapshot)

        try:
            snapshot, fetched_at = self._current()
            if self._is_fresh(snapshot, fetched_at):
                return list(snapshot)

            try:
                tokens = tuple(self._fetch())
            except FetchError as e:
                if snapshot is not None:
                    logger.warning("Token list refresh failed, serving stale snapshot: %s", e)
                    return list(snapshot)
                raise

            with self._lock:
                self._snapshot = tokens
                self._fetched_at = self._clock()
            logger.debug("Token list refreshed: %d tokens", len(tokens))
            return list(tokens)
        finally:
            self._refresh_lock.release()

    def invalidate(self) -> None:
        """Drop the current snapshot."""
        with self._lock:
            self._snapshot = None
            self._fetched_at = 0.0


def _rank(token: TokenListEntry, query: str) -> int:
    symbol = token.symbol.lower()
    if symbol == query or token.name.lower() == query or token.address.lower() == query:
        return RANK_EXACT
    if query in symbol:
        return RANK_SYMBOL
    return RANK_OTHER


class TokenSearch:
    """Ranked search over the cached token list."""

    def __init__(self, cache: TokenListCache):
        self.cache = cache

    def search(self, query: str) -> List[TokenListEntry]:
        """
        Search tokens by name, symbol or address.

        Matches are tokens whose name or symbol contains the query, or whose
        address equals it (case-insensitive). Exact symbol, name or address
        matches come first, then symbol substring matches, then the rest;
        list order is preserved within each group.

        Args:
            query: Name, symbol or address to look for

        Returns:
            Ranked list of matching TokenListEntry objects

        Raises:
            ValidationError: If the query is blank
        """
        needle = (query or "").strip().lower()
        if not needle:
            raise ValidationError("Search query must not be empty")

        matches = [
            token
            for token in self.cache.get()
            if needle in token.name.lower()
            or needle in token.symbol.lower()
            or token.address.lower() == needle
        ]
        return sorted(matches, key=lambda token: _rank(token, needle))

    def find_by_address(self, address: str) -> Optional[TokenListEntry]:
        """Return the token list entry for an exact address, if any."""
        needle = address.lower()
        for token in self.cache.get():
            if token.address.lower() == needle:
                return token
        return None
