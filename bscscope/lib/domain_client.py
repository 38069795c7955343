"""
Resolution of .bnb names (SPACE ID) to wallet addresses.
"""

from typing import Any, Optional

from .errors import FetchError
from .http import DEFAULT_TIMEOUT, HttpClient
from .models import NATIVE_TOKEN_ADDRESS
from .validators import is_valid_address, require_domain

DEFAULT_DOMAIN_API_URL = "https://api.prd.space.id/v1/getAddress"


class DomainClient(HttpClient):
    """Client for the SPACE ID name resolution API."""

    def __init__(
        self,
        url: str = DEFAULT_DOMAIN_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        super().__init__(timeout=timeout, **kwargs)
        self.url = url

    def resolve(self, domain: str) -> Optional[str]:
        """
        Resolve a .bnb domain to its wallet address.

        Args:
            domain: Domain name such as "example.bnb"

        Returns:
            The resolved address, or None if the name is not registered

        Raises:
            ValidationError: If the domain is malformed (no request is made)
            FetchError: If the resolver reports an error
        """
        require_domain(domain)
        data = self._get(self.url, params={"tld": "bnb", "domain": domain.lower()})

        if not isinstance(data, dict):
            raise FetchError("Unexpected domain resolver response")
        if data.get("code", 0) != 0:
            raise FetchError(f"Domain resolver error: {data.get('msg', data)}")

        address = data.get("address")
        if not is_valid_address(address) or address == NATIVE_TOKEN_ADDRESS:
            return None
        return address
