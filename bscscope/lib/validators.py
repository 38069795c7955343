"""
Format checks for wallet addresses and .bnb domain names.

All functions are pure. The require_* variants raise ValidationError and are
used as guards before any upstream request is made.
"""

import re
from typing import Any

from .errors import ValidationError

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9-]+\.bnb$")


def is_valid_address(value: Any) -> bool:
    """Return True if value is a 0x-prefixed, 40 hex character address."""
    return isinstance(value, str) and ADDRESS_PATTERN.fullmatch(value) is not None


def is_valid_domain(value: Any) -> bool:
    """Return True if value looks like a label.bnb name."""
    return isinstance(value, str) and DOMAIN_PATTERN.fullmatch(value) is not None


def require_address(value: Any, field: str = "address") -> str:
    """
    Validate an address, raising if it is malformed.

    Args:
        value: Candidate address
        field: Name of the parameter, used in the error message

    Returns:
        The address unchanged

    Raises:
        ValidationError: If the address is malformed
    """
    if not is_valid_address(value):
        raise ValidationError(
            f"Invalid {field}: {value!r}. Expected 0x followed by 40 hex characters."
        )
    return value


def require_domain(value: Any) -> str:
    """
    Validate a .bnb domain name, raising if it is malformed.

    Raises:
        ValidationError: If the domain is malformed
    """
    if not is_valid_domain(value):
        raise ValidationError(
            f"Invalid BNB domain format: {value!r}. Must be a valid BNB domain name."
        )
    return value
