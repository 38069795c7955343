"""
Pytest configuration and shared fixtures for bscscope tests.
"""

import pytest

from bscscope.lib.models import TokenInfo, TokenListEntry


@pytest.fixture
def sample_wallet_address():
    """Sample BSC wallet address for testing."""
    return "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


@pytest.fixture
def sample_token_address():
    """Sample BEP-20 contract address (CAKE)."""
    return "0x0E09FaBB73Bd3Ade0a17ECC321fD13a19e81cE82"


@pytest.fixture
def mock_api_key():
    """Mock explorer API key for testing."""
    return "test-api-key-12345"


@pytest.fixture
def sample_token_info(sample_token_address):
    """Token metadata with 18 decimals and a supply of 1000 tokens."""
    return TokenInfo(
        contract_address=sample_token_address,
        name="PancakeSwap Token",
        symbol="CAKE",
        decimals=18,
        total_supply=1000 * 10**18,
    )


@pytest.fixture
def sample_token_list():
    """A small token list in upstream order."""
    return [
        TokenListEntry(
            address="0x0E09FaBB73Bd3Ade0a17ECC321fD13a19e81cE82",
            name="PancakeSwap Token",
            symbol="CAKE",
            decimals=18,
        ),
        TokenListEntry(
            address="0x3EE2200Efb3400fAbB9AacF31297cBdD1d435D47",
            name="Cardano Token",
            symbol="ADA",
            decimals=18,
        ),
        TokenListEntry(
            address="0x7130d2A12B9BCbFAe4f2634d864A1Ee1Ce3Ead9c",
            name="BTCB Token",
            symbol="BTCB",
            decimals=18,
        ),
        TokenListEntry(
            address="0x55d398326f99059fF775485246999027B3197955",
            name="Tether USD",
            symbol="USDT",
            decimals=18,
        ),
    ]
