"""
Pytest Configuration for Haiku Execution Backend Tests

Run all tests: python -m pytest tests/ -v
Run unit tests only: python -m pytest tests/ -v -m "not integration"
Run integration tests: python -m pytest tests/ -v -m integration
"""

import pytest
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")


# =============================================================================
# FIXTURES - Shared across all test files
# =============================================================================

# Well-known development key (hardhat account #0), never funded on mainnet
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_WALLET = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


def wrapped(value: int) -> dict:
    """Big-integer wrapper as the Haiku API serializes it"""
    return {"type": "BigNumber", "hex": hex(value)}


@pytest.fixture
def test_addresses():
    """Standard test addresses for Arbitrum"""
    return {
        "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "WETH": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        "PERMIT2": "0x000000000022D473030F116dDEE9F6B43aC78BA3",
        "ROUTER": "0x1111111254EEB25477B68fb85Ed929f73A960582",
        "BRIDGE": "0x5c7bcd6e7de5423a257d81b442095a1a6ced35c5",
        "wallet": TEST_WALLET,
    }


@pytest.fixture
def test_private_key():
    return TEST_PRIVATE_KEY


@pytest.fixture
def permit2_datas(test_addresses):
    """permit2Datas as returned by /quote (PermitSingle, wrapped integers)"""
    return {
        "domain": {
            "name": "Permit2",
            "chainId": 42161,
            "verifyingContract": test_addresses["PERMIT2"],
        },
        "types": {
            "PermitSingle": [
                {"name": "details", "type": "PermitDetails"},
                {"name": "spender", "type": "address"},
                {"name": "sigDeadline", "type": "uint256"},
            ],
            "PermitDetails": [
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint160"},
                {"name": "expiration", "type": "uint48"},
                {"name": "nonce", "type": "uint48"},
            ],
        },
        "values": {
            "details": {
                "token": test_addresses["USDC"],
                "amount": wrapped(100_000_000),
                "expiration": wrapped(1_700_000_000),
                "nonce": wrapped(0),
            },
            "spender": test_addresses["ROUTER"],
            "sigDeadline": wrapped(1_700_000_000),
        },
    }


@pytest.fixture
def bridge_typed_data(test_addresses):
    """destinationBridge.unsignedTypeV4Digest (EIP712Domain declared first)"""
    return {
        "domain": {
            "name": "HaikuBridge",
            "version": "1",
            "chainId": 42161,
            "verifyingContract": test_addresses["BRIDGE"],
        },
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "BridgeIntent": [
                {"name": "recipient", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "destinationChainId", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
            ],
        },
        "message": {
            "recipient": test_addresses["wallet"],
            "amount": wrapped(5 * 10**17),
            "destinationChainId": 8453,
            "deadline": wrapped(1_700_000_000),
        },
    }


@pytest.fixture
def quote_response(test_addresses, permit2_datas):
    """Full /quote response with one approval and a Permit2 requirement"""
    return {
        "quoteId": "q-123",
        "approvals": [
            {
                "to": test_addresses["USDC"],
                "data": "0x095ea7b3" + "00" * 64,
                "value": wrapped(0),
            }
        ],
        "permit2Datas": permit2_datas,
        "isComplexBridge": False,
        "destinationBridge": None,
        "funds": [
            {
                "token": {"chainId": 42161, "address": test_addresses["USDC"], "symbol": "USDC"},
                "amount": "100",
            }
        ],
        "balances": [
            {
                "token": {"chainId": 42161, "address": test_addresses["WETH"], "symbol": "WETH"},
                "amount": "0.031",
            }
        ],
        "fees": [],
        "gas": {"amount": wrapped(100_000), "usd": "0.02"},
    }


@pytest.fixture
def solve_response(test_addresses):
    """Unsigned transaction from /solve"""
    return {
        "to": test_addresses["ROUTER"],
        "data": "0x12aa3caf" + "00" * 32,
        "value": wrapped(0),
    }


# =============================================================================
# MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (use real APIs)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
