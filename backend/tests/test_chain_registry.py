"""
Chain Registry Tests
Chain table completeness, RPC/explorer resolution, overrides

Run: python -m pytest tests/test_chain_registry.py -v
"""

import pytest
import dataclasses


# =============================================================================
# TEST: Chain Table
# =============================================================================

class TestChainTable:
    """Every advertised chain resolves to complete parameters"""

    def test_every_supported_chain_resolves(self):
        from infrastructure.chains import ChainRegistry, SUPPORTED_CHAIN_IDS

        registry = ChainRegistry()

        assert len(SUPPORTED_CHAIN_IDS) == 21
        for chain_id in SUPPORTED_CHAIN_IDS:
            chain = registry.resolve(chain_id)
            assert chain.chain_id == chain_id
            assert chain.name, f"Chain {chain_id} has no name"
            assert chain.rpc_url.startswith("http"), f"Chain {chain_id} has no RPC URL"
            assert chain.explorer_url.startswith("https://"), f"Chain {chain_id} has no explorer"
            assert chain.native_currency.decimals == 18

        print(f"✅ {len(SUPPORTED_CHAIN_IDS)} chains resolve")

    def test_slugs_are_unique(self):
        from infrastructure.chains import CHAIN_TABLE

        slugs = [spec.slug for spec in CHAIN_TABLE]
        assert len(slugs) == len(set(slugs))

    def test_well_known_chains(self):
        from infrastructure.chains import ChainRegistry

        registry = ChainRegistry()

        assert registry.resolve(1).name == "Ethereum"
        assert registry.resolve(42161).name == "Arbitrum One"
        assert registry.resolve(8453).explorer_url == "https://basescan.org"
        assert registry.resolve(137).native_currency.symbol == "POL"


# =============================================================================
# TEST: Resolution
# =============================================================================

class TestResolution:
    """Unsupported chains, RPC overrides and explorer links"""

    def test_unsupported_chain_raises(self):
        from infrastructure.chains import ChainRegistry
        from infrastructure.errors import ErrorCode, UnsupportedChainError

        registry = ChainRegistry()

        with pytest.raises(UnsupportedChainError) as exc_info:
            registry.resolve(999999)

        assert exc_info.value.code == ErrorCode.UNSUPPORTED_CHAIN
        assert exc_info.value.describe() == "UnsupportedChain: Unsupported chain ID: 999999"
        assert not registry.is_supported(999999)

    def test_rpc_override_wins(self):
        from infrastructure.chains import ChainRegistry

        registry = ChainRegistry(rpc_overrides={42161: "https://arb.example/rpc"})

        assert registry.resolve(42161).rpc_url == "https://arb.example/rpc"
        assert registry.resolve(8453).rpc_url == "https://mainnet.base.org"

    def test_unknown_chain_falls_back_to_gateway(self):
        from infrastructure.chains import ChainRegistry

        registry = ChainRegistry()

        assert registry.rpc_url(999999) == "https://rpc.ankr.com/999999"

    def test_explorer_url(self):
        from infrastructure.chains import ChainRegistry

        registry = ChainRegistry()

        assert registry.explorer_url(42161, "0xabc") == "https://arbiscan.io/tx/0xabc"
        assert registry.explorer_url(999999, "0xabc") == "https://blockscan.com/tx/0xabc"
        assert registry.resolve(1).tx_url("0xdef") == "https://etherscan.io/tx/0xdef"

    def test_chain_id_for_slug(self):
        from infrastructure.chains import ChainRegistry

        registry = ChainRegistry()

        assert registry.chain_id_for_slug("arb") == 42161
        assert registry.chain_id_for_slug("BASE") == 8453
        assert registry.chain_id_for_slug("unknown") is None
        assert registry.chain_id_for_slug("") is None


# =============================================================================
# TEST: Configuration
# =============================================================================

class TestRegistryConfig:
    """Overrides come from RPC_URL_<chainId>; the registry is read-only"""

    def test_parse_rpc_overrides(self):
        from infrastructure.config import parse_rpc_overrides

        overrides = parse_rpc_overrides({
            "RPC_URL_8453": "https://base.example",
            "RPC_URL_1": "",
            "RPC_URL_ARB": "https://ignored.example",
            "OTHER": "x",
        })

        assert overrides == {8453: "https://base.example"}

    def test_registry_from_config(self):
        from infrastructure.chains import ChainRegistry
        from infrastructure.config import ExecutorConfig

        config = ExecutorConfig.from_env({"RPC_URL_8453": "https://base.example"})
        registry = ChainRegistry.from_config(config)

        assert registry.resolve(8453).rpc_url == "https://base.example"
        assert config.blockchain.default_chain_id == 42161

    def test_descriptors_are_immutable(self):
        from infrastructure.chains import ChainRegistry

        registry = ChainRegistry()

        descriptors = registry.descriptors()
        descriptors.pop(42161)
        assert registry.is_supported(42161)

        with pytest.raises(dataclasses.FrozenInstanceError):
            registry.resolve(42161).rpc_url = "https://evil.example"

        print("✅ Registry is read-only")


# =============================================================================
# TEST: RPC Connections
# =============================================================================

class TestConnections:
    """One cached Web3 instance per RPC URL"""

    def test_connection_reused_per_url(self):
        from infrastructure.chains import ChainRegistry
        from infrastructure.rpc import get_chain_web3, get_web3

        registry = ChainRegistry(rpc_overrides={42161: "https://arb.example/rpc"})
        chain = registry.resolve(42161)

        w3 = get_chain_web3(chain)

        assert get_web3("https://arb.example/rpc") is w3
        assert get_web3("https://base.example/rpc") is not w3
        assert w3.provider.endpoint_uri == "https://arb.example/rpc"
