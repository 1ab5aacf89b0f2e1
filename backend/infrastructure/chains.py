# infrastructure/chains.py
"""
Chain registry for the Haiku Execution Backend.

One immutable table of the EVM chains the backend can execute on.
RPC resolution: RPC_URL_<chainId> override -> curated public RPC -> generic gateway.
Explorer resolution: curated explorer -> generic multi-chain explorer.
"""
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from infrastructure.errors import UnsupportedChainError

logger = logging.getLogger("ChainRegistry")

DEFAULT_RPC_TEMPLATE = "https://rpc.ankr.com/{chain_id}"
DEFAULT_EXPLORER_URL = "https://blockscan.com"


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class ChainSpec:
    """Static entry of the chain table"""
    chain_id: int
    name: str
    slug: str
    public_rpc: str
    explorer: str
    native_currency: NativeCurrency


@dataclass(frozen=True)
class ChainDescriptor:
    """Resolved network parameters for one chain"""
    chain_id: int
    name: str
    slug: str
    rpc_url: str
    explorer_url: str
    native_currency: NativeCurrency

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"


ETH = NativeCurrency("Ether", "ETH")

CHAIN_TABLE: Tuple[ChainSpec, ...] = (
    ChainSpec(1, "Ethereum", "eth", "https://eth.llamarpc.com", "https://etherscan.io", ETH),
    ChainSpec(10, "OP Mainnet", "opt", "https://mainnet.optimism.io", "https://optimistic.etherscan.io", ETH),
    ChainSpec(56, "BNB Smart Chain", "bsc", "https://bsc-dataseed.binance.org", "https://bscscan.com",
              NativeCurrency("BNB", "BNB")),
    ChainSpec(100, "Gnosis", "gnosis", "https://rpc.gnosischain.com", "https://gnosisscan.io",
              NativeCurrency("xDAI", "XDAI")),
    ChainSpec(137, "Polygon", "poly", "https://polygon-rpc.com", "https://polygonscan.com",
              NativeCurrency("POL", "POL")),
    ChainSpec(146, "Sonic", "sonic", "https://rpc.soniclabs.com", "https://sonicscan.org",
              NativeCurrency("Sonic", "S")),
    ChainSpec(480, "World Chain", "worldchain", "https://worldchain-mainnet.g.alchemy.com/public",
              "https://worldscan.org", ETH),
    ChainSpec(534352, "Scroll", "scroll", "https://rpc.scroll.io", "https://scrollscan.com", ETH),
    ChainSpec(1135, "Lisk", "lisk", "https://rpc.api.lisk.com", "https://blockscout.lisk.com", ETH),
    ChainSpec(1329, "Sei", "sei", "https://evm-rpc.sei-apis.com", "https://seitrace.com",
              NativeCurrency("Sei", "SEI")),
    ChainSpec(8453, "Base", "base", "https://mainnet.base.org", "https://basescan.org", ETH),
    ChainSpec(42161, "Arbitrum One", "arb", "https://arb1.arbitrum.io/rpc", "https://arbiscan.io", ETH),
    ChainSpec(43114, "Avalanche", "avax", "https://api.avax.network/ext/bc/C/rpc", "https://snowtrace.io",
              NativeCurrency("Avalanche", "AVAX")),
    ChainSpec(80094, "Berachain", "bera", "https://rpc.berachain.com", "https://berascan.com",
              NativeCurrency("BERA", "BERA")),
    ChainSpec(60808, "Bob", "bob", "https://rpc.gobob.xyz", "https://explorer.gobob.xyz", ETH),
    ChainSpec(999, "Hyperliquid", "hype", "https://rpc.hyperliquid.xyz", "https://explorer.hyperliquid.xyz",
              NativeCurrency("HYPE", "HYPE")),
    ChainSpec(747474, "Katana", "katana", "https://rpc.katana.network", "https://explorer.katana.network", ETH),
    ChainSpec(143, "Monad", "monad", "https://rpc.monad.xyz", "https://explorer.monad.xyz",
              NativeCurrency("MON", "MON")),
    ChainSpec(9745, "Plasma", "plasma", "https://rpc.plasma.network", "https://explorer.plasma.network", ETH),
    ChainSpec(130, "Unichain", "uni", "https://rpc.unichain.org", "https://explorer.unichain.org", ETH),
    ChainSpec(33139, "ApeChain", "ape", "https://rpc.apechain.com", "https://apescan.io",
              NativeCurrency("APE", "APE")),
)

# Chains advertised as supported for execution
SUPPORTED_CHAIN_IDS = frozenset(spec.chain_id for spec in CHAIN_TABLE)


class ChainRegistry:
    """
    Read-only lookup from chain id to network parameters.

    Usage:
        registry = ChainRegistry.from_config(config)
        chain = registry.resolve(42161)
        url = registry.explorer_url(42161, "0xabc...")
    """

    def __init__(
        self,
        chain_table: Iterable[ChainSpec] = CHAIN_TABLE,
        rpc_overrides: Optional[Mapping[int, str]] = None,
        fallback_rpc_template: str = DEFAULT_RPC_TEMPLATE,
        fallback_explorer_url: str = DEFAULT_EXPLORER_URL,
    ):
        self._overrides: Mapping[int, str] = MappingProxyType(dict(rpc_overrides or {}))
        self._fallback_rpc_template = fallback_rpc_template
        self._fallback_explorer_url = fallback_explorer_url

        specs = {spec.chain_id: spec for spec in chain_table}
        self._specs: Mapping[int, ChainSpec] = MappingProxyType(specs)
        self._descriptors: Mapping[int, ChainDescriptor] = MappingProxyType({
            chain_id: ChainDescriptor(
                chain_id=chain_id,
                name=spec.name,
                slug=spec.slug,
                rpc_url=self.rpc_url(chain_id),
                explorer_url=spec.explorer,
                native_currency=spec.native_currency,
            )
            for chain_id, spec in specs.items()
        })
        self._slugs: Mapping[str, int] = MappingProxyType({spec.slug: spec.chain_id for spec in specs.values()})

        if self._overrides:
            logger.info(f"RPC overrides configured for chains: {sorted(self._overrides)}")

    @classmethod
    def from_config(cls, config) -> "ChainRegistry":
        """Build the registry from ExecutorConfig.blockchain"""
        blockchain = config.blockchain
        return cls(
            rpc_overrides=blockchain.rpc_overrides,
            fallback_rpc_template=blockchain.fallback_rpc_template,
            fallback_explorer_url=blockchain.fallback_explorer_url,
        )

    @property
    def supported_chain_ids(self) -> frozenset:
        return frozenset(self._descriptors)

    def is_supported(self, chain_id) -> bool:
        return chain_id in self._descriptors

    def resolve(self, chain_id) -> ChainDescriptor:
        """Get the descriptor for a chain, or raise UnsupportedChainError"""
        descriptor = self._descriptors.get(chain_id)
        if descriptor is None:
            raise UnsupportedChainError(chain_id)
        return descriptor

    def rpc_url(self, chain_id: int) -> str:
        """Override first, then curated public RPC, then the generic gateway"""
        override = self._overrides.get(chain_id)
        if override:
            return override
        spec = self._specs.get(chain_id)
        if spec is not None:
            return spec.public_rpc
        return self._fallback_rpc_template.format(chain_id=chain_id)

    def explorer_url(self, chain_id: int, tx_hash: str) -> str:
        """Explorer link for a transaction, generic explorer for unknown chains"""
        spec = self._specs.get(chain_id)
        base = spec.explorer if spec is not None else self._fallback_explorer_url
        return f"{base}/tx/{tx_hash}"

    def chain_id_for_slug(self, slug: str) -> Optional[int]:
        """Map a token IID chain slug (e.g. 'arb' in 'arb:0x...') to its chain id"""
        if not slug:
            return None
        return self._slugs.get(slug.strip().lower())

    def descriptors(self) -> Dict[int, ChainDescriptor]:
        return dict(self._descriptors)
