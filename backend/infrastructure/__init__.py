"""
Haiku Execution Infrastructure Module
Configuration, chain registry, RPC connections and error handling
"""

from .errors import (
    HaikuError,
    ValidationError,
    NoSigningMethodError,
    UnsupportedChainError,
    BroadcastRequiresKeyError,
    ApprovalFailureError,
    SigningFailureError,
    UpstreamFailureError,
    BroadcastFailureError,
    ErrorCode,
    ErrorTracker,
    error_tracker,
    register_exception_handlers,
)

from .config import (
    ExecutorConfig,
    Environment,
    HaikuAPIConfig,
    BlockchainConfig,
    SecretsManager,
    config,
    secrets,
    get_config,
    get_secrets,
)

from .chains import (
    ChainDescriptor,
    ChainRegistry,
    NativeCurrency,
    CHAIN_TABLE,
    SUPPORTED_CHAIN_IDS,
)

from .rpc import get_web3, get_chain_web3

__all__ = [
    # Errors
    "HaikuError",
    "ValidationError",
    "NoSigningMethodError",
    "UnsupportedChainError",
    "BroadcastRequiresKeyError",
    "ApprovalFailureError",
    "SigningFailureError",
    "UpstreamFailureError",
    "BroadcastFailureError",
    "ErrorCode",
    "ErrorTracker",
    "error_tracker",
    "register_exception_handlers",

    # Config
    "ExecutorConfig",
    "Environment",
    "HaikuAPIConfig",
    "BlockchainConfig",
    "SecretsManager",
    "config",
    "secrets",
    "get_config",
    "get_secrets",

    # Chains
    "ChainDescriptor",
    "ChainRegistry",
    "NativeCurrency",
    "CHAIN_TABLE",
    "SUPPORTED_CHAIN_IDS",

    # RPC
    "get_web3",
    "get_chain_web3",
]
