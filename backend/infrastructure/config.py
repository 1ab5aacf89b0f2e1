"""
Configuration Management for the Haiku Execution Backend
Environment-based configuration with secrets handling

Features:
- Environment-based config (dev/staging/prod)
- Per-chain RPC overrides (RPC_URL_<chainId>)
- Secrets management (wallet key never logged)
- Sanitized view for the diagnostics endpoint
"""

import os
import re
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional
from enum import Enum

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Config")

RPC_OVERRIDE_PATTERN = re.compile(r"^RPC_URL_(\d+)$")


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class HaikuAPIConfig:
    """Remote quoting service configuration"""
    base_url: str = "https://api.haiku.trade/v1"
    request_timeout: float = 30.0


@dataclass
class BlockchainConfig:
    """Blockchain configuration"""
    default_chain_id: int = 42161  # Arbitrum

    # RPC overrides keyed by chain id, from RPC_URL_<chainId>
    rpc_overrides: Dict[int, str] = field(default_factory=dict)

    # Fallbacks for chains without a curated endpoint
    fallback_rpc_template: str = "https://rpc.ankr.com/{chain_id}"
    fallback_explorer_url: str = "https://blockscan.com"

    receipt_timeout_seconds: int = 120


@dataclass
class MonitoringConfig:
    """Monitoring configuration"""
    log_level: str = "INFO"


@dataclass
class ExecutorConfig:
    """Main application configuration"""
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True

    haiku: HaikuAPIConfig = field(default_factory=HaikuAPIConfig)
    blockchain: BlockchainConfig = field(default_factory=BlockchainConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ExecutorConfig":
        """Create configuration from environment variables"""
        environ = os.environ if environ is None else environ
        env = environ.get("HAIKU_ENV", "development").lower()

        config = cls(
            environment=Environment(env) if env in [e.value for e in Environment] else Environment.DEVELOPMENT,
            debug=environ.get("DEBUG", "true").lower() == "true",
        )

        config.haiku = HaikuAPIConfig(
            base_url=environ.get("HAIKU_BASE_URL") or HaikuAPIConfig.base_url,
            request_timeout=float(environ.get("HAIKU_TIMEOUT", "30")),
        )

        config.blockchain = BlockchainConfig(
            default_chain_id=int(environ.get("DEFAULT_CHAIN_ID", "42161")),
            rpc_overrides=parse_rpc_overrides(environ),
            receipt_timeout_seconds=int(environ.get("RECEIPT_TIMEOUT_SECONDS", "120")),
        )

        config.monitoring = MonitoringConfig(
            log_level=environ.get("LOG_LEVEL", "INFO").upper(),
        )

        if config.environment == Environment.PRODUCTION:
            config.debug = False
            config.monitoring.log_level = "WARNING"

        return config

    def to_dict(self) -> Dict:
        """Convert to dictionary (hiding secrets)"""
        def sanitize(obj):
            if isinstance(obj, dict):
                return {k: sanitize(v) for k, v in obj.items() if "key" not in str(k).lower() and "secret" not in str(k).lower()}
            elif hasattr(obj, '__dataclass_fields__'):
                return sanitize({k: getattr(obj, k) for k in obj.__dataclass_fields__})
            elif isinstance(obj, Enum):
                return obj.value
            else:
                return obj

        data = sanitize(self)
        # Override URLs can embed provider API keys; expose the chain ids only
        data["blockchain"]["rpc_overrides"] = sorted(self.blockchain.rpc_overrides)
        return data


def parse_rpc_overrides(environ: Dict[str, str]) -> Dict[int, str]:
    """Collect every RPC_URL_<chainId> variable into a chain id -> URL map"""
    overrides: Dict[int, str] = {}
    for key, value in environ.items():
        match = RPC_OVERRIDE_PATTERN.match(key)
        if match and value:
            overrides[int(match.group(1))] = value
    return overrides


# ============================================
# SECRETS MANAGEMENT
# ============================================

class SecretsManager:
    """
    Holds secrets read once from the environment.
    Values are never logged; only presence is reported.
    """

    SECRET_KEYS = (
        "WALLET_PRIVATE_KEY",  # NEVER log this!
        "HAIKU_API_KEY",
    )

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self._secrets: Dict[str, str] = {}
        self._load_from_env(os.environ if environ is None else environ)

    def _load_from_env(self, environ: Dict[str, str]):
        """Load secrets from environment variables"""
        for key in self.SECRET_KEYS:
            value = environ.get(key)
            if value and value.strip():
                self._secrets[key] = value.strip()

    def get(self, key: str, default: str = None) -> Optional[str]:
        """Get a secret value"""
        return self._secrets.get(key, default)

    def has(self, key: str) -> bool:
        """Check if secret exists"""
        return key in self._secrets

    def __repr__(self) -> str:
        return f"SecretsManager(keys={sorted(self._secrets)})"


# ============================================
# GLOBAL INSTANCES
# ============================================

config = ExecutorConfig.from_env()
secrets = SecretsManager()

logging.getLogger().setLevel(config.monitoring.log_level)
logger.info(f"Configuration loaded for environment: {config.environment.value}")


def get_config() -> ExecutorConfig:
    """Get the global configuration"""
    return config


def get_secrets() -> SecretsManager:
    """Get the secrets manager"""
    return secrets

