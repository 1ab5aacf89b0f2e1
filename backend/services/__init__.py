"""
Haiku Execution Services
Payload normalization, signing, gas estimation, approvals and orchestration
"""

from .payload_normalizer import (
    NormalizeMode,
    SigningPayload,
    normalize,
    normalize_strings,
    normalize_numbers,
    extract_permit2_payload,
    extract_bridge_payload,
)
from .execution_models import (
    SigningMode,
    PendingTransaction,
    ApprovalStep,
    ExecuteRequest,
    ExecutionResult,
)
from .signer import LocalSigner
from .gas_estimator import GasEstimator, GasParams
from .approval_runner import ApprovalRunner
from .execution_orchestrator import ExecutionOrchestrator, select_signing_mode
from .trading_service import PreparedSignatures, prepare_signatures

__all__ = [
    # Payload Normalizer
    "NormalizeMode",
    "SigningPayload",
    "normalize",
    "normalize_strings",
    "normalize_numbers",
    "extract_permit2_payload",
    "extract_bridge_payload",

    # Models
    "SigningMode",
    "PendingTransaction",
    "ApprovalStep",
    "ExecuteRequest",
    "ExecutionResult",

    # Execution (MAIN ENTRY POINT)
    "LocalSigner",
    "GasEstimator",
    "GasParams",
    "ApprovalRunner",
    "ExecutionOrchestrator",
    "select_signing_mode",

    # Trading
    "PreparedSignatures",
    "prepare_signatures",
]
