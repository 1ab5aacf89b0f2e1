"""
Execution data structures: signing modes, pending transactions, approvals and results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from services.gas_estimator import GasParams
from services.payload_normalizer import coerce_int, normalize_numbers


class SigningMode(str, Enum):
    SELF_CONTAINED = "self-contained"
    EXTERNAL_SIGNATURES = "external-signatures"
    PREPARE_ONLY = "prepare-only"


@dataclass
class PendingTransaction:
    """Unsigned transaction from /solve; gas fields are filled at broadcast time"""
    to: str
    data: str
    value: int
    chain_id: int
    gas_params: Optional[GasParams] = None

    @classmethod
    def from_solve_response(cls, response: Dict[str, Any], chain_id: int) -> "PendingTransaction":
        tx = normalize_numbers(response or {})
        if not tx.get("to"):
            raise ValueError("Solve response is missing the 'to' address")
        return cls(
            to=tx["to"],
            data=tx.get("data") or "0x",
            value=coerce_int(tx.get("value")),
            chain_id=chain_id,
        )

    @property
    def gas(self) -> Optional[int]:
        return self.gas_params.gas if self.gas_params is not None else None

    def to_dict(self) -> Dict[str, Any]:
        fields = {
            "to": self.to,
            "data": self.data,
            "value": str(self.value),
            "chainId": self.chain_id,
        }
        if self.gas_params is not None:
            fields.update(self.gas_params.to_dict())
        return fields


@dataclass(frozen=True)
class ApprovalStep:
    """One ERC-20 approval transaction from the quote"""
    to: str
    data: str
    value: int = 0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ApprovalStep":
        approval = normalize_numbers(raw or {})
        if not approval.get("to"):
            raise ValueError("Approval is missing the 'to' address")
        return cls(
            to=approval["to"],
            data=approval.get("data") or "0x",
            value=coerce_int(approval.get("value")),
        )

    def to_pending(self, chain_id: int) -> PendingTransaction:
        return PendingTransaction(to=self.to, data=self.data, value=self.value, chain_id=chain_id)


@dataclass
class ExecuteRequest:
    """Input of one orchestration run. There is deliberately no private key field."""
    quote_id: str
    permit2_signing_payload: Optional[Dict[str, Any]] = None
    bridge_signing_payload: Optional[Dict[str, Any]] = None
    permit2_signature: Optional[str] = None
    user_signature: Optional[str] = None
    approvals: Optional[List[Dict[str, Any]]] = None
    source_chain_id: Optional[int] = None
    broadcast: bool = True

    @property
    def has_external_signatures(self) -> bool:
        return bool(self.permit2_signature or self.user_signature)


@dataclass
class ExecutionResult:
    """
    Terminal record of one run.
    tx_hash is set only when broadcast was requested, performed and succeeded.
    """
    success: bool
    mode: SigningMode
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    permit2_signature: Optional[str] = None
    user_signature: Optional[str] = None
    transaction: Optional[PendingTransaction] = None
    approval_hashes: List[str] = field(default_factory=list)

    @property
    def signatures(self) -> Dict[str, str]:
        signatures = {}
        if self.permit2_signature:
            signatures["permit2Signature"] = self.permit2_signature
        if self.user_signature:
            signatures["userSignature"] = self.user_signature
        return signatures

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "mode": self.mode.value,
        }
        if self.tx_hash:
            result["txHash"] = self.tx_hash
            result["explorerUrl"] = self.explorer_url
        if self.error:
            result["error"] = self.error
            result["errorCode"] = self.error_code
        if self.success or self.signatures:
            result["signatures"] = self.signatures
        if self.transaction is not None:
            result["transaction"] = self.transaction.to_dict()
        if self.approval_hashes:
            result["approvalHashes"] = list(self.approval_hashes)
        return result
