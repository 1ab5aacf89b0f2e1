"""
Execution Orchestrator
Turns a Haiku quote into a prepared or broadcast transaction.

Flow:
1. Mode selection    - self-contained / external-signatures / prepare-only
2. Chain resolution  - Permit2 domain chainId -> caller sourceChainId -> default
3. Approvals         - self-contained only, each confirmed before the next
4. Signing           - Permit2 + bridge EIP-712 payloads (self-contained only)
5. Solve             - /solve with whichever signatures exist
6. Broadcast         - gas estimate (best effort) + local submission

Every failure comes back as ExecutionResult(success=False) carrying the active mode;
execute() never raises.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from web3 import Web3

from infrastructure.chains import ChainDescriptor, ChainRegistry
from infrastructure.errors import (
    ApprovalFailureError,
    BroadcastFailureError,
    BroadcastRequiresKeyError,
    ErrorCode,
    HaikuError,
    NoSigningMethodError,
    SigningFailureError,
)
from infrastructure.rpc import get_web3
from integrations.haiku_client import HaikuAPIError, HaikuClient
from services.approval_runner import ApprovalRunner
from services.execution_models import (
    ExecuteRequest,
    ExecutionResult,
    PendingTransaction,
    SigningMode,
)
from services.gas_estimator import GasEstimator
from services.payload_normalizer import extract_bridge_payload, extract_permit2_payload, parse_chain_id
from services.signer import LocalSigner

logger = logging.getLogger("Executor")

DEFAULT_CHAIN_ID = 42161  # Arbitrum


def select_signing_mode(has_key: bool, has_external_signatures: bool, broadcast: bool) -> SigningMode:
    """
    | key | external sigs | broadcast | mode                |
    |-----|---------------|-----------|---------------------|
    | yes | no            | any       | self-contained      |
    | any | yes           | any       | external-signatures |
    | no  | no            | no        | prepare-only        |
    | no  | no            | yes       | NoSigningMethodError|
    """
    if has_external_signatures:
        return SigningMode.EXTERNAL_SIGNATURES
    if has_key:
        return SigningMode.SELF_CONTAINED
    if not broadcast:
        return SigningMode.PREPARE_ONLY
    raise NoSigningMethodError()


def resolve_source_chain_id(
    permit2_signing_payload: Optional[Dict[str, Any]],
    source_chain_id: Optional[int],
    default_chain_id: int = DEFAULT_CHAIN_ID,
) -> int:
    """Permit2 domain chainId (if numeric) > caller sourceChainId > default"""
    domain = (permit2_signing_payload or {}).get("domain") or {}
    embedded = parse_chain_id(domain.get("chainId")) if isinstance(domain, dict) else None
    if embedded is not None:
        if source_chain_id is not None and source_chain_id != embedded:
            logger.warning(
                f"Permit2 domain chainId {embedded} overrides caller sourceChainId {source_chain_id}"
            )
        return embedded
    if source_chain_id is not None:
        return source_chain_id
    return default_chain_id


class ExecutionOrchestrator:
    """
    Usage:
        orchestrator = ExecutionOrchestrator.from_config(client, config, secrets)
        result = await orchestrator.execute(ExecuteRequest(quote_id="q1", broadcast=False))
        print(result.to_dict())
    """

    def __init__(
        self,
        client: HaikuClient,
        registry: Optional[ChainRegistry] = None,
        signer: Optional[LocalSigner] = None,
        gas_estimator: Optional[GasEstimator] = None,
        approval_runner: Optional[ApprovalRunner] = None,
        web3_factory: Callable[[str], Web3] = get_web3,
        default_chain_id: int = DEFAULT_CHAIN_ID,
        signer_error: Optional[str] = None,
    ):
        self.client = client
        self.registry = registry or ChainRegistry()
        self.signer = signer
        self.gas_estimator = gas_estimator or GasEstimator()
        self.approval_runner = approval_runner or ApprovalRunner(self.gas_estimator)
        self.web3_factory = web3_factory
        self.default_chain_id = default_chain_id
        # Set when WALLET_PRIVATE_KEY is present but unusable
        self.signer_error = signer_error

    @classmethod
    def from_config(cls, client: HaikuClient, config, secrets) -> "ExecutionOrchestrator":
        """Wallet key and RPC overrides are read here, once per process"""
        gas_estimator = GasEstimator()
        signer, signer_error = None, None
        try:
            signer = LocalSigner.from_secrets(secrets)
        except SigningFailureError as e:
            logger.error(f"Local signer unavailable: {e.message}")
            signer_error = e.message
        return cls(
            client=client,
            registry=ChainRegistry.from_config(config),
            signer=signer,
            signer_error=signer_error,
            gas_estimator=gas_estimator,
            approval_runner=ApprovalRunner(
                gas_estimator, receipt_timeout=config.blockchain.receipt_timeout_seconds
            ),
            default_chain_id=config.blockchain.default_chain_id,
        )

    @property
    def has_key(self) -> bool:
        return self.signer is not None

    @property
    def key_configured(self) -> bool:
        return self.has_key or self.signer_error is not None

    async def execute(self, request: ExecuteRequest) -> ExecutionResult:
        """Run one orchestration. Always returns a result."""
        try:
            mode = select_signing_mode(self.key_configured, request.has_external_signatures, request.broadcast)
        except NoSigningMethodError as e:
            logger.warning(f"Quote {request.quote_id}: {e.code.value}")
            return self._fail(ExecutionResult(success=False, mode=SigningMode.PREPARE_ONLY), e)

        result = ExecutionResult(success=False, mode=mode)
        logger.info(f"Executing quote {request.quote_id} in {mode.value} mode (broadcast={request.broadcast})")

        try:
            await self._run(request, mode, result)
        except HaikuError as e:
            return self._fail(result, e)
        except Exception as e:
            logger.exception(f"Unexpected error executing quote {request.quote_id}")
            result.success = False
            result.error = f"{ErrorCode.INTERNAL_ERROR.value}: {e}"
            result.error_code = ErrorCode.INTERNAL_ERROR.value
            return result

        return result

    async def _run(self, request: ExecuteRequest, mode: SigningMode, result: ExecutionResult):
        chain_id = resolve_source_chain_id(
            request.permit2_signing_payload, request.source_chain_id, self.default_chain_id
        )
        chain = self.registry.resolve(chain_id)

        if self.signer_error is not None and (mode is SigningMode.SELF_CONTAINED or request.broadcast):
            raise SigningFailureError(self.signer_error)

        if mode is SigningMode.EXTERNAL_SIGNATURES and request.broadcast and not self.has_key:
            raise BroadcastRequiresKeyError()

        w3: Optional[Web3] = None

        # Approvals
        if mode is SigningMode.SELF_CONTAINED and request.approvals:
            w3 = self._web3_for(chain)
            try:
                result.approval_hashes = await self.approval_runner.run(
                    w3, chain.chain_id, request.approvals, self.signer
                )
            except ApprovalFailureError as e:
                result.approval_hashes = list(e.confirmed_hashes)
                raise

        # Signing
        permit2_signature = request.permit2_signature
        user_signature = request.user_signature
        if mode is SigningMode.SELF_CONTAINED:
            if request.permit2_signing_payload:
                permit2_signature = self.signer.sign_typed_data(
                    extract_permit2_payload(request.permit2_signing_payload), "Permit2 payload"
                )
            if request.bridge_signing_payload:
                user_signature = self.signer.sign_typed_data(
                    extract_bridge_payload(request.bridge_signing_payload), "bridge payload"
                )
        result.permit2_signature = permit2_signature
        result.user_signature = user_signature

        # Solve
        try:
            solved = await self.client.solve(
                request.quote_id,
                permit2_signature=permit2_signature,
                user_signature=user_signature,
            )
        except HaikuAPIError as e:
            if e.is_quote_expired:
                e.message = f"{e.message} (quote expired, request a fresh quote)"
                e.details["quote_expired"] = True
            raise
        tx = PendingTransaction.from_solve_response(solved, chain.chain_id)
        result.transaction = tx

        if not request.broadcast:
            result.success = True
            logger.info(f"Quote {request.quote_id} prepared on {chain.name} (not broadcast)")
            return

        # Broadcast
        w3 = w3 or self._web3_for(chain)
        gas_params = await self.gas_estimator.estimate(w3, tx, self.signer.address)
        tx.gas_params = gas_params

        loop = asyncio.get_running_loop()
        try:
            tx_hash = await loop.run_in_executor(None, self.signer.send_transaction, w3, tx, gas_params)
        except Exception as e:
            raise BroadcastFailureError(chain.chain_id, str(e) or type(e).__name__) from e

        result.tx_hash = tx_hash
        result.explorer_url = self.registry.explorer_url(chain.chain_id, tx_hash)
        result.success = True
        logger.info(f"Quote {request.quote_id} broadcast on {chain.name}: {tx_hash}")

    def _web3_for(self, chain: ChainDescriptor) -> Web3:
        return self.web3_factory(chain.rpc_url)

    @staticmethod
    def _fail(result: ExecutionResult, error: HaikuError) -> ExecutionResult:
        logger.warning(f"Execution failed in {result.mode.value} mode: {error.code.value}")
        result.success = False
        result.tx_hash = None
        result.explorer_url = None
        result.error = error.describe()
        result.error_code = error.code.value
        return result
