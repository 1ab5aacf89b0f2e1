"""
Haiku Router - Quote, signature preparation and execution endpoints
No endpoint accepts a private key; signing uses WALLET_PRIVATE_KEY from the process environment.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
import logging

from infrastructure.errors import ValidationError
from integrations.haiku_client import HaikuClient
from services import trading_service
from services.execution_models import ExecuteRequest
from services.execution_orchestrator import ExecutionOrchestrator

logger = logging.getLogger("HaikuRouter")
router = APIRouter(prefix="/api/haiku", tags=["haiku"])

_client: Optional[HaikuClient] = None
_orchestrator: Optional[ExecutionOrchestrator] = None


# Lazy singletons, overridable via app.dependency_overrides
def get_client() -> HaikuClient:
    global _client
    if _client is None:
        from infrastructure.config import get_config, get_secrets
        _client = HaikuClient.from_config(get_config(), get_secrets())
    return _client


def get_orchestrator(client: HaikuClient = Depends(get_client)) -> ExecutionOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        from infrastructure.config import get_config, get_secrets
        _orchestrator = ExecutionOrchestrator.from_config(client, get_config(), get_secrets())
    return _orchestrator


async def shutdown_client():
    """Close the shared HTTP client (app shutdown)"""
    global _client, _orchestrator
    if _client is not None:
        await _client.close()
    _client = None
    _orchestrator = None


# ==========================================
# Request Models
# ==========================================

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QuoteRequest(CamelModel):
    input_positions: Dict[str, str] = Field(alias="inputPositions")
    target_weights: Dict[str, float] = Field(alias="targetWeights")
    slippage: float = Field(default=trading_service.DEFAULT_SLIPPAGE, ge=0, le=1)
    receiver: Optional[str] = None


class SolveRequest(CamelModel):
    quote_id: str = Field(alias="quoteId")
    permit2_signature: Optional[str] = Field(default=None, alias="permit2Signature")
    user_signature: Optional[str] = Field(default=None, alias="userSignature")


class PrepareSignaturesRequest(CamelModel):
    quote_response: Dict[str, Any] = Field(alias="quoteResponse")


class SwapRequest(CamelModel):
    input_token: str = Field(alias="inputToken")
    input_amount: str = Field(alias="inputAmount")
    output_token: str = Field(alias="outputToken")
    slippage: float = Field(default=trading_service.DEFAULT_SLIPPAGE, ge=0, le=1)
    receiver: Optional[str] = None


class IntentRequest(CamelModel):
    prompt: str
    wallet_address: str = Field(alias="walletAddress")


class ExecuteBody(CamelModel):
    quote_id: str = Field(alias="quoteId")
    permit2_signing_payload: Optional[Dict[str, Any]] = Field(default=None, alias="permit2SigningPayload")
    bridge_signing_payload: Optional[Dict[str, Any]] = Field(default=None, alias="bridgeSigningPayload")
    permit2_signature: Optional[str] = Field(default=None, alias="permit2Signature")
    user_signature: Optional[str] = Field(default=None, alias="userSignature")
    approvals: Optional[List[Dict[str, Any]]] = None
    source_chain_id: Optional[int] = Field(default=None, alias="sourceChainId")
    broadcast: bool = True

    def to_request(self) -> ExecuteRequest:
        return ExecuteRequest(
            quote_id=self.quote_id,
            permit2_signing_payload=self.permit2_signing_payload,
            bridge_signing_payload=self.bridge_signing_payload,
            permit2_signature=self.permit2_signature,
            user_signature=self.user_signature,
            approvals=self.approvals,
            source_chain_id=self.source_chain_id,
            broadcast=self.broadcast,
        )


# ==========================================
# Discovery
# ==========================================

@router.get("/tokens")
async def get_tokens(
    chain_id: Optional[int] = Query(default=None, alias="chainId"),
    category: Optional[str] = None,
    protocol: Optional[str] = None,
    symbol: Optional[str] = None,
    client: HaikuClient = Depends(get_client),
):
    """Supported tokens, optionally filtered"""
    return await client.get_token_list(chain_id=chain_id, category=category, protocol=protocol, symbol=symbol)


@router.get("/balances")
async def get_balances(
    wallet_address: Optional[str] = Query(default=None, alias="walletAddress"),
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
):
    """Priced wallet balances. Defaults to the configured wallet when no address is given."""
    if not wallet_address:
        if not orchestrator.has_key:
            raise ValidationError("walletAddress is required when WALLET_PRIVATE_KEY is not set")
        wallet_address = orchestrator.signer.address
    return await trading_service.get_balances(orchestrator.client, wallet_address)


# ==========================================
# Quote / Solve
# ==========================================

@router.post("/quote")
async def get_quote(request: QuoteRequest, client: HaikuClient = Depends(get_client)):
    """Quote for an intent, with signing requirements and EIP-712 payloads"""
    return await trading_service.get_quote(
        client,
        request.input_positions,
        request.target_weights,
        slippage=request.slippage,
        receiver=request.receiver,
    )


@router.post("/solve")
async def solve(request: SolveRequest, client: HaikuClient = Depends(get_client)):
    """Unsigned transaction for a quote"""
    return await trading_service.solve(
        client,
        request.quote_id,
        permit2_signature=request.permit2_signature,
        user_signature=request.user_signature,
    )


@router.post("/swap")
async def swap(request: SwapRequest, client: HaikuClient = Depends(get_client)):
    """Single-token swap: unsigned transaction, or signing payloads when the quote needs them"""
    return await trading_service.execute_swap(
        client,
        request.input_token,
        request.input_amount,
        request.output_token,
        slippage=request.slippage,
        receiver=request.receiver,
    )


@router.post("/prepare-signatures")
async def prepare_signatures(request: PrepareSignaturesRequest):
    """EIP-712 payloads and instructions for an external wallet"""
    return trading_service.prepare_signatures(request.quote_response).to_dict()


@router.post("/intent")
async def build_intent(request: IntentRequest, client: HaikuClient = Depends(get_client)):
    """Natural language instruction -> structured intent"""
    return await trading_service.build_intent(client, request.prompt, request.wallet_address)


# ==========================================
# Execution
# ==========================================

@router.post("/execute")
async def execute(body: ExecuteBody, orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)):
    """
    Approvals, signing, solve and (optionally) broadcast for a quote.
    Always returns the execution result; failures are reported with success=false.
    """
    result = await orchestrator.execute(body.to_request())
    return result.to_dict()
