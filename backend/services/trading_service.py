"""
Trading Service
Quote shaping and signature preparation around the Haiku API.

- get_quote:          quote + signing requirements + canonical EIP-712 payloads
- prepare_signatures: payloads and step-by-step instructions for an external wallet
- solve:              unsigned transaction with big integers as hex strings
- get_balances:       priced wallet positions, sorted by USD value
- execute_swap:       single-token swap, quote + solve when no signature is needed
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from infrastructure.chains import ChainRegistry
from infrastructure.errors import ValidationError
from integrations.haiku_client import HaikuClient
from services.payload_normalizer import (
    SigningPayload,
    extract_bridge_payload,
    extract_permit2_payload,
    normalize_strings,
    parse_chain_id,
)

logger = logging.getLogger("TradingService")

DEFAULT_SLIPPAGE = 0.003
DEFAULT_QUOTE_CHAIN_ID = 42161
DEFAULT_PREPARE_CHAIN_ID = 1


def _bridge_typed_data(quote: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return (quote.get("destinationBridge") or {}).get("unsignedTypeV4Digest")


def _permit2_chain_id(quote: Dict[str, Any]) -> Optional[int]:
    permit2 = quote.get("permit2Datas")
    return extract_permit2_payload(permit2).chain_id if permit2 else None


# ============================================
# QUOTE
# ============================================

async def get_quote(
    client: HaikuClient,
    input_positions: Dict[str, str],
    target_weights: Dict[str, float],
    slippage: float = DEFAULT_SLIPPAGE,
    receiver: Optional[str] = None,
    registry: Optional[ChainRegistry] = None,
) -> Dict[str, Any]:
    """
    Request a quote and surface what the caller needs to execute it.

    Adds requiresPermit2Signature, requiresBridgeSignature, sourceChainId,
    permit2SigningPayload and bridgeSigningPayload to the sanitized response.
    """
    if not input_positions:
        raise ValidationError("inputPositions must contain at least one token")
    if not target_weights:
        raise ValidationError("targetWeights must contain at least one token")
    if not 0 <= slippage <= 1:
        raise ValidationError("slippage must be between 0 and 1", {"slippage": slippage})

    intent: Dict[str, Any] = {
        "inputPositions": input_positions,
        "targetWeights": target_weights,
        "slippage": slippage,
    }
    if receiver:
        intent["receiver"] = receiver

    response = await client.get_quote(intent)
    registry = registry or ChainRegistry()

    requires_permit2 = bool(response.get("permit2Datas"))
    requires_bridge = bool(response.get("isComplexBridge")) and bool(response.get("destinationBridge"))

    # Permit2 domain is most reliable; then the chain slug of the first input token IID
    first_slug = next(iter(input_positions)).split(":")[0]
    source_chain_id = (
        _permit2_chain_id(response)
        or registry.chain_id_for_slug(first_slug)
        or DEFAULT_QUOTE_CHAIN_ID
    )

    shaped = normalize_strings(response)
    shaped["requiresPermit2Signature"] = requires_permit2
    shaped["requiresBridgeSignature"] = requires_bridge
    shaped["sourceChainId"] = source_chain_id

    if requires_permit2:
        shaped["permit2SigningPayload"] = extract_permit2_payload(response["permit2Datas"]).to_dict()

    bridge_typed_data = _bridge_typed_data(response)
    if bridge_typed_data:
        shaped["bridgeSigningPayload"] = extract_bridge_payload(bridge_typed_data).to_dict()

    logger.info(
        f"Quote {shaped.get('quoteId')} on chain {source_chain_id}: "
        f"{len(shaped.get('approvals') or [])} approvals, permit2={requires_permit2}, bridge={requires_bridge}"
    )
    return shaped


# ============================================
# SIGNATURE PREPARATION
# ============================================

@dataclass
class PreparedSignatures:
    quote_id: str
    source_chain_id: int
    requires_permit2: bool
    requires_bridge_signature: bool
    permit2: Optional[SigningPayload] = None
    bridge_intent: Optional[SigningPayload] = None
    instructions: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "quoteId": self.quote_id,
            "sourceChainId": self.source_chain_id,
            "requiresPermit2": self.requires_permit2,
            "requiresBridgeSignature": self.requires_bridge_signature,
            "instructions": self.instructions,
            "raw": self.raw,
        }
        if self.permit2 is not None:
            result["permit2"] = self.permit2.to_dict()
        if self.bridge_intent is not None:
            result["bridgeIntent"] = self.bridge_intent.to_dict()
        return result


def prepare_signatures(quote_response: Dict[str, Any]) -> PreparedSignatures:
    """Extract wallet-agnostic EIP-712 payloads from a full quote response"""
    quote_id = (quote_response or {}).get("quoteId")
    if not quote_id:
        raise ValidationError("quoteResponse must contain quoteId")

    funds = quote_response.get("funds") or []
    first_token = (funds[0].get("token") if funds and isinstance(funds[0], dict) else None)
    fund_chain_id = parse_chain_id(first_token.get("chainId")) if isinstance(first_token, dict) else None
    source_chain_id = _permit2_chain_id(quote_response) or fund_chain_id or DEFAULT_PREPARE_CHAIN_ID

    permit2_datas = quote_response.get("permit2Datas")
    bridge_typed_data = _bridge_typed_data(quote_response)

    prepared = PreparedSignatures(
        quote_id=quote_id,
        source_chain_id=source_chain_id,
        requires_permit2=bool(permit2_datas),
        requires_bridge_signature=bool(bridge_typed_data),
        raw={"permit2Datas": permit2_datas, "typedData": bridge_typed_data},
    )
    if permit2_datas:
        prepared.permit2 = extract_permit2_payload(permit2_datas)
    if bridge_typed_data:
        prepared.bridge_intent = extract_bridge_payload(bridge_typed_data)

    prepared.instructions = build_instructions(prepared)
    return prepared


def build_instructions(prepared: PreparedSignatures) -> str:
    """Numbered steps for completing the flow with an external wallet"""
    steps: List[str] = []
    permit2_step = None
    bridge_step = None

    if prepared.requires_permit2:
        permit2_step = len(steps) + 1
        steps.append(f"{permit2_step}. Sign the Permit2 typed data using your wallet's signTypedData function")
    if prepared.requires_bridge_signature:
        bridge_step = len(steps) + 1
        steps.append(f"{bridge_step}. Sign the bridge intent typed data using your wallet's signTypedData function")

    steps.append(f"{len(steps) + 1}. Call solve (or execute with broadcast=false) with:")
    steps.append(f'   - quoteId: "{prepared.quote_id}"')
    if permit2_step:
        steps.append(f"   - permit2Signature: <signature from step {permit2_step}>")
    if bridge_step:
        steps.append(f"   - userSignature: <signature from step {bridge_step}>")

    step_count = sum(1 for line in steps if not line.startswith(" "))
    steps.append(
        f"{step_count + 1}. Broadcast the returned transaction using your wallet's sendTransaction function"
    )
    return "\n".join(steps)


# ============================================
# SOLVE / BALANCES
# ============================================

async def solve(
    client: HaikuClient,
    quote_id: str,
    permit2_signature: Optional[str] = None,
    user_signature: Optional[str] = None,
) -> Dict[str, Any]:
    """Unsigned transaction {to, data, value} for a quote"""
    if not quote_id:
        raise ValidationError("quoteId is required")
    transaction = await client.solve(quote_id, permit2_signature=permit2_signature, user_signature=user_signature)
    return normalize_strings(transaction)


async def get_balances(client: HaikuClient, wallet_address: str) -> Dict[str, Any]:
    """Positive, priced wallet positions with USD values, highest value first"""
    if not wallet_address:
        raise ValidationError("walletAddress is required")

    response = await client.get_token_balances(wallet_address)
    prices = response.get("prices") or {}

    total_value_usd = 0.0
    balances = []
    for token, balance in (response.get("wallet_positions") or {}).items():
        price = prices.get(token)
        try:
            amount = float(balance)
            price_value = float(price) if price is not None else None
        except (TypeError, ValueError):
            continue
        if price_value is None or amount <= 0:
            continue
        value_usd = amount * price_value
        total_value_usd += value_usd
        balances.append({
            "token": token,
            "balance": balance,
            "priceUSD": price,
            "valueUSD": f"{value_usd:.2f}",
        })

    balances.sort(key=lambda item: float(item["valueUSD"]), reverse=True)

    return {
        "walletAddress": wallet_address,
        "totalValueUSD": f"{total_value_usd:.2f}",
        "balances": balances,
        "categorizedPositions": response.get("categorised_wallet_positions") or {},
    }


async def build_intent(client: HaikuClient, prompt: str, wallet_address: str) -> Dict[str, Any]:
    """
    Natural language -> structured intent, with the wallet's balances as context.

    Returns {intent, walletContext: {address, relevantBalances}} where
    relevantBalances covers the tokens the intent spends or targets.
    """
    if not prompt or not prompt.strip():
        raise ValidationError("prompt must not be empty")
    if not wallet_address:
        raise ValidationError("walletAddress is required")

    balances = await client.get_token_balances(wallet_address)
    positions = balances.get("wallet_positions") or {}
    prices = balances.get("prices") or {}

    response = await client.build_natural_language_intent(prompt, positions, prices)
    intent = response.get("intent") or {}

    relevant_tokens = list(dict.fromkeys([
        *(intent.get("inputPositions") or {}),
        *(intent.get("targetWeights") or {}),
    ]))
    relevant_balances = [
        {"token": token, "balance": positions[token], "priceUSD": prices.get(token) or "0"}
        for token in relevant_tokens
        if positions.get(token)
    ]

    return {
        "intent": intent,
        "walletContext": {
            "address": wallet_address,
            "relevantBalances": relevant_balances,
        },
    }


# ============================================
# SWAP
# ============================================

async def execute_swap(
    client: HaikuClient,
    input_token: str,
    input_amount: str,
    output_token: str,
    slippage: float = DEFAULT_SLIPPAGE,
    receiver: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Quote a single-token swap and solve it when no signature is required.

    Quotes that need a Permit2 or bridge signature come back with
    success=False, the signing payloads and instructions for the
    signature-based flow. Otherwise the unsigned transaction is returned.
    """
    if not input_token or not output_token:
        raise ValidationError("inputToken and outputToken are required")
    if not input_amount:
        raise ValidationError("inputAmount is required")

    quote = await get_quote(
        client,
        {input_token: input_amount},
        {output_token: 1},
        slippage=slippage,
        receiver=receiver,
    )
    quote_id = quote.get("quoteId")

    if quote["requiresPermit2Signature"] or quote["requiresBridgeSignature"]:
        logger.info(f"Swap quote {quote_id} needs signatures, returning payloads")
        response: Dict[str, Any] = {
            "success": False,
            "requiresPermit2Signature": quote["requiresPermit2Signature"],
            "requiresBridgeSignature": quote["requiresBridgeSignature"],
            "quoteId": quote_id,
            "quote": quote,
            "instructions": prepare_signatures(quote).instructions,
        }
        for key in ("permit2SigningPayload", "bridgeSigningPayload"):
            if key in quote:
                response[key] = quote[key]
        return response

    transaction = await solve(client, quote_id)
    logger.info(f"Swap quote {quote_id} solved: {input_amount} {input_token} -> {output_token}")
    return {
        "success": True,
        "requiresPermit2Signature": False,
        "requiresBridgeSignature": False,
        "quoteId": quote_id,
        "quote": quote,
        "transaction": transaction,
    }
