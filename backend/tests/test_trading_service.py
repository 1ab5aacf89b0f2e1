"""
Trading Service Tests
Quote shaping, signature preparation, balances and intents

Run: python -m pytest tests/test_trading_service.py -v
"""

import pytest
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def haiku_client():
    return MagicMock()


# =============================================================================
# TEST: Quote
# =============================================================================

class TestGetQuote:

    @pytest.mark.asyncio
    async def test_permit2_quote(self, haiku_client, quote_response):
        from services.trading_service import get_quote

        haiku_client.get_quote = AsyncMock(return_value=quote_response)

        shaped = await get_quote(haiku_client, {"arb:0xusdc": "100"}, {"arb:0xweth": 1})

        assert shaped["quoteId"] == "q-123"
        assert shaped["requiresPermit2Signature"] is True
        assert shaped["requiresBridgeSignature"] is False
        assert shaped["sourceChainId"] == 42161
        assert shaped["approvals"][0]["value"] == "0x0"
        assert shaped["gas"]["amount"] == hex(100_000)

        payload = shaped["permit2SigningPayload"]
        assert payload["primaryType"] == "PermitSingle"
        assert payload["message"]["details"]["amount"] == hex(100_000_000)
        assert "bridgeSigningPayload" not in shaped

        intent = haiku_client.get_quote.call_args[0][0]
        assert intent == {
            "inputPositions": {"arb:0xusdc": "100"},
            "targetWeights": {"arb:0xweth": 1},
            "slippage": 0.003,
        }

        print(f"✅ Quote {shaped['quoteId']} on chain {shaped['sourceChainId']}")

    @pytest.mark.asyncio
    async def test_source_chain_from_input_slug(self, haiku_client):
        from services.trading_service import get_quote

        haiku_client.get_quote = AsyncMock(return_value={"quoteId": "q-2", "approvals": []})

        shaped = await get_quote(haiku_client, {"base:0xusdc": "5"}, {"base:0xweth": 1}, receiver="0xme")

        assert shaped["sourceChainId"] == 8453
        assert shaped["requiresPermit2Signature"] is False
        assert haiku_client.get_quote.call_args[0][0]["receiver"] == "0xme"

    @pytest.mark.asyncio
    async def test_unknown_slug_defaults_to_arbitrum(self, haiku_client):
        from services.trading_service import get_quote

        haiku_client.get_quote = AsyncMock(return_value={"quoteId": "q-3"})

        shaped = await get_quote(haiku_client, {"mystery:0xa": "1"}, {"mystery:0xb": 1})

        assert shaped["sourceChainId"] == 42161

    @pytest.mark.asyncio
    async def test_complex_bridge(self, haiku_client, bridge_typed_data):
        from services.trading_service import get_quote

        haiku_client.get_quote = AsyncMock(return_value={
            "quoteId": "q-4",
            "isComplexBridge": True,
            "destinationBridge": {"unsignedTypeV4Digest": bridge_typed_data},
        })

        shaped = await get_quote(haiku_client, {"arb:0xa": "1"}, {"base:0xb": 1})

        assert shaped["requiresBridgeSignature"] is True
        assert shaped["bridgeSigningPayload"]["primaryType"] == "BridgeIntent"
        assert shaped["bridgeSigningPayload"]["message"]["amount"] == hex(5 * 10**17)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("slippage", [-0.1, 1.5])
    async def test_invalid_slippage(self, haiku_client, slippage):
        from infrastructure.errors import ValidationError
        from services.trading_service import get_quote

        haiku_client.get_quote = AsyncMock()

        with pytest.raises(ValidationError):
            await get_quote(haiku_client, {"arb:0xa": "1"}, {"arb:0xb": 1}, slippage=slippage)

        haiku_client.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_positions(self, haiku_client):
        from infrastructure.errors import ValidationError
        from services.trading_service import get_quote

        with pytest.raises(ValidationError):
            await get_quote(haiku_client, {}, {"arb:0xb": 1})


# =============================================================================
# TEST: Signature Preparation
# =============================================================================

class TestPrepareSignatures:

    def test_permit2_only(self, quote_response):
        from services.trading_service import prepare_signatures

        prepared = prepare_signatures(quote_response)

        assert prepared.quote_id == "q-123"
        assert prepared.source_chain_id == 42161
        assert prepared.requires_permit2
        assert not prepared.requires_bridge_signature
        assert prepared.permit2.primary_type == "PermitSingle"
        assert prepared.bridge_intent is None

        lines = prepared.instructions.splitlines()
        assert lines[0].startswith("1. Sign the Permit2 typed data")
        assert lines[1].startswith("2. Call solve")
        assert lines[2] == '   - quoteId: "q-123"'
        assert lines[3] == "   - permit2Signature: <signature from step 1>"
        assert lines[4].startswith("3. Broadcast")

        data = prepared.to_dict()
        assert data["permit2"]["primaryType"] == "PermitSingle"
        assert "bridgeIntent" not in data

    def test_permit2_and_bridge(self, quote_response, bridge_typed_data):
        from services.trading_service import prepare_signatures

        quote_response["destinationBridge"] = {"unsignedTypeV4Digest": bridge_typed_data}

        prepared = prepare_signatures(quote_response)
        lines = prepared.instructions.splitlines()

        assert prepared.requires_bridge_signature
        assert lines[1].startswith("2. Sign the bridge intent")
        assert "   - userSignature: <signature from step 2>" in lines
        assert lines[-1].startswith("4. Broadcast")
        assert prepared.to_dict()["bridgeIntent"]["primaryType"] == "BridgeIntent"

        print(prepared.instructions)

    def test_no_signatures_needed(self):
        from services.trading_service import prepare_signatures

        prepared = prepare_signatures({"quoteId": "q-5"})
        lines = prepared.instructions.splitlines()

        assert prepared.source_chain_id == 1
        assert lines[0].startswith("1. Call solve")
        assert lines[-1].startswith("2. Broadcast")

    def test_chain_from_funds(self):
        from services.trading_service import prepare_signatures

        prepared = prepare_signatures({
            "quoteId": "q-6",
            "funds": [{"token": {"chainId": 10, "symbol": "USDC"}, "amount": "1"}],
        })

        assert prepared.source_chain_id == 10

    def test_missing_quote_id(self):
        from infrastructure.errors import ValidationError
        from services.trading_service import prepare_signatures

        with pytest.raises(ValidationError):
            prepare_signatures({"permit2Datas": {}})


# =============================================================================
# TEST: Solve / Balances / Intent
# =============================================================================

class TestSolveAndBalances:

    @pytest.mark.asyncio
    async def test_solve_normalizes_value(self, haiku_client, solve_response):
        from services.trading_service import solve

        haiku_client.solve = AsyncMock(return_value=solve_response)

        tx = await solve(haiku_client, "q-1", permit2_signature="0xpermit")

        assert tx["value"] == "0x0"
        haiku_client.solve.assert_awaited_once_with("q-1", permit2_signature="0xpermit", user_signature=None)

    @pytest.mark.asyncio
    async def test_balances_sorted_by_value(self, haiku_client):
        from services.trading_service import get_balances

        haiku_client.get_token_balances = AsyncMock(return_value={
            "wallet_positions": {"arb:a": "2", "arb:b": "0", "arb:c": "10", "arb:d": "5"},
            "prices": {"arb:a": "1500", "arb:b": "1", "arb:c": "1"},
            "categorised_wallet_positions": {"stable": ["arb:c"]},
        })

        result = await get_balances(haiku_client, "0xwallet")

        assert [b["token"] for b in result["balances"]] == ["arb:a", "arb:c"]
        assert result["balances"][0]["valueUSD"] == "3000.00"
        assert result["totalValueUSD"] == "3010.00"
        assert result["categorizedPositions"] == {"stable": ["arb:c"]}

    @pytest.mark.asyncio
    async def test_build_intent_relevant_balances(self, haiku_client):
        from services.trading_service import build_intent

        haiku_client.get_token_balances = AsyncMock(return_value={
            "wallet_positions": {"arb:weth": "1.5", "arb:dai": "20"},
            "prices": {"arb:weth": "3000"},
        })
        haiku_client.build_natural_language_intent = AsyncMock(return_value={
            "intent": {
                "inputPositions": {"arb:weth": "1.5"},
                "targetWeights": {"arb:usdc": 1},
            }
        })

        result = await build_intent(haiku_client, "swap all my WETH to USDC", "0xwallet")

        assert result["intent"]["targetWeights"] == {"arb:usdc": 1}
        assert result["walletContext"] == {
            "address": "0xwallet",
            "relevantBalances": [{"token": "arb:weth", "balance": "1.5", "priceUSD": "3000"}],
        }
        haiku_client.build_natural_language_intent.assert_awaited_once_with(
            "swap all my WETH to USDC",
            {"arb:weth": "1.5", "arb:dai": "20"},
            {"arb:weth": "3000"},
        )

    @pytest.mark.asyncio
    async def test_build_intent_requires_prompt(self, haiku_client):
        from infrastructure.errors import ValidationError
        from services.trading_service import build_intent

        with pytest.raises(ValidationError):
            await build_intent(haiku_client, "   ", "0xwallet")


# =============================================================================
# TEST: Single-Token Swap
# =============================================================================

class TestExecuteSwap:

    @pytest.mark.asyncio
    async def test_swap_without_signatures_solves(self, haiku_client, solve_response):
        from services.trading_service import execute_swap

        haiku_client.get_quote = AsyncMock(return_value={"quoteId": "q-7", "approvals": []})
        haiku_client.solve = AsyncMock(return_value=solve_response)

        result = await execute_swap(haiku_client, "arb:0xweth", "1.5", "arb:0xusdc", receiver="0xme")

        assert result["success"] is True
        assert result["quoteId"] == "q-7"
        assert result["requiresPermit2Signature"] is False
        assert result["transaction"]["to"] == solve_response["to"]
        assert result["transaction"]["value"] == "0x0"
        assert haiku_client.get_quote.call_args[0][0] == {
            "inputPositions": {"arb:0xweth": "1.5"},
            "targetWeights": {"arb:0xusdc": 1},
            "slippage": 0.003,
            "receiver": "0xme",
        }
        haiku_client.solve.assert_awaited_once_with("q-7", permit2_signature=None, user_signature=None)

    @pytest.mark.asyncio
    async def test_swap_needing_permit2_returns_payload(self, haiku_client, quote_response):
        from services.trading_service import execute_swap

        haiku_client.get_quote = AsyncMock(return_value=quote_response)
        haiku_client.solve = AsyncMock()

        result = await execute_swap(haiku_client, "arb:0xusdc", "100", "arb:0xweth")

        assert result["success"] is False
        assert result["requiresPermit2Signature"] is True
        assert result["quoteId"] == "q-123"
        assert result["permit2SigningPayload"]["primaryType"] == "PermitSingle"
        assert "transaction" not in result
        assert result["instructions"].startswith("1. Sign the Permit2 typed data")
        haiku_client.solve.assert_not_awaited()

        print(result["instructions"])

    @pytest.mark.asyncio
    async def test_swap_requires_tokens(self, haiku_client):
        from infrastructure.errors import ValidationError
        from services.trading_service import execute_swap

        haiku_client.get_quote = AsyncMock()

        with pytest.raises(ValidationError):
            await execute_swap(haiku_client, "arb:0xweth", "", "arb:0xusdc")

        haiku_client.get_quote.assert_not_awaited()
