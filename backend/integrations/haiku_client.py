"""
Haiku API Integration
HTTP client for the Haiku quoting/solving service
https://api.haiku.trade/v1
"""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from infrastructure.errors import UpstreamFailureError

logger = logging.getLogger("HaikuClient")

DEFAULT_BASE_URL = "https://api.haiku.trade/v1"
HAIKU_SOURCE_HEADER_VALUE = "haiku-execution-backend/0.1.0"


class HaikuAPIError(UpstreamFailureError):
    """Non-success response (or transport failure) from the Haiku API"""

    def __init__(self, status_code: Optional[int], message: str, endpoint: str = None):
        self.api_status_code = status_code
        self.endpoint = endpoint
        prefix = f"Haiku API error ({status_code})" if status_code else "Haiku API error"
        super().__init__("haiku", status_code, f"{prefix}: {message}")
        if endpoint:
            self.details["endpoint"] = endpoint

    @property
    def is_quote_expired(self) -> bool:
        """True when the caller should request a fresh quote"""
        if self.api_status_code == 410:
            return True
        return "expire" in self.message.lower()


class HaikuClient:
    """
    Async client for the Haiku API

    Features:
    - Token list and wallet balances
    - Quote (intent -> quote) and solve (quote -> unsigned tx)
    - Natural language intent building
    - Optional API key for higher rate limits
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")

        headers = {
            "Content-Type": "application/json",
            "Haiku-Source": HAIKU_SOURCE_HEADER_VALUE,
        }
        if api_key:
            headers["api-key"] = api_key

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config, secrets) -> "HaikuClient":
        """Create a client from ExecutorConfig + SecretsManager"""
        return cls(
            api_key=secrets.get("HAIKU_API_KEY"),
            base_url=config.haiku.base_url,
            timeout=config.haiku.request_timeout,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self.client.request(method, endpoint, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error(f"{method} {endpoint} transport error: {e}")
            raise HaikuAPIError(None, str(e) or type(e).__name__, endpoint) from e

        if response.is_success:
            return response.json()

        error_text = response.text
        try:
            error_json = response.json()
        except ValueError:
            error_json = None
        if isinstance(error_json, dict):
            error_message = error_json.get("message") or error_json.get("error") or error_text
        else:
            error_message = error_text
        if not isinstance(error_message, str):
            error_message = str(error_message)

        logger.warning(f"{method} {endpoint} failed: {response.status_code} - {error_message[:200]}")
        raise HaikuAPIError(response.status_code, error_message, endpoint)

    async def get_token_list(
        self,
        chain_id: Optional[int] = None,
        category: Optional[Union[str, List[str]]] = None,
        protocol: Optional[str] = None,
        symbol: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Get supported tokens

        Args:
            chain_id: Optional chain filter
            category: Token category or list of categories
            protocol: Protocol filter (comma separated for several)
            symbol: Symbol/name search (comma separated for several)
        """
        params: Dict[str, Any] = {}
        if chain_id is not None:
            params["chainId"] = chain_id
        if category:
            params["category"] = ",".join(category) if isinstance(category, (list, tuple)) else category
        if protocol:
            params["protocol"] = protocol
        if symbol:
            params["symbol"] = symbol
        return await self._request("GET", "/tokenList", params=params or None)

    async def get_token_balances(self, address: str) -> Dict[str, Any]:
        """Get token balances for a wallet address or ENS name"""
        return await self._request("GET", "/tokenBalances", params={"address": address})

    async def get_quote(self, intent: Dict[str, Any]) -> Dict[str, Any]:
        """
        Get a quote for a trading intent

        Args:
            intent: {inputPositions, targetWeights, slippage?, receiver?}
        """
        return await self._request("POST", "/quote", json={"intent": intent})

    async def solve(
        self,
        quote_id: str,
        permit2_signature: Optional[str] = None,
        user_signature: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Convert a quote into an unsigned EVM transaction {to, data, value}

        Absent signatures are omitted from the request body.
        """
        body: Dict[str, Any] = {"quoteId": quote_id}
        if permit2_signature:
            body["permit2Signature"] = permit2_signature
        if user_signature:
            body["userSignature"] = user_signature
        logger.info(f"Solving quote {quote_id} (permit2={'yes' if permit2_signature else 'no'}, "
                    f"bridge={'yes' if user_signature else 'no'})")
        return await self._request("POST", "/solve", json=body)

    async def build_natural_language_intent(
        self,
        text_prompt: str,
        wallet_positions: Dict[str, str],
        prices: Dict[str, str],
    ) -> Dict[str, Any]:
        """Convert a natural language prompt into a structured trading intent"""
        return await self._request("POST", "/buildIntentNaturalLanguage", json={
            "text_prompt": text_prompt,
            "wallet_positions": wallet_positions,
            "prices": prices,
        })

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()

    async def __aenter__(self) -> "HaikuClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
