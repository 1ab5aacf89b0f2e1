"""
Payload Normalizer
Converts the Haiku API wire format into canonical signing and transaction payloads.

The API serializes large integers as wrapper objects, e.g. {"type": "BigNumber", "hex": "0x0de0b6b3a7640000"}.
Two output modes share one traversal:
- STRING:  wrapper -> "0x..." (EIP-712 payloads, wallets expect hex strings)
- NUMERIC: wrapper -> int     (transaction construction, gas arithmetic)

Usage:
    payload = extract_permit2_payload(quote["permit2Datas"])
    tx = normalize_numbers(solve_response)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

PERMIT_BATCH = "PermitBatch"
PERMIT_SINGLE = "PermitSingle"
EIP712_DOMAIN = "EIP712Domain"


class NormalizeMode(str, Enum):
    STRING = "string"
    NUMERIC = "numeric"


def is_wrapped_bigint(value: Any) -> bool:
    """A mapping whose 'hex' field carries the integer as a hex string"""
    return isinstance(value, dict) and isinstance(value.get("hex"), str)


def _hex_to_string(wrapper: Dict[str, Any]) -> str:
    return wrapper["hex"]


def _hex_to_int(wrapper: Dict[str, Any]) -> int:
    return int(wrapper["hex"], 16)


_LEAF_TRANSFORMS: Dict[NormalizeMode, Callable[[Dict[str, Any]], Any]] = {
    NormalizeMode.STRING: _hex_to_string,
    NormalizeMode.NUMERIC: _hex_to_int,
}


def normalize(value: Any, mode: NormalizeMode = NormalizeMode.STRING) -> Any:
    """
    Recursively replace big-integer wrappers.

    Mappings keep all keys in order, sequences keep order and length,
    scalars pass through. The input is never mutated.
    """
    transform = _LEAF_TRANSFORMS[NormalizeMode(mode)]
    return _visit(value, transform)


def _visit(value: Any, transform: Callable[[Dict[str, Any]], Any]) -> Any:
    if is_wrapped_bigint(value):
        return transform(value)
    if isinstance(value, dict):
        return {key: _visit(item, transform) for key, item in value.items()}
    if isinstance(value, list):
        return [_visit(item, transform) for item in value]
    if isinstance(value, tuple):
        return tuple(_visit(item, transform) for item in value)
    return value


def normalize_strings(value: Any) -> Any:
    return normalize(value, NormalizeMode.STRING)


def normalize_numbers(value: Any) -> Any:
    return normalize(value, NormalizeMode.NUMERIC)


def coerce_int(value: Any) -> int:
    """int, decimal string or 0x string -> int. None and "" are 0."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Not an integer value: {value!r}")
    if isinstance(value, int):
        return value
    if is_wrapped_bigint(value):
        return _hex_to_int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    raise ValueError(f"Not an integer value: {value!r}")


def parse_chain_id(value: Any) -> Optional[int]:
    """Chain id as int if the value is numeric (int, decimal or hex string), else None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        chain_id = coerce_int(value)
    except (TypeError, ValueError):
        return None
    return chain_id if chain_id > 0 else None


# ============================================
# SIGNING PAYLOADS
# ============================================

@dataclass
class SigningPayload:
    """Canonical EIP-712 payload any wallet's signTypedData can consume"""
    domain: Dict[str, Any] = field(default_factory=dict)
    types: Dict[str, List[Dict[str, str]]] = field(default_factory=dict)
    primary_type: str = ""
    message: Dict[str, Any] = field(default_factory=dict)

    @property
    def chain_id(self) -> Optional[int]:
        return parse_chain_id((self.domain or {}).get("chainId"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "types": self.types,
            "primaryType": self.primary_type,
            "message": self.message,
        }


def _first_message_type(types: Dict[str, Any]) -> Optional[str]:
    for name in types:
        if name != EIP712_DOMAIN:
            return name
    return None


def extract_permit2_payload(raw: Dict[str, Any]) -> SigningPayload:
    """
    Permit2 typed data from a quote's permit2Datas.

    Primary type: explicit primaryType, else PermitBatch when present in types, else PermitSingle.
    """
    data = normalize_strings(raw)
    types = data.get("types") or {}
    primary_type = data.get("primaryType") or (PERMIT_BATCH if PERMIT_BATCH in types else PERMIT_SINGLE)
    message = data.get("values")
    if message is None:
        message = data.get("message") or {}
    return SigningPayload(
        domain=data.get("domain") or {},
        types=types,
        primary_type=primary_type,
        message=message,
    )


def extract_bridge_payload(raw: Dict[str, Any]) -> SigningPayload:
    """
    Bridge intent typed data from destinationBridge.unsignedTypeV4Digest.

    Primary type: explicit primaryType, else the first declared message type.
    """
    data = normalize_strings(raw)
    types = data.get("types") or {}
    primary_type = data.get("primaryType") or _first_message_type(types) or ""
    message = data.get("message")
    if message is None:
        message = data.get("values") or {}
    return SigningPayload(
        domain=data.get("domain") or {},
        types=types,
        primary_type=primary_type,
        message=message,
    )
