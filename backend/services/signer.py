"""
Local Signer
EIP-712 signatures and transaction submission with the configured wallet key.

Security Model:
- The key is read from WALLET_PRIVATE_KEY only (never a per-call argument)
- The account is derived once; only the address is exposed
- Nothing here logs the key or the produced signatures
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3

from infrastructure.errors import SigningFailureError
from services.payload_normalizer import EIP712_DOMAIN, SigningPayload, normalize_strings

if TYPE_CHECKING:
    from services.execution_models import PendingTransaction
    from services.gas_estimator import GasParams

logger = logging.getLogger("Signer")

DOMAIN_FIELDS = ("name", "version", "chainId", "verifyingContract", "salt")


def normalize_private_key(private_key: str) -> str:
    """Accept keys with or without the 0x prefix"""
    key = (private_key or "").strip()
    if not key:
        raise ValueError("Private key is empty")
    return key if key.startswith("0x") else f"0x{key}"


class LocalSigner:
    """
    Holds one locally derived account.

    Usage:
        signer = LocalSigner.from_secrets(secrets)
        signature = signer.sign_typed_data(payload)
        tx_hash = signer.send_transaction(w3, pending_tx, gas_params)
    """

    def __init__(self, private_key: str):
        try:
            self._account = Account.from_key(normalize_private_key(private_key))
        except Exception as e:
            # The exception text may echo the key material; keep only its type
            raise SigningFailureError(f"Invalid WALLET_PRIVATE_KEY ({type(e).__name__})") from None

    @classmethod
    def from_secrets(cls, secrets) -> Optional["LocalSigner"]:
        """Signer for WALLET_PRIVATE_KEY, or None when no key is configured"""
        private_key = secrets.get("WALLET_PRIVATE_KEY")
        if not private_key:
            return None
        signer = cls(private_key)
        logger.info(f"Local signer loaded for {signer.address}")
        return signer

    @property
    def address(self) -> str:
        return self._account.address

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"

    # ===========================================
    # EIP-712
    # ===========================================

    def sign_typed_data(self, payload: SigningPayload, payload_name: str = "typed data") -> str:
        """Sign an EIP-712 payload, returning the 0x-prefixed signature"""
        try:
            signable = encode_typed_data(full_message=build_typed_data_message(payload))
            signed = self._account.sign_message(signable)
        except Exception as e:
            raise SigningFailureError(f"Failed to sign {payload_name}: {e}", payload_name) from e
        return Web3.to_hex(signed.signature)

    # ===========================================
    # TRANSACTIONS
    # ===========================================

    def build_transaction(
        self,
        w3: Web3,
        tx: "PendingTransaction",
        gas_params: Optional["GasParams"] = None,
    ) -> Dict[str, Any]:
        """Fill nonce, chain id and gas fields for a pending transaction"""
        call = {
            "from": self.address,
            "to": Web3.to_checksum_address(tx.to),
            "data": tx.data,
            "value": tx.value,
        }
        transaction = dict(call)
        transaction["chainId"] = tx.chain_id
        transaction["nonce"] = w3.eth.get_transaction_count(self.address, "pending")

        if gas_params is not None:
            transaction.update(gas_params.to_tx_fields())
        else:
            # No estimate available: node defaults
            transaction["gas"] = w3.eth.estimate_gas(call)
            transaction["gasPrice"] = w3.eth.gas_price

        return transaction

    def send_transaction(
        self,
        w3: Web3,
        tx: "PendingTransaction",
        gas_params: Optional["GasParams"] = None,
    ) -> str:
        """Sign locally and submit. Returns the tx hash; does not wait for the receipt."""
        transaction = self.build_transaction(w3, tx, gas_params)
        signed = self._account.sign_transaction(transaction)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)


def build_typed_data_message(payload: SigningPayload) -> Dict[str, Any]:
    """
    Full EIP-712 message for encode_typed_data.

    Domain types are derived from the domain fields present, so a declared
    EIP712Domain entry is dropped and empty domain fields are removed.
    """
    data = normalize_strings(payload.to_dict())
    domain = {
        key: value
        for key, value in (data.get("domain") or {}).items()
        if key in DOMAIN_FIELDS and value is not None
    }
    types = {name: fields for name, fields in (data.get("types") or {}).items() if name != EIP712_DOMAIN}

    message = {
        "domain": domain,
        "types": types,
        "message": data.get("message") or {},
    }
    if data.get("primaryType"):
        message["primaryType"] = data["primaryType"]
    return message
