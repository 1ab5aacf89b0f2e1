"""
Gas Estimator
Best-effort gas limit and fee estimation for a pending transaction.

- Gas estimate and fee lookup are issued concurrently
- Gas limit gets a 20% buffer: estimate * 6 // 5
- Any failure returns None and the caller falls back to node defaults
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from web3 import Web3

if TYPE_CHECKING:
    from services.execution_models import PendingTransaction

logger = logging.getLogger("GasEstimator")

GAS_BUFFER_NUMERATOR = 6
GAS_BUFFER_DENOMINATOR = 5


@dataclass(frozen=True)
class GasParams:
    gas: int
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas_price: Optional[int] = None  # chains without EIP-1559 fees

    def to_tx_fields(self) -> Dict[str, int]:
        if self.gas_price is not None:
            return {"gas": self.gas, "gasPrice": self.gas_price}
        return {
            "gas": self.gas,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
        }

    def to_dict(self) -> Dict[str, Any]:
        fields = {"gasLimit": str(self.gas)}
        if self.gas_price is not None:
            fields["gasPrice"] = str(self.gas_price)
        else:
            fields["maxFeePerGas"] = str(self.max_fee_per_gas)
            fields["maxPriorityFeePerGas"] = str(self.max_priority_fee_per_gas)
        return fields


def apply_gas_buffer(raw_estimate: int) -> int:
    return raw_estimate * GAS_BUFFER_NUMERATOR // GAS_BUFFER_DENOMINATOR


def fetch_fees(w3: Web3) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    """(max_fee_per_gas, max_priority_fee_per_gas, gas_price) from the latest block"""
    block = w3.eth.get_block("latest")
    base_fee = block.get("baseFeePerGas")
    if base_fee is None:
        return None, None, w3.eth.gas_price
    priority_fee = w3.eth.max_priority_fee
    return 2 * base_fee + priority_fee, priority_fee, None


class GasEstimator:
    """
    Usage:
        estimator = GasEstimator()
        params = await estimator.estimate(w3, pending_tx, signer.address)
        # params is None when estimation degraded
    """

    async def estimate(
        self,
        w3: Web3,
        tx: "PendingTransaction",
        sender: Optional[str] = None,
    ) -> Optional[GasParams]:
        call = {
            "to": Web3.to_checksum_address(tx.to),
            "data": tx.data,
            "value": tx.value,
        }
        if sender:
            call["from"] = sender

        loop = asyncio.get_running_loop()
        try:
            raw_gas, fees = await asyncio.gather(
                loop.run_in_executor(None, w3.eth.estimate_gas, call),
                loop.run_in_executor(None, fetch_fees, w3),
            )
        except Exception as e:
            logger.warning(f"Gas estimation failed on chain {tx.chain_id}, using node defaults: {e}")
            return None

        max_fee, priority_fee, gas_price = fees
        params = GasParams(
            gas=apply_gas_buffer(int(raw_gas)),
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority_fee,
            gas_price=gas_price,
        )
        logger.info(f"Gas estimate on chain {tx.chain_id}: raw {raw_gas} -> limit {params.gas}")
        return params
