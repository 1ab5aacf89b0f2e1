"""
Approval Runner
Sends the quote's ERC-20 approvals one by one, each confirmed on-chain
before the next is submitted and before the main transaction is signed.

Failure policy: first failure aborts the run (no retry, no rollback of
approvals already mined).
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from web3 import Web3

from infrastructure.errors import ApprovalFailureError
from services.execution_models import ApprovalStep
from services.gas_estimator import GasEstimator
from services.signer import LocalSigner

logger = logging.getLogger("ApprovalRunner")

DEFAULT_RECEIPT_TIMEOUT = 120


class ApprovalRunner:
    """
    Usage:
        runner = ApprovalRunner(gas_estimator)
        confirmed = await runner.run(w3, chain_id, quote["approvals"], signer)
    """

    def __init__(
        self,
        gas_estimator: Optional[GasEstimator] = None,
        receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT,
    ):
        self.gas_estimator = gas_estimator or GasEstimator()
        self.receipt_timeout = receipt_timeout

    async def run(
        self,
        w3: Web3,
        chain_id: int,
        approvals: Sequence[Union[ApprovalStep, Dict[str, Any]]],
        signer: LocalSigner,
    ) -> List[str]:
        """Submit and confirm every approval in order. Returns the confirmed tx hashes."""
        loop = asyncio.get_running_loop()
        confirmed: List[str] = []

        for index, raw in enumerate(approvals):
            tx_hash = None
            try:
                step = raw if isinstance(raw, ApprovalStep) else ApprovalStep.from_dict(raw)
                pending = step.to_pending(chain_id)

                gas_params = await self.gas_estimator.estimate(w3, pending, signer.address)
                tx_hash = await loop.run_in_executor(
                    None, signer.send_transaction, w3, pending, gas_params
                )
                logger.info(f"Approval {index + 1}/{len(approvals)} sent: {tx_hash}")

                receipt = await loop.run_in_executor(
                    None, self._wait_for_receipt, w3, tx_hash
                )
            except Exception as e:
                logger.error(f"Approval {index + 1}/{len(approvals)} failed: {e}")
                raise ApprovalFailureError(str(e), index, confirmed, tx_hash) from e

            if receipt.get("status") != 1:
                logger.error(f"Approval {index + 1}/{len(approvals)} reverted: {tx_hash}")
                raise ApprovalFailureError("transaction reverted", index, confirmed, tx_hash)

            confirmed.append(tx_hash)
            logger.info(f"Approval {index + 1}/{len(approvals)} confirmed in block {receipt.get('blockNumber')}")

        return confirmed

    def _wait_for_receipt(self, w3: Web3, tx_hash: str):
        return w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
