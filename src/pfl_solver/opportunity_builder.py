#!/usr/bin/env python3
"""Opportunity transaction construction for the PFL solver.

The opportunity transaction is a zero-value EIP-1559 self-transfer. It does
nothing economically meaningful; it only provides the hash the solver
operation is bound to.
"""

import logging

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from .config import FeeConfig, FeePolicy
from .errors import FeeUnavailable, SigningFailure
from .models import OpportunityTransaction

logger = logging.getLogger(__name__)


class OpportunityTxBuilder:
    """Builds and signs the opportunity transaction."""

    def __init__(
        self,
        w3: AsyncWeb3,
        account: LocalAccount,
        chain_id: int,
        fees: FeeConfig,
    ) -> None:
        """
        Initialize the OpportunityTxBuilder.

        Args:
            w3: Async chain client used for fee and nonce lookups
            account: Local account signing the opportunity transaction
            chain_id: Chain the transaction is signed for
            fees: Fee policy and static fee values
        """
        self.w3 = w3
        self.account = account
        self.chain_id = chain_id
        self.fees = fees

    async def resolve_fees(self) -> tuple[int, int]:
        """
        Resolve (maxFeePerGas, maxPriorityFeePerGas) for the configured policy.

        Live fees follow the usual estimate: the node's suggested priority fee
        plus twice the latest base fee.

        Returns:
            Tuple of max fee and priority fee in wei

        Raises:
            FeeUnavailable: If the node cannot provide both fee fields
        """
        match self.fees.policy:
            case FeePolicy.STATIC:
                return self.fees.static_max_fee_per_gas, self.fees.static_max_priority_fee_per_gas
            case FeePolicy.LIVE:
                try:
                    priority_fee = await self.w3.eth.max_priority_fee
                    latest_block = await self.w3.eth.get_block("latest")
                except Exception as e:
                    raise FeeUnavailable(f"Could not get current gas prices: {e}") from e

                base_fee = latest_block.get("baseFeePerGas")
                if base_fee is None or priority_fee is None:
                    raise FeeUnavailable(
                        "Could not get current gas prices: node returned no EIP-1559 fee data"
                    )
                return 2 * int(base_fee) + int(priority_fee), int(priority_fee)
            case _:
                raise FeeUnavailable(f"Unsupported fee policy: {self.fees.policy}")

    async def build(self) -> OpportunityTransaction:
        """
        Build and sign the opportunity transaction.

        Returns:
            The signed, immutable opportunity transaction

        Raises:
            FeeUnavailable: If fees cannot be resolved
            SigningFailure: If local signing fails
        """
        max_fee_per_gas, max_priority_fee_per_gas = await self.resolve_fees()
        nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")

        tx = {
            "type": 2,
            "chainId": self.chain_id,
            "nonce": nonce,
            "to": self.account.address,
            "value": 0,
            "gas": self.fees.opportunity_gas_limit,
            "maxFeePerGas": max_fee_per_gas,
            "maxPriorityFeePerGas": max_priority_fee_per_gas,
            "data": b"",
        }

        logger.info("Building opportunity transaction:")
        logger.info(f"  To: {tx['to']}")
        logger.info(f"  Max Fee Per Gas: {max_fee_per_gas}")
        logger.info(f"  Max Priority Fee Per Gas: {max_priority_fee_per_gas}")
        logger.info(f"  Chain ID: {self.chain_id}")
        logger.info(f"  Nonce: {nonce}")

        try:
            signed = self.account.sign_transaction(tx)
        except Exception as e:
            raise SigningFailure(f"Could not sign opportunity transaction: {e}") from e

        # The record is decoded from the signed envelope, not from the request
        opportunity_tx = OpportunityTransaction.from_raw(signed.raw_transaction)
        if opportunity_tx.sender != self.account.address:
            raise SigningFailure(
                f"Signed transaction recovers to {opportunity_tx.sender}, expected {self.account.address}"
            )

        logger.debug(f"Signed {opportunity_tx}")
        return opportunity_tx
