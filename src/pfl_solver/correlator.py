"""userOpHash correlation against the PFL DAppControl contract.

The DAppControl derives the userOpHash binding an opportunity transaction's
hash and fees to the FastLane dApp-op signer. This read-only call is the only
on-chain validation of the opportunity transaction before submission.
"""

import logging

from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract
from web3.exceptions import ContractLogicError

from .errors import ContractNotFound, CorrelationReverted

logger = logging.getLogger(__name__)


class UserOpHashCorrelator:
    """Derives the operation identifier for an opportunity transaction."""

    def __init__(self, w3: AsyncWeb3, dapp_control: AsyncContract) -> None:
        """
        Initialize the UserOpHashCorrelator.

        Args:
            w3: Async chain client used for the code-presence check
            dapp_control: DAppControl contract binding
        """
        self.w3 = w3
        self.dapp_control = dapp_control
        self.control_address: str = Web3.to_checksum_address(dapp_control.address)

    async def ensure_deployed(self) -> None:
        """Raise ContractNotFound if the DAppControl has no code."""
        code = await self.w3.eth.get_code(self.control_address)
        if not code:
            raise ContractNotFound(self.control_address)
        logger.info(f"Contract found at {self.control_address}")

    async def correlate(
        self,
        tx_hash: str,
        max_fee_per_gas: int,
        max_priority_fee_per_gas: int,
        beneficiary: str,
    ) -> str:
        """
        Fetch the userOpHash for an opportunity transaction.

        No retry is applied: a revert means the transaction does not match
        what the relay expects, which another attempt cannot change.

        Args:
            tx_hash: Hash of the signed opportunity transaction
            max_fee_per_gas: Opportunity max fee per gas
            max_priority_fee_per_gas: Opportunity priority fee per gas
            beneficiary: FastLane signer the hash is bound to

        Returns:
            The 32-byte userOpHash as 0x-prefixed hex

        Raises:
            ContractNotFound: If the DAppControl is not deployed
            CorrelationReverted: If the call reverts
        """
        await self.ensure_deployed()

        try:
            user_op_hash = await self.dapp_control.functions.getBackrunUserOpHash(
                HexBytes(tx_hash),
                max_fee_per_gas,
                max_priority_fee_per_gas,
                Web3.to_checksum_address(beneficiary),
            ).call()
        except ContractLogicError as e:
            logger.error("Error calling getBackrunUserOpHash:")
            if e.data:
                logger.error(f"Revert data: {e.data}")
            raise CorrelationReverted(
                f"getBackrunUserOpHash reverted: {getattr(e, 'message', None) or e}",
                revert_data=e.data,
            ) from e

        user_op_hash_hex = Web3.to_hex(user_op_hash)
        logger.info(f"Got userOpHash from dAppControl: {user_op_hash_hex}")
        return user_op_hash_hex
