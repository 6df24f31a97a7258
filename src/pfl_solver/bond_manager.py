#!/usr/bin/env python3
"""Atlas bond management for the solver account.

Atlas only executes solver operations from solvers holding a bonded
balance. Before submitting, the solver tops its bond up to a configured
minimum with ``depositAndBond``.
"""

import logging

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract

from .errors import BondingFailure

logger = logging.getLogger(__name__)


class AtlasBondManager:
    """Reads and tops up the solver's bonded Atlas balance."""

    def __init__(
        self,
        w3: AsyncWeb3,
        atlas: AsyncContract,
        account: LocalAccount,
        chain_id: int,
        receipt_timeout: int = 120,
    ) -> None:
        """
        Initialize the AtlasBondManager.

        Args:
            w3: Async chain client
            atlas: Atlas contract binding
            account: Solver account owning the bond
            chain_id: Chain the bond transaction is signed for
            receipt_timeout: Seconds to wait for the bond transaction
        """
        self.w3 = w3
        self.atlas = atlas
        self.account = account
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout

    async def balance_of_bonded(self, account: str | None = None) -> int:
        """Bonded balance of ``account`` (default: the solver) in wei."""
        owner = Web3.to_checksum_address(account or self.account.address)
        return int(await self.atlas.functions.balanceOfBonded(owner).call())

    async def ensure_bond(self, minimum_bond: int) -> int | None:
        """
        Make sure the solver has at least ``minimum_bond`` wei bonded.

        Args:
            minimum_bond: Required bonded balance in wei

        Returns:
            Amount deposited in wei, None if the bond was already sufficient

        Raises:
            BondingFailure: If reading the bond or the deposit fails
        """
        logger.info("Checking Atlas bond balance...")
        try:
            current_bond = await self.balance_of_bonded()
        except Exception as e:
            raise BondingFailure(f"Could not read bonded balance: {e}") from e

        logger.info(f"Current bond balance: {Web3.from_wei(current_bond, 'ether')}")
        logger.info(f"Minimum required: {Web3.from_wei(minimum_bond, 'ether')}")

        if current_bond >= minimum_bond:
            logger.info("Sufficient bond balance already exists")
            return None

        bond_amount = minimum_bond - current_bond
        logger.info(f"Bonding additional {Web3.from_wei(bond_amount, 'ether')}...")

        try:
            nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")
            tx = await self.atlas.functions.depositAndBond(bond_amount).build_transaction({
                'from': self.account.address,
                'value': bond_amount,
                'nonce': nonce,
                'chainId': self.chain_id,
            })
            signed = self.account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info(f"Bond transaction submitted: {Web3.to_hex(tx_hash)}")

            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as e:
            raise BondingFailure(f"Bond deposit failed: {e}") from e

        if (status := receipt.get('status', 0)) != 1:
            raise BondingFailure(f"Bond transaction failed with status={status}")

        logger.info(f"✓ Bond transaction confirmed in block {receipt.get('blockNumber')}")
        try:
            new_bond = await self.balance_of_bonded()
        except Exception as e:
            raise BondingFailure(f"Could not read bonded balance after deposit: {e}") from e
        logger.info(f"New bond balance: {Web3.from_wei(new_bond, 'ether')}")
        return bond_amount
