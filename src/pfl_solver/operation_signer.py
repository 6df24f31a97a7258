#!/usr/bin/env python3
"""Solver operation construction and EIP-712 signing.

The signature is computed over the exact ``SolverOperation`` struct layout
verified by AtlasVerification, scoped to a fixed domain (name, version,
chain id, verifying contract).
"""

import logging
from typing import Any

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.constants import ADDRESS_ZERO

from .config import ContractsConfig
from .errors import SigningFailure
from .models import SOLVER_OPERATION_TYPE, SolverOperation

logger = logging.getLogger(__name__)

EIP712_DOMAIN_TYPE: list[dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

# ABI-encoded call to a zero-argument solve(); a real solver would encode its backrun here
SOLVE_CALLDATA: bytes = bytes(Web3.keccak(text="solve()")[:4])


def build_typed_data(domain: dict[str, Any], operation: SolverOperation) -> dict[str, Any]:
    """Full EIP-712 message for a solver operation."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            SolverOperation.PRIMARY_TYPE: SOLVER_OPERATION_TYPE,
        },
        "primaryType": SolverOperation.PRIMARY_TYPE,
        "domain": domain,
        "message": operation.to_typed_data_message(),
    }


def encode_operation(domain: dict[str, Any], operation: SolverOperation) -> SignableMessage:
    """Encode a solver operation into the EIP-712 signable message."""
    return encode_typed_data(full_message=build_typed_data(domain, operation))


class SolverOperationSigner:
    """Builds and signs solver operations with the solver key."""

    def __init__(
        self,
        account: LocalAccount,
        contracts: ContractsConfig,
        chain_id: int,
        gas_limit: int = 21000,
    ) -> None:
        """
        Initialize the SolverOperationSigner.

        Args:
            account: Solver account signing the operation
            contracts: Atlas addresses and EIP-712 domain settings
            chain_id: Chain id of the verification domain
            gas_limit: Gas limit declared in the operation
        """
        self.account = account
        self.contracts = contracts
        self.chain_id = chain_id
        self.gas_limit = gas_limit

    @property
    def domain(self) -> dict[str, Any]:
        """EIP-712 domain for verifying solver operations."""
        return {
            "name": self.contracts.eip712_name,
            "version": self.contracts.eip712_version,
            "chainId": self.chain_id,
            "verifyingContract": self.contracts.atlas_verification_address,
        }

    def build_operation(
        self,
        user_op_hash: str,
        bid_amount: int,
        max_fee_per_gas: int,
    ) -> SolverOperation:
        """Assemble the unsigned solver operation."""
        return SolverOperation(
            from_address=self.account.address,
            to=self.contracts.atlas_address,
            value=0,
            gas=self.gas_limit,
            max_fee_per_gas=max_fee_per_gas,
            deadline=0,
            solver=self.contracts.dapp_op_signer_address,
            control=self.contracts.dapp_control_address,
            user_op_hash=Web3.to_hex(hexstr=user_op_hash),
            bid_token=ADDRESS_ZERO,
            bid_amount=bid_amount,
            data=SOLVE_CALLDATA,
        )

    def sign(
        self,
        user_op_hash: str,
        bid_amount: int,
        max_fee_per_gas: int,
        max_priority_fee_per_gas: int,
    ) -> SolverOperation:
        """
        Build the solver operation and sign it.

        The operation reuses the opportunity transaction's max fee. The
        priority fee is only logged; Atlas signs a single fee field.

        Args:
            user_op_hash: Identifier returned by the DAppControl
            bid_amount: Bid paid to the relay in wei
            max_fee_per_gas: Opportunity max fee per gas
            max_priority_fee_per_gas: Opportunity priority fee per gas

        Returns:
            The signed solver operation

        Raises:
            SigningFailure: If the typed data cannot be encoded or signed
        """
        operation = self.build_operation(user_op_hash, bid_amount, max_fee_per_gas)

        logger.info("Building solver operation:")
        logger.info(f"  From: {operation.from_address}")
        logger.info(f"  To: {operation.to}")
        logger.info(f"  Max Fee Per Gas: {max_fee_per_gas} (priority {max_priority_fee_per_gas})")
        logger.info(f"  Bid Amount: {bid_amount}")
        logger.info(f"  userOpHash: {operation.user_op_hash}")

        try:
            signed = self.account.sign_message(encode_operation(self.domain, operation))
        except Exception as e:
            raise SigningFailure(f"Could not sign solver operation: {e}") from e

        return operation.with_signature(signed.signature)

    def recover_signer(self, operation: SolverOperation) -> str:
        """Recover the address that signed ``operation`` under this signer's domain."""
        if not operation.is_signed:
            raise ValueError("Solver operation is not signed")
        return Account.recover_message(
            encode_operation(self.domain, operation),
            signature=operation.signature,
        )
