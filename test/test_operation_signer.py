#!/usr/bin/env python3
"""Tests for solver operation construction and EIP-712 signing."""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from eth_account import Account
from web3 import Web3
from web3.constants import ADDRESS_ZERO

from pfl_solver.errors import SigningFailure
from pfl_solver.operation_signer import SOLVE_CALLDATA, SolverOperationSigner, build_typed_data

from conftest import SOLVER_KEY, USER_OP_HASH

GWEI = 10**9
BID = Web3.to_wei(0.0001, "ether")


@pytest.fixture
def solver_account():
    return Account.from_key(SOLVER_KEY)


@pytest.fixture
def signer(solver_account, contracts_config):
    return SolverOperationSigner(solver_account, contracts_config, chain_id=137)


@pytest.fixture
def signed_operation(signer):
    return signer.sign(USER_OP_HASH, BID, 100 * GWEI, 30 * GWEI)


class TestBuildOperation:
    """Unsigned operation layout."""

    def test_fields(self, signer, solver_account, contracts_config):
        operation = signer.build_operation(USER_OP_HASH, BID, 100 * GWEI)

        assert operation.from_address == solver_account.address
        assert operation.to == contracts_config.atlas_address
        assert operation.value == 0
        assert operation.gas == 21000
        assert operation.max_fee_per_gas == 100 * GWEI
        assert operation.deadline == 0
        assert operation.solver == contracts_config.dapp_op_signer_address
        assert operation.control == contracts_config.dapp_control_address
        assert operation.user_op_hash == USER_OP_HASH
        assert operation.bid_token == ADDRESS_ZERO
        assert operation.bid_amount == BID
        assert operation.data == SOLVE_CALLDATA
        assert not operation.is_signed

    def test_solve_calldata_is_selector(self):
        assert SOLVE_CALLDATA == bytes(Web3.keccak(text="solve()")[:4])
        assert len(SOLVE_CALLDATA) == 4

    def test_typed_data_domain(self, signer, contracts_config):
        typed_data = build_typed_data(signer.domain, signer.build_operation(USER_OP_HASH, BID, 1))

        assert typed_data["primaryType"] == "SolverOperation"
        assert typed_data["domain"] == {
            "name": "AtlasVerification",
            "version": "1.0",
            "chainId": 137,
            "verifyingContract": contracts_config.atlas_verification_address,
        }
        assert [f["name"] for f in typed_data["types"]["SolverOperation"]] == [
            "from", "to", "value", "gas", "maxFeePerGas", "deadline",
            "solver", "control", "userOpHash", "bidToken", "bidAmount", "data",
        ]


class TestSign:
    """Signature production and verification."""

    def test_signature_is_65_bytes(self, signed_operation):
        assert signed_operation.is_signed
        assert len(signed_operation.signature) == 65

    def test_signature_recovers_solver(self, signer, signed_operation, solver_account):
        assert signer.recover_signer(signed_operation) == solver_account.address

    def test_signing_is_deterministic(self, signer, signed_operation):
        assert signer.sign(USER_OP_HASH, BID, 100 * GWEI, 30 * GWEI) == signed_operation

    def test_priority_fee_not_signed(self, signer, signed_operation):
        """Only the max fee is part of the Atlas struct."""
        assert signer.sign(USER_OP_HASH, BID, 100 * GWEI, 1 * GWEI).signature == signed_operation.signature

    @pytest.mark.parametrize("changes", [
        {"bid_amount": BID + 1},
        {"user_op_hash": "0x" + "bb" * 32},
        {"deadline": 1},
        {"max_fee_per_gas": 101 * GWEI},
    ])
    def test_tampering_breaks_signature(self, signer, signed_operation, solver_account, changes):
        tampered = replace(signed_operation, **changes)
        assert signer.recover_signer(tampered) != solver_account.address

    def test_other_domain_does_not_verify(self, solver_account, contracts_config, signed_operation):
        other_chain = SolverOperationSigner(solver_account, contracts_config, chain_id=1)
        assert other_chain.recover_signer(signed_operation) != solver_account.address

    def test_recover_unsigned_operation(self, signer):
        with pytest.raises(ValueError, match="not signed"):
            signer.recover_signer(signer.build_operation(USER_OP_HASH, BID, 1))

    def test_signing_failure(self, contracts_config):
        account = MagicMock()
        account.address = Web3.to_checksum_address("0x" + "cd" * 20)
        account.sign_message.side_effect = RuntimeError("hsm unavailable")
        signer = SolverOperationSigner(account, contracts_config, chain_id=137)

        with pytest.raises(SigningFailure, match="hsm unavailable"):
            signer.sign(USER_OP_HASH, BID, 100 * GWEI, 30 * GWEI)
