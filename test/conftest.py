#!/usr/bin/env python3
"""Shared fixtures for the PFL solver tests."""

import pytest
from eth_account import Account
from web3 import Web3

from pfl_solver.config import (
    ChainConfig,
    ContractsConfig,
    FeeConfig,
    FeePolicy,
    RelayConfig,
    SolverConfig,
)

# Throwaway keys, never funded
OPPORTUNITY_KEY = "0x" + "1" * 64
SOLVER_KEY = "0x" + "2" * 64

USER_OP_HASH = "0x" + "aa" * 31 + "11"


def signed_opportunity_tx(nonce: int = 0, chain_id: int = 137):
    """Sign the same zero-value self-transfer the builder produces."""
    account = Account.from_key(OPPORTUNITY_KEY)
    return account.sign_transaction({
        "type": 2,
        "chainId": chain_id,
        "nonce": nonce,
        "to": account.address,
        "value": 0,
        "gas": 21000,
        "maxFeePerGas": Web3.to_wei(100, "gwei"),
        "maxPriorityFeePerGas": Web3.to_wei(30, "gwei"),
        "data": b"",
    })


@pytest.fixture
def contracts_config():
    return ContractsConfig.for_chain(137)


@pytest.fixture
def solver_config(contracts_config):
    """Static-fee configuration with bonding disabled and no retry delay."""
    return SolverConfig(
        chain=ChainConfig(rpc_url="http://localhost:8545"),
        relay=RelayConfig(retry_delay=0),
        contracts=contracts_config,
        opportunity_private_key=OPPORTUNITY_KEY,
        solver_private_key=SOLVER_KEY,
        fees=FeeConfig(policy=FeePolicy.STATIC),
        ensure_bond=False,
    )
