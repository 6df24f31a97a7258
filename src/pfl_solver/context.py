#!/usr/bin/env python3
"""Shared handles for one solver run."""

import logging
from dataclasses import dataclass

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.contract import AsyncContract

from .config import SolverConfig
from .utils.contract_utility import ContractUtility
from .utils.relay_client import RelayClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SolverContext:
    """Chain client, accounts, contract bindings and relay client.

    Built once by the caller and passed to every pipeline component.

    Attributes:
        config: Validated solver configuration
        contract_util: Owner of the AsyncWeb3 instance and ABI loader
        opportunity_account: Account signing the opportunity transaction
        solver_account: Account signing the solver operation and bonding
        relay_client: Client for the FastLane relay endpoint
        dapp_control: PFL DAppControl binding
        atlas: Atlas binding
    """

    config: SolverConfig
    contract_util: ContractUtility
    opportunity_account: LocalAccount
    solver_account: LocalAccount
    relay_client: RelayClient
    dapp_control: AsyncContract
    atlas: AsyncContract

    @property
    def w3(self) -> AsyncWeb3:
        return self.contract_util.w3

    @classmethod
    def from_config(cls, config: SolverConfig) -> "SolverContext":
        """
        Create the context for a configuration.

        Args:
            config: Validated solver configuration

        Returns:
            SolverContext with accounts derived from the configured keys
        """
        contract_util = ContractUtility(config.chain.rpc_url, config.chain.request_timeout)

        opportunity_account: LocalAccount = Account.from_key(config.opportunity_private_key)
        solver_account: LocalAccount = Account.from_key(config.solver_private_key)
        logger.info(f"Opportunity wallet: {opportunity_account.address}")
        logger.info(f"Solver wallet: {solver_account.address}")

        return cls(
            config=config,
            contract_util=contract_util,
            opportunity_account=opportunity_account,
            solver_account=solver_account,
            relay_client=RelayClient(config.relay.relay_url, timeout=config.relay.request_timeout),
            dapp_control=contract_util.get_contract("DAppControl", config.contracts.dapp_control_address),
            atlas=contract_util.get_contract("Atlas", config.contracts.atlas_address),
        )
