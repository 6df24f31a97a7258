"""Bundle pipeline orchestration.

Runs one bundle through network verification, optional bonding and the
five stages: build the opportunity transaction, correlate its userOpHash,
sign the solver operation, assemble the bundle and submit it.
"""

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from web3 import Web3

from .bond_manager import AtlasBondManager
from .bundle import assemble_bundle
from .context import SolverContext
from .correlator import UserOpHashCorrelator
from .errors import BundleError, Cancelled, PipelineStageError
from .models import Bundle, OpportunityTransaction, SolverOperation, SubmissionReceipt
from .operation_signer import SolverOperationSigner
from .opportunity_builder import OpportunityTxBuilder
from .relay_submitter import RelaySubmitter
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class BundlePipeline:
    """
    Sequential bundle pipeline.

    Every stage hands an immutable record to the next one. Errors outside
    the BundleError hierarchy are wrapped in PipelineStageError so the
    caller always learns which stage failed.
    """

    def __init__(self, context: SolverContext, retry_policy: RetryPolicy | None = None) -> None:
        """
        Initialize the BundlePipeline.

        Args:
            context: Shared chain client, accounts and contract bindings
            retry_policy: Submission retry policy (default from relay configuration)
        """
        self.context = context
        config = context.config

        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=config.relay.max_attempts,
            delay=config.relay.retry_delay,
        )

        self.opportunity_builder = OpportunityTxBuilder(
            w3=context.w3,
            account=context.opportunity_account,
            chain_id=config.chain.chain_id,
            fees=config.fees,
        )
        self.correlator = UserOpHashCorrelator(context.w3, context.dapp_control)
        self.signer = SolverOperationSigner(
            account=context.solver_account,
            contracts=config.contracts,
            chain_id=config.chain.chain_id,
            gas_limit=config.solver_gas_limit,
        )
        self.bond_manager = AtlasBondManager(
            w3=context.w3,
            atlas=context.atlas,
            account=context.solver_account,
            chain_id=config.chain.chain_id,
            receipt_timeout=config.relay.receipt_timeout,
        )
        self.submitter = RelaySubmitter(
            w3=context.w3,
            relay_client=context.relay_client,
            retry_policy=self.retry_policy,
            receipt_timeout=config.relay.receipt_timeout,
        )

        self.stage: str = "idle"
        self.opportunity_tx: OpportunityTransaction | None = None
        self.operation: SolverOperation | None = None
        self.bundle: Bundle | None = None

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        self.stage = name
        logger.debug(f"Entering stage: {name}")
        try:
            yield
        except BundleError as e:
            logger.error(f"✗ {name} stage failed: {e}")
            raise
        except Exception as e:
            logger.error(f"✗ {name} stage failed unexpectedly: {e}", exc_info=True)
            raise PipelineStageError(name, e) from e

    async def run(self, bid_amount: int | None = None) -> SubmissionReceipt:
        """
        Build, sign and submit one bundle.

        Args:
            bid_amount: Bid in wei (default from configuration)

        Returns:
            SubmissionReceipt of the accepted bundle

        Raises:
            BundleError: Tagged with the stage that failed
        """
        config = self.context.config
        bid = config.bid_amount if bid_amount is None else bid_amount
        if bid < 0:
            raise ValueError(f"Bid amount must be non-negative, got {bid}")

        with self._stage("network"):
            await self.context.contract_util.verify_network(config.chain.chain_id)

        if config.ensure_bond:
            with self._stage("bond"):
                await self.bond_manager.ensure_bond(config.minimum_bond_amount)
        else:
            logger.info("Skipping Atlas bond check")

        with self._stage("transaction"):
            opportunity_tx = await self.opportunity_builder.build()
            self.opportunity_tx = opportunity_tx
        logger.info(f"Opportunity transaction hash: {opportunity_tx.tx_hash}")

        with self._stage("correlation"):
            user_op_hash = await self.correlator.correlate(
                opportunity_tx.tx_hash,
                opportunity_tx.max_fee_per_gas,
                opportunity_tx.max_priority_fee_per_gas,
                config.contracts.dapp_op_signer_address,
            )

        with self._stage("signing"):
            operation = self.signer.sign(
                user_op_hash,
                bid,
                opportunity_tx.max_fee_per_gas,
                opportunity_tx.max_priority_fee_per_gas,
            )
            self.operation = operation
        logger.info(f"Solver operation signed with bid {Web3.from_wei(bid, 'ether')}")

        with self._stage("bundle"):
            bundle = assemble_bundle(operation, opportunity_tx.raw_transaction)
            self.bundle = bundle

        with self._stage("submission"):
            receipt = await self.submitter.submit(bundle, opportunity_tx.raw_transaction)

        self.stage = "done"
        logger.info(f"✓ Bundle landed: tx={receipt.tx_hash}, attempts={receipt.attempts}")
        return receipt

    async def run_with_deadline(self, seconds: float, bid_amount: int | None = None) -> SubmissionReceipt:
        """
        Run the pipeline bound to a deadline.

        Expiry cancels whatever call is in flight.

        Args:
            seconds: Deadline for the whole run
            bid_amount: Bid in wei (default from configuration)

        Raises:
            Cancelled: If the deadline expires first
        """
        if seconds <= 0:
            raise ValueError(f"Deadline must be positive, got {seconds}")

        try:
            return await asyncio.wait_for(self.run(bid_amount), timeout=seconds)
        except asyncio.TimeoutError:
            logger.error(f"✗ Deadline of {seconds}s expired during {self.stage} stage")
            raise Cancelled(self.stage, seconds) from None
