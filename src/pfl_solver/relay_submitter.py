#!/usr/bin/env python3
"""Bundle submission to the FastLane relay.

This module submits a bundle with bounded retries, interprets relay errors
and reconciles with chain state: once the relay accepts the bundle, the
opportunity transaction is broadcast directly only if the chain does not
already know it.
"""

import asyncio
import json
import logging
from dataclasses import replace
from enum import Enum

from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound

from .errors import BroadcastFailure, RelayRejected
from .models import Bundle, RelayError, RelayOk, SubmissionReceipt
from .retry import RetryPolicy
from .utils.relay_client import RelayClient
from .utils.tx_codec import TransactionCodec

logger = logging.getLogger(__name__)


class SubmissionState(Enum):
    """State of the submission state machine."""
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RelaySubmitter:
    """Submits bundles to the relay and reconciles with the chain."""

    def __init__(
        self,
        w3: AsyncWeb3,
        relay_client: RelayClient,
        retry_policy: RetryPolicy,
        receipt_timeout: int = 120,
    ) -> None:
        """
        Initialize the RelaySubmitter.

        Args:
            w3: Async chain client for lookup, broadcast and receipt wait
            relay_client: Client for the relay endpoint
            retry_policy: Attempt budget and delay applied to each submission
            receipt_timeout: Seconds to wait for a broadcast transaction to be mined
        """
        self.w3 = w3
        self.relay_client = relay_client
        self.retry_policy = retry_policy
        self.receipt_timeout = receipt_timeout

        self.state: SubmissionState | None = None
        self.broadcasts = 0

    def _should_retry(self, error: BaseException) -> bool:
        if retry := self.retry_policy.retry_if(error):
            self.state = SubmissionState.RETRYING
        return retry

    async def submit(self, bundle: Bundle, raw_transaction: str) -> SubmissionReceipt:
        """
        Submit the bundle and make sure the opportunity transaction lands.

        The same bundle and raw transaction are reused on every attempt.

        Args:
            bundle: Assembled bundle
            raw_transaction: Signed opportunity transaction as 0x hex

        Returns:
            SubmissionReceipt describing the accepted submission

        Raises:
            SubmissionExhausted: If every attempt failed
        """
        tx_hash = TransactionCodec.transaction_hash(raw_transaction)
        policy = replace(self.retry_policy, retry_if=self._should_retry)
        self.state = SubmissionState.ATTEMPTING

        try:
            receipt = await policy.run(
                lambda attempt: self._attempt(bundle, raw_transaction, tx_hash, attempt),
                description="submit bundle",
            )
        except asyncio.CancelledError:
            self.state = SubmissionState.FAILED
            logger.warning("Bundle submission cancelled")
            raise
        except Exception as e:
            self.state = SubmissionState.FAILED
            logger.error(f"✗ Bundle submission failed: {e}")
            raise

        self.state = SubmissionState.SUCCEEDED
        logger.info(f"✓ Bundle submitted in {receipt.attempts} attempt(s)")
        return receipt

    async def _attempt(
        self,
        bundle: Bundle,
        raw_transaction: str,
        tx_hash: str,
        attempt: int,
    ) -> SubmissionReceipt:
        """Run one submission attempt."""
        self.state = SubmissionState.ATTEMPTING
        logger.debug(f"Bundle payload: {json.dumps(bundle.to_payload(), indent=2)}")

        match await self.relay_client.send_bundle(bundle):
            case RelayError(message=message, code=code):
                logger.error(f"FastLane submission failed: {message}")
                raise RelayRejected(message, code)
            case RelayOk(result=relay_result):
                pass

        if await self.transaction_exists(tx_hash):
            logger.info(f"Transaction already exists on chain: {tx_hash}")
            return SubmissionReceipt(
                tx_hash=tx_hash,
                attempts=attempt,
                broadcast=False,
                relay_result=relay_result,
            )

        block_number = await self._broadcast(raw_transaction)
        return SubmissionReceipt(
            tx_hash=tx_hash,
            attempts=attempt,
            broadcast=True,
            block_number=block_number,
            relay_result=relay_result,
        )

    async def transaction_exists(self, tx_hash: str) -> bool:
        """Check whether the node knows the transaction (pending or mined)."""
        try:
            tx = await self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return False
        return tx is not None

    async def _broadcast(self, raw_transaction: str) -> int | None:
        """
        Broadcast the raw transaction and wait until it is mined.

        The relay propagates the transaction itself; this is a safety net.

        Returns:
            Block number of the receipt

        Raises:
            BroadcastFailure: If the node rejects the transaction
        """
        logger.info("Transaction not found on chain, submitting to network...")
        try:
            sent_hash = await self.w3.eth.send_raw_transaction(raw_transaction)
        except Exception as e:
            raise BroadcastFailure(f"Broadcast rejected: {e}") from e

        self.broadcasts += 1
        logger.info(f"Transaction submitted: {Web3.to_hex(sent_hash)}")

        logger.info("Waiting for transaction confirmation...")
        receipt = await self.w3.eth.wait_for_transaction_receipt(sent_hash, timeout=self.receipt_timeout)

        if (status := receipt.get('status', 1)) != 1:
            logger.warning(f"Opportunity transaction mined with status={status}")
        block_number = receipt.get('blockNumber')
        logger.info(f"✓ Transaction confirmed in block {block_number}")
        return block_number
