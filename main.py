#!/usr/bin/env python3
"""Entry point for the PFL solver.

Builds one FastLane PFL bundle (opportunity transaction plus signed solver
operation), submits it to the relay and exits.
"""

import argparse
import asyncio
import logging
import math
import os
import sys
from dataclasses import replace
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

# Get logger for this module
logger = logging.getLogger(__name__)

from web3 import Web3

from pfl_solver.config import FeePolicy, SolverConfig
from pfl_solver.context import SolverContext
from pfl_solver.errors import BundleError
from pfl_solver.pipeline import BundlePipeline


def parse_bid(value: str) -> int:
    """Parse a bid given in native units (e.g. "0.0001") into wei."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Invalid bid amount: {value}") from None
    if amount < 0:
        raise argparse.ArgumentTypeError(f"Bid amount must be non-negative, got {value}")
    return Web3.to_wei(amount, "ether")


def parse_deadline(value: str) -> float:
    """Parse a deadline in seconds; it must be a positive, finite number."""
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid deadline: {value}") from None
    if not math.isfinite(seconds) or seconds <= 0:
        raise argparse.ArgumentTypeError(f"Deadline must be positive, got {value}")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="PFL Solver - Submit a FastLane Atlas bundle on Polygon",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  RPC_URL                        - RPC endpoint of the chain node (required)
  OPPORTUNITY_WALLET_PRIVATE_KEY - Key signing the opportunity transaction (required)
  SOLVER_WALLET_PRIVATE_KEY      - Key signing the solver operation (required)
  CHAIN_ID                       - Expected chain id (default: 137)
  FASTLANE_RELAY_URL             - Relay endpoint (default: https://polygon-rpc.fastlane.xyz/)
  ATLAS_ADDRESS, ATLAS_VERIFICATION_ADDRESS,
  DAPP_CONTROL_ADDRESS, DAPP_OP_SIGNER_ADDRESS - Contract overrides (Polygon defaults)
  DEFAULT_BID_AMOUNT             - Bid in native units (default: 0.0001)
  MINIMUM_BOND_AMOUNT            - Minimum Atlas bond (default: 1.5)
  FEE_POLICY                     - live or static (default: live)
  MAX_ATTEMPTS / RETRY_DELAY     - Submission retries (default: 3 / 5s)
  LOG_LEVEL                      - Logging level (can be overridden with --log-level)

Variables are also read from a .env file in the working directory.
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    parser.add_argument(
        "--bid-amount",
        type=parse_bid,
        default=None,
        metavar="ETH",
        help="Bid in native units, overrides DEFAULT_BID_AMOUNT"
    )
    parser.add_argument(
        "--fee-policy",
        choices=[policy.value for policy in FeePolicy],
        default=None,
        help="Fee policy for the opportunity transaction, overrides FEE_POLICY"
    )
    parser.add_argument(
        "--skip-bond",
        action="store_true",
        default=False,
        help="Do not check or top up the Atlas bond"
    )
    parser.add_argument(
        "--deadline",
        type=parse_deadline,
        default=None,
        metavar="SECONDS",
        help="Cancel the run if it has not finished within SECONDS"
    )
    return parser


def apply_overrides(config: SolverConfig, args: argparse.Namespace) -> SolverConfig:
    """Apply command line overrides to the loaded configuration."""
    if args.fee_policy:
        config = replace(config, fees=replace(config.fees, policy=FeePolicy(args.fee_policy)))
    if args.skip_bond:
        config = replace(config, ensure_bond=False)
    return config


async def main() -> None:
    """Main entry point for the PFL solver.

    Parses startup arguments, loads configuration from the environment,
    and runs the bundle pipeline once.

    Raises:
        SystemExit: On configuration or runtime errors
    """
    load_dotenv()

    args: argparse.Namespace = build_parser().parse_args()

    # Set up logging with specified level
    setup_logging(args.log_level)

    logger.info("=== PFL Solver Starting ===")
    logger.info("Loading configuration from environment...")

    try:
        config: SolverConfig = apply_overrides(SolverConfig.from_env(), args)
        logger.info("Configuration loaded successfully")
        config.log_config()

        context: SolverContext = SolverContext.from_config(config)
        pipeline: BundlePipeline = BundlePipeline(context)

        if args.deadline is not None:
            receipt = await pipeline.run_with_deadline(args.deadline, bid_amount=args.bid_amount)
        else:
            receipt = await pipeline.run(bid_amount=args.bid_amount)

        logger.info("=== Bundle Submitted ===")
        logger.info(f"  Transaction: {receipt.tx_hash}")
        logger.info(f"  Attempts: {receipt.attempts}")
        logger.info(f"  Broadcast by solver: {receipt.broadcast}")
        if receipt.block_number is not None:
            logger.info(f"  Block: {receipt.block_number}")

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - RPC_URL: RPC endpoint of the chain node")
        logger.error("  - OPPORTUNITY_WALLET_PRIVATE_KEY: Key signing the opportunity transaction")
        logger.error("  - SOLVER_WALLET_PRIVATE_KEY: Key signing the solver operation")
        logger.error("  - CHAIN_ID: Expected chain id (default: 137)")
        logger.error("  - FEE_POLICY: live or static (default: live)")
        sys.exit(1)

    except BundleError as e:
        logger.error(f"Bundle Error ({e.stage}): {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("\nReceived interrupt signal, shutting down...")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    # Run the main async function
    asyncio.run(main())
