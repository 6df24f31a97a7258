#!/usr/bin/env python3
"""Configuration management for the PFL solver.

This module provides type-safe configuration dataclasses with validation
for the bundle pipeline. Configuration is loaded from environment variables
with sensible Polygon defaults where appropriate.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import ClassVar
from urllib.parse import urlparse

from web3 import Web3

from .errors import ConfigMissing

# Get logger for this module
logger = logging.getLogger(__name__)

POLYGON_CHAIN_ID = 137
DEFAULT_RELAY_URL = "https://polygon-rpc.fastlane.xyz/"

# Atlas / PFL deployments by chain id
KNOWN_DEPLOYMENTS: dict[int, dict[str, str]] = {
    POLYGON_CHAIN_ID: {
        "atlas_address": "0x4A394bD4Bc2f4309ac0b75c052b242ba3e0f32e0",
        "atlas_verification_address": "0xf31cf8740Dc4438Bb89a56Ee2234Ba9d5595c0E9",
        "dapp_control_address": "0x3e23e4282FcE0cF42DCd0E9bdf39056434E65C1F",
        "dapp_op_signer_address": "0x96D501A4C52669283980dc5648EEC6437e2E6346",
    },
}


class FeePolicy(str, Enum):
    """How the opportunity transaction gets its fee parameters."""
    LIVE = "live"
    STATIC = "static"


def _checksummed(value: str, description: str, env_name: str) -> str:
    """Validate an address and return its checksum form."""
    if not value:
        raise ConfigMissing(f"{description} is required ({env_name})")
    if not Web3.is_address(value):
        raise ValueError(f"Invalid {description.lower()}: {value}")
    return Web3.to_checksum_address(value)


def _validate_private_key(key: str, env_name: str) -> None:
    """Basic private key validation (64 hex chars, optionally with 0x prefix)."""
    if not key:
        raise ConfigMissing(f"{env_name} not found in environment variables")

    if key.startswith('0x'):
        key = key[2:]

    if len(key) != 64:
        raise ValueError(
            f"Invalid private key length for {env_name}. "
            f"Expected 64 hex characters, got {len(key)}"
        )

    try:
        int(key, 16)
    except ValueError:
        raise ValueError(
            f"Invalid private key format for {env_name}. Must be hexadecimal"
        ) from None


def _parse_ether(env_name: str, default: str) -> int:
    """Read a native-unit amount (e.g. "1.5") from the environment as wei."""
    raw = os.environ.get(env_name, default)
    try:
        return Web3.to_wei(Decimal(raw), "ether")
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount for {env_name}: {raw}") from None


def _parse_bool(env_name: str, default: bool) -> bool:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for the chain node.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint of the chain node
        chain_id: Expected chain id (137 for Polygon mainnet)
        request_timeout: Per-request timeout for RPC calls in seconds
    """

    rpc_url: str
    chain_id: int = POLYGON_CHAIN_ID
    request_timeout: int = 30

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if not self.rpc_url:
            raise ConfigMissing("RPC_URL not found in environment variables")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(
                f"Invalid RPC URL scheme: {parsed.scheme}. "
                "Expected http or https"
            )

        if self.chain_id <= 0:
            raise ValueError(f"Chain ID must be positive, got {self.chain_id}")

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Configuration for the FastLane relay and the submission retry loop."""

    relay_url: str = DEFAULT_RELAY_URL
    request_timeout: float = 30.0  # HTTP timeout for the bundle POST
    max_attempts: int = 3
    retry_delay: float = 5.0  # fixed delay between attempts, no backoff
    receipt_timeout: int = 120  # seconds to wait for the broadcast tx to be mined

    def __post_init__(self) -> None:
        """Validate relay configuration."""
        parsed = urlparse(self.relay_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"Invalid relay URL: {self.relay_url}")

        if self.request_timeout <= 0:
            raise ValueError(f"Relay timeout must be positive, got {self.request_timeout}")

        if self.max_attempts < 1:
            raise ValueError(f"Max attempts must be at least 1, got {self.max_attempts}")
        if self.max_attempts > 10:
            raise ValueError(f"Max attempts too high (max 10), got {self.max_attempts}")

        if self.retry_delay < 0:
            raise ValueError(f"Retry delay must be non-negative, got {self.retry_delay}")

        if self.receipt_timeout <= 0:
            raise ValueError(f"Receipt timeout must be positive, got {self.receipt_timeout}")


@dataclass(frozen=True, slots=True)
class ContractsConfig:
    """Atlas contract addresses and the EIP-712 verification domain.

    Attributes:
        atlas_address: Atlas entrypoint executing bundles (solver op target)
        atlas_verification_address: Verifying contract of the EIP-712 domain
        dapp_control_address: PFL DAppControl deriving the userOpHash
        dapp_op_signer_address: FastLane dApp-op signer the userOpHash is bound to
        eip712_name: EIP-712 domain name
        eip712_version: EIP-712 domain version
    """

    atlas_address: str
    atlas_verification_address: str
    dapp_control_address: str
    dapp_op_signer_address: str
    eip712_name: str = "AtlasVerification"
    eip712_version: str = "1.0"

    ADDRESS_FIELDS: ClassVar[dict[str, tuple[str, str]]] = {
        "atlas_address": ("Atlas address", "ATLAS_ADDRESS"),
        "atlas_verification_address": ("Atlas verification address", "ATLAS_VERIFICATION_ADDRESS"),
        "dapp_control_address": ("DAppControl address", "DAPP_CONTROL_ADDRESS"),
        "dapp_op_signer_address": ("dApp-op signer address", "DAPP_OP_SIGNER_ADDRESS"),
    }

    def __post_init__(self) -> None:
        """Validate and checksum all contract addresses."""
        for name, (description, env_name) in self.ADDRESS_FIELDS.items():
            checksummed = _checksummed(getattr(self, name), description, env_name)
            # Use object.__setattr__ since dataclass is frozen
            object.__setattr__(self, name, checksummed)

        if not self.eip712_name or not self.eip712_version:
            raise ValueError("EIP-712 domain name and version are required")

    @classmethod
    def for_chain(cls, chain_id: int, **overrides: str) -> "ContractsConfig":
        """Build the contract set for a chain, applying non-empty overrides.

        Raises:
            ConfigMissing: If the chain has no known deployment and an
                address is not overridden
        """
        addresses = dict(KNOWN_DEPLOYMENTS.get(chain_id, {}))
        addresses.update({key: value for key, value in overrides.items() if value})
        for name, (description, env_name) in cls.ADDRESS_FIELDS.items():
            if not addresses.get(name):
                raise ConfigMissing(
                    f"{description} is required for chain {chain_id} ({env_name})"
                )
        return cls(**addresses)


@dataclass(frozen=True, slots=True)
class FeeConfig:
    """Fee policy of the opportunity transaction.

    With ``FeePolicy.LIVE`` fees come from the node; with ``FeePolicy.STATIC``
    the configured values are used as-is.
    """

    policy: FeePolicy = FeePolicy.LIVE
    static_max_fee_per_gas: int = Web3.to_wei(100, "gwei")
    static_max_priority_fee_per_gas: int = Web3.to_wei(30, "gwei")
    opportunity_gas_limit: int = 21000  # plain transfer

    def __post_init__(self) -> None:
        """Validate fee configuration."""
        if not isinstance(self.policy, FeePolicy):
            try:
                object.__setattr__(self, 'policy', FeePolicy(self.policy))
            except ValueError:
                raise ValueError(
                    f"Unsupported fee policy: {self.policy}. "
                    f"Supported policies: {', '.join(p.value for p in FeePolicy)}"
                ) from None

        if self.static_max_fee_per_gas <= 0 or self.static_max_priority_fee_per_gas <= 0:
            raise ValueError("Static fees must be positive")
        if self.static_max_priority_fee_per_gas > self.static_max_fee_per_gas:
            raise ValueError(
                "Static priority fee cannot exceed static max fee "
                f"({self.static_max_priority_fee_per_gas} > {self.static_max_fee_per_gas})"
            )

        if self.opportunity_gas_limit < 21000:
            raise ValueError(
                f"Opportunity gas limit below intrinsic cost (21000), got {self.opportunity_gas_limit}"
            )


@dataclass(frozen=True, slots=True)
class SolverConfig:
    """Main configuration for the PFL solver.

    Attributes:
        chain: Chain node configuration
        relay: Relay endpoint and retry configuration
        contracts: Atlas contract addresses and EIP-712 domain
        opportunity_private_key: Key signing the opportunity transaction
        solver_private_key: Key signing the solver operation and bonding
        fees: Fee policy for the opportunity transaction
        bid_amount: Default bid in wei
        minimum_bond_amount: Minimum Atlas bond the solver keeps, in wei
        solver_gas_limit: Gas limit declared in the solver operation
        ensure_bond: Whether to top up the Atlas bond before submitting
    """

    chain: ChainConfig
    relay: RelayConfig
    contracts: ContractsConfig
    opportunity_private_key: str
    solver_private_key: str
    fees: FeeConfig = field(default_factory=FeeConfig)
    bid_amount: int = Web3.to_wei(Decimal("0.0001"), "ether")
    minimum_bond_amount: int = Web3.to_wei(Decimal("1.5"), "ether")
    solver_gas_limit: int = 21000
    ensure_bond: bool = True

    def __post_init__(self) -> None:
        """Validate solver configuration."""
        _validate_private_key(self.opportunity_private_key, "OPPORTUNITY_WALLET_PRIVATE_KEY")
        _validate_private_key(self.solver_private_key, "SOLVER_WALLET_PRIVATE_KEY")

        if self.bid_amount < 0:
            raise ValueError(f"Bid amount must be non-negative, got {self.bid_amount}")
        if self.minimum_bond_amount < 0:
            raise ValueError(f"Minimum bond must be non-negative, got {self.minimum_bond_amount}")
        if self.solver_gas_limit <= 0:
            raise ValueError(f"Solver gas limit must be positive, got {self.solver_gas_limit}")

    @classmethod
    def from_env(cls) -> "SolverConfig":
        """Load configuration from environment variables.

        Returns:
            SolverConfig instance with loaded values

        Raises:
            ConfigMissing: If required environment variables are missing
            ValueError: If environment variables are invalid
        """
        rpc_url = os.environ.get("RPC_URL", "")
        if not rpc_url:
            raise ConfigMissing("RPC_URL not found in environment variables")

        chain_config = ChainConfig(
            rpc_url=rpc_url,
            chain_id=int(os.environ.get("CHAIN_ID", str(POLYGON_CHAIN_ID))),
            request_timeout=int(os.environ.get("REQUEST_TIMEOUT", "30")),
        )

        relay_config = RelayConfig(
            relay_url=os.environ.get("FASTLANE_RELAY_URL") or DEFAULT_RELAY_URL,
            request_timeout=float(os.environ.get("REQUEST_TIMEOUT", "30")),
            max_attempts=int(os.environ.get("MAX_ATTEMPTS", "3")),
            retry_delay=float(os.environ.get("RETRY_DELAY", "5")),
            receipt_timeout=int(os.environ.get("RECEIPT_TIMEOUT", "120")),
        )

        contracts_config = ContractsConfig.for_chain(
            chain_config.chain_id,
            atlas_address=os.environ.get("ATLAS_ADDRESS", ""),
            atlas_verification_address=os.environ.get("ATLAS_VERIFICATION_ADDRESS", ""),
            dapp_control_address=os.environ.get("DAPP_CONTROL_ADDRESS", ""),
            dapp_op_signer_address=os.environ.get("DAPP_OP_SIGNER_ADDRESS", ""),
            eip712_name=os.environ.get("EIP712_NAME", ""),
            eip712_version=os.environ.get("EIP712_VERSION", ""),
        )

        fee_config = FeeConfig(
            policy=FeePolicy(os.environ.get("FEE_POLICY", FeePolicy.LIVE.value).lower()),
            static_max_fee_per_gas=Web3.to_wei(
                Decimal(os.environ.get("STATIC_MAX_FEE_GWEI", "100")), "gwei"
            ),
            static_max_priority_fee_per_gas=Web3.to_wei(
                Decimal(os.environ.get("STATIC_PRIORITY_FEE_GWEI", "30")), "gwei"
            ),
        )

        return cls(
            chain=chain_config,
            relay=relay_config,
            contracts=contracts_config,
            fees=fee_config,
            opportunity_private_key=os.environ.get("OPPORTUNITY_WALLET_PRIVATE_KEY", ""),
            solver_private_key=os.environ.get("SOLVER_WALLET_PRIVATE_KEY", ""),
            bid_amount=_parse_ether("DEFAULT_BID_AMOUNT", "0.0001"),
            minimum_bond_amount=_parse_ether("MINIMUM_BOND_AMOUNT", "1.5"),
            solver_gas_limit=int(os.environ.get("SOLVER_GAS_LIMIT", "21000")),
            ensure_bond=_parse_bool("ENSURE_BOND", True),
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("PFL Solver Configuration")
        logger.info("=" * 60)

        logger.info("Chain:")
        logger.info(f"  RPC URL: {self.chain.rpc_url}")
        logger.info(f"  Chain ID: {self.chain.chain_id}")
        logger.info(f"  Request Timeout: {self.chain.request_timeout} seconds")

        logger.info("Relay:")
        logger.info(f"  URL: {self.relay.relay_url}")
        logger.info(f"  Max Attempts: {self.relay.max_attempts}")
        logger.info(f"  Retry Delay: {self.relay.retry_delay} seconds")
        logger.info(f"  Receipt Timeout: {self.relay.receipt_timeout} seconds")

        logger.info("Contracts:")
        logger.info(f"  Atlas: {self.contracts.atlas_address}")
        logger.info(f"  AtlasVerification: {self.contracts.atlas_verification_address}")
        logger.info(f"  DAppControl: {self.contracts.dapp_control_address}")
        logger.info(f"  dApp-op Signer: {self.contracts.dapp_op_signer_address}")
        logger.info(f"  EIP-712 Domain: {self.contracts.eip712_name} v{self.contracts.eip712_version}")

        logger.info("Solver Settings:")
        logger.info(f"  Fee Policy: {self.fees.policy.value}")
        logger.info(f"  Bid Amount: {Web3.from_wei(self.bid_amount, 'ether')}")
        logger.info(f"  Minimum Bond: {Web3.from_wei(self.minimum_bond_amount, 'ether')}")
        logger.info(f"  Ensure Bond: {self.ensure_bond}")
        logger.info("  Opportunity Key: [CONFIGURED]")
        logger.info("  Solver Key: [CONFIGURED]")

        logger.info("=" * 60)
