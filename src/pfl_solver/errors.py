#!/usr/bin/env python3
"""Error taxonomy for the PFL solver pipeline.

Every error carries the pipeline stage it was raised from and whether the
submission loop may retry it. Structural errors (wrong network, missing
contract, reverted correlation) are never retried.
"""

from typing import Any


class BundleError(Exception):
    """Base class for all pipeline errors."""

    stage: str = "pipeline"
    retryable: bool = False


class ConfigMissing(BundleError, ValueError):
    """Required configuration is missing or invalid."""

    stage = "config"


class NetworkMismatch(BundleError):
    """The connected chain id differs from the configured one."""

    stage = "network"

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Wrong network. Expected chainId {expected}, got {actual}")


class FeeUnavailable(BundleError):
    """Fee estimation did not produce both EIP-1559 fee fields."""

    stage = "transaction"


class ContractNotFound(BundleError):
    """No deployed code at a configured contract address."""

    stage = "correlation"

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"No contract found at address {address}")


class CorrelationReverted(BundleError):
    """The userOpHash derivation call reverted on-chain."""

    stage = "correlation"

    def __init__(self, message: str, revert_data: Any = None) -> None:
        self.revert_data = revert_data
        super().__init__(message)


class SigningFailure(BundleError):
    """The solver operation could not be signed."""

    stage = "signing"


class BondingFailure(BundleError):
    """Topping up the solver's Atlas bond failed."""

    stage = "bond"


class RelayRejected(BundleError):
    """The relay answered with a protocol-level error."""

    stage = "submission"
    retryable = True

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        super().__init__(f"FastLane error: {message}")


class BroadcastFailure(BundleError):
    """The chain node rejected the raw opportunity transaction."""

    stage = "submission"
    retryable = True


class SubmissionExhausted(BundleError):
    """All submission attempts failed; wraps the last underlying error."""

    stage = "submission"

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts: {last_error}")


class Cancelled(BundleError):
    """The pipeline deadline expired before submission completed."""

    def __init__(self, stage: str, deadline: float) -> None:
        self.stage = stage
        self.deadline = deadline
        super().__init__(f"Pipeline cancelled during {stage} after {deadline}s deadline")


class PipelineStageError(BundleError):
    """An unexpected error escaped a pipeline stage."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} stage failed: {type(cause).__name__}: {cause}")
