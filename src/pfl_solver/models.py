#!/usr/bin/env python3
"""Data models for the PFL solver pipeline.

This module provides immutable data classes for the records handed from one
pipeline stage to the next: the signed opportunity transaction, the solver
operation, the relay bundle and the decoded relay response.
"""

from dataclasses import dataclass, field, replace
from typing import Any, ClassVar

from hexbytes import HexBytes
from web3 import Web3

from .utils.tx_codec import TransactionCodec

# EIP-712 struct layout verified by AtlasVerification. Field order matters.
SOLVER_OPERATION_TYPE: list[dict[str, str]] = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "gas", "type": "uint256"},
    {"name": "maxFeePerGas", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
    {"name": "solver", "type": "address"},
    {"name": "control", "type": "address"},
    {"name": "userOpHash", "type": "bytes32"},
    {"name": "bidToken", "type": "address"},
    {"name": "bidAmount", "type": "uint256"},
    {"name": "data", "type": "bytes"},
]


@dataclass(frozen=True, slots=True)
class OpportunityTransaction:
    """A signed EIP-1559 opportunity transaction.

    The transaction is only an anchor: its hash ties the solver operation
    to a specific on-chain action. It is immutable once signed.

    Attributes:
        sender: Address that signed the transaction
        recipient: Destination address (the sender itself for the dummy transfer)
        value: Value transferred in wei
        gas_limit: Gas limit of the transaction
        max_fee_per_gas: EIP-1559 max fee per gas in wei
        max_priority_fee_per_gas: EIP-1559 priority fee per gas in wei
        chain_id: Chain the transaction is valid on
        nonce: Sender nonce used for signing
        data: Call payload (empty for a plain transfer)
        y_parity: Signature y parity
        r: Signature r value
        s: Signature s value
        raw_transaction: Signed envelope as 0x-prefixed hex
        tx_hash: keccak256 of the signed envelope
    """

    sender: str
    recipient: str
    value: int
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    chain_id: int
    nonce: int
    data: bytes
    y_parity: int
    r: int
    s: int
    raw_transaction: str
    tx_hash: str

    @classmethod
    def from_raw(cls, raw_transaction: str | bytes) -> "OpportunityTransaction":
        """Rebuild a transaction record from its signed raw envelope."""
        fields = TransactionCodec.decode_dynamic_fee_transaction(raw_transaction)
        raw_hex = Web3.to_hex(TransactionCodec.to_bytes_safe(raw_transaction))
        return cls(
            sender=TransactionCodec.recover_sender(raw_hex),
            raw_transaction=raw_hex,
            tx_hash=TransactionCodec.transaction_hash(raw_hex),
            **fields,
        )

    def __str__(self) -> str:
        return (
            f"OpportunityTransaction(hash={self.tx_hash[:10]}..., "
            f"nonce={self.nonce}, "
            f"maxFeePerGas={self.max_fee_per_gas}, "
            f"maxPriorityFeePerGas={self.max_priority_fee_per_gas})"
        )


@dataclass(frozen=True, slots=True)
class SolverOperation:
    """A solver's counter-operation as verified by Atlas.

    The signature covers every other field through the EIP-712 encoding
    described by ``SOLVER_OPERATION_TYPE``. ``signature`` stays empty until
    the operation is signed.
    """

    from_address: str
    to: str
    value: int
    gas: int
    max_fee_per_gas: int
    deadline: int
    solver: str
    control: str
    user_op_hash: str
    bid_token: str
    bid_amount: int
    data: bytes
    signature: bytes = b""

    PRIMARY_TYPE: ClassVar[str] = "SolverOperation"

    @property
    def is_signed(self) -> bool:
        return len(self.signature) > 0

    def with_signature(self, signature: bytes) -> "SolverOperation":
        """Return a copy of this operation carrying ``signature``."""
        return replace(self, signature=bytes(signature))

    def to_typed_data_message(self) -> dict[str, Any]:
        """Values of the EIP-712 ``SolverOperation`` struct, in canonical order."""
        return {
            "from": self.from_address,
            "to": self.to,
            "value": self.value,
            "gas": self.gas,
            "maxFeePerGas": self.max_fee_per_gas,
            "deadline": self.deadline,
            "solver": self.solver,
            "control": self.control,
            "userOpHash": HexBytes(self.user_op_hash),
            "bidToken": self.bid_token,
            "bidAmount": self.bid_amount,
            "data": HexBytes(self.data),
        }

    def to_struct(self) -> dict[str, str]:
        """JSON-ready struct as expected by the relay.

        Integers are encoded as JSON-RPC hex quantities, byte fields as
        0x-prefixed hex.
        """
        return {
            "from": self.from_address,
            "to": self.to,
            "value": hex(self.value),
            "gas": hex(self.gas),
            "maxFeePerGas": hex(self.max_fee_per_gas),
            "deadline": hex(self.deadline),
            "solver": self.solver,
            "control": self.control,
            "userOpHash": self.user_op_hash,
            "bidToken": self.bid_token,
            "bidAmount": hex(self.bid_amount),
            "data": Web3.to_hex(self.data),
            "signature": Web3.to_hex(self.signature),
        }


@dataclass(frozen=True, slots=True)
class Bundle:
    """JSON-RPC request carrying the opportunity tx and the solver operation."""

    id: int
    jsonrpc: str
    method: str
    params: tuple[str, str]

    def to_payload(self) -> dict[str, Any]:
        """Convert to the request body posted to the relay."""
        return {
            "id": self.id,
            "jsonrpc": self.jsonrpc,
            "method": self.method,
            "params": list(self.params),
        }


@dataclass(frozen=True, slots=True)
class RelayOk:
    """Relay accepted the bundle."""

    result: Any = None


@dataclass(frozen=True, slots=True)
class RelayError:
    """Relay answered with a protocol-level error."""

    message: str
    code: int | None = None


RelayResponse = RelayOk | RelayError


@dataclass(frozen=True, slots=True)
class SubmissionReceipt:
    """Outcome of a successful bundle submission.

    Attributes:
        tx_hash: Hash of the opportunity transaction
        attempts: Number of attempts used, including the successful one
        broadcast: Whether this client broadcast the raw transaction itself
        block_number: Block the transaction was mined in, when a receipt was awaited
        relay_result: Result field returned by the relay
    """

    tx_hash: str
    attempts: int
    broadcast: bool
    block_number: int | None = None
    relay_result: Any = field(default=None, compare=False)
