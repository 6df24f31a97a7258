"""
Transaction encoding utilities for the PFL solver.

This module provides helpers to normalise byte values, hash signed
transactions and decode signed EIP-1559 (type 2) envelopes back into
their fields.
"""

import logging
from typing import Any, Union

import rlp
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3

logger = logging.getLogger(__name__)

DYNAMIC_FEE_TX_TYPE = 2


class TransactionCodec:
    """Utilities for encoding and decoding signed transactions."""

    @staticmethod
    def to_bytes_safe(value: Union[HexBytes, bytes, str]) -> bytes:
        """
        Safely convert value to bytes, handling HexBytes, bytes, and hex strings.

        Args:
            value: Value to convert (HexBytes, bytes, or hex string)

        Returns:
            Bytes representation
        """
        if isinstance(value, HexBytes):
            return bytes(value)
        elif isinstance(value, bytes):
            return value
        else:
            return Web3.to_bytes(hexstr=value)

    @staticmethod
    def transaction_hash(raw_transaction: Union[HexBytes, bytes, str]) -> str:
        """
        Compute the hash of a signed transaction.

        The hash is keccak256 over the signed envelope, so it is a pure
        function of the signed encoding.

        Args:
            raw_transaction: Signed transaction bytes or 0x hex

        Returns:
            0x-prefixed transaction hash
        """
        return Web3.to_hex(Web3.keccak(TransactionCodec.to_bytes_safe(raw_transaction)))

    @staticmethod
    def recover_sender(raw_transaction: Union[HexBytes, bytes, str]) -> str:
        """Recover the checksummed sender address from a signed transaction."""
        return Account.recover_transaction(TransactionCodec.to_bytes_safe(raw_transaction))

    @staticmethod
    def _to_int(value: bytes) -> int:
        # RLP encodes zero as empty bytes
        return int.from_bytes(value, "big") if value else 0

    @staticmethod
    def decode_dynamic_fee_transaction(raw_transaction: Union[HexBytes, bytes, str]) -> dict[str, Any]:
        """
        Decode a signed EIP-1559 transaction envelope.

        Layout: 0x02 || rlp([chainId, nonce, maxPriorityFeePerGas, maxFeePerGas,
        gasLimit, to, value, data, accessList, yParity, r, s])

        Args:
            raw_transaction: Signed type 2 transaction

        Returns:
            Dictionary of decoded fields

        Raises:
            ValueError: If the envelope is not a signed type 2 transfer/call
        """
        raw = TransactionCodec.to_bytes_safe(raw_transaction)
        if not raw or raw[0] != DYNAMIC_FEE_TX_TYPE:
            raise ValueError(
                f"Expected an EIP-1559 transaction (type {DYNAMIC_FEE_TX_TYPE}), "
                f"got type byte {raw[:1].hex() or 'none'}"
            )

        items = rlp.decode(raw[1:])
        if len(items) != 12:
            raise ValueError(f"Malformed EIP-1559 transaction: expected 12 fields, got {len(items)}")

        (chain_id, nonce, priority_fee, max_fee, gas_limit, to,
         value, data, _access_list, y_parity, r, s) = items

        if not to:
            raise ValueError("Contract creation transactions are not supported")

        to_int = TransactionCodec._to_int
        return {
            "chain_id": to_int(chain_id),
            "nonce": to_int(nonce),
            "max_priority_fee_per_gas": to_int(priority_fee),
            "max_fee_per_gas": to_int(max_fee),
            "gas_limit": to_int(gas_limit),
            "recipient": Web3.to_checksum_address(to),
            "value": to_int(value),
            "data": bytes(data),
            "y_parity": to_int(y_parity),
            "r": to_int(r),
            "s": to_int(s),
        }
