"""PFL bundle assembly.

Packages the signed opportunity transaction and the signed solver operation
into the JSON-RPC request expected by the FastLane relay.
"""

import json

from eth_utils import is_0x_prefixed, is_hex

from .models import Bundle, SolverOperation

BUNDLE_METHOD = "pfl_addSearcherBundle"
JSONRPC_VERSION = "2.0"


def _is_hex_payload(value: object) -> bool:
    return isinstance(value, str) and len(value) > 2 and is_0x_prefixed(value) and is_hex(value)


def assemble_bundle(
    operation: SolverOperation,
    raw_transaction: str,
    request_id: int = 1,
) -> Bundle:
    """
    Construct the final PFL bundle payload.

    Args:
        operation: Signed solver operation
        raw_transaction: Signed opportunity transaction as 0x hex
        request_id: JSON-RPC request id

    Returns:
        Bundle with params ``[rawTxHex, operationJson]``

    Raises:
        ValueError: If the operation is unsigned or the transaction is not hex
    """
    if not operation.is_signed:
        raise ValueError("Solver operation must be signed before bundling")
    if not _is_hex_payload(raw_transaction):
        raise ValueError(f"Raw transaction must be a 0x-prefixed hex string, got {raw_transaction!r}")

    return Bundle(
        id=request_id,
        jsonrpc=JSONRPC_VERSION,
        method=BUNDLE_METHOD,
        params=(raw_transaction, json.dumps(operation.to_struct(), separators=(",", ":"))),
    )
