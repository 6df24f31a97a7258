#!/usr/bin/env python3
"""Unit tests for AtlasBondManager."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from hexbytes import HexBytes
from web3 import Web3

from pfl_solver.bond_manager import AtlasBondManager
from pfl_solver.errors import BondingFailure

SOLVER_ADDRESS = Web3.to_checksum_address("0x" + "ab" * 20)
BOND_TX_HASH = "0x" + "34" * 32
ETHER = 10**18


@pytest.fixture
def mock_w3():
    mock = MagicMock()
    mock.eth.get_transaction_count = AsyncMock(return_value=4)
    mock.eth.send_raw_transaction = AsyncMock(return_value=HexBytes(BOND_TX_HASH))
    mock.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1, "blockNumber": 77})
    return mock


@pytest.fixture
def mock_account():
    """Create a mock solver account that signs locally."""
    mock = MagicMock()
    mock.address = SOLVER_ADDRESS
    mock.sign_transaction.return_value = MagicMock(raw_transaction=HexBytes("0x02f8"))
    return mock


@pytest.fixture
def mock_atlas():
    mock = MagicMock()
    mock.functions.balanceOfBonded.return_value.call = AsyncMock(side_effect=[ETHER // 2, 3 * ETHER // 2])
    mock.functions.depositAndBond.return_value.build_transaction = AsyncMock(
        return_value={"to": "0x" + "00" * 20, "data": "0x"}
    )
    return mock


@pytest.fixture
def manager(mock_w3, mock_atlas, mock_account):
    return AtlasBondManager(mock_w3, mock_atlas, mock_account, chain_id=137, receipt_timeout=90)


class TestAtlasBondManager:
    """Test suite for AtlasBondManager."""

    @pytest.mark.asyncio
    async def test_balance_of_bonded(self, manager, mock_atlas):
        other = "0x" + "cd" * 20

        assert await manager.balance_of_bonded(other) == ETHER // 2
        mock_atlas.functions.balanceOfBonded.assert_called_once_with(Web3.to_checksum_address(other))

    @pytest.mark.asyncio
    async def test_tops_up_shortfall(self, manager, mock_w3, mock_atlas, mock_account):
        deposited = await manager.ensure_bond(3 * ETHER // 2)

        assert deposited == ETHER
        mock_atlas.functions.depositAndBond.assert_called_once_with(ETHER)
        mock_atlas.functions.depositAndBond.return_value.build_transaction.assert_awaited_once_with({
            'from': SOLVER_ADDRESS,
            'value': ETHER,
            'nonce': 4,
            'chainId': 137,
        })
        mock_w3.eth.get_transaction_count.assert_awaited_once_with(SOLVER_ADDRESS, "pending")
        mock_account.sign_transaction.assert_called_once()
        mock_w3.eth.send_raw_transaction.assert_awaited_once_with(HexBytes("0x02f8"))
        mock_w3.eth.wait_for_transaction_receipt.assert_awaited_once_with(HexBytes(BOND_TX_HASH), timeout=90)

    @pytest.mark.asyncio
    async def test_sufficient_bond(self, manager, mock_atlas, mock_w3):
        mock_atlas.functions.balanceOfBonded.return_value.call = AsyncMock(return_value=2 * ETHER)

        assert await manager.ensure_bond(3 * ETHER // 2) is None
        mock_atlas.functions.depositAndBond.assert_not_called()
        mock_w3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_receipt(self, manager, mock_w3):
        mock_w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 0, "blockNumber": 77})

        with pytest.raises(BondingFailure, match="status=0"):
            await manager.ensure_bond(3 * ETHER // 2)

    @pytest.mark.asyncio
    async def test_deposit_rejected(self, manager, mock_w3):
        mock_w3.eth.send_raw_transaction = AsyncMock(side_effect=ValueError("insufficient funds"))

        with pytest.raises(BondingFailure, match="insufficient funds") as exc_info:
            await manager.ensure_bond(3 * ETHER // 2)

        assert exc_info.value.stage == "bond"
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_balance_read_failure(self, manager, mock_atlas):
        mock_atlas.functions.balanceOfBonded.return_value.call = AsyncMock(side_effect=ConnectionError("timeout"))

        with pytest.raises(BondingFailure, match="Could not read bonded balance"):
            await manager.ensure_bond(ETHER)

    @pytest.mark.asyncio
    async def test_balance_read_failure_after_deposit(self, manager, mock_atlas, mock_w3):
        mock_atlas.functions.balanceOfBonded.return_value.call = AsyncMock(
            side_effect=[ETHER // 2, ConnectionError("timeout")]
        )

        with pytest.raises(BondingFailure, match="after deposit: timeout") as exc_info:
            await manager.ensure_bond(ETHER)

        mock_w3.eth.send_raw_transaction.assert_awaited_once()
        assert exc_info.value.stage == "bond"
