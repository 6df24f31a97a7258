import json
import logging
from pathlib import Path
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.contract import AsyncContract

from ..errors import NetworkMismatch

logger = logging.getLogger(__name__)


class ContractUtility:
    """
    Utility for async chain access and ABI loading.

    Owns the single AsyncWeb3 instance shared by every pipeline stage.
    Transactions are signed locally by the callers, so no signing
    middleware is installed here.
    """

    def __init__(self, rpc_url: str, request_timeout: int = 30) -> None:
        """
        Initialize the ContractUtility.

        Args:
            rpc_url: RPC URL for the network (required)
            request_timeout: Timeout applied to every RPC request in seconds
        """
        if not rpc_url:
            raise ValueError("RPC URL is required")

        self.rpc_url = rpc_url
        self.request_timeout = request_timeout
        self.w3 = AsyncWeb3(
            AsyncHTTPProvider(self.rpc_url, request_kwargs={'timeout': request_timeout})
        )

    def get_contract_abi(self, contract_name: str) -> list[dict[str, Any]]:
        """Load a contract ABI shipped in the package's contracts folder.

        Args:
            contract_name: File stem, e.g. "Atlas" for contracts/Atlas.json

        Returns:
            The "abi" entry of the JSON file

        Raises:
            FileNotFoundError: If no ABI ships under that name
        """
        contract_path: Path = (
            Path(__file__).parent.parent
            / "contracts"
            / f"{contract_name}.json"
        ).resolve()

        with contract_path.open() as file:
            contract_data: dict[str, Any] = json.load(file)

        return contract_data["abi"]

    def get_contract(self, contract_name: str, address: str) -> AsyncContract:
        """Bind the named ABI to a deployed address."""
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self.get_contract_abi(contract_name)
        )

    async def verify_network(self, expected_chain_id: int) -> int:
        """
        Check that the node serves the expected chain.

        Args:
            expected_chain_id: Chain id from configuration

        Returns:
            The connected chain id

        Raises:
            NetworkMismatch: If the node reports a different chain id
        """
        chain_id = int(await self.w3.eth.chain_id)
        logger.info(f"Connected to network: chainId={chain_id}")

        if chain_id != expected_chain_id:
            raise NetworkMismatch(expected_chain_id, chain_id)
        return chain_id
