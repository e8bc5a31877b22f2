import logging

from ens.exceptions import InvalidName
from web3 import AsyncWeb3

logger = logging.getLogger(__name__)

# Minimal ERC20 ABI for the supply fallback
ERC20_SUPPLY_ABI = [
    {"constant": True, "inputs": [], "name": "totalSupply", "outputs": [
        {"name": "", "type": "uint256"}], "type": "function", "stateMutability": "view"},
    {"constant": True, "inputs": [], "name": "decimals", "outputs": [
        {"name": "", "type": "uint8"}], "type": "function", "stateMutability": "view"},
]


class ChainReader:
    """Read-only chain access through web3: ENS lookups and token contract reads."""

    def __init__(self, ens_rpc_url: str, supply_rpc_url: str, timeout_s: int = 25):
        request_kwargs = {'timeout': timeout_s}
        self.ens_w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(ens_rpc_url, request_kwargs=request_kwargs))
        self.supply_w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(supply_rpc_url, request_kwargs=request_kwargs)
        )

    async def resolve_name(self, name: str) -> str | None:
        """Forward-resolve an ENS name.

        Returns None when the name has no address or is not a valid ENS name.
        """
        logger.info(f"Resolving ENS name {name}")
        try:
            address = await self.ens_w3.ens.address(name)
        except InvalidName as exc:
            logger.info(f"Not a valid ENS name {name!r}: {exc}")
            return None
        return str(address) if address else None

    async def total_supply(self, contract_address: str) -> int:
        contract = self.supply_w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=ERC20_SUPPLY_ABI,
        )
        return int(await contract.functions.totalSupply().call())
