import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TRANSFER_CATEGORIES = ['external', 'erc20', 'erc721', 'erc1155']


class AlchemyError(RuntimeError):
    pass


class AlchemyClient:
    """Thin async adapter over the Alchemy JSON-RPC and NFT REST endpoints.

    The caller owns the ``httpx.AsyncClient`` and its lifetime. Every method
    performs exactly one request; there are no retries.
    """

    def __init__(self, client: httpx.AsyncClient, api_key: str, network: str = 'base-mainnet'):
        self.client = client
        self.rpc_url = f'https://{network}.g.alchemy.com/v2/{api_key}'
        self.nft_url = f'https://{network}.g.alchemy.com/nft/v3/{api_key}'

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {'jsonrpc': '2.0', 'id': 1, 'method': method, 'params': params}
        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise AlchemyError(f'Alchemy HTTP error: {exc.response.status_code}') from exc
        except httpx.HTTPError as exc:
            raise AlchemyError(f'Alchemy transport error: {exc}') from exc
        except ValueError as exc:
            raise AlchemyError(f'Alchemy returned invalid JSON for {method}') from exc
        error = data.get('error')
        if error:
            message = error.get('message') if isinstance(error, dict) else str(error)
            raise AlchemyError(f'{method} failed: {message}')
        return data.get('result')

    async def get_balance(self, address: str) -> str:
        return await self._rpc('eth_getBalance', [address, 'latest'])

    async def get_transaction_count(self, address: str) -> int:
        result = await self._rpc('eth_getTransactionCount', [address, 'latest'])
        return int(result, 16)

    async def get_asset_transfers(
        self,
        from_address: str,
        categories: list[str] | None = None,
        order: str = 'desc',
        max_count: int = 1,
    ) -> list[dict[str, Any]]:
        params = {
            'fromBlock': '0x0',
            'toBlock': 'latest',
            'fromAddress': from_address,
            'category': categories or TRANSFER_CATEGORIES,
            'order': order,
            'maxCount': hex(max_count),
        }
        result = await self._rpc('alchemy_getAssetTransfers', [params])
        return (result or {}).get('transfers', [])

    async def get_block(self, block_number: int) -> dict[str, Any]:
        block = await self._rpc('eth_getBlockByNumber', [hex(block_number), False])
        if not block:
            raise AlchemyError(f'Block {block_number} not found')
        return block

    async def get_nfts_for_owner(self, owner: str) -> dict[str, Any]:
        try:
            response = await self.client.get(
                f'{self.nft_url}/getNFTsForOwner',
                params={'owner': owner, 'withMetadata': 'false'},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise AlchemyError(f'Alchemy NFT HTTP error: {exc.response.status_code}') from exc
        except httpx.HTTPError as exc:
            raise AlchemyError(f'Alchemy NFT transport error: {exc}') from exc

    async def get_token_balances(self, address: str) -> list[dict[str, Any]]:
        result = await self._rpc('alchemy_getTokenBalances', [address, 'erc20'])
        return (result or {}).get('tokenBalances', [])

    async def get_token_metadata(self, contract_address: str) -> dict[str, Any]:
        result = await self._rpc('alchemy_getTokenMetadata', [contract_address])
        if result is None:
            raise AlchemyError(f'No metadata for {contract_address}')
        return result
