import json

import httpx
import pytest

from base_id_report.alchemy_client import TRANSFER_CATEGORIES, AlchemyClient, AlchemyError

ADDRESS = '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'


def _client(handler) -> AlchemyClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AlchemyClient(http, api_key='test-key', network='base-mainnet')


def _rpc_result(result):
    return httpx.Response(200, json={'jsonrpc': '2.0', 'id': 1, 'result': result})


async def test_rpc_request_shape():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((str(request.url), json.loads(request.content)))
        return _rpc_result('0x2a')

    client = _client(handler)
    assert await client.get_transaction_count(ADDRESS) == 42

    url, body = seen[0]
    assert url == 'https://base-mainnet.g.alchemy.com/v2/test-key'
    assert body['method'] == 'eth_getTransactionCount'
    assert body['params'] == [ADDRESS, 'latest']


async def test_balance_is_returned_raw():
    client = _client(lambda request: _rpc_result('0xde0b6b3a7640000'))
    assert await client.get_balance(ADDRESS) == '0xde0b6b3a7640000'


async def test_asset_transfer_params():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return _rpc_result({'transfers': [{'blockNum': '0x10', 'value': 1.0}]})

    transfers = await _client(handler).get_asset_transfers(ADDRESS)

    assert transfers == [{'blockNum': '0x10', 'value': 1.0}]
    params = seen[0]['params'][0]
    assert params['fromAddress'] == ADDRESS
    assert params['category'] == TRANSFER_CATEGORIES
    assert params['order'] == 'desc'
    assert params['maxCount'] == '0x1'


async def test_block_lookup_uses_hex_number():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content)['params'])
        return _rpc_result({'timestamp': '0x6553f100'})

    block = await _client(handler).get_block(16)
    assert block['timestamp'] == '0x6553f100'
    assert seen == [['0x10', False]]


async def test_missing_block_raises():
    with pytest.raises(AlchemyError, match='not found'):
        await _client(lambda request: _rpc_result(None)).get_block(16)


async def test_json_rpc_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={'jsonrpc': '2.0', 'id': 1, 'error': {'code': -32602, 'message': 'bad params'}})

    with pytest.raises(AlchemyError, match='bad params'):
        await _client(handler).get_token_metadata('0x1111111111111111111111111111111111111111')


async def test_http_error_raises():
    with pytest.raises(AlchemyError, match='HTTP error: 503'):
        await _client(lambda request: httpx.Response(503)).get_balance(ADDRESS)


async def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError('refused', request=request)

    with pytest.raises(AlchemyError, match='transport error'):
        await _client(handler).get_token_balances(ADDRESS)


async def test_nfts_for_owner_uses_rest_endpoint():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={'ownedNfts': [], 'totalCount': 0})

    page = await _client(handler).get_nfts_for_owner(ADDRESS)

    assert page == {'ownedNfts': [], 'totalCount': 0}
    request = seen[0]
    assert request.method == 'GET'
    assert request.url.path == '/nft/v3/test-key/getNFTsForOwner'
    assert request.url.params['owner'] == ADDRESS


async def test_token_balances_unwraps_result():
    balances = [{'contractAddress': '0xabc', 'tokenBalance': '0x1'}]
    client = _client(lambda request: _rpc_result({'address': ADDRESS, 'tokenBalances': balances}))
    assert await client.get_token_balances(ADDRESS) == balances
