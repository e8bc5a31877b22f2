from typing import Any

import pytest

WALLET = '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'
TOKEN_A = '0x1111111111111111111111111111111111111111'
TOKEN_B = '0x2222222222222222222222222222222222222222'


class FakeAlchemy:
    """In-memory stand-in for AlchemyClient; set ``fail`` entries to make a call raise."""

    def __init__(self) -> None:
        self.balance: Any = hex(1_500_000_000_000_000_000)
        self.tx_count = 42
        self.transfers: list[dict[str, Any]] = [{'blockNum': '0x10', 'value': 0.25}]
        self.blocks: dict[int, dict[str, Any]] = {16: {'timestamp': hex(1_700_000_000)}}
        self.nfts: dict[str, Any] = {
            'totalCount': 3,
            'ownedNfts': [
                {'contract': {'address': '0xaaa'}},
                {'contract': {'address': '0xAAA'}},
                {'contract': {'address': '0xbbb'}},
            ],
        }
        self.token_balances: list[dict[str, Any]] = []
        self.metadata: dict[str, dict[str, Any]] = {}
        self.fail: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    async def get_balance(self, address: str) -> Any:
        self._record('get_balance')
        return self.balance

    async def get_transaction_count(self, address: str) -> int:
        self._record('get_transaction_count')
        return self.tx_count

    async def get_asset_transfers(self, from_address: str, **kwargs: Any) -> list[dict[str, Any]]:
        self._record('get_asset_transfers')
        return self.transfers

    async def get_block(self, block_number: int) -> dict[str, Any]:
        self._record('get_block')
        return self.blocks[block_number]

    async def get_nfts_for_owner(self, owner: str) -> dict[str, Any]:
        self._record('get_nfts_for_owner')
        return self.nfts

    async def get_token_balances(self, address: str) -> list[dict[str, Any]]:
        self._record('get_token_balances')
        return self.token_balances

    async def get_token_metadata(self, contract_address: str) -> dict[str, Any]:
        self._record(f'get_token_metadata:{contract_address}')
        return self.metadata[contract_address]


class FakeChain:
    def __init__(self) -> None:
        self.names: dict[str, str | None] = {'vitalik.eth': WALLET}
        self.supplies: dict[str, int] = {}
        self.resolved: list[str] = []
        self.supply_calls: list[str] = []

    async def resolve_name(self, name: str) -> str | None:
        self.resolved.append(name)
        return self.names.get(name)

    async def total_supply(self, contract_address: str) -> int:
        self.supply_calls.append(contract_address)
        if contract_address not in self.supplies:
            raise RuntimeError('execution reverted')
        return self.supplies[contract_address]


@pytest.fixture
def alchemy() -> FakeAlchemy:
    return FakeAlchemy()


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()
