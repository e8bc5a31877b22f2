"""Report stages.

Each stage takes the resolved address plus the provider adapters it needs and
returns a typed result. Fail-fast stages raise ``ReportError``; degrading
stages never raise and record what went wrong as ``Degradation`` entries.
"""

import asyncio
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
import math
from typing import Any

from web3 import Web3

from .alchemy_client import AlchemyClient
from .chain_client import ChainReader
from .errors import AddressNotFoundError, ErrorKind, NFTFetchFailedError
from .schemas import (
    AccountCategory,
    BalanceActivity,
    Degradation,
    InsiderScan,
    InsiderToken,
    NFTSummary,
    TokenHolding,
    TransferRecord,
    TransferSummary,
)

logger = logging.getLogger(__name__)

INSIDER_THRESHOLD = Decimal('1')
DEFAULT_TOKEN_DECIMALS = 18
TIER_THRESHOLDS: list[tuple[int, AccountCategory]] = [
    (10, AccountCategory.PLANKTON),
    (100, AccountCategory.SHRIMP),
    (1000, AccountCategory.SHARK),
]

NOT_AVAILABLE = 'N/A'
BALANCE_ERROR = 'Error'
BLOCK_ERROR = 'Error fetching date'
TRANSFERS_ERROR = 'Error fetching transfers'


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith(('0x', '0X')) else int(value)
    return int(value)


def format_js_number(value: float) -> str:
    """Render a float with JavaScript's Number-to-String rules.

    Shortest round-trip digits as ``repr`` gives them, but plain notation for
    magnitudes from 1e-6 up to 1e21 and ``1e-7`` / ``1e+21`` style outside it.
    """
    number = float(value)
    if math.isnan(number):
        return 'NaN'
    if math.isinf(number):
        return 'Infinity' if number > 0 else '-Infinity'
    if number == 0:
        return '0'

    sign, digit_tuple, exponent = Decimal(repr(number)).as_tuple()
    digits = ''.join(map(str, digit_tuple))
    stripped = digits.rstrip('0')
    exponent += len(digits) - len(stripped)
    digits = stripped
    k = len(digits)
    # n: position of the decimal point relative to the first digit
    n = k + exponent

    if k <= n <= 21:
        text = digits + '0' * (n - k)
    elif 0 < n <= 21:
        text = f'{digits[:n]}.{digits[n:]}'
    elif -6 < n <= 0:
        text = '0.' + '0' * -n + digits
    else:
        shift = n - 1
        mantissa = digits[0] + (f'.{digits[1:]}' if k > 1 else '')
        text = f"{mantissa}e{'+' if shift > 0 else '-'}{abs(shift)}"
    return f'-{text}' if sign else text


def is_hex_address(value: str) -> bool:
    return Web3.is_address(value)


async def resolve_address(raw_input: str, chain: ChainReader) -> str:
    if is_hex_address(raw_input):
        logger.info("Input is a valid Ethereum address")
        return raw_input

    resolved = await chain.resolve_name(raw_input)
    logger.info(f"ENS name resolved: {raw_input} -> {resolved}")
    if not resolved:
        raise AddressNotFoundError('No address found for this input.')
    return resolved


def format_ether(raw_balance: Any) -> str:
    """Render a wei amount as an ether decimal string, e.g. ``1.5`` or ``0.0``."""
    wei = _to_int(raw_balance)
    text = format(Decimal(Web3.from_wei(wei, 'ether')), 'f')
    if '.' in text:
        text = text.rstrip('0')
    if text.endswith('.'):
        return f'{text}0'
    return text if '.' in text else f'{text}.0'


def format_balance(raw_balance: Any) -> tuple[str, Degradation | None]:
    try:
        return format_ether(raw_balance), None
    except (TypeError, ValueError, ArithmeticError) as exc:
        logger.warning(f"Error formatting ether value {raw_balance!r}: {exc}")
        return BALANCE_ERROR, Degradation(
            kind=ErrorKind.FORMATTING_FAILURE, detail=str(exc) or 'invalid balance'
        )


async def fetch_balance_and_activity(address: str, alchemy: AlchemyClient) -> BalanceActivity:
    raw_balance, tx_count = await asyncio.gather(
        alchemy.get_balance(address),
        alchemy.get_transaction_count(address),
    )
    logger.info(f"Blockchain data fetched: balance={raw_balance} txCount={tx_count}")

    balance, degradation = format_balance(raw_balance)
    return BalanceActivity(
        balance=balance,
        tx_count=tx_count,
        degradations=[degradation] if degradation else [],
    )


def _format_block_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, UTC).strftime('%Y-%m-%d %H:%M:%S UTC')


async def fetch_last_transfer(address: str, alchemy: AlchemyClient) -> TransferSummary:
    try:
        transfers = await alchemy.get_asset_transfers(address, order='desc', max_count=1)
        if not transfers:
            return TransferSummary()
        last = transfers[0]
        value = last.get('value')
        record = TransferRecord(block_number=_to_int(last['blockNum']), value=value)
    except Exception as exc:
        logger.warning(f"Error fetching last transfer for {address}: {exc}")
        return TransferSummary(
            last_activity=TRANSFERS_ERROR,
            degradations=[Degradation(kind=ErrorKind.TRANSFER_LOOKUP_FAILURE, detail=str(exc))],
        )

    summary = TransferSummary(
        last_gas_paid=f'{format_js_number(value)} ETH' if value else NOT_AVAILABLE,
        transfer=record,
    )

    try:
        block = await alchemy.get_block(record.block_number)
        timestamp = _to_int(block['timestamp'])
    except Exception as exc:
        logger.warning(f"Error fetching block timestamp for block {record.block_number}: {exc}")
        summary.last_activity = BLOCK_ERROR
        summary.degradations.append(
            Degradation(
                kind=ErrorKind.BLOCK_LOOKUP_FAILURE,
                detail=str(exc),
                subject=str(record.block_number),
            )
        )
        return summary

    summary.transfer = record.model_copy(update={'block_timestamp': timestamp})
    summary.last_activity = _format_block_time(timestamp)
    return summary


async def summarize_nfts(address: str, alchemy: AlchemyClient) -> NFTSummary:
    try:
        page = await alchemy.get_nfts_for_owner(address)
        owned = page.get('ownedNfts') or []
        collections = {nft['contract']['address'].lower() for nft in owned}
        nft_count = int(page.get('totalCount', len(owned)))
    except Exception as exc:
        logger.error(f"Error fetching NFT data for {address}: {exc}")
        raise NFTFetchFailedError('Failed to fetch NFT data') from exc

    logger.info(f"NFT data fetched: nftCount={nft_count} collectionCount={len(collections)}")
    return NFTSummary(nft_count=nft_count, collection_count=len(collections))


async def _total_supply(contract_address: str, metadata: dict[str, Any], chain: ChainReader) -> int:
    embedded = metadata.get('totalSupply')
    if embedded:
        return _to_int(embedded)
    return await chain.total_supply(contract_address)


async def _inspect_token(
    entry: dict[str, Any], alchemy: AlchemyClient, chain: ChainReader
) -> TokenHolding | None:
    raw_balance = _to_int(entry.get('tokenBalance') or 0)
    if raw_balance == 0:
        return None

    contract_address = entry['contractAddress']
    metadata = await alchemy.get_token_metadata(contract_address)
    total_supply = await _total_supply(contract_address, metadata, chain)
    decimals = metadata.get('decimals')
    return TokenHolding(
        contract_address=contract_address,
        name=metadata.get('name') or 'Unknown',
        symbol=metadata.get('symbol') or 'Unknown',
        decimals=DEFAULT_TOKEN_DECIMALS if decimals is None else int(decimals),
        raw_balance=raw_balance,
        total_supply=total_supply,
    )


def round_percentage(value: Decimal) -> str:
    return str(value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def to_insider_token(holding: TokenHolding) -> InsiderToken | None:
    percentage = holding.holding_percentage
    if percentage is None or percentage <= INSIDER_THRESHOLD:
        return None
    return InsiderToken(
        contract_address=holding.contract_address,
        name=holding.name,
        symbol=holding.symbol,
        holding_percentage=round_percentage(percentage),
    )


async def detect_insider_tokens(
    address: str, alchemy: AlchemyClient, chain: ChainReader
) -> InsiderScan:
    scan = InsiderScan()
    try:
        balances = await alchemy.get_token_balances(address)
    except Exception as exc:
        logger.warning(f"Error listing token balances for {address}: {exc}")
        scan.degradations.append(
            Degradation(kind=ErrorKind.TOKEN_INSPECTION_FAILURE, detail=str(exc), subject=address)
        )
        return scan

    for entry in balances:
        contract_address = entry.get('contractAddress')
        try:
            holding = await _inspect_token(entry, alchemy, chain)
        except Exception as exc:
            logger.warning(f"Error checking insider status for token {contract_address}: {exc}")
            scan.degradations.append(
                Degradation(
                    kind=ErrorKind.TOKEN_INSPECTION_FAILURE,
                    detail=str(exc),
                    subject=contract_address,
                )
            )
            continue
        if holding is None:
            continue

        token = to_insider_token(holding)
        if token:
            logger.info(f"Insider token found: {token.name} ({token.holding_percentage}%)")
            scan.tokens.append(token)

    return scan


def classify_account(tx_count: int) -> AccountCategory:
    for limit, category in TIER_THRESHOLDS:
        if tx_count < limit:
            return category
    return AccountCategory.WHALE
