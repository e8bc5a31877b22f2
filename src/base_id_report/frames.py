"""Farcaster frame / Open Graph tags for link previews of the report page."""

import json
from typing import Literal
from urllib.parse import urlencode

from .schemas import FrameTag, Report

FrameStage = Literal['initial', 'result', 'error']

INPUT_PLACEHOLDER = 'Enter ENS name or Ethereum address'
RESULT_ONLY_KEYS = ('fc:frame:button:2', 'fc:frame:button:2:action', 'fc:frame:button:2:target')


def _report_params(report: Report) -> dict[str, str]:
    insider_tokens = [
        {
            'name': token.name,
            'symbol': token.symbol,
            'holdingPercentage': token.holding_percentage,
            'contractAddress': token.contract_address,
        }
        for token in report.insider_tokens
    ]
    return {
        'address': report.address,
        'balance': report.balance,
        'txCount': str(report.tx_count),
        'category': report.category.value,
        'lastActivity': report.last_activity,
        'lastGasPaid': report.last_gas_paid,
        'nftCount': str(report.nft_count),
        'collectionCount': str(report.collection_count),
        'insiderTokens': json.dumps(insider_tokens, separators=(',', ':')),
    }


def stale_keys(stage: FrameStage) -> tuple[str, ...]:
    """Property keys a page must drop when it moves to ``stage``."""
    return () if stage == 'result' else RESULT_ONLY_KEYS


def frame_image_url(base_url: str, stage: FrameStage, report: Report | None = None) -> str:
    url = f'{base_url}/api/generate-image?stage={stage}'
    if stage == 'result' and report is not None:
        url += f'&{urlencode(_report_params(report))}'
    return url


class FrameMetadata:
    """Keyed set of head tags; applying a stage again overwrites, never duplicates."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip('/')
        self._tags: dict[tuple[str, str], FrameTag] = {}

    def _set(self, attribute: str, key: str, content: str) -> None:
        self._tags[(attribute, key)] = FrameTag(attribute=attribute, key=key, content=content)

    def apply(self, stage: FrameStage, report: Report | None = None) -> list[FrameTag]:
        if stage == 'result' and report is None:
            raise ValueError('result frame needs a report')

        image_url = frame_image_url(self.base_url, stage, report)
        self._set('property', 'og:image', image_url)
        self._set('property', 'fc:frame', 'vNext')
        self._set('property', 'fc:frame:image', image_url)
        self._set(
            'property',
            'fc:frame:button:1',
            'Look up ENS/Address' if stage == 'initial' else 'New Search',
        )
        self._set('property', 'fc:frame:input:text', INPUT_PLACEHOLDER)

        if stage == 'result':
            self._set('property', 'fc:frame:button:2', 'View Full Report')
            self._set('property', 'fc:frame:button:2:action', 'post_redirect')
            self._set(
                'property',
                'fc:frame:button:2:target',
                f'{self.base_url}/report?{urlencode({"address": report.address})}',
            )
        else:
            for key in stale_keys(stage):
                self._tags.pop(('property', key), None)

        self._set('name', 'fc:frame:validate', f'{self.base_url}/validateFrameEmbed')
        return self.tags()

    def tags(self) -> list[FrameTag]:
        return list(self._tags.values())
