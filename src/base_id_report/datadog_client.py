from datetime import UTC, datetime
from typing import Any

import httpx

from .schemas import TraceStep
from .settings import settings


def _intake_url() -> str:
    return f'https://http-intake.logs.{settings.dd_site}/api/v2/logs'


async def send_report_log(
    address: str,
    trace: list[TraceStep],
    outcome: dict[str, Any],
) -> None:
    if not settings.dd_api_key or not settings.dd_send_logs:
        return

    payload = {
        'ddsource': 'python',
        'service': settings.dd_service,
        'ddtags': f'env:{settings.dd_env},version:{settings.dd_version}',
        'hostname': 'base-id-report',
        'timestamp': datetime.now(UTC).isoformat(),
        'message': 'address_report_finished',
        'address': address,
        'trace': [step.model_dump(mode='json') for step in trace],
        'outcome': outcome,
    }
    headers = {'Content-Type': 'application/json', 'DD-API-KEY': settings.dd_api_key}

    async with httpx.AsyncClient(timeout=settings.report_timeout_seconds) as client:
        resp = await client.post(_intake_url(), headers=headers, json=[payload])
        resp.raise_for_status()
