import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
import json
import logging
from pathlib import Path
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
import httpx

from .alchemy_client import AlchemyClient
from .chain_client import ChainReader
from .datadog_client import send_report_log
from .errors import ErrorKind
from .frames import FrameMetadata, stale_keys
from .observability import configure_logging
from .report import ReportOutcome, ReportPipeline, ReportState
from .schemas import ProgressState, ReportRequest, ReportResponse, ThemePreference
from .settings import settings
from .theme import ThemeStore

logger = logging.getLogger(__name__)

PipelineOpener = Callable[[], AbstractAsyncContextManager[ReportPipeline]]

templates = Jinja2Templates(directory=str(Path(__file__).parent / 'templates'))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    logger.info('Base ID report service started')
    yield
    logger.info('Base ID report service stopping')


app = FastAPI(title='Base ID Report', version='0.1.0', lifespan=lifespan)


@asynccontextmanager
async def open_pipeline() -> AsyncIterator[ReportPipeline]:
    async with httpx.AsyncClient(timeout=settings.report_timeout_seconds) as client:
        yield ReportPipeline(
            alchemy=AlchemyClient(client, settings.alchemy_api_key or '', settings.alchemy_network),
            chain=ChainReader(
                ens_rpc_url=settings.resolved_ens_rpc_url,
                supply_rpc_url=settings.supply_rpc_url,
                timeout_s=settings.report_timeout_seconds,
            ),
        )


def get_pipeline_opener() -> PipelineOpener:
    return open_pipeline


def get_theme_store() -> ThemeStore:
    return ThemeStore(settings.theme_store_path)


async def _run_report(
    raw_input: str, opener: PipelineOpener, state: ReportState | None = None
) -> ReportOutcome:
    async with opener() as pipeline:
        outcome = await pipeline.run(raw_input, state)

    summary = (
        {'category': outcome.report.category.value, 'degradations': len(outcome.degradations)}
        if outcome.report
        else {'error': outcome.failure.model_dump(mode='json') if outcome.failure else None}
    )
    try:
        await send_report_log(address=outcome.address or raw_input, trace=outcome.trace, outcome=summary)
    except Exception as exc:
        logger.warning(f"Datadog report log not sent: {exc}")
    return outcome


def _build_response(outcome: ReportOutcome) -> ReportResponse:
    frame = FrameMetadata(settings.frame_base_url)
    return ReportResponse(
        report=outcome.report,
        degradations=outcome.degradations,
        trace=outcome.trace,
        frame=frame.apply('result', outcome.report),
    )


def _status_code(kind: ErrorKind) -> int:
    return 404 if kind is ErrorKind.ADDRESS_NOT_FOUND else 502


def _render_page(
    request: Request,
    theme: ThemePreference,
    outcome: ReportOutcome | None = None,
    input_value: str = '',
) -> HTMLResponse:
    frame = FrameMetadata(settings.frame_base_url)
    if outcome is None:
        frame.apply('initial')
    elif outcome.report:
        frame.apply('result', outcome.report)
    else:
        frame.apply('error')
    return templates.TemplateResponse(
        request,
        'index.html',
        {
            'dark_mode': theme.dark_mode,
            'frame_tags': frame.tags(),
            'input_value': input_value,
            'report': outcome.report if outcome else None,
            'error': outcome.failure.message if outcome and outcome.failure else '',
            'explorer_token_url': settings.explorer_token_url,
        },
        status_code=200 if outcome is None or outcome.ok else _status_code(outcome.failure.kind),
    )


@app.get('/health')
def health() -> dict[str, str]:
    return {'status': 'ok'}


@app.get('/', response_class=HTMLResponse)
def index(request: Request, store: ThemeStore = Depends(get_theme_store)) -> HTMLResponse:
    return _render_page(request, store.load())


@app.get('/report', response_class=HTMLResponse)
async def report_page(
    request: Request,
    address: str,
    store: ThemeStore = Depends(get_theme_store),
    opener: PipelineOpener = Depends(get_pipeline_opener),
) -> HTMLResponse:
    outcome = await _run_report(address, opener)
    return _render_page(request, store.load(), outcome, input_value=address)


@app.post('/v1/report', response_model=ReportResponse)
async def create_report(
    payload: ReportRequest, opener: PipelineOpener = Depends(get_pipeline_opener)
) -> ReportResponse:
    outcome = await _run_report(payload.input, opener)
    if not outcome.ok:
        raise HTTPException(status_code=_status_code(outcome.failure.kind), detail=outcome.failure.message)
    return _build_response(outcome)


def _format_sse(event: str, data: dict) -> str:
    return f'event: {event}\ndata: {json.dumps(data, separators=(",", ":"))}\n\n'


@app.post('/v1/report/stream')
async def create_report_stream(
    payload: ReportRequest, opener: PipelineOpener = Depends(get_pipeline_opener)
) -> StreamingResponse:
    request_id = str(uuid4())

    async def event_stream() -> AsyncIterator[str]:
        queue: asyncio.Queue[tuple[str, dict] | None] = asyncio.Queue()
        state = ReportState()

        def on_progress(progress: ProgressState) -> None:
            queue.put_nowait(('progress', progress.model_dump(mode='json')))

        state.subscribe(on_progress)

        async def worker() -> None:
            try:
                outcome = await _run_report(payload.input, opener, state)
                if outcome.ok:
                    response = _build_response(outcome)
                    queue.put_nowait(('completed', {'response': response.model_dump(mode='json')}))
                else:
                    queue.put_nowait(
                        (
                            'error',
                            {
                                'kind': outcome.failure.kind.value,
                                'status_code': _status_code(outcome.failure.kind),
                                'detail': outcome.failure.message,
                                'frame': [
                                    tag.model_dump() for tag in FrameMetadata(settings.frame_base_url).apply('error')
                                ],
                                'frame_removed': list(stale_keys('error')),
                            },
                        )
                    )
            except Exception as exc:
                logger.exception('Report stream worker failed')
                queue.put_nowait(
                    (
                        'error',
                        {
                            'kind': ErrorKind.NETWORK_FAILURE.value,
                            'status_code': 500,
                            'detail': str(exc),
                            'frame_removed': list(stale_keys('error')),
                        },
                    )
                )
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(worker())
        while True:
            item = await queue.get()
            if item is None:
                break
            event, data = item
            yield _format_sse(event, {'request_id': request_id, **data})
        await task

    return StreamingResponse(
        event_stream(),
        media_type='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive',
            'X-Accel-Buffering': 'no',
        },
    )


@app.get('/v1/theme', response_model=ThemePreference)
def get_theme(store: ThemeStore = Depends(get_theme_store)) -> ThemePreference:
    return store.load()


@app.post('/v1/theme/toggle', response_model=ThemePreference)
def toggle_theme(store: ThemeStore = Depends(get_theme_store)) -> ThemePreference:
    return store.toggle()
