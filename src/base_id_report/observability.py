from collections.abc import Iterator
from contextlib import contextmanager
import logging
import time
from urllib.parse import urlparse

from .errors import ErrorKind, ReportError
from .schemas import Degradation, PipelineStage, TraceStep
from .settings import settings

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'

logger = logging.getLogger(__name__)


def _build_tracer():
    if not settings.dd_trace_enabled:
        return None
    try:
        from ddtrace import tracer as dd_tracer
    except Exception:  # pragma: no cover
        logger.exception('ddtrace unavailable; report spans disabled')
        return None

    agent_url = urlparse(settings.dd_trace_agent_url or '')
    if agent_url.scheme in {'http', 'https'} and agent_url.hostname:
        dd_tracer.configure(
            hostname=agent_url.hostname,
            port=agent_url.port or 8126,
            https=(agent_url.scheme == 'https'),
        )
    elif agent_url.scheme == 'unix' and agent_url.path:
        dd_tracer.configure(uds_path=agent_url.path)
    return dd_tracer


tracer = _build_tracer()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        datefmt='%Y-%m-%dT%H:%M:%S%z',
    )


class StageTrace:
    """Handle for the pipeline stage being traced; stages report their degradations here."""

    def __init__(self, stage: PipelineStage, span=None) -> None:
        self.stage = stage
        self.degradations: list[ErrorKind] = []
        self._span = span

    def record(self, degradations: list[Degradation]) -> None:
        self.degradations.extend(d.kind for d in degradations)
        if self._span is not None and self.degradations:
            self._span.set_tag('report.degradations', ','.join(kind.value for kind in self.degradations))


class TraceCollector:
    """Per-report timings of each pipeline stage, mirrored to ddtrace spans when enabled."""

    def __init__(self) -> None:
        self.steps: list[TraceStep] = []
        self.address: str | None = None

    def bind_address(self, address: str) -> None:
        self.address = address

    @contextmanager
    def step(self, name: str, stage: PipelineStage, detail: str | None = None) -> Iterator[StageTrace]:
        started = time.perf_counter()
        span = None
        if tracer is not None:
            span = tracer.trace(f'base_id_report.{name}', service=settings.dd_service, resource=stage.value)
            span.set_tag('env', settings.dd_env)
            span.set_tag('version', settings.dd_version)
            span.set_tag('report.stage', stage.value)
            if self.address:
                span.set_tag('report.address', self.address)
        handle = StageTrace(stage, span)
        error_kind: ErrorKind | None = None
        error_msg: str | None = None
        try:
            yield handle
        except Exception as exc:
            error_kind = exc.kind if isinstance(exc, ReportError) else ErrorKind.NETWORK_FAILURE
            error_msg = str(exc)
            if span is not None:
                span.set_tag('error', 1)
                span.set_tag('error.kind', error_kind.value)
                span.set_tag('error.msg', error_msg)
            raise
        finally:
            self.steps.append(
                TraceStep(
                    step=name,
                    stage=stage,
                    duration_ms=int((time.perf_counter() - started) * 1000),
                    ok=error_kind is None,
                    detail=error_msg if error_kind else detail,
                    address=self.address,
                    degradations=handle.degradations,
                    error_kind=error_kind,
                )
            )
            if span is not None:
                span.finish()

    def as_list(self) -> list[TraceStep]:
        return self.steps
