import pytest

from base_id_report import observability
from base_id_report.errors import AddressNotFoundError, ErrorKind
from base_id_report.observability import TraceCollector
from base_id_report.schemas import Degradation, PipelineStage

from .conftest import WALLET


class FakeSpan:
    def __init__(self, name: str, resource: str) -> None:
        self.name = name
        self.resource = resource
        self.tags: dict = {}
        self.finished = False

    def set_tag(self, key, value) -> None:
        self.tags[key] = value

    def finish(self) -> None:
        self.finished = True


class FakeTracer:
    def __init__(self) -> None:
        self.spans: list[FakeSpan] = []

    def trace(self, name, service=None, resource=None) -> FakeSpan:
        span = FakeSpan(name, resource)
        self.spans.append(span)
        return span


@pytest.fixture
def tracer(monkeypatch) -> FakeTracer:
    fake = FakeTracer()
    monkeypatch.setattr(observability, 'tracer', fake)
    return fake


def test_steps_recorded_without_tracer(monkeypatch):
    monkeypatch.setattr(observability, 'tracer', None)
    trace = TraceCollector()

    with trace.step('resolve_address', PipelineStage.RESOLVING, detail='vitalik.eth'):
        pass

    [step] = trace.as_list()
    assert step.step == 'resolve_address'
    assert step.stage is PipelineStage.RESOLVING
    assert step.ok is True
    assert step.detail == 'vitalik.eth'
    assert step.address is None
    assert step.degradations == []


def test_span_tagged_with_stage_and_bound_address(tracer):
    trace = TraceCollector()
    with trace.step('resolve_address', PipelineStage.RESOLVING):
        pass
    trace.bind_address(WALLET)
    with trace.step('balance_activity', PipelineStage.FETCHING_BALANCE):
        pass

    resolve_span, balance_span = tracer.spans
    assert resolve_span.name == 'base_id_report.resolve_address'
    assert resolve_span.tags['report.stage'] == 'resolving'
    assert 'report.address' not in resolve_span.tags
    assert balance_span.resource == 'fetching_balance'
    assert balance_span.tags['report.address'] == WALLET
    assert all(span.finished for span in tracer.spans)
    assert trace.as_list()[1].address == WALLET


def test_degradation_kinds_recorded_on_step_and_span(tracer):
    trace = TraceCollector()
    trace.bind_address(WALLET)

    with trace.step('last_transfer', PipelineStage.FETCHING_TRANSFERS) as step:
        step.record([Degradation(kind=ErrorKind.BLOCK_LOOKUP_FAILURE, detail='missing block')])

    [recorded] = trace.as_list()
    assert recorded.ok is True
    assert recorded.degradations == [ErrorKind.BLOCK_LOOKUP_FAILURE]
    assert tracer.spans[0].tags['report.degradations'] == 'BlockLookupFailure'


def test_clean_stage_leaves_degradation_tag_unset(tracer):
    trace = TraceCollector()
    with trace.step('insider_tokens', PipelineStage.CHECKING_INSIDERS) as step:
        step.record([])

    assert 'report.degradations' not in tracer.spans[0].tags
    assert trace.as_list()[0].degradations == []


def test_failed_step_keeps_error_kind(tracer):
    trace = TraceCollector()

    with pytest.raises(AddressNotFoundError):
        with trace.step('resolve_address', PipelineStage.RESOLVING, detail='nobody.eth'):
            raise AddressNotFoundError('No address found for this input.')

    [step] = trace.as_list()
    assert step.ok is False
    assert step.error_kind is ErrorKind.ADDRESS_NOT_FOUND
    assert step.detail == 'No address found for this input.'
    span = tracer.spans[0]
    assert span.tags['error'] == 1
    assert span.tags['error.kind'] == 'AddressNotFound'
    assert span.finished


def test_unexpected_error_counts_as_network_failure(tracer):
    trace = TraceCollector()

    with pytest.raises(RuntimeError):
        with trace.step('balance_activity', PipelineStage.FETCHING_BALANCE):
            raise RuntimeError('connection reset')

    assert trace.as_list()[0].error_kind is ErrorKind.NETWORK_FAILURE
    assert tracer.spans[0].tags['error.kind'] == 'NetworkFailure'
