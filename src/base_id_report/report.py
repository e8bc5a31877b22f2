from collections.abc import Callable
import logging

from pydantic import BaseModel, Field

from .alchemy_client import AlchemyClient
from .chain_client import ChainReader
from .errors import NetworkFailureError, ReportError
from .observability import TraceCollector
from .schemas import (
    Degradation,
    PipelineStage,
    ProgressState,
    Report,
    ReportFailure,
    TraceStep,
)
from .stages import (
    classify_account,
    detect_insider_tokens,
    fetch_balance_and_activity,
    fetch_last_transfer,
    resolve_address,
    summarize_nfts,
)

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressState], None]

CHECKPOINTS: dict[PipelineStage, tuple[int, str]] = {
    PipelineStage.RESOLVING: (10, 'Resolving address...'),
    PipelineStage.FETCHING_BALANCE: (30, 'Fetching blockchain data...'),
    PipelineStage.FETCHING_TRANSFERS: (50, 'Fetching last transfer...'),
    PipelineStage.FETCHING_NFTS: (70, 'Fetching NFT data...'),
    PipelineStage.CHECKING_INSIDERS: (85, 'Checking insider status...'),
    PipelineStage.COMPLETE: (100, 'Complete!'),
    PipelineStage.ERROR: (100, 'Error occurred'),
}
TERMINAL_STAGES = {PipelineStage.COMPLETE, PipelineStage.ERROR}


class ReportState:
    """Progress of one report request, pushed to subscribers on every transition."""

    def __init__(self) -> None:
        self.progress = ProgressState(percent_complete=0, message='Initializing...')
        self.history: list[ProgressState] = []
        self._listeners: list[ProgressListener] = []

    @property
    def stage(self) -> PipelineStage:
        return self.progress.stage

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def transition(self, stage: PipelineStage) -> ProgressState:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f'Report already finished in stage {self.stage.value}')
        if stage is PipelineStage.IDLE:
            raise ValueError('Cannot transition back to idle')
        percent, message = CHECKPOINTS[stage]
        if percent < self.progress.percent_complete:
            raise ValueError(f'Progress cannot go backwards ({self.progress.percent_complete} -> {percent})')

        self.progress = ProgressState(percent_complete=percent, message=message, stage=stage)
        self.history.append(self.progress)
        logger.debug(f"Report progress {percent}%: {message}")
        for listener in self._listeners:
            listener(self.progress)
        return self.progress


class ReportOutcome(BaseModel):
    stage: PipelineStage
    address: str | None = None
    report: Report | None = None
    failure: ReportFailure | None = None
    degradations: list[Degradation] = Field(default_factory=list)
    progress: list[ProgressState] = Field(default_factory=list)
    trace: list[TraceStep] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.report is not None


class ReportPipeline:
    """Runs the stages in order and assembles a Report, or stops at the first terminal failure."""

    def __init__(self, alchemy: AlchemyClient, chain: ChainReader) -> None:
        self.alchemy = alchemy
        self.chain = chain

    async def run(self, raw_input: str, state: ReportState | None = None) -> ReportOutcome:
        state = state or ReportState()
        trace = TraceCollector()
        address: str | None = None
        logger.info(f"Fetching data for input {raw_input!r}")

        try:
            state.transition(PipelineStage.RESOLVING)
            with trace.step('resolve_address', PipelineStage.RESOLVING, detail=raw_input):
                address = await resolve_address(raw_input, self.chain)
            trace.bind_address(address)

            state.transition(PipelineStage.FETCHING_BALANCE)
            with trace.step('balance_activity', PipelineStage.FETCHING_BALANCE) as step:
                activity = await fetch_balance_and_activity(address, self.alchemy)
                step.record(activity.degradations)

            state.transition(PipelineStage.FETCHING_TRANSFERS)
            with trace.step('last_transfer', PipelineStage.FETCHING_TRANSFERS) as step:
                transfers = await fetch_last_transfer(address, self.alchemy)
                step.record(transfers.degradations)

            state.transition(PipelineStage.FETCHING_NFTS)
            with trace.step('nft_summary', PipelineStage.FETCHING_NFTS):
                nfts = await summarize_nfts(address, self.alchemy)

            state.transition(PipelineStage.CHECKING_INSIDERS)
            with trace.step('insider_tokens', PipelineStage.CHECKING_INSIDERS) as step:
                insiders = await detect_insider_tokens(address, self.alchemy, self.chain)
                step.record(insiders.degradations)
        except Exception as exc:
            error = exc if isinstance(exc, ReportError) else NetworkFailureError(
                str(exc) or exc.__class__.__name__
            )
            logger.error(f"Report failed ({error.kind.value}): {error}")
            state.transition(PipelineStage.ERROR)
            return ReportOutcome(
                stage=PipelineStage.ERROR,
                address=address,
                failure=ReportFailure(kind=error.kind, message=str(error)),
                progress=list(state.history),
                trace=trace.as_list(),
            )

        report = Report(
            address=address,
            balance=activity.balance,
            tx_count=activity.tx_count,
            category=classify_account(activity.tx_count),
            last_activity=transfers.last_activity,
            last_gas_paid=transfers.last_gas_paid,
            nft_count=nfts.nft_count,
            collection_count=nfts.collection_count,
            insider_tokens=insiders.tokens,
        )
        logger.info(f"Result prepared for {address}: category={report.category.value}")
        state.transition(PipelineStage.COMPLETE)
        return ReportOutcome(
            stage=PipelineStage.COMPLETE,
            address=address,
            report=report,
            degradations=[*activity.degradations, *transfers.degradations, *insiders.degradations],
            progress=list(state.history),
            trace=trace.as_list(),
        )
