from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .errors import ErrorKind


class ReportRequest(BaseModel):
    input: str = Field(..., min_length=1, description='ENS name or hex address to look up')


class AccountCategory(str, Enum):
    PLANKTON = 'Plankton'
    SHRIMP = 'Shrimp'
    SHARK = 'Shark'
    WHALE = 'Whale'


class PipelineStage(str, Enum):
    IDLE = 'idle'
    RESOLVING = 'resolving'
    FETCHING_BALANCE = 'fetching_balance'
    FETCHING_TRANSFERS = 'fetching_transfers'
    FETCHING_NFTS = 'fetching_nfts'
    CHECKING_INSIDERS = 'checking_insiders'
    COMPLETE = 'complete'
    ERROR = 'error'


class Degradation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    detail: str
    subject: str | None = None


class TokenHolding(BaseModel):
    model_config = ConfigDict(frozen=True)

    contract_address: str
    name: str
    symbol: str
    decimals: int
    raw_balance: int
    total_supply: int

    @computed_field
    @property
    def holding_percentage(self) -> Decimal | None:
        if self.total_supply <= 0:
            return None
        scale = Decimal(10) ** self.decimals
        return (Decimal(self.raw_balance) / scale) / (Decimal(self.total_supply) / scale) * 100


class InsiderToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    contract_address: str
    name: str
    symbol: str
    holding_percentage: str


class TransferRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    block_number: int
    value: float | None = None
    block_timestamp: int | None = None


class BalanceActivity(BaseModel):
    balance: str
    tx_count: int
    degradations: list[Degradation] = Field(default_factory=list)


class TransferSummary(BaseModel):
    last_activity: str = 'N/A'
    last_gas_paid: str = 'N/A'
    transfer: TransferRecord | None = None
    degradations: list[Degradation] = Field(default_factory=list)


class NFTSummary(BaseModel):
    nft_count: int
    collection_count: int


class InsiderScan(BaseModel):
    tokens: list[InsiderToken] = Field(default_factory=list)
    degradations: list[Degradation] = Field(default_factory=list)


class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    balance: str
    tx_count: int
    category: AccountCategory
    last_activity: str
    last_gas_paid: str
    nft_count: int
    collection_count: int
    insider_tokens: list[InsiderToken]


class ProgressState(BaseModel):
    model_config = ConfigDict(frozen=True)

    percent_complete: int = Field(default=0, ge=0, le=100)
    message: str = ''
    stage: PipelineStage = PipelineStage.IDLE


class ReportFailure(BaseModel):
    kind: ErrorKind
    message: str


class TraceStep(BaseModel):
    step: str
    stage: PipelineStage
    duration_ms: int
    ok: bool
    detail: str | None = None
    address: str | None = None
    degradations: list[ErrorKind] = Field(default_factory=list)
    error_kind: ErrorKind | None = None


class FrameTag(BaseModel):
    model_config = ConfigDict(frozen=True)

    attribute: Literal['property', 'name']
    key: str
    content: str


class ReportResponse(BaseModel):
    report: Report
    degradations: list[Degradation] = Field(default_factory=list)
    trace: list[TraceStep] = Field(default_factory=list)
    frame: list[FrameTag] = Field(default_factory=list)


class ThemePreference(BaseModel):
    dark_mode: bool = False
