"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


INCOME_FREQUENCIES = ("daily", "weekly", "bi-weekly", "monthly", "quarterly", "yearly", "one-time")
ASSET_TYPES = ("savings", "investment", "property", "vehicle", "stocks", "bonds", "cryptocurrency", "other")
LIABILITY_TYPES = ("loan", "mortgage", "personal-loan", "car-loan", "student-loan", "medical", "other")


class RecommendationType(str, Enum):
    """Recommendation kinds, each with its own prompt template and response shape"""

    GENERAL = "general"
    BUDGET = "budget"
    INVESTMENT = "investment"
    DEBT = "debt"
    CREDIT = "credit"


@dataclass
class IncomeRecord:
    """Income source from the record store"""

    income_source: str
    amount: float
    frequency: str  # one of INCOME_FREQUENCIES
    date_received: Optional[date] = None
    owner_id: Optional[str] = None


@dataclass
class AssetRecord:
    """Asset holding from the record store"""

    name: str
    asset_type: str
    current_value: float
    interest_rate: float = 0.0
    owner_id: Optional[str] = None


@dataclass
class LiabilityRecord:
    """Outstanding debt from the record store"""

    name: str
    liability_type: str
    outstanding_amount: float
    interest_rate: float = 0.0
    due_date: Optional[date] = None
    owner_id: Optional[str] = None


@dataclass
class CreditCardRecord:
    """Credit card account from the record store"""

    bank_name: str
    card_name: str
    credit_limit: float
    outstanding_balance: float
    interest_rate: float = 0.0
    due_date: Optional[date] = None
    owner_id: Optional[str] = None


@dataclass
class RecordCollections:
    """All four record collections read for one aggregation scope"""

    incomes: List[IncomeRecord] = field(default_factory=list)
    assets: List[AssetRecord] = field(default_factory=list)
    liabilities: List[LiabilityRecord] = field(default_factory=list)
    credit_cards: List[CreditCardRecord] = field(default_factory=list)


@dataclass(frozen=True)
class BreakdownGroup:
    """Records of one category with their subtotal"""

    category: str
    count: int
    total: float


@dataclass(frozen=True)
class CreditCardDetail:
    """Per-card view with derived utilization"""

    bank_name: str
    card_name: str
    credit_limit: float
    outstanding_balance: float
    interest_rate: float
    due_date: Optional[date]
    utilization_rate: float
    available_credit: float


@dataclass(frozen=True)
class Insight:
    """Tagged observation derived from threshold rules"""

    type: str  # positive | warning | recommendation
    category: str
    message: str


@dataclass(frozen=True)
class FinancialSnapshot:
    """Derived, immutable summary of all financial records for one scope"""

    owner_id: Optional[str]
    total_assets: float
    total_liabilities: float
    total_credit_card_debt: float
    total_income: float
    total_credit_limit: float
    total_available_credit: float
    net_worth: float
    monthly_income: float
    debt_to_income_ratio: float
    credit_utilization: float
    asset_breakdown: Tuple[BreakdownGroup, ...] = ()
    income_breakdown: Tuple[BreakdownGroup, ...] = ()
    liability_breakdown: Tuple[BreakdownGroup, ...] = ()
    credit_cards: Tuple[CreditCardDetail, ...] = ()
    assets: Tuple[AssetRecord, ...] = ()
    incomes: Tuple[IncomeRecord, ...] = ()
    liabilities: Tuple[LiabilityRecord, ...] = ()
    insights: Tuple[Insight, ...] = ()

    @property
    def total_debt(self) -> float:
        return self.total_liabilities + self.total_credit_card_debt


@dataclass
class ValidationReport:
    """Outcome of pre-render snapshot checks"""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class PromptStats:
    """Size estimates reported for every rendered prompt"""

    length: int
    word_count: int
    line_count: int
    estimated_tokens: int
    has_financial_data: bool
    has_instructions: bool


@dataclass
class Prompt:
    """Rendered prompt ready to send to the advice model"""

    recommendation_type: str
    text: str
    stats: PromptStats
    warnings: List[str] = field(default_factory=list)


@dataclass
class ModelParameters:
    """Sampling parameters for the advice model"""

    max_tokens: int = 1000
    temperature: float = 0.7
    top_p: float = 0.9


@dataclass
class ModelResponse:
    """Text generated by the advice model"""

    content: str
    model_id: str
    usage: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Advice:
    """Generated advice as stored in the cache"""

    content: str
    model_id: str
    generated_at: datetime
    from_cache: bool = False
    prompt_stats: Optional[PromptStats] = None


@dataclass
class CacheEntry:
    """Single advice cache slot"""

    key: str
    recommendation_type: str
    value: Advice
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    """Point-in-time cache counters"""

    total_entries: int
    valid_entries: int
    expired_entries: int
    max_size: int
    default_ttl_minutes: float
    hits: int
    misses: int


@dataclass
class RecommendationResult:
    """Typed recommendation returned to callers"""

    type: str
    content: str
    financial_summary: Dict[str, float]
    metrics_name: str
    metrics: Dict[str, Any]
    insights: List[Insight]
    generated_at: datetime
    model_id: str
    from_cache: bool
    prompt_stats: Optional[PromptStats] = None


@dataclass
class ServiceResult:
    """Uniform success/failure envelope produced by the orchestrator"""

    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None


@dataclass
class CustomRecommendationRequest:
    """Ad hoc recommendation built without a dedicated template"""

    label: str
    persona: str = "financial_advisor"
    focus_areas: List[str] = field(default_factory=list)
    custom_instructions: str = ""
    response_format: str = "structured"
    include_data: bool = True


@dataclass
class SummaryResult:
    """Cache-free view of a snapshot for dashboards"""

    snapshot: FinancialSnapshot
    generated_at: datetime


@dataclass
class AllRecommendationsResult:
    """Fan-out result; each type carries its own success flag"""

    results: Dict[str, ServiceResult]
    generated_at: datetime

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results.values() if r.success)
