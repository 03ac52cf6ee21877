"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

ResponseFormat = Literal["structured", "bullet_points", "numbered", "conversational"]


class InsightSchema(BaseModel):
    """Tagged observation about the snapshot"""

    type: str
    category: str
    message: str


class PromptStatsSchema(BaseModel):
    """Size estimates of the prompt that produced the advice"""

    length: int
    word_count: int
    line_count: int
    estimated_tokens: int
    has_financial_data: bool
    has_instructions: bool


class FinancialSummarySchema(BaseModel):
    """Headline metrics of a snapshot"""

    total_assets: float
    total_liabilities: float
    total_credit_card_debt: float
    net_worth: float
    monthly_income: float
    debt_to_income_ratio: float
    credit_utilization: float


class RecommendationData(BaseModel):
    """Advice text with the metrics it was generated from"""

    type: str
    recommendations: str
    financial_summary: FinancialSummarySchema
    budget_metrics: Optional[Dict[str, Any]] = None
    investment_profile: Optional[Dict[str, Any]] = None
    debt_metrics: Optional[Dict[str, Any]] = None
    credit_metrics: Optional[Dict[str, Any]] = None
    insights: List[InsightSchema]
    generated_at: datetime
    model: str
    from_cache: bool
    prompt_stats: Optional[PromptStatsSchema] = None


class RecommendationResponse(BaseModel):
    """Response for GET /v1/recommendations/{type}"""

    success: bool
    data: Optional[RecommendationData] = None
    error: Optional[str] = None
    message: Optional[str] = None


class CustomRecommendationBody(BaseModel):
    """Request body for POST /v1/recommendations/custom"""

    label: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9_-]+$", description="Cache label")
    persona: str = Field("financial_advisor", min_length=1, max_length=500, description="Persona key or text")
    focus_areas: List[str] = Field(default_factory=list, max_length=20)
    custom_instructions: str = Field("", max_length=2000)
    response_format: ResponseFormat = "structured"
    include_data: bool = True


class BreakdownSchema(BaseModel):
    """Subtotal for one category"""

    category: str
    count: int
    total: float


class CreditCardSchema(BaseModel):
    """Per-card utilization detail"""

    bank_name: str
    card_name: str
    credit_limit: float
    outstanding_balance: float
    interest_rate: float
    due_date: Optional[date] = None
    utilization_rate: float
    available_credit: float


class SummaryTotalsSchema(FinancialSummarySchema):
    """Headline metrics plus credit and raw income totals"""

    total_income: float
    total_credit_limit: float
    total_available_credit: float


class SummaryData(BaseModel):
    """Cache-free snapshot view"""

    owner_id: Optional[str] = None
    summary: SummaryTotalsSchema
    asset_breakdown: List[BreakdownSchema]
    income_breakdown: List[BreakdownSchema]
    liability_breakdown: List[BreakdownSchema]
    credit_cards: List[CreditCardSchema]
    insights: List[InsightSchema]
    record_counts: Dict[str, int]
    generated_at: datetime


class SummaryResponse(BaseModel):
    """Response for GET /v1/recommendations/summary"""

    success: bool
    data: Optional[SummaryData] = None
    error: Optional[str] = None
    message: Optional[str] = None


class AllCounts(BaseModel):
    total_recommendations: int
    successful_recommendations: int


class AllData(BaseModel):
    """Every recommendation type, each with its own success flag"""

    general: RecommendationResponse
    budget: RecommendationResponse
    investment: RecommendationResponse
    debt: RecommendationResponse
    credit: RecommendationResponse
    generated_at: datetime
    summary: AllCounts


class AllResponse(BaseModel):
    """Response for GET /v1/recommendations/all"""

    success: bool
    data: AllData


class CacheStatsSchema(BaseModel):
    """Advice cache counters"""

    total_entries: int
    valid_entries: int
    expired_entries: int
    max_size: int
    default_ttl_minutes: float
    hits: int
    misses: int


class CacheStatsResponse(BaseModel):
    """Response for GET /v1/recommendations/cache/stats"""

    success: bool
    data: CacheStatsSchema


class CacheClearResponse(BaseModel):
    """Response for DELETE /v1/recommendations/cache[/{type}]"""

    success: bool
    cleared: int = 0
    type: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime


class ServiceHealthResponse(BaseModel):
    """Response for GET /v1/recommendations/"""

    service: str
    version: str
    status: str
    uptime_seconds: float
    cache: CacheStatsSchema
    timestamp: datetime
