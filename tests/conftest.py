"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Generator, Iterable, List, Optional
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from advisor_gateway.api.main import create_app
from advisor_gateway.domain.aggregation import build_snapshot
from advisor_gateway.domain.models import (
    AssetRecord,
    CreditCardRecord,
    FinancialSnapshot,
    IncomeRecord,
    LiabilityRecord,
    ModelParameters,
    ModelResponse,
    RecordCollections,
)
from advisor_gateway.domain.prompts import PromptBuilder
from advisor_gateway.infrastructure.cache.advice_cache import AdviceCache
from advisor_gateway.infrastructure.database.models import Base
from advisor_gateway.infrastructure.database.session import create_record_engine, create_session_factory
from advisor_gateway.services.aggregation import AggregationEngine
from advisor_gateway.services.recommendations import RecommendationOrchestrator


class FakeClock:
    """Manually advanced time source for TTL tests"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryRecordStore:
    """Record store backed by plain lists; `failing` names collections that raise"""

    def __init__(self, records: RecordCollections, failing: Iterable[str] = ()):
        self.records = records
        self.failing = set(failing)
        self.calls = 0

    def _select(self, name: str, items: List, owner_id: Optional[str]) -> List:
        self.calls += 1
        if name in self.failing:
            raise ConnectionError(f"{name} collection unreachable")
        return [r for r in items if owner_id is None or r.owner_id == owner_id]

    async def list_incomes(self, owner_id: Optional[str] = None) -> List[IncomeRecord]:
        return self._select("incomes", self.records.incomes, owner_id)

    async def list_assets(self, owner_id: Optional[str] = None) -> List[AssetRecord]:
        return self._select("assets", self.records.assets, owner_id)

    async def list_liabilities(self, owner_id: Optional[str] = None) -> List[LiabilityRecord]:
        return self._select("liabilities", self.records.liabilities, owner_id)

    async def list_credit_cards(self, owner_id: Optional[str] = None) -> List[CreditCardRecord]:
        return self._select("credit_cards", self.records.credit_cards, owner_id)


def make_records() -> RecordCollections:
    """
    Basic household:
    - income: $5,000 monthly salary + $1,200 quarterly dividends -> $5,400/month
    - assets: $50,000
    - liabilities: $15,000 car loan
    - cards: $2,500 owed on $15,000 of limit (16.7% utilization)
    """
    return RecordCollections(
        incomes=[
            IncomeRecord(income_source="salary", amount=5000.0, frequency="monthly", date_received=date(2024, 5, 1)),
            IncomeRecord(income_source="dividends", amount=1200.0, frequency="quarterly"),
        ],
        assets=[
            AssetRecord(name="Emergency Savings", asset_type="savings", current_value=20000.0, interest_rate=4.5),
            AssetRecord(name="Brokerage", asset_type="stocks", current_value=30000.0, interest_rate=7.0),
        ],
        liabilities=[
            LiabilityRecord(
                name="Car Loan",
                liability_type="car-loan",
                outstanding_amount=15000.0,
                interest_rate=5.5,
                due_date=date(2024, 6, 15),
            ),
        ],
        credit_cards=[
            CreditCardRecord(
                bank_name="Chase",
                card_name="Sapphire",
                credit_limit=10000.0,
                outstanding_balance=2000.0,
                interest_rate=21.99,
                due_date=date(2024, 6, 1),
            ),
            CreditCardRecord(
                bank_name="Amex",
                card_name="Gold",
                credit_limit=5000.0,
                outstanding_balance=500.0,
                interest_rate=24.99,
            ),
        ],
    )


@pytest.fixture
def sample_records() -> RecordCollections:
    return make_records()


@pytest.fixture
def sample_snapshot(sample_records: RecordCollections) -> FinancialSnapshot:
    return build_snapshot(sample_records)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def record_store(sample_records: RecordCollections) -> InMemoryRecordStore:
    return InMemoryRecordStore(sample_records)


@pytest.fixture
def model_client() -> AsyncMock:
    """Advice model double; every call returns the same advice text"""
    client = AsyncMock()
    client.invoke.return_value = ModelResponse(
        content="1. Pay down the car loan.\n2. Keep card balances low.",
        model_id="test-model",
        usage={"input_tokens": 100, "output_tokens": 20},
    )
    return client


@pytest.fixture
def advice_cache(clock: FakeClock) -> AdviceCache:
    return AdviceCache(ttl_seconds=30 * 60, max_size=100, clock=clock)


@pytest.fixture
def orchestrator(
    record_store: InMemoryRecordStore,
    advice_cache: AdviceCache,
    model_client: AsyncMock,
) -> RecommendationOrchestrator:
    return RecommendationOrchestrator(
        engine=AggregationEngine(record_store, one_time_policy="exclude"),
        cache=advice_cache,
        prompt_builder=PromptBuilder(max_items_per_section=25),
        model_client=model_client,
        model_timeout=5,
        model_params=ModelParameters(),
    )


@pytest.fixture
def client(orchestrator: RecommendationOrchestrator) -> TestClient:
    """Create FastAPI test client around the test orchestrator"""
    app = create_app(orchestrator)
    return TestClient(app)


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Session factory over a throwaway SQLite database with the record tables"""
    engine = create_record_engine(f"sqlite:///{tmp_path / 'records.db'}")
    Base.metadata.create_all(bind=engine)
    factory = create_session_factory(engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def broken_store() -> InMemoryRecordStore:
    return InMemoryRecordStore(make_records(), failing={"liabilities"})


@pytest.fixture
def store_factory():
    """Build an in-memory store over arbitrary records"""
    return InMemoryRecordStore
