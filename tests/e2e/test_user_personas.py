"""
E2E tests for 5 household personas through the full stack.

Records live in SQLite, the advice model is the real HTTP client talking to
an in-process stand-in for the model endpoint, and requests go through the
FastAPI app.

Household personas:
- saver: Large savings, low utilization, excellent position
- overextended: Maxed-out cards, negative net worth
- new_grad: Student loan and no income yet
- gig: Weekly gig income plus a one-time payment
- cash_only: No credit cards at all
"""

import json
import httpx
import pytest
from datetime import date
from fastapi.testclient import TestClient
from advisor_gateway.api.main import create_app
from advisor_gateway.domain.prompts import PromptBuilder
from advisor_gateway.infrastructure.cache.advice_cache import AdviceCache
from advisor_gateway.infrastructure.clients.advice_model import AdviceModelClient
from advisor_gateway.infrastructure.database.models import AssetRow, CreditCardRow, IncomeRow, LiabilityRow
from advisor_gateway.infrastructure.database.repositories import FinancialRecordRepository
from advisor_gateway.services.aggregation import AggregationEngine
from advisor_gateway.services.recommendations import RecommendationOrchestrator


def model_endpoint(request: httpx.Request) -> httpx.Response:
    """Echo the first line of the prompt back as advice"""
    prompt = json.loads(request.content)["messages"][0]["content"]
    return httpx.Response(200, json={"content": [{"type": "text", "text": f"Advice for: {prompt.splitlines()[0]}"}]})


@pytest.fixture
def households(db):
    db.add_all([
        # saver
        IncomeRow(owner_id="saver", income_source="salary", amount=6000.0, frequency="monthly"),
        AssetRow(owner_id="saver", name="HYSA", asset_type="savings", current_value=60000.0, interest_rate=4.5),
        AssetRow(owner_id="saver", name="Index Fund", asset_type="investment", current_value=90000.0),
        CreditCardRow(owner_id="saver", bank_name="Chase", card_name="Freedom",
                      credit_limit=20000.0, outstanding_balance=500.0, interest_rate=20.0),
        # overextended
        IncomeRow(owner_id="overextended", income_source="salary", amount=1500.0, frequency="bi-weekly"),
        AssetRow(owner_id="overextended", name="Checking", asset_type="savings", current_value=800.0),
        LiabilityRow(owner_id="overextended", name="Personal Loan", liability_type="personal-loan",
                     outstanding_amount=12000.0, interest_rate=14.0),
        CreditCardRow(owner_id="overextended", bank_name="Capital One", card_name="Quicksilver",
                      credit_limit=5000.0, outstanding_balance=4800.0, interest_rate=27.0),
        CreditCardRow(owner_id="overextended", bank_name="Discover", card_name="It",
                      credit_limit=3000.0, outstanding_balance=2900.0, interest_rate=25.0),
        # new_grad
        LiabilityRow(owner_id="new_grad", name="Federal Loan", liability_type="student-loan",
                     outstanding_amount=35000.0, interest_rate=5.0, due_date=date(2025, 1, 1)),
        AssetRow(owner_id="new_grad", name="Checking", asset_type="savings", current_value=1500.0),
        # gig
        IncomeRow(owner_id="gig", income_source="rideshare", amount=600.0, frequency="weekly"),
        IncomeRow(owner_id="gig", income_source="grant", amount=3000.0, frequency="one-time"),
        AssetRow(owner_id="gig", name="Car", asset_type="vehicle", current_value=9000.0),
        LiabilityRow(owner_id="gig", name="Auto Loan", liability_type="car-loan", outstanding_amount=7000.0),
        # cash_only
        IncomeRow(owner_id="cash_only", income_source="pension", amount=36000.0, frequency="yearly"),
        AssetRow(owner_id="cash_only", name="Home", asset_type="property", current_value=250000.0),
    ])
    db.commit()
    return db


@pytest.fixture
def e2e_client(session_factory, households, clock) -> TestClient:
    orchestrator = RecommendationOrchestrator(
        engine=AggregationEngine(FinancialRecordRepository(session_factory), one_time_policy="exclude"),
        cache=AdviceCache(ttl_seconds=1800, max_size=100, clock=clock),
        prompt_builder=PromptBuilder(),
        model_client=AdviceModelClient(
            base_url="https://models.test",
            model_id="e2e-model",
            api_key="",
            max_retries=1,
            backoff_base=0,
            transport=httpx.MockTransport(model_endpoint),
        ),
        model_timeout=5,
    )
    return TestClient(create_app(orchestrator))


def insight_kinds(data: dict) -> set:
    return {(i["category"], i["type"]) for i in data["insights"]}


@pytest.mark.integration
def test_saver_excellent_position(e2e_client: TestClient):
    """
    saver: $150k assets, 2.5% utilization
    Expected: positive net worth and utilization insights, no warnings
    """
    response = e2e_client.get("/v1/recommendations/general", params={"owner_id": "saver"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["model"] == "e2e-model"
    assert data["recommendations"].startswith("Advice for: You are an AI financial advisor")
    assert data["financial_summary"]["credit_utilization"] == pytest.approx(2.5)
    assert insight_kinds(data) == {("net_worth", "positive"), ("credit_utilization", "positive")}


@pytest.mark.integration
def test_overextended_warnings(e2e_client: TestClient):
    """
    overextended: 96% utilization, debt far above income
    Expected: net worth, utilization and debt-to-income warnings
    """
    response = e2e_client.get("/v1/recommendations/credit", params={"owner_id": "overextended"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["credit_metrics"]["credit_utilization"] == pytest.approx(7700 / 8000 * 100)
    kinds = insight_kinds(data)
    assert ("net_worth", "warning") in kinds
    assert ("credit_utilization", "warning") in kinds
    assert ("debt_to_income", "warning") in kinds


@pytest.mark.integration
def test_new_grad_without_income(e2e_client: TestClient):
    """
    new_grad: no income recorded
    Expected: debt-to-income defined as 0, advice still generated
    """
    response = e2e_client.get("/v1/recommendations/debt", params={"owner_id": "new_grad"})

    assert response.status_code == 200
    metrics = response.json()["data"]["debt_metrics"]
    assert metrics["monthly_income"] == 0
    assert metrics["debt_to_income_ratio"] == 0
    assert metrics["liabilities_by_type"] == {"student-loan": 35000.0}


@pytest.mark.integration
def test_gig_worker_one_time_income_excluded(e2e_client: TestClient):
    """
    gig: $600/week rideshare plus a $3,000 one-time grant
    Expected: monthly income counts only the recurring income
    """
    response = e2e_client.get("/v1/recommendations/summary", params={"owner_id": "gig"})

    assert response.status_code == 200
    summary = response.json()["data"]["summary"]
    assert summary["monthly_income"] == pytest.approx(600 * 4.33)
    assert summary["total_income"] == 3600


@pytest.mark.integration
def test_cash_only_all_recommendations(e2e_client: TestClient):
    """
    cash_only: no credit cards
    Expected: every type succeeds; credit advice sees zero utilization
    """
    response = e2e_client.get("/v1/recommendations/all", params={"owner_id": "cash_only"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["summary"]["successful_recommendations"] == 5
    credit = data["credit"]["data"]
    assert credit["credit_metrics"]["credit_utilization"] == 0
    assert credit["credit_metrics"]["credit_cards"] == []
    assert ("credit_utilization", "positive") not in insight_kinds(credit)


@pytest.mark.integration
def test_personas_cached_independently(e2e_client: TestClient):
    e2e_client.get("/v1/recommendations/budget", params={"owner_id": "saver"})
    other = e2e_client.get("/v1/recommendations/budget", params={"owner_id": "gig"}).json()
    repeat = e2e_client.get("/v1/recommendations/budget", params={"owner_id": "saver"}).json()

    assert other["data"]["from_cache"] is False
    assert repeat["data"]["from_cache"] is True
