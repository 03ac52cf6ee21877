"""Unit tests for the recommendation orchestrator"""

import asyncio
import pytest
from prometheus_client import REGISTRY
from advisor_gateway.domain.exceptions import ModelError
from advisor_gateway.domain.models import (
    AllRecommendationsResult,
    AssetRecord,
    CustomRecommendationRequest,
    IncomeRecord,
    ModelResponse,
    RecommendationType,
    RecordCollections,
    SummaryResult,
)
from advisor_gateway.domain.prompts import PromptBuilder, PromptOptions
from advisor_gateway.infrastructure.cache.advice_cache import AdviceCache
from advisor_gateway.services.aggregation import AggregationEngine
from advisor_gateway.services.recommendations import ERROR_MESSAGES, RecommendationOrchestrator


def prompt_of(call) -> str:
    return call.args[0]


async def test_general_recommendation_success(orchestrator, model_client):
    result = await orchestrator.general()

    assert result.success is True
    data = result.data
    assert data.type == "general"
    assert data.content.startswith("1. Pay down the car loan.")
    assert data.model_id == "test-model"
    assert data.from_cache is False
    assert data.metrics_name == "financial_summary"
    assert data.financial_summary["net_worth"] == 32500
    assert {i.category for i in data.insights} == {"net_worth", "debt_to_income"}
    assert data.prompt_stats.estimated_tokens > 0
    model_client.invoke.assert_awaited_once()


async def test_repeat_request_served_from_cache(orchestrator, model_client):
    first = await orchestrator.budget()
    second = await orchestrator.budget()

    assert first.data.from_cache is False
    assert second.data.from_cache is True
    assert second.data.content == first.data.content
    assert model_client.invoke.await_count == 1


async def test_types_have_their_own_metrics(orchestrator):
    budget = (await orchestrator.budget()).data
    investment = (await orchestrator.investment(options=PromptOptions(risk_tolerance="conservative"))).data
    debt = (await orchestrator.debt()).data
    credit = (await orchestrator.credit()).data

    assert budget.metrics_name == "budget_metrics"
    assert budget.metrics["total_expenses"] == 17500
    assert budget.metrics["savings_rate"] == pytest.approx((5400 - 17500) / 5400 * 100)

    assert investment.metrics_name == "investment_profile"
    assert investment.metrics["risk_tolerance"] == "conservative"
    assert investment.metrics["asset_allocation"] == {"savings": 20000.0, "stocks": 30000.0}

    assert debt.metrics_name == "debt_metrics"
    assert debt.metrics["liabilities_by_type"] == {"car-loan": 15000.0}
    assert debt.metrics["total_debt"] == 17500

    assert credit.metrics_name == "credit_metrics"
    assert credit.metrics["available_credit"] == 12500
    assert [c["card_name"] for c in credit.metrics["credit_cards"]] == ["Sapphire", "Gold"]
    assert credit.metrics["credit_cards"][0]["due_date"] == "2024-06-01"


async def test_model_receives_type_specific_prompt(orchestrator, model_client):
    await orchestrator.credit()

    prompt = prompt_of(model_client.invoke.await_args)
    assert "Analyze the user's credit situation" in prompt
    assert "Chase Sapphire" in prompt


async def test_store_failure_maps_to_data_unavailable(broken_store, advice_cache, model_client):
    orchestrator = RecommendationOrchestrator(
        engine=AggregationEngine(broken_store),
        cache=advice_cache,
        prompt_builder=PromptBuilder(),
        model_client=model_client,
    )

    result = await orchestrator.debt()

    assert result.success is False
    assert result.error == "data_unavailable"
    assert result.message == ERROR_MESSAGES["data_unavailable"]
    model_client.invoke.assert_not_awaited()


async def test_malformed_record_maps_to_data_unavailable(orchestrator, sample_records, model_client):
    sample_records.incomes.append(IncomeRecord(income_source="gig", amount=-50.0, frequency="weekly"))

    result = await orchestrator.general()

    assert result.error == "data_unavailable"
    model_client.invoke.assert_not_awaited()


async def test_overflowing_totals_map_to_invalid_financial_data(orchestrator, sample_records, model_client):
    sample_records.assets.extend(
        AssetRecord(name=f"Vault {i}", asset_type="other", current_value=1e308) for i in range(2)
    )

    result = await orchestrator.investment()

    assert result.success is False
    assert result.error == "invalid_financial_data"
    model_client.invoke.assert_not_awaited()


async def test_model_failure_maps_to_model_unavailable(orchestrator, model_client):
    model_client.invoke.side_effect = ModelError("HTTP 503 from upstream")

    result = await orchestrator.general()

    assert result.success is False
    assert result.error == "model_unavailable"
    assert "503" not in result.message
    assert orchestrator.cache_stats().data.total_entries == 0


async def test_model_timeout_maps_to_model_unavailable(record_store, advice_cache, model_client):
    async def slow_invoke(prompt, params=None):
        await asyncio.sleep(1)

    model_client.invoke.side_effect = slow_invoke
    orchestrator = RecommendationOrchestrator(
        engine=AggregationEngine(record_store),
        cache=advice_cache,
        prompt_builder=PromptBuilder(),
        model_client=model_client,
        model_timeout=0.01,
    )

    result = await orchestrator.general()

    assert result.error == "model_unavailable"


async def test_unexpected_error_maps_to_internal_error(orchestrator, model_client):
    model_client.invoke.side_effect = RuntimeError("boom at 0xdeadbeef")

    result = await orchestrator.credit()

    assert result.success is False
    assert result.error == "internal_error"
    assert "boom" not in result.message


async def test_unknown_type_is_rejected(orchestrator, model_client):
    result = await orchestrator.recommend("retirement")

    assert result.success is False
    assert result.error == "invalid_type"
    model_client.invoke.assert_not_awaited()


async def test_unknown_response_format_maps_to_invalid_options(orchestrator, model_client):
    result = await orchestrator.general(options=PromptOptions(response_format="haiku"))

    assert result.success is False
    assert result.error == "invalid_options"
    assert result.message == ERROR_MESSAGES["invalid_options"]
    model_client.invoke.assert_not_awaited()


async def test_all_isolates_failures(orchestrator, model_client):
    """A failing credit call leaves the other four types intact"""

    async def invoke(prompt, params=None):
        if "credit situation" in prompt:
            raise ModelError("credit model unavailable")
        return ModelResponse(content="Advice.", model_id="test-model")

    model_client.invoke.side_effect = invoke

    result = await orchestrator.all()

    assert result.success is True
    combined: AllRecommendationsResult = result.data
    assert set(combined.results) == {t.value for t in RecommendationType}
    assert combined.results["credit"].success is False
    assert combined.results["credit"].error == "model_unavailable"
    for name in ("general", "budget", "investment", "debt"):
        assert combined.results[name].success is True
    assert combined.total == 5
    assert combined.successful == 4


async def test_all_runs_types_concurrently(orchestrator, model_client):
    started = []
    release = asyncio.Event()

    async def invoke(prompt, params=None):
        started.append(prompt)
        if len(started) == 5:
            release.set()
        await asyncio.wait_for(release.wait(), timeout=1)
        return ModelResponse(content="Advice.", model_id="test-model")

    model_client.invoke.side_effect = invoke

    result = await orchestrator.all()

    assert result.data.successful == 5
    assert len(started) == 5


async def test_all_applies_per_type_options(orchestrator, model_client):
    options = {RecommendationType.INVESTMENT: PromptOptions(risk_tolerance="aggressive")}

    result = await orchestrator.all(options=options)

    investment = result.data.results["investment"].data
    assert investment.metrics["risk_tolerance"] == "aggressive"


async def test_summary_works_while_model_is_down(orchestrator, model_client):
    model_client.invoke.side_effect = ModelError("down")

    result = await orchestrator.summary()

    assert result.success is True
    assert isinstance(result.data, SummaryResult)
    assert result.data.snapshot.net_worth == 32500
    model_client.invoke.assert_not_awaited()
    assert orchestrator.cache_stats().data.misses == 0


async def test_summary_store_failure(broken_store, advice_cache, model_client):
    orchestrator = RecommendationOrchestrator(
        engine=AggregationEngine(broken_store),
        cache=advice_cache,
        prompt_builder=PromptBuilder(),
        model_client=model_client,
    )

    result = await orchestrator.summary()

    assert result.success is False
    assert result.error == "data_unavailable"


async def test_owner_scope_changes_cache_key(store_factory, advice_cache, model_client):
    records = RecordCollections(
        assets=[
            AssetRecord(name="Cash", asset_type="savings", current_value=1000.0, owner_id="alice"),
            AssetRecord(name="Cash", asset_type="savings", current_value=1000.0, owner_id="bob"),
        ]
    )
    orchestrator = RecommendationOrchestrator(
        engine=AggregationEngine(store_factory(records)),
        cache=advice_cache,
        prompt_builder=PromptBuilder(),
        model_client=model_client,
    )

    alice = await orchestrator.general("alice")
    bob = await orchestrator.general("bob")

    assert alice.data.financial_summary == bob.data.financial_summary
    assert bob.data.from_cache is False
    assert model_client.invoke.await_count == 2


async def test_custom_recommendation_cached_per_label(orchestrator, model_client):
    request = CustomRecommendationRequest(
        label="retirement",
        persona="You are a retirement planner.",
        focus_areas=["retirement age"],
    )

    first = await orchestrator.custom(request)
    second = await orchestrator.custom(request)

    assert first.data.type == "custom:retirement"
    assert second.data.from_cache is True
    assert prompt_of(model_client.invoke.await_args).startswith("You are a retirement planner.")
    assert orchestrator.clear_cache("custom:retirement").data["cleared"] == 1


async def test_custom_labels_share_one_metric_series(orchestrator):
    def sample(name, **labels):
        return REGISTRY.get_sample_value(name, labels) or 0.0

    misses_before = sample("advisor_cache_misses_total", type="custom")
    successes_before = sample("advisor_recommendation_total", type="custom", outcome="success")

    await orchestrator.custom(CustomRecommendationRequest(label="college-fund"))
    await orchestrator.custom(CustomRecommendationRequest(label="house-deposit"))

    assert sample("advisor_cache_misses_total", type="custom") - misses_before == 2
    assert sample("advisor_recommendation_total", type="custom", outcome="success") - successes_before == 2
    assert REGISTRY.get_sample_value("advisor_cache_misses_total", {"type": "custom:college-fund"}) is None
    assert REGISTRY.get_sample_value(
        "advisor_recommendation_total", {"type": "custom:house-deposit", "outcome": "success"}
    ) is None


async def test_clear_cache_by_type(orchestrator):
    await orchestrator.general()
    await orchestrator.budget()

    result = orchestrator.clear_cache("budget")
    assert result.success is True
    assert result.data == {"cleared": 1, "type": "budget"}

    assert (await orchestrator.general()).data.from_cache is True
    assert (await orchestrator.budget()).data.from_cache is False


async def test_clear_during_generation_forces_fresh_advice(orchestrator, model_client):
    release = asyncio.Event()

    async def invoke(prompt, params=None):
        await release.wait()
        return ModelResponse(content="Advice.", model_id="test-model")

    model_client.invoke.side_effect = invoke

    pending = asyncio.ensure_future(orchestrator.general())
    await asyncio.sleep(0.01)
    orchestrator.clear_cache("general")
    release.set()

    assert (await pending).success is True
    assert orchestrator.cache_stats().data.total_entries == 0
    assert (await orchestrator.general()).data.from_cache is False


async def test_clear_all_caches(orchestrator):
    await orchestrator.general()
    await orchestrator.debt()

    result = orchestrator.clear_cache()

    assert result.data["cleared"] == 2
    assert orchestrator.cache_stats().data.total_entries == 0


async def test_clear_budget_keeps_credit(orchestrator, model_client):
    await orchestrator.budget()
    await orchestrator.credit()

    orchestrator.clear_cache("budget")

    assert (await orchestrator.credit()).data.from_cache is True
    assert model_client.invoke.await_count == 2


def test_clear_cache_rejects_unknown_type(orchestrator):
    result = orchestrator.clear_cache("retirement")

    assert result.success is False
    assert result.error == "invalid_type"


async def test_cache_stats_track_hits(orchestrator):
    await orchestrator.general()
    await orchestrator.general()

    stats = orchestrator.cache_stats().data
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.valid_entries == 1


def test_health_reports_cache(orchestrator):
    health = orchestrator.health()

    assert health["status"] == "healthy"
    assert health["service"] == "RecommendationService"
    assert health["cache"].max_size == 100


async def test_default_model_timeout_from_settings(record_store):
    orchestrator = RecommendationOrchestrator(
        engine=AggregationEngine(record_store),
        cache=AdviceCache(),
        prompt_builder=PromptBuilder(),
        model_client=None,
    )

    assert orchestrator.model_timeout == 45
