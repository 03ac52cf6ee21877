"""Recommendation orchestrator - aggregate, cache, prompt and model calls behind one boundary"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol

from advisor_gateway.config import settings
from advisor_gateway.domain.exceptions import DataError, ModelError, OptionError, PromptValidationError
from advisor_gateway.domain.models import (
    Advice,
    AllRecommendationsResult,
    CustomRecommendationRequest,
    FinancialSnapshot,
    ModelParameters,
    ModelResponse,
    Prompt,
    RecommendationResult,
    RecommendationType,
    ServiceResult,
    SummaryResult,
)
from advisor_gateway.domain.prompts import PromptBuilder, PromptOptions
from advisor_gateway.infrastructure.cache.advice_cache import AdviceCache
from advisor_gateway.infrastructure.observability.logging import log_recommendation
from advisor_gateway.infrastructure.observability.metrics import record_recommendation
from advisor_gateway.services.aggregation import AggregationEngine

# Error code -> user-facing message; nothing else about a failure crosses the boundary
ERROR_MESSAGES: Dict[str, str] = {
    "data_unavailable": "Unable to retrieve your financial data at this time. Please try again later.",
    "invalid_financial_data": "Your financial data is incomplete, so recommendations cannot be generated.",
    "model_unavailable": "Unable to generate recommendations at this time. Please try again later.",
    "invalid_type": "Unknown recommendation type.",
    "invalid_options": "One or more recommendation options are not supported.",
    "internal_error": "Unable to generate recommendations at this time. Please try again later.",
}

METRICS_NAMES: Dict[RecommendationType, str] = {
    RecommendationType.GENERAL: "financial_summary",
    RecommendationType.BUDGET: "budget_metrics",
    RecommendationType.INVESTMENT: "investment_profile",
    RecommendationType.DEBT: "debt_metrics",
    RecommendationType.CREDIT: "credit_metrics",
}

CUSTOM_PREFIX = "custom:"


class AdviceModel(Protocol):
    async def invoke(self, prompt: str, params: Optional[ModelParameters] = None) -> ModelResponse: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def error_code_for(exc: BaseException) -> str:
    """Map a failure to the error code exposed to callers"""
    if isinstance(exc, DataError):
        return "data_unavailable"
    if isinstance(exc, PromptValidationError):
        return "invalid_financial_data"
    if isinstance(exc, OptionError):
        return "invalid_options"
    if isinstance(exc, ModelError):
        return "model_unavailable"
    return "internal_error"


def financial_summary(snapshot: FinancialSnapshot) -> Dict[str, float]:
    return {
        "total_assets": snapshot.total_assets,
        "total_liabilities": snapshot.total_liabilities,
        "total_credit_card_debt": snapshot.total_credit_card_debt,
        "net_worth": snapshot.net_worth,
        "monthly_income": snapshot.monthly_income,
        "debt_to_income_ratio": snapshot.debt_to_income_ratio,
        "credit_utilization": snapshot.credit_utilization,
    }


def type_metrics(
    recommendation_type: RecommendationType,
    snapshot: FinancialSnapshot,
    options: PromptOptions,
) -> Dict[str, Any]:
    """Type-specific figures returned alongside the advice text"""
    if recommendation_type is RecommendationType.BUDGET:
        total_expenses = snapshot.total_debt
        savings_rate = (
            (snapshot.monthly_income - total_expenses) / snapshot.monthly_income * 100
            if snapshot.monthly_income > 0
            else 0.0
        )
        return {
            "monthly_income": snapshot.monthly_income,
            "total_expenses": total_expenses,
            "savings_rate": savings_rate,
            "debt_to_income_ratio": snapshot.debt_to_income_ratio,
        }
    if recommendation_type is RecommendationType.INVESTMENT:
        return {
            "total_assets": snapshot.total_assets,
            "net_worth": snapshot.net_worth,
            "monthly_income": snapshot.monthly_income,
            "risk_tolerance": options.risk_tolerance,
            "time_horizon": options.time_horizon,
            "asset_allocation": {g.category: g.total for g in snapshot.asset_breakdown},
        }
    if recommendation_type is RecommendationType.DEBT:
        return {
            "total_debt": snapshot.total_debt,
            "total_liabilities": snapshot.total_liabilities,
            "credit_card_debt": snapshot.total_credit_card_debt,
            "debt_to_income_ratio": snapshot.debt_to_income_ratio,
            "monthly_income": snapshot.monthly_income,
            "liabilities_by_type": {g.category: g.total for g in snapshot.liability_breakdown},
        }
    if recommendation_type is RecommendationType.CREDIT:
        return {
            "credit_utilization": snapshot.credit_utilization,
            "total_credit_limit": snapshot.total_credit_limit,
            "total_credit_card_debt": snapshot.total_credit_card_debt,
            "available_credit": snapshot.total_available_credit,
            "credit_cards": [
                {
                    "bank_name": c.bank_name,
                    "card_name": c.card_name,
                    "credit_limit": c.credit_limit,
                    "outstanding_balance": c.outstanding_balance,
                    "utilization_rate": c.utilization_rate,
                    "available_credit": c.available_credit,
                    "interest_rate": c.interest_rate,
                    "due_date": c.due_date.isoformat() if c.due_date else None,
                }
                for c in snapshot.credit_cards
            ],
        }
    return financial_summary(snapshot)


class RecommendationOrchestrator:
    """
    Composes aggregation, the advice cache, the prompt builder and the advice
    model into typed recommendation operations.

    Every public coroutine returns a ServiceResult; failures are converted to
    `success=False` with an error code and a non-technical message.
    """

    service_name = "RecommendationService"

    def __init__(
        self,
        engine: AggregationEngine,
        cache: AdviceCache,
        prompt_builder: PromptBuilder,
        model_client: AdviceModel,
        model_timeout: float | None = None,
        model_params: Optional[ModelParameters] = None,
    ):
        self.engine = engine
        self.cache = cache
        self.prompt_builder = prompt_builder
        self.model_client = model_client
        self.model_timeout = model_timeout or settings.model_timeout_seconds
        self.model_params = model_params
        self._started = time.monotonic()

    # ------------------------------------------------------------------
    # Typed recommendations
    # ------------------------------------------------------------------

    async def general(self, owner_id: Optional[str] = None, options: Optional[PromptOptions] = None) -> ServiceResult:
        return await self.recommend(RecommendationType.GENERAL, owner_id, options)

    async def budget(self, owner_id: Optional[str] = None, options: Optional[PromptOptions] = None) -> ServiceResult:
        return await self.recommend(RecommendationType.BUDGET, owner_id, options)

    async def investment(self, owner_id: Optional[str] = None, options: Optional[PromptOptions] = None) -> ServiceResult:
        return await self.recommend(RecommendationType.INVESTMENT, owner_id, options)

    async def debt(self, owner_id: Optional[str] = None, options: Optional[PromptOptions] = None) -> ServiceResult:
        return await self.recommend(RecommendationType.DEBT, owner_id, options)

    async def credit(self, owner_id: Optional[str] = None, options: Optional[PromptOptions] = None) -> ServiceResult:
        return await self.recommend(RecommendationType.CREDIT, owner_id, options)

    async def recommend(
        self,
        recommendation_type: RecommendationType,
        owner_id: Optional[str] = None,
        options: Optional[PromptOptions] = None,
    ) -> ServiceResult:
        """
        Flow:
        1. Aggregate the owner's records into a snapshot
        2. Look up the advice cache for (type, snapshot)
        3. On a miss, build the prompt and call the advice model
        4. Assemble the typed result
        """
        try:
            recommendation_type = RecommendationType(recommendation_type)
        except ValueError:
            return ServiceResult(success=False, error="invalid_type", message=ERROR_MESSAGES["invalid_type"])
        options = options or PromptOptions()
        start_time = time.perf_counter()
        logging.info(
            "Generating recommendations",
            extra={"recommendation_type": recommendation_type.value, "owner_id": owner_id},
        )

        try:
            snapshot = await self.engine.aggregate(owner_id)

            async def compute() -> Advice:
                prompt = self.prompt_builder.build(recommendation_type, snapshot, options)
                return await self._generate(prompt)

            advice = await self.cache.get_or_compute(recommendation_type, snapshot, compute)
            result = self._assemble(
                recommendation_type.value,
                snapshot,
                advice,
                METRICS_NAMES[recommendation_type],
                type_metrics(recommendation_type, snapshot, options),
            )
            self._record(recommendation_type.value, owner_id, True, advice.from_cache, start_time)
            return ServiceResult(success=True, data=result)

        except Exception as e:
            return self._failure(recommendation_type.value, owner_id, e, start_time)

    async def custom(self, request: CustomRecommendationRequest, owner_id: Optional[str] = None) -> ServiceResult:
        """Ad hoc recommendation through the custom prompt path, cached per label"""
        label = f"{CUSTOM_PREFIX}{request.label}"
        start_time = time.perf_counter()

        try:
            snapshot = await self.engine.aggregate(owner_id)

            async def compute() -> Advice:
                prompt = self.prompt_builder.build_custom(
                    snapshot,
                    persona=request.persona,
                    focus_areas=request.focus_areas,
                    custom_instructions=request.custom_instructions,
                    response_format=request.response_format,
                    include_data=request.include_data,
                    label=label,
                )
                return await self._generate(prompt)

            advice = await self.cache.get_or_compute(label, snapshot, compute)
            result = self._assemble(label, snapshot, advice, "financial_summary", financial_summary(snapshot))
            self._record(label, owner_id, True, advice.from_cache, start_time)
            return ServiceResult(success=True, data=result)

        except Exception as e:
            return self._failure(label, owner_id, e, start_time)

    async def all(
        self,
        owner_id: Optional[str] = None,
        options: Optional[Mapping[RecommendationType, PromptOptions]] = None,
    ) -> ServiceResult:
        """Run the five typed recommendations concurrently; one failure never fails the others"""
        options = options or {}
        types = list(RecommendationType)
        outcomes = await asyncio.gather(
            *(self.recommend(t, owner_id, options.get(t)) for t in types),
            return_exceptions=True,
        )

        results: Dict[str, ServiceResult] = {}
        for recommendation_type, outcome in zip(types, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                outcome = self._failure(recommendation_type.value, owner_id, outcome, time.perf_counter())
            results[recommendation_type.value] = outcome

        combined = AllRecommendationsResult(results=results, generated_at=_utcnow())
        logging.info(
            "All recommendation types generated",
            extra={"owner_id": owner_id, "total": combined.total, "successful": combined.successful},
        )
        return ServiceResult(success=True, data=combined)

    # ------------------------------------------------------------------
    # Cache-free and administrative operations
    # ------------------------------------------------------------------

    async def summary(self, owner_id: Optional[str] = None) -> ServiceResult:
        """Derived metrics and breakdowns without touching the prompt builder, cache or model"""
        try:
            snapshot = await self.engine.aggregate(owner_id)
            return ServiceResult(success=True, data=SummaryResult(snapshot=snapshot, generated_at=_utcnow()))
        except Exception as e:
            code = error_code_for(e)
            logging.error(f"Error generating financial summary: {e}", extra={"owner_id": owner_id, "error_code": code})
            return ServiceResult(
                success=False,
                error=code,
                message="Unable to generate financial summary at this time. Please try again later.",
            )

    def cache_stats(self) -> ServiceResult:
        return ServiceResult(success=True, data=self.cache.stats())

    def clear_cache(self, recommendation_type: Optional[str] = None) -> ServiceResult:
        """Clear every cached entry, or only those of one type"""
        if recommendation_type is None:
            cleared = self.cache.clear()
            logging.info("All caches cleared", extra={"count": cleared})
            return ServiceResult(
                success=True,
                data={"cleared": cleared, "type": None},
                message="All caches cleared successfully",
            )

        valid_types = {t.value for t in RecommendationType}
        if recommendation_type not in valid_types and not recommendation_type.startswith(CUSTOM_PREFIX):
            return ServiceResult(success=False, error="invalid_type", message=ERROR_MESSAGES["invalid_type"])

        cleared = self.cache.invalidate(recommendation_type)
        logging.info(f"Cache cleared for type: {recommendation_type}", extra={"count": cleared})
        return ServiceResult(
            success=True,
            data={"cleared": cleared, "type": recommendation_type},
            message=f"Cache cleared for type: {recommendation_type}",
        )

    def health(self) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "version": settings.service_version,
            "status": "healthy",
            "uptime_seconds": round(time.monotonic() - self._started, 3),
            "cache": self.cache.stats(),
            "timestamp": _utcnow(),
        }

    # ------------------------------------------------------------------

    async def _generate(self, prompt: Prompt) -> Advice:
        """Call the advice model under a timeout; a timeout counts as a model failure"""
        try:
            response = await asyncio.wait_for(
                self.model_client.invoke(prompt.text, self.model_params),
                timeout=self.model_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelError(f"Advice model did not respond within {self.model_timeout}s") from e

        return Advice(
            content=response.content,
            model_id=response.model_id,
            generated_at=_utcnow(),
            prompt_stats=prompt.stats,
        )

    def _assemble(
        self,
        label: str,
        snapshot: FinancialSnapshot,
        advice: Advice,
        metrics_name: str,
        metrics: Dict[str, Any],
    ) -> RecommendationResult:
        return RecommendationResult(
            type=label,
            content=advice.content,
            financial_summary=financial_summary(snapshot),
            metrics_name=metrics_name,
            metrics=metrics,
            insights=list(snapshot.insights),
            generated_at=advice.generated_at,
            model_id=advice.model_id,
            from_cache=advice.from_cache,
            prompt_stats=advice.prompt_stats,
        )

    def _record(self, label: str, owner_id: Optional[str], success: bool, from_cache: bool, start_time: float,
                error: Optional[str] = None) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        record_recommendation(label, success)
        log_recommendation(label, owner_id, success, from_cache, duration_ms, error)

    def _failure(self, label: str, owner_id: Optional[str], exc: BaseException, start_time: float) -> ServiceResult:
        code = error_code_for(exc)
        if code == "internal_error":
            logging.exception(
                f"Unexpected error generating {label} recommendations",
                exc_info=exc,
                extra={"owner_id": owner_id},
            )
        else:
            logging.error(
                f"Error generating {label} recommendations: {exc}",
                extra={"owner_id": owner_id, "error_code": code},
            )
        self._record(label, owner_id, False, False, start_time, code)
        return ServiceResult(success=False, error=code, message=ERROR_MESSAGES[code])
