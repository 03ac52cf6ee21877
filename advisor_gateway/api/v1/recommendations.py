"""/v1/recommendations - financial advice endpoints"""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from advisor_gateway.api.dependencies import get_orchestrator, get_request_id
from advisor_gateway.api.v1.schemas import (
    AllResponse,
    CacheClearResponse,
    CacheStatsResponse,
    CustomRecommendationBody,
    RecommendationResponse,
    ResponseFormat,
    ServiceHealthResponse,
    SummaryResponse,
)
from advisor_gateway.domain.models import (
    CustomRecommendationRequest,
    RecommendationResult,
    RecommendationType,
    ServiceResult,
    SummaryResult,
)
from advisor_gateway.domain.prompts import PromptOptions
from advisor_gateway.services.recommendations import RecommendationOrchestrator, financial_summary

router = APIRouter()

ERROR_STATUS = {
    "internal_error": 500,
    "invalid_type": 400,
    "invalid_options": 400,
}


def _error_response(result: ServiceResult) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(result.error, 503),
        content={"success": False, "error": result.error, "message": result.message},
    )


def _recommendation_payload(result: ServiceResult) -> dict:
    """Flatten a ServiceResult into the public recommendation shape"""
    if not result.success:
        return {"success": False, "error": result.error, "message": result.message}

    data: RecommendationResult = result.data
    payload = {
        "type": data.type,
        "recommendations": data.content,
        "financial_summary": data.financial_summary,
        "insights": [asdict(i) for i in data.insights],
        "generated_at": data.generated_at,
        "model": data.model_id,
        "from_cache": data.from_cache,
        "prompt_stats": asdict(data.prompt_stats) if data.prompt_stats else None,
    }
    if data.metrics_name != "financial_summary":
        payload[data.metrics_name] = data.metrics
    return {"success": True, "data": payload}


def _respond(result: ServiceResult):
    if not result.success:
        return _error_response(result)
    return _recommendation_payload(result)


def _log_request(request: Request, recommendation_type: str, owner_id: Optional[str]) -> None:
    logging.info(
        "Recommendation request received",
        extra={
            "request_id": get_request_id(request),
            "recommendation_type": recommendation_type,
            "owner_id": owner_id,
        },
    )


@router.get("/", response_model=ServiceHealthResponse)
def service_health(orchestrator: RecommendationOrchestrator = Depends(get_orchestrator)):
    """Service status with uptime and cache counters"""
    health = orchestrator.health()
    return {**health, "cache": asdict(health["cache"])}


@router.get("/general", response_model=RecommendationResponse, response_model_exclude_none=True)
async def general_recommendations(
    request: Request,
    owner_id: Optional[str] = Query(None, description="Scope aggregation to one owner"),
    response_format: ResponseFormat = Query("structured"),
    include_summary: bool = Query(True),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    _log_request(request, "general", owner_id)
    options = PromptOptions(response_format=response_format, include_summary=include_summary)
    return _respond(await orchestrator.general(owner_id, options))


@router.get("/budget", response_model=RecommendationResponse, response_model_exclude_none=True)
async def budget_recommendations(
    request: Request,
    owner_id: Optional[str] = Query(None),
    response_format: ResponseFormat = Query("structured"),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    _log_request(request, "budget", owner_id)
    return _respond(await orchestrator.budget(owner_id, PromptOptions(response_format=response_format)))


@router.get("/investment", response_model=RecommendationResponse, response_model_exclude_none=True)
async def investment_recommendations(
    request: Request,
    owner_id: Optional[str] = Query(None),
    response_format: ResponseFormat = Query("structured"),
    risk_tolerance: str = Query("moderate", pattern="^(conservative|moderate|aggressive)$"),
    time_horizon: str = Query("long-term", pattern="^(short-term|medium-term|long-term)$"),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    _log_request(request, "investment", owner_id)
    options = PromptOptions(
        response_format=response_format,
        risk_tolerance=risk_tolerance,
        time_horizon=time_horizon,
    )
    return _respond(await orchestrator.investment(owner_id, options))


@router.get("/debt", response_model=RecommendationResponse, response_model_exclude_none=True)
async def debt_recommendations(
    request: Request,
    owner_id: Optional[str] = Query(None),
    response_format: ResponseFormat = Query("structured"),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    _log_request(request, "debt", owner_id)
    return _respond(await orchestrator.debt(owner_id, PromptOptions(response_format=response_format)))


@router.get("/credit", response_model=RecommendationResponse, response_model_exclude_none=True)
async def credit_recommendations(
    request: Request,
    owner_id: Optional[str] = Query(None),
    response_format: ResponseFormat = Query("structured"),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    _log_request(request, "credit", owner_id)
    return _respond(await orchestrator.credit(owner_id, PromptOptions(response_format=response_format)))


@router.post("/custom", response_model=RecommendationResponse, response_model_exclude_none=True)
async def custom_recommendations(
    body: CustomRecommendationBody,
    request: Request,
    owner_id: Optional[str] = Query(None),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    """Ad hoc advice with a caller-chosen persona, focus areas and instructions"""
    _log_request(request, f"custom:{body.label}", owner_id)
    custom_request = CustomRecommendationRequest(**body.model_dump())
    return _respond(await orchestrator.custom(custom_request, owner_id))


@router.get("/summary", response_model=SummaryResponse, response_model_exclude_none=True)
async def financial_summary_view(
    owner_id: Optional[str] = Query(None),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    """Derived metrics and breakdowns; never calls the advice model"""
    result = await orchestrator.summary(owner_id)
    if not result.success:
        return _error_response(result)

    summary: SummaryResult = result.data
    snapshot = summary.snapshot
    return {
        "success": True,
        "data": {
            "owner_id": snapshot.owner_id,
            "summary": {
                **financial_summary(snapshot),
                "total_income": snapshot.total_income,
                "total_credit_limit": snapshot.total_credit_limit,
                "total_available_credit": snapshot.total_available_credit,
            },
            "asset_breakdown": [asdict(g) for g in snapshot.asset_breakdown],
            "income_breakdown": [asdict(g) for g in snapshot.income_breakdown],
            "liability_breakdown": [asdict(g) for g in snapshot.liability_breakdown],
            "credit_cards": [asdict(c) for c in snapshot.credit_cards],
            "insights": [asdict(i) for i in snapshot.insights],
            "record_counts": {
                "incomes": len(snapshot.incomes),
                "assets": len(snapshot.assets),
                "liabilities": len(snapshot.liabilities),
                "credit_cards": len(snapshot.credit_cards),
            },
            "generated_at": summary.generated_at,
        },
    }


@router.get("/all", response_model=AllResponse, response_model_exclude_none=True)
async def all_recommendations(
    request: Request,
    owner_id: Optional[str] = Query(None),
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    """Every recommendation type generated concurrently"""
    _log_request(request, "all", owner_id)
    result = await orchestrator.all(owner_id)
    combined = result.data

    data = {t.value: _recommendation_payload(combined.results[t.value]) for t in RecommendationType}
    data["generated_at"] = combined.generated_at
    data["summary"] = {
        "total_recommendations": combined.total,
        "successful_recommendations": combined.successful,
    }
    return {"success": True, "data": data}


@router.get("/cache/stats", response_model=CacheStatsResponse)
def cache_stats(orchestrator: RecommendationOrchestrator = Depends(get_orchestrator)):
    return {"success": True, "data": asdict(orchestrator.cache_stats().data)}


@router.delete("/cache", response_model=CacheClearResponse)
def clear_cache(orchestrator: RecommendationOrchestrator = Depends(get_orchestrator)):
    result = orchestrator.clear_cache()
    return {
        "success": True,
        "cleared": result.data["cleared"],
        "message": result.message,
        "timestamp": datetime.now(timezone.utc),
    }


@router.delete("/cache/{recommendation_type}", response_model=CacheClearResponse)
def clear_cache_by_type(
    recommendation_type: str,
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.clear_cache(recommendation_type)
    if not result.success:
        return _error_response(result)
    return {
        "success": True,
        "cleared": result.data["cleared"],
        "type": result.data["type"],
        "message": result.message,
        "timestamp": datetime.now(timezone.utc),
    }
