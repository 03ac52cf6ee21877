"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from advisor_gateway.config import settings
from advisor_gateway.domain.prompts import PromptBuilder
from advisor_gateway.infrastructure.cache.advice_cache import AdviceCache
from advisor_gateway.infrastructure.clients.advice_model import AdviceModelClient, default_parameters
from advisor_gateway.infrastructure.database.repositories import FinancialRecordRepository
from advisor_gateway.infrastructure.database.session import create_record_engine, create_session_factory
from advisor_gateway.services.aggregation import AggregationEngine
from advisor_gateway.services.recommendations import RecommendationOrchestrator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def build_orchestrator() -> RecommendationOrchestrator:
    """Wire the production orchestrator; the cache lives as long as the orchestrator"""
    store = FinancialRecordRepository(create_session_factory(create_record_engine()))
    return RecommendationOrchestrator(
        engine=AggregationEngine(store),
        cache=AdviceCache(
            ttl_seconds=settings.cache_ttl_minutes * 60,
            max_size=settings.cache_max_size,
        ),
        prompt_builder=PromptBuilder(max_items_per_section=settings.prompt_max_items_per_section),
        model_client=AdviceModelClient(),
        model_timeout=settings.model_timeout_seconds,
        model_params=default_parameters(),
    )


def get_orchestrator(request: Request) -> RecommendationOrchestrator:
    """Provide the application's recommendation orchestrator"""
    return request.app.state.orchestrator
