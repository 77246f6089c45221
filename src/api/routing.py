"""Routing endpoints - model catalog, selection, ensembles and streaming.

GET  /routing/models    - List the registry, optionally filtered
POST /routing/select    - Pick the best model for a conversation
POST /routing/complete  - Pick a model and return its completion
POST /routing/ensemble  - Fan out to several models and reduce the answers
POST /routing/stream    - Pick a model and stream its completion as SSE
GET  /routing/metrics   - In-memory routing metrics snapshot

The endpoints are thin adapters over RoutingEngine. Engine errors map to
HTTP statuses: every model failing or a provider failure is a 502, an
invalid ensemble configuration is a 422.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from src.agent.model_router.engine import RoutingEngine
from src.agent.model_router.exceptions import (
    AllModelsFailedError,
    NoCandidatesError,
    ProviderError,
)
from src.agent.model_router.registry import Capability, ModelConfig
from src.agent.model_router.types import (
    EnsembleConfig,
    EnsembleStrategy,
    Message,
    ModelRequest,
    ModelSelection,
    ProviderType,
    RequestConstraints,
    UserPreferences,
)
from src.api.dependencies import get_engine
from src.infra.streaming import routing_event_stream, sse_response
from src.telemetry.logging import bind_request_context

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/routing", tags=["routing"])


# ------------------------------------------------------------------ #
# Request / response bodies
# ------------------------------------------------------------------ #


class MessageBody(BaseModel):
    role: str = Field(default="user", pattern="^(system|user|assistant)$")
    content: str = Field(..., max_length=128_000)


class PreferencesBody(BaseModel):
    preferred_models: list[str] = Field(default_factory=list)
    avoid_models: list[str] = Field(default_factory=list)
    prioritize_cost: bool = False
    prioritize_speed: bool = False
    prioritize_quality: bool = False


class ConstraintsBody(BaseModel):
    require_function_calling: bool = False
    require_streaming: bool = False
    require_vision: bool = False


class RoutingRequestBody(BaseModel):
    messages: list[MessageBody] = Field(
        ...,
        min_length=1,
        description="Conversation so far; the last message is the one being routed",
    )
    user_id: str = "anonymous"
    preferences: PreferencesBody | None = None
    constraints: ConstraintsBody | None = None

    def to_model_request(self) -> ModelRequest:
        return ModelRequest(
            messages=[Message(role=m.role, content=m.content) for m in self.messages],
            user_id=self.user_id,
            preferences=UserPreferences(**self.preferences.model_dump())
            if self.preferences
            else None,
            constraints=RequestConstraints(**self.constraints.model_dump())
            if self.constraints
            else None,
        )


class CompletionRequestBody(RoutingRequestBody):
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)


class EnsembleRequestBody(BaseModel):
    messages: list[MessageBody] = Field(..., min_length=1)
    user_id: str = "anonymous"
    models: list[str] = Field(..., description="Model ids to invoke concurrently")
    strategy: str = Field(
        default=EnsembleStrategy.VOTING.value,
        description="voting, weighted, best_of or consensus",
    )
    weights: dict[str, float] | None = None
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class ModelInfo(BaseModel):
    id: str
    name: str
    provider: str
    description: str
    is_available: bool
    specializations: list[str]
    capabilities: dict[str, bool]
    quality_score: float
    cost_efficiency: float
    average_latency: float
    input_token_cost: float
    output_token_cost: float

    @classmethod
    def from_config(cls, model: ModelConfig) -> ModelInfo:
        return cls(
            id=model.id,
            name=model.name,
            provider=model.provider.value,
            description=model.description,
            is_available=model.is_available,
            specializations=list(model.specializations),
            capabilities={cap.value: model.capabilities.has(cap) for cap in Capability},
            quality_score=model.performance.quality_score,
            cost_efficiency=model.performance.cost_efficiency,
            average_latency=model.performance.average_latency,
            input_token_cost=model.pricing.input_token_cost,
            output_token_cost=model.pricing.output_token_cost,
        )


class SelectionResponseBody(BaseModel):
    model_id: str
    model_name: str
    confidence: float
    reasoning: list[str]
    alternatives: list[str]
    estimated_cost: float
    estimated_latency: float
    estimated_quality: float
    intent: str | None = None
    intent_confidence: float | None = None
    complexity: dict[str, float] | None = None

    @classmethod
    def from_selection(cls, selection: ModelSelection) -> SelectionResponseBody:
        return cls(
            model_id=selection.model.id,
            model_name=selection.model.name,
            confidence=selection.confidence,
            reasoning=selection.reasoning,
            alternatives=[m.id for m in selection.alternatives],
            estimated_cost=selection.estimated_cost,
            estimated_latency=selection.estimated_latency,
            estimated_quality=selection.estimated_quality,
            intent=selection.intent.primary.value if selection.intent else None,
            intent_confidence=selection.intent.confidence if selection.intent else None,
            complexity=selection.complexity.as_dict() if selection.complexity else None,
        )


class CompletionResponseBody(BaseModel):
    selection: SelectionResponseBody
    content: str
    finish_reason: str
    prompt_tokens: int
    completion_tokens: int
    response_time_ms: float


class ContributorBody(BaseModel):
    model: str
    response: str
    weight: float


class EnsembleResponseBody(BaseModel):
    result: str
    contributors: list[ContributorBody]
    agreement_score: float
    confidence: float
    strategy_used: str
    failed_models: dict[str, str]


# ------------------------------------------------------------------ #
# Endpoints
# ------------------------------------------------------------------ #


def _no_candidates(exc: NoCandidatesError) -> HTTPException:
    log.error("routing_api.no_candidates", error=str(exc))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="No model is currently available",
    )


@router.get(
    "/models",
    response_model=list[ModelInfo],
    summary="List registered models",
)
async def list_models(
    capability: Capability | None = Query(default=None),
    provider: ProviderType | None = Query(default=None),
    include_unavailable: bool = Query(default=False),
    engine: RoutingEngine = Depends(get_engine),
) -> list[ModelInfo]:
    models = engine.registry.list_models(include_unavailable=include_unavailable)
    if capability is not None:
        models = [m for m in models if m.capabilities.has(capability)]
    if provider is not None:
        models = [m for m in models if m.provider == provider]
    return [ModelInfo.from_config(m) for m in models]


@router.post(
    "/select",
    response_model=SelectionResponseBody,
    summary="Select the best model for a request",
)
async def select_model(
    body: RoutingRequestBody,
    engine: RoutingEngine = Depends(get_engine),
) -> SelectionResponseBody:
    bind_request_context(user_id=body.user_id)
    try:
        selection = await engine.select_model(body.to_model_request())
    except NoCandidatesError as exc:
        raise _no_candidates(exc) from exc
    return SelectionResponseBody.from_selection(selection)


@router.post(
    "/complete",
    response_model=CompletionResponseBody,
    summary="Route a request and return the chosen model's completion",
)
async def complete(
    body: CompletionRequestBody,
    engine: RoutingEngine = Depends(get_engine),
) -> CompletionResponseBody:
    bind_request_context(user_id=body.user_id)
    try:
        selection, response = await engine.complete(
            body.to_model_request(),
            temperature=body.temperature,
            max_tokens=body.max_tokens,
        )
    except NoCandidatesError as exc:
        raise _no_candidates(exc) from exc
    except ProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"model_id": exc.model_id, "error": str(exc)},
        ) from exc

    return CompletionResponseBody(
        selection=SelectionResponseBody.from_selection(selection),
        content=response.content,
        finish_reason=response.finish_reason.value,
        prompt_tokens=response.usage.prompt_tokens,
        completion_tokens=response.usage.completion_tokens,
        response_time_ms=response.response_time_ms,
    )


@router.post(
    "/ensemble",
    response_model=EnsembleResponseBody,
    summary="Combine answers from several models",
)
async def ensemble(
    body: EnsembleRequestBody,
    engine: RoutingEngine = Depends(get_engine),
) -> EnsembleResponseBody:
    bind_request_context(user_id=body.user_id)
    request = ModelRequest(
        messages=[Message(role=m.role, content=m.content) for m in body.messages],
        user_id=body.user_id,
    )
    config = EnsembleConfig(
        models=body.models,
        strategy=body.strategy,
        weights=body.weights,
        threshold=body.threshold,
    )

    try:
        response = await engine.combine_ensemble(request, config)
    except AllModelsFailedError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "All models failed", "errors": exc.errors},
        ) from exc
    except ValueError as exc:
        # UnknownStrategyError is a ValueError as well
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    return EnsembleResponseBody(
        result=response.result,
        contributors=[
            ContributorBody(model=c.model, response=c.response, weight=c.weight)
            for c in response.contributors
        ],
        agreement_score=response.agreement_score,
        confidence=response.confidence,
        strategy_used=response.strategy_used.value,
        failed_models=response.failed_models,
    )


@router.post(
    "/stream",
    summary="Route a request and stream the completion (SSE)",
    response_class=StreamingResponse,
)
async def stream(
    body: CompletionRequestBody,
    engine: RoutingEngine = Depends(get_engine),
) -> StreamingResponse:
    bind_request_context(user_id=body.user_id)
    try:
        selection, completion_stream = await engine.stream(
            body.to_model_request(),
            temperature=body.temperature,
            max_tokens=body.max_tokens,
        )
    except NoCandidatesError as exc:
        raise _no_candidates(exc) from exc
    except ProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"model_id": exc.model_id, "error": str(exc)},
        ) from exc

    return sse_response(routing_event_stream(selection, completion_stream))


@router.get("/metrics", summary="Routing metrics snapshot")
async def metrics(engine: RoutingEngine = Depends(get_engine)) -> dict[str, Any]:
    return engine.metrics.summary()
