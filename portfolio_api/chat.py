"""Chatbot endpoints backed by Ollama."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from .context import ContextBuildError
from .dependencies import get_context_builder, get_llm
from .llm import LLMError, utc_timestamp
from .models import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    llm=Depends(get_llm),
    context_builder=Depends(get_context_builder),
):
    metrics = request.app.state.metrics
    logger.info("[Chat] question (%d chars)", len(body.message))

    try:
        context = await context_builder.build_context(body.message)
    except ContextBuildError as e:
        metrics.chat_requests.labels(outcome="context_error").inc()
        raise HTTPException(status_code=503, detail=f"Chat is temporarily unavailable: {e}")

    try:
        response = await llm.process_chat(body, context)
    except LLMError as e:
        metrics.chat_requests.labels(outcome="llm_error").inc()
        logger.error("[Chat] LLM call failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to process chat: {e}")

    metrics.chat_requests.labels(outcome="ok").inc()
    return response


@router.get("/health")
async def chat_health(llm=Depends(get_llm)):
    body = {
        "status": "healthy",
        "provider": "ollama",
        "model": llm.model,
        "timestamp": utc_timestamp(),
    }
    try:
        result = await llm.health_check()
    except LLMError as e:
        body.update(status="degraded", available_models=[], error=str(e))
        return JSONResponse(status_code=503, content=body)

    body["available_models"] = result["models"]
    if not result["model_available"]:
        body.update(status="degraded", error=f"model {llm.model} not available")
        return JSONResponse(status_code=503, content=body)
    return body
