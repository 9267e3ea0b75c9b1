from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter

from mcp_paywall.contexts.store import ContextStore
from mcp_paywall.models import ContextCreateRequest, MessageRequest, Role
from mcp_paywall.protocol.engine import ProtocolEngine
from mcp_paywall.server.dependencies import (
    get_context_key,
    get_engine,
    get_store,
    logger,
)

router = APIRouter(tags=["Contexts"])


@router.post("/context")
async def create_context(
    body: Optional[ContextCreateRequest] = None,
    store: ContextStore = Depends(get_store)
):
    """Create a new conversation context"""
    context = store.create(body.metadata if body else None)
    return {"contextId": context.id, "context": context.to_json()}


@router.get("/context/{context_id}")
async def get_context(context_id: str, store: ContextStore = Depends(get_store)):
    """Get a specific context"""
    return {"context": store.get(context_id).to_json()}


@router.get("/contexts")
async def list_contexts(store: ContextStore = Depends(get_store)):
    """List all contexts"""
    return {"contexts": [c.to_json() for c in store.list()]}


async def add_message(
    request: Request,
    context_id: str,
    body: MessageRequest,
    store: ContextStore = Depends(get_store),
    engine: ProtocolEngine = Depends(get_engine)
):
    """
    Add a message to a context
    User messages are processed by the protocol engine and answered with an
    assistant message; the user message is kept even when processing fails.
    """
    async with store.conversation(context_id):
        message = store.append_message(context_id, body.role, body.content)

        response = None
        metadata = None
        if body.role == Role.USER:
            try:
                result = await engine.process(store.get(context_id), body.content)
            except Exception as e:
                logger.exception("message_processing_failed", context_id=context_id, error=str(e))
                return JSONResponse(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    content={"error": "Failed to process message"}
                )

            store.set_processing_metadata(context_id, result.metadata)
            store.append_message(context_id, Role.ASSISTANT, result.response)
            response, metadata = result.response, result.metadata

        context = store.get(context_id)

    logger.info(
        "message_processed",
        context_id=context_id,
        role=message.role.value,
        messages=len(context.messages)
    )

    return {
        "message": message.model_dump(mode="json"),
        "response": response,
        "metadata": metadata,
        "context": context.to_json()
    }


def build_message_router(limiter: Limiter, rate_limit: str) -> APIRouter:
    """Message posting route, rate limited per context by the app's own limiter"""
    message_router = APIRouter(tags=["Contexts"])
    message_router.post("/context/{context_id}/message")(
        limiter.limit(rate_limit, key_func=get_context_key)(add_message)
    )
    return message_router
