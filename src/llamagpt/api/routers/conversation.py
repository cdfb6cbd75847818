"""Conversation API Router - thin HTTP layer over the conversation service."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import ValidationError

from ...domain.domain_value import SessionKey
from ...domain.errors import HistoryLoadError, HistorySaveError, StorageUnavailableError
from ...service import ConversationService
from ..contracts import (
    ConversationHistoryResponse,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
    StoredMessageResponse,
)
from ..deps import get_conversation_service

router = APIRouter(prefix="/conversation", tags=["conversation"])


def _session_key(chat_id: str) -> SessionKey:
    try:
        return SessionKey(chat_id)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid chat id: {chat_id!r}",
        ) from exc


@router.get("/models", response_model=list[str])
async def list_models(
    service: Annotated[ConversationService, Depends(get_conversation_service)],
) -> list[str]:
    """List registered model identifiers."""
    return list(service.catalog.ids())


@router.get("/commands", response_model=list[str])
async def list_commands(
    service: Annotated[ConversationService, Depends(get_conversation_service)],
) -> list[str]:
    """List built-in commands in priority order."""
    return list(service.registry_factory().names())


@router.post("/", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    service: Annotated[ConversationService, Depends(get_conversation_service)],
) -> SendMessageResponse:
    """
    Run one turn on a chat and return the reply.

    Thin orchestration layer:
    1. Resolve generation parameters (unknown model → 400)
    2. Run the turn under the chat's lock (service owns load/route/save)
    3. Map to API contract
    """
    if request.model_id:
        try:
            service.catalog.find_variant(request.model_id)
        except KeyError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid model: {exc.args[0]}") from exc
    params = service.params(model=request.model_id, temperature=request.temperature)

    try:
        reply, session = await service.send_message(request.chat_id, request.text, params)
    except HistorySaveError as exc:
        raise HTTPException(status_code=503, detail=f"Chat history not saved: {exc}") from exc
    except StorageUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if reply is None:
        raise HTTPException(status_code=400, detail="Message is empty")

    return SendMessageResponse(
        chat_id=session.key,
        message=MessageResponse(content=reply.text, source=reply.source, is_error=reply.is_error),
        message_count=len(session.history),
    )


@router.get("/{chat_id}", response_model=ConversationHistoryResponse)
async def get_conversation(
    chat_id: str,
    service: Annotated[ConversationService, Depends(get_conversation_service)],
) -> ConversationHistoryResponse:
    """Get a chat's stored history."""
    key = _session_key(chat_id)
    try:
        messages = await service.history(key)
    except HistoryLoadError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except StorageUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if messages is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ConversationHistoryResponse(
        chat_id=key,
        message_count=len(messages),
        messages=[
            StoredMessageResponse(role=msg.role, content=msg.content, timestamp=msg.timestamp)
            for msg in messages
        ],
    )


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    chat_id: str,
    service: Annotated[ConversationService, Depends(get_conversation_service)],
) -> Response:
    """Delete a chat's stored history."""
    key = _session_key(chat_id)
    try:
        deleted = await service.delete_chat(key)
    except (HistorySaveError, StorageUnavailableError) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
