"""Chat API routes — history, chat partners, deletes, presence.

Learn: These parallel the realtime socket for things a page load needs:
the user list, the stored history of a conversation, and a delete
button that works even when the socket is down. A delete made here is
announced to live subscribers through the same engine the socket uses.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from edushare.auth.dependencies import CurrentIdentity, get_current_user
from edushare.realtime.engine import MessagingEngine
from edushare.schemas.message import ConversationHistory
from edushare.schemas.user import PublicProfile
from edushare.services.chat_service import (
    ChatService,
    MessageNotFoundError,
    NotConversationParticipantError,
)

router = APIRouter(prefix="/chat")


def get_engine(request: Request) -> MessagingEngine:
    return request.app.state.engine


def _svc(engine: MessagingEngine = Depends(get_engine)) -> ChatService:
    return ChatService(engine.store, engine.directory)


@router.get("/users", response_model=list[PublicProfile])
async def list_chat_users(
    me: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    """Users the caller can start a conversation with."""
    return await svc.list_partners(me.user_id)


@router.get("/history/{user_id}", response_model=ConversationHistory)
async def get_history_with_user(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    me: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    """Conversation history between the caller and another user, oldest first."""
    return await svc.history_with(me.user_id, user_id, limit=limit)


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=ConversationHistory,
)
async def get_conversation_messages(
    conversation_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    me: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
):
    try:
        return await svc.conversation_history(me.user_id, conversation_id, limit=limit)
    except NotConversationParticipantError:
        raise HTTPException(status_code=403, detail="Not a participant of this conversation")


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: str,
    me: CurrentIdentity = Depends(get_current_user),
    svc: ChatService = Depends(_svc),
    engine: MessagingEngine = Depends(get_engine),
):
    """Delete one of the caller's own messages."""
    try:
        message = await svc.delete_message(me.user_id, message_id)
    except MessageNotFoundError:
        raise HTTPException(status_code=404, detail="Message not found")
    await engine.announce_deleted(message)


@router.get("/online", response_model=list[str])
async def list_online_users(engine: MessagingEngine = Depends(get_engine)):
    """User ids with a live chat socket on this server."""
    return engine.presence.list_online()
