"""Channel webhook — receives one activity per turn and returns the reply."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, Field

from tali_agent.config import settings
from tali_agent.database.engine import async_session_factory
from tali_agent.errors import PersistenceError
from tali_agent.services.account_api import AccountQueryService
from tali_agent.services.conversation_store import SqlConversationStore
from tali_agent.services.intent_classifier import IntentClassifier
from tali_agent.services.turn_orchestrator import MESSAGE_ACTIVITY, TurnOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhook"])

# ── Shared instances (created once, reused across requests) ──
_orchestrator = TurnOrchestrator(
    store=SqlConversationStore(async_session_factory),
    classifier=IntentClassifier(),
    accounts=AccountQueryService(),
    assistant_name=settings.app_name,
)


def get_orchestrator() -> TurnOrchestrator:
    return _orchestrator


class InboundActivity(BaseModel):
    """Channel-agnostic inbound message."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId", min_length=1)
    utterance_text: str = Field(default="", alias="utteranceText")
    activity_type: str = Field(default=MESSAGE_ACTIVITY, alias="activityType")


class OutboundReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(serialization_alias="conversationId")
    text: str
    end_conversation: bool = Field(default=False, serialization_alias="endConversation")


# ──────────────────────────────────────────────────────────────
# POST /api/messages — one turn
# ──────────────────────────────────────────────────────────────
@router.post("/messages", response_model=OutboundReply, response_model_by_alias=True)
async def receive_message(
    activity: InboundActivity,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> OutboundReply:
    """Run one turn and return the reply text (possibly empty)."""
    logger.info(
        "Activity %s from %s: %s",
        activity.activity_type,
        activity.conversation_id,
        activity.utterance_text[:80],
    )
    try:
        response = await orchestrator.handle(
            conversation_id=activity.conversation_id,
            text=activity.utterance_text,
            activity_type=activity.activity_type,
        )
    except PersistenceError as exc:
        logger.error("State store unavailable for %s: %s", activity.conversation_id, exc)
        raise HTTPException(status_code=503, detail="Conversation state unavailable") from exc

    return OutboundReply(
        conversation_id=activity.conversation_id,
        text=response.reply_text,
        end_conversation=response.end_conversation,
    )


# ──────────────────────────────────────────────────────────────
# DELETE /api/conversations/{id} — operator reset
# ──────────────────────────────────────────────────────────────
@router.delete("/conversations/{conversation_id}", status_code=204)
async def reset_conversation(
    conversation_id: str,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Forget a conversation so its next message starts onboarding again."""
    try:
        await orchestrator.reset(conversation_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail="Conversation state unavailable") from exc
    return Response(status_code=204)
