"""Conversation Routes — posting to and reading a buyer/vendor transcript."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status

from plantbid.api.dependencies import get_transcript_store
from plantbid.core.domain_types import MessageRole
from plantbid.core.transcript import posted_message
from plantbid.schemas.conversation import ConversationResponse, MessageCreate, MessagesReplace
from plantbid.services.transcript_store import TranscriptStore

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: int,
    transcript: TranscriptStore = Depends(get_transcript_store),
):
    return await transcript.read(conversation_id)


@router.post(
    "/{conversation_id}/messages",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def append_message(
    conversation_id: int,
    body: MessageCreate,
    transcript: TranscriptStore = Depends(get_transcript_store),
):
    """Append one chat message; a repeat within a minute is dropped."""
    now = datetime.now(timezone.utc)
    message = posted_message(
        MessageRole(body.role), body.content, now, body.vendor_id, body.images,
    )
    await transcript.append(conversation_id, [message], dedupe=True, now=now)
    return await transcript.read(conversation_id)


@router.put("/{conversation_id}/messages", response_model=ConversationResponse)
async def replace_messages(
    conversation_id: int,
    body: MessagesReplace,
    transcript: TranscriptStore = Depends(get_transcript_store),
):
    """Overwrite the transcript; 409 if it changed since expectedVersion."""
    await transcript.replace(conversation_id, body.messages, body.expected_version)
    return await transcript.read(conversation_id)
