from typing import Annotated
from fastapi import APIRouter, Depends

from taskpilot.application.api.dependencies import get_session
from taskpilot.application.api.schema import (
    ConversationList, ConversationSummary, Transcript, TranscriptMessage
)
from taskpilot.domain.context.session_manager import ConversationSessionManager

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])

Session = Annotated[ConversationSessionManager, Depends(get_session)]


def _conversation_list(session: ConversationSessionManager) -> ConversationList:
    return ConversationList(
        active_id=session.active_id,
        conversations=[ConversationSummary(**item) for item in session.list_conversations()],
    )


@router.get("", response_model=ConversationList)
async def list_conversations(session: Session):
    return _conversation_list(session)


@router.post("", response_model=ConversationList, status_code=201)
async def create_conversation(session: Session):
    session.create_conversation()
    return _conversation_list(session)


@router.post("/{conversation_id}/activate", response_model=ConversationList)
async def activate_conversation(conversation_id: str, session: Session):
    session.activate(conversation_id)
    return _conversation_list(session)


@router.delete("/{conversation_id}", response_model=ConversationList)
async def delete_conversation(conversation_id: str, session: Session):
    session.delete_conversation(conversation_id)
    return _conversation_list(session)


@router.get("/active/messages", response_model=Transcript)
async def active_transcript(session: Session):
    conversation = session.active_conversation
    return Transcript(
        conversation_id=session.active_id,
        title=conversation.title,
        messages=[TranscriptMessage.from_message(m) for m in conversation.messages],
    )
