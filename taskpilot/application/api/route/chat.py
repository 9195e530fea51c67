from typing import Annotated
from fastapi import APIRouter, Depends

from taskpilot.application.api.dependencies import get_assistant
from taskpilot.application.api.schema import ChatRequest, ChatResponse
from taskpilot.domain.orchestration.core.task_assistant import TaskAssistant

router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat_endpoint(
    request: ChatRequest,
    assistant: Annotated[TaskAssistant, Depends(get_assistant)]
):
    reply = await assistant.send(request.message)
    return ChatResponse(
        conversation_id=reply.conversation_id,
        reply=reply.display_text,
        handled_locally=reply.handled_locally,
        error=reply.error,
        results=reply.results,
    )
