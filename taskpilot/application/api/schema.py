from typing import List, Optional
from pydantic import BaseModel, Field

from taskpilot.domain.models.task_state import ActionResult, ChatMessage, Task


class ConversationSummary(BaseModel):
    """Conversation tab entry"""
    id: str
    title: str
    active: bool = False


class ConversationList(BaseModel):
    active_id: Optional[str] = None
    conversations: List[ConversationSummary] = Field(default_factory=list)


class TranscriptMessage(BaseModel):
    role: str
    content: str
    pending: bool = False

    @classmethod
    def from_message(cls, message: ChatMessage) -> "TranscriptMessage":
        return cls(role=message.role.value, content=message.content, pending=message.pending)


class Transcript(BaseModel):
    conversation_id: str
    title: str
    messages: List[TranscriptMessage] = Field(default_factory=list)


class TaskGroup(BaseModel):
    """Tasks sharing one time bucket"""
    key: str = Field(description="Bucket key YYYY-MM-DDTHH:MM")
    label: str
    tasks: List[Task] = Field(default_factory=list)


class TaskList(BaseModel):
    conversation_id: str
    groups: List[TaskGroup] = Field(default_factory=list)


class NewTaskRequest(BaseModel):
    text: str
    datetime: Optional[str] = Field(None, description="Bucket key or natural-language expression")


class EditTaskRequest(BaseModel):
    text: str


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    conversation_id: str
    reply: str
    handled_locally: bool = False
    error: Optional[str] = None
    results: List[ActionResult] = Field(default_factory=list)
