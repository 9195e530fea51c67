from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


DEFAULT_CONVERSATION_TITLE = "New Chat"


class MessageRole(str, Enum):
    """Author of a transcript message"""
    USER = "user"
    ASSISTANT = "assistant"


class ActionType(str, Enum):
    """Canonical task action names"""
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    MOVE = "move"


class Operation(str, Enum):
    """Operation reported for a successfully applied action"""
    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"
    MOVED = "moved"


class Task(BaseModel):
    """A single task; only the text is mutable"""
    id: str = Field(description="Opaque identifier, never reused within a conversation")
    text: str = Field(description="Task description")


class TaskState(BaseModel):
    """Snapshot of one conversation's task store"""
    model_config = ConfigDict(populate_by_name=True)

    tasks_by_datetime: Dict[str, List[Task]] = Field(default_factory=dict, alias="tasksByDatetime")
    task_id_counter: int = Field(default=0, alias="taskIdCounter")
    last_referenced_task_id: Optional[str] = Field(None, alias="lastReferencedTaskId")

    def clone(self) -> "TaskState":
        """Return a copy sharing no mutable structure with this snapshot"""
        return self.model_copy(deep=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ChatMessage(BaseModel):
    """One transcript entry"""
    role: MessageRole
    content: str
    pending: bool = Field(default=False, exclude=True, description="Placeholder shown while a reply is outstanding")


class Conversation(BaseModel):
    """A chat with its own transcript and task snapshot"""
    title: str = Field(default=DEFAULT_CONVERSATION_TITLE)
    messages: List[ChatMessage] = Field(default_factory=list)
    tasks: TaskState = Field(default_factory=TaskState)

    @property
    def has_default_title(self) -> bool:
        return self.title == DEFAULT_CONVERSATION_TITLE

    def to_record(self) -> Dict[str, Any]:
        """Storage form; pending placeholders are never persisted"""
        return {
            "title": self.title,
            "messages": [
                message.model_dump(mode="json")
                for message in self.messages
                if not message.pending
            ],
            "tasks": self.tasks.to_record(),
        }


class ActionRequest(BaseModel):
    """Action request with synonym keys folded onto canonical fields"""
    action: str = Field(default="", description="Lowercased action name as supplied")
    action_type: Optional[ActionType] = None
    task_id: Optional[str] = None
    search: Optional[str] = None
    text: Optional[str] = None
    when: Optional[str] = None
    raw: Any = None


class ActionResult(BaseModel):
    """Outcome of applying one action request"""
    success: bool
    action: Any = Field(None, description="Raw action payload as received")
    operation: Optional[Operation] = None
    task: Optional[Task] = None
    old_text: Optional[str] = None
    new_text: Optional[str] = None
    deleted_text: Optional[str] = None
    from_key: Optional[str] = None
    to_key: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, action: Any, error: str) -> "ActionResult":
        return cls(success=False, action=action, error=error)
