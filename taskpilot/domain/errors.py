from typing import Optional


class TaskPilotError(Exception):
    """Base error for the task assistant"""


class GuardViolation(TaskPilotError):
    """Request rejected at the boundary before any state change"""

    def __init__(self, notice: str):
        super().__init__(notice)
        self.notice = notice


class ConversationNotFoundError(TaskPilotError):
    """Raised when a conversation id is unknown"""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class TaskNotFoundError(TaskPilotError):
    """Raised when a task id is unknown in the active conversation"""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TransportError(TaskPilotError):
    """Raised when the chat backend cannot be reached or answers with an error"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
