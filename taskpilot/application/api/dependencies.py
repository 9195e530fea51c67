from fastapi import Request

from taskpilot.domain.context.session_manager import ConversationSessionManager
from taskpilot.domain.orchestration.core.task_assistant import TaskAssistant


def get_session(request: Request) -> ConversationSessionManager:
    return request.app.state.session


def get_assistant(request: Request) -> TaskAssistant:
    return request.app.state.assistant
