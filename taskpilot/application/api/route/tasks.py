from typing import Annotated
from fastapi import APIRouter, Depends

from taskpilot.application.api.dependencies import get_session
from taskpilot.application.api.schema import EditTaskRequest, NewTaskRequest, TaskGroup, TaskList
from taskpilot.domain.context.session_manager import ConversationSessionManager
from taskpilot.domain.models.task_state import Task

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])

Session = Annotated[ConversationSessionManager, Depends(get_session)]


@router.get("", response_model=TaskList)
async def list_tasks(session: Session):
    return TaskList(
        conversation_id=session.active_id,
        groups=[TaskGroup(**group) for group in session.grouped_tasks()],
    )


@router.post("", response_model=Task, status_code=201)
async def add_task(request: NewTaskRequest, session: Session):
    return session.add_task(request.text, request.datetime)


@router.patch("/{task_id}", response_model=Task)
async def edit_task(task_id: str, request: EditTaskRequest, session: Session):
    return session.edit_task(task_id, request.text)


@router.delete("/{task_id}", response_model=Task)
async def delete_task(task_id: str, session: Session):
    return session.delete_task(task_id)
