from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from datetime import datetime

import structlog

from taskpilot.domain.models.task_state import (
    ActionRequest, ActionResult, ActionType, Operation
)
from taskpilot.domain.extraction.datetime_resolver import format_group_header, resolve_datetime
from taskpilot.domain.tasks.task_store import TaskLocation, TaskStore
from taskpilot.infrastructure.observability.logging import task_logger

logger = structlog.get_logger(__name__)


ACTION_SYNONYMS: Dict[str, ActionType] = {
    "add": ActionType.ADD,
    "create": ActionType.ADD,
    "edit": ActionType.EDIT,
    "update": ActionType.EDIT,
    "modify": ActionType.EDIT,
    "change": ActionType.EDIT,
    "delete": ActionType.DELETE,
    "remove": ActionType.DELETE,
    "cancel": ActionType.DELETE,
    "move": ActionType.MOVE,
    "reschedule": ActionType.MOVE,
}

# Accepted payload keys per canonical field, tried in order
FIELD_SYNONYMS: Dict[ActionType, Dict[str, Tuple[str, ...]]] = {
    ActionType.ADD: {
        "text": ("task", "text", "description"),
        "when": ("datetime", "when", "time"),
    },
    ActionType.EDIT: {
        "task_id": ("id", "taskId"),
        "search": ("find", "search", "old", "original"),
        "text": ("task", "text", "new", "to"),
    },
    ActionType.DELETE: {
        "task_id": ("id", "taskId"),
        "search": ("find", "search", "task", "text"),
    },
    ActionType.MOVE: {
        "task_id": ("id", "taskId"),
        "search": ("find", "search", "task"),
        "when": ("to", "datetime", "when"),
    },
}

VERBS: Dict[ActionType, str] = {
    ActionType.EDIT: "edit",
    ActionType.DELETE: "delete",
    ActionType.MOVE: "move",
}


def _first_present(payload: Mapping[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if value is None or value == "" or value is False:
            continue
        return str(value)
    return None


def normalize_action(raw: Any) -> ActionRequest:
    """Fold a loosely keyed action payload onto canonical fields"""

    if not isinstance(raw, Mapping):
        return ActionRequest(raw=raw)

    name = str(raw.get("action") or "").strip().lower()
    action_type = ACTION_SYNONYMS.get(name)
    fields: Dict[str, Optional[str]] = {}
    if action_type is not None:
        for field, keys in FIELD_SYNONYMS[action_type].items():
            fields[field] = _first_present(raw, keys)

    return ActionRequest(action=name, action_type=action_type, raw=raw, **fields)


class ActionReconciler:
    """Applies structured action requests to a task store, one at a time"""

    def __init__(self, store: TaskStore, now: Callable[[], datetime] = datetime.now):
        self.store = store
        self.now = now

    def apply(self, actions: Iterable[Any]) -> List[ActionResult]:
        """Apply actions in order and report one result per action.

        Failures do not stop the batch and nothing is rolled back; each
        mutation is visible to the actions after it.
        """

        results: List[ActionResult] = []
        for raw in actions:
            request = normalize_action(raw)
            try:
                result = self._dispatch(request)
            except Exception as e:
                logger.exception("Action failed unexpectedly", action=request.action)
                result = ActionResult.failure(raw, str(e))

            task_logger.log_task_action(
                operation=result.operation.value if result.operation else request.action,
                success=result.success,
                task_id=result.task.id if result.task else None,
                error=result.error,
            )
            results.append(result)
        return results

    def _dispatch(self, request: ActionRequest) -> ActionResult:
        if request.action_type == ActionType.ADD:
            return self._add(request)
        if request.action_type == ActionType.EDIT:
            return self._edit(request)
        if request.action_type == ActionType.DELETE:
            return self._delete(request)
        if request.action_type == ActionType.MOVE:
            return self._move(request)
        return ActionResult.failure(request.raw, f"Unknown action type: {request.action}")

    def resolve_target(self, request: ActionRequest) -> Optional[TaskLocation]:
        """Locate the task an edit/delete/move refers to.

        The first selector supplied decides: explicit id, then text search
        (best match), then the last referenced task. A selector that finds
        nothing does not fall through to the next one.
        """

        if request.task_id:
            return self.store.find_by_id(request.task_id)
        if request.search:
            matches = self.store.find_by_text(request.search)
            return matches[0] if matches else None
        return self.store.last_referenced()

    def _not_found(self, request: ActionRequest) -> ActionResult:
        verb = VERBS[request.action_type]
        return ActionResult.failure(request.raw, f"Could not find task to {verb}")

    def _add(self, request: ActionRequest) -> ActionResult:
        text = (request.text or "").strip()
        if not text:
            return ActionResult.failure(request.raw, "No task text provided")

        key = resolve_datetime(request.when, now=self.now())
        task = self.store.create(key, text)
        return ActionResult(
            success=True,
            action=request.raw,
            operation=Operation.CREATED,
            task=task.model_copy(),
            to_key=key,
        )

    def _edit(self, request: ActionRequest) -> ActionResult:
        target = self.resolve_target(request)
        if target is None:
            return self._not_found(request)

        new_text = (request.text or "").strip()
        if not new_text:
            return ActionResult.failure(request.raw, "No new text provided for edit")

        old_text = self.store.edit(target.task.id, new_text)
        return ActionResult(
            success=True,
            action=request.raw,
            operation=Operation.EDITED,
            task=target.task.model_copy(),
            old_text=old_text,
            new_text=new_text,
        )

    def _delete(self, request: ActionRequest) -> ActionResult:
        target = self.resolve_target(request)
        if target is None:
            return self._not_found(request)

        deleted = self.store.delete(target.task.id)
        if deleted is None:
            return ActionResult.failure(request.raw, "Failed to delete task")
        return ActionResult(
            success=True,
            action=request.raw,
            operation=Operation.DELETED,
            task=deleted.model_copy(),
            deleted_text=deleted.text,
            from_key=target.key,
        )

    def _move(self, request: ActionRequest) -> ActionResult:
        target = self.resolve_target(request)
        if target is None:
            return self._not_found(request)

        new_key = resolve_datetime(request.when, now=self.now())
        old_key = self.store.move(target.task.id, new_key)
        return ActionResult(
            success=True,
            action=request.raw,
            operation=Operation.MOVED,
            task=target.task.model_copy(),
            from_key=old_key,
            to_key=new_key,
        )


def summarize_results(results: List[ActionResult]) -> str:
    """Human-readable summary of a reconciled batch"""

    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]
    lines: List[str] = []

    if successful:
        lines.append(f"✅ Completed {len(successful)} task operation(s):")
        for result in successful:
            if result.operation == Operation.CREATED:
                lines.append(f'• Created: "{result.task.text}"')
            elif result.operation == Operation.EDITED:
                lines.append(f'• Edited: "{result.old_text}" → "{result.new_text}"')
            elif result.operation == Operation.DELETED:
                lines.append(f'• Deleted: "{result.deleted_text}"')
            elif result.operation == Operation.MOVED:
                lines.append(f'• Moved: "{result.task.text}" to {format_group_header(result.to_key)}')

    if failed:
        lines.append(f"❌ Failed {len(failed)} operation(s):")
        for result in failed:
            lines.append(f"• {result.error}")

    return "\n".join(lines)
