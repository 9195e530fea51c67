from typing import Callable, Dict, Iterator, List, NamedTuple, Optional

from taskpilot.domain.models.task_state import Task, TaskState
from taskpilot.domain.extraction.datetime_resolver import format_group_header
from taskpilot.domain.extraction.fuzzy_matcher import find_tasks_by_text


class TaskLocation(NamedTuple):
    """A task together with the bucket holding it"""
    key: str
    task: Task


class TaskStore:
    """Live task list of the active conversation.

    Tasks are grouped by time bucket key; insertion order inside a bucket is
    kept. A bucket is dropped as soon as it becomes empty. Every mutation
    invokes ``on_change`` so the owner can mirror it into durable storage.
    """

    def __init__(
        self,
        state: Optional[TaskState] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.buckets: Dict[str, List[Task]] = {}
        self.id_counter: int = 0
        self.last_referenced_id: Optional[str] = None
        self.on_change = on_change
        if state is not None:
            self.load(state)

    # -------------------- snapshots --------------------
    def load(self, state: TaskState) -> None:
        """Replace the working set with a copy of ``state``"""

        snapshot = state.clone()
        self.buckets = {
            key: tasks for key, tasks in snapshot.tasks_by_datetime.items() if tasks
        }
        self.id_counter = int(snapshot.task_id_counter or 0)
        self.last_referenced_id = snapshot.last_referenced_task_id or None

    def snapshot(self) -> TaskState:
        """Copy of the working set that shares nothing with it"""

        return TaskState(
            tasks_by_datetime=self.buckets,
            task_id_counter=self.id_counter,
            last_referenced_task_id=self.last_referenced_id,
        ).clone()

    def clear(self) -> None:
        self.buckets = {}
        self.id_counter = 0
        self.last_referenced_id = None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # -------------------- queries --------------------
    def __len__(self) -> int:
        return sum(len(tasks) for tasks in self.buckets.values())

    def __iter__(self) -> Iterator[TaskLocation]:
        for key, tasks in self.buckets.items():
            for task in tasks:
                yield TaskLocation(key, task)

    def find_by_id(self, task_id: Optional[str]) -> Optional[TaskLocation]:
        if not task_id:
            return None
        for location in self:
            if location.task.id == task_id:
                return location
        return None

    def find_by_text(
        self,
        search_text: str,
        exact_match: bool = False,
        case_sensitive: bool = False,
    ) -> List[TaskLocation]:
        matches = find_tasks_by_text(
            self.buckets,
            search_text,
            exact_match=exact_match,
            case_sensitive=case_sensitive,
        )
        return [TaskLocation(match.key, match.task) for match in matches]

    def last_referenced(self) -> Optional[TaskLocation]:
        return self.find_by_id(self.last_referenced_id)

    def sorted_keys(self) -> List[str]:
        return sorted(self.buckets)

    def context_rows(self) -> List[Dict[str, str]]:
        """Tasks in chronological bucket order, for prompts and listings"""

        rows = []
        for key in self.sorted_keys():
            for task in self.buckets[key]:
                rows.append({
                    "id": task.id,
                    "text": task.text,
                    "datetime": key,
                    "formatted_time": format_group_header(key),
                })
        return rows

    # -------------------- mutations --------------------
    def create(self, key: str, text: str) -> Task:
        """Append a new task to bucket ``key`` and point at it"""

        self.id_counter += 1
        task = Task(id=f"t{self.id_counter}", text=str(text).strip() or "(untitled)")
        self.buckets.setdefault(key, []).append(task)
        self.last_referenced_id = task.id
        self._changed()
        return task

    def edit(self, task_id: str, new_text: str) -> Optional[str]:
        """Replace a task's text in place; returns the old text"""

        location = self.find_by_id(task_id)
        if location is None:
            return None
        old_text = location.task.text
        location.task.text = str(new_text).strip()
        self.last_referenced_id = task_id
        self._changed()
        return old_text

    def delete(self, task_id: str) -> Optional[Task]:
        """Remove a task, pruning its bucket if it empties"""

        location = self.find_by_id(task_id)
        if location is None:
            return None
        self._detach(location)
        if self.last_referenced_id == task_id:
            self.last_referenced_id = None
        self._changed()
        return location.task

    def move(self, task_id: str, new_key: str) -> Optional[str]:
        """Move a task to the end of bucket ``new_key``; returns the old key"""

        location = self.find_by_id(task_id)
        if location is None:
            return None
        self._detach(location)
        self.buckets.setdefault(new_key, []).append(location.task)
        self.last_referenced_id = task_id
        self._changed()
        return location.key

    def _detach(self, location: TaskLocation) -> None:
        tasks = self.buckets[location.key]
        tasks.remove(location.task)
        if not tasks:
            del self.buckets[location.key]
