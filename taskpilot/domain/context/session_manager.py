from typing import Any, Callable, Dict, List, Optional
from datetime import datetime
import time

import structlog
from pydantic import ValidationError

from taskpilot.domain.errors import ConversationNotFoundError, GuardViolation, TaskNotFoundError
from taskpilot.domain.models.task_state import ChatMessage, Conversation, MessageRole, Task
from taskpilot.domain.extraction.datetime_resolver import format_group_header, resolve_datetime
from taskpilot.domain.tasks.task_store import TaskStore
from taskpilot.infrastructure.storage.key_value_store import KeyValueStore
from taskpilot.infrastructure.observability.logging import bind_conversation, task_logger

logger = structlog.get_logger(__name__)

PENDING_REPLY_TEXT = "Assistant is thinking..."
TITLE_LENGTH = 30


class ConversationSessionManager:
    """Owns the conversations, the active one, and their persistence.

    ``tasks`` is the live working copy of the active conversation's task
    snapshot. It is loaded (cloned) on activation and every mutation is
    flushed back into the snapshot and written to storage.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        storage_key: str = "chats",
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.conversations: Dict[str, Conversation] = {}
        self.active_id: Optional[str] = None
        self.tasks = TaskStore(on_change=self._flush_active)
        self._clock = clock
        self._now = now

    # -------------------- persistence --------------------
    def load(self) -> None:
        """Restore all conversations; start a fresh one when there are none"""

        raw = self.storage.get_item(self.storage_key)
        conversations: Dict[str, Conversation] = {}
        if isinstance(raw, dict):
            for conversation_id, record in raw.items():
                try:
                    conversations[str(conversation_id)] = Conversation.model_validate(record)
                except ValidationError as e:
                    logger.warning("Skipping unreadable conversation", conversation_id=conversation_id, error=str(e))

        self.conversations = conversations
        self.active_id = None
        self.tasks.clear()

        if not conversations:
            self.create_conversation()
        else:
            self.activate(next(iter(conversations)))

    def save(self) -> None:
        records = {
            conversation_id: conversation.to_record()
            for conversation_id, conversation in self.conversations.items()
        }
        self.storage.set_item(self.storage_key, records)

    def _flush_active(self) -> None:
        conversation = self.conversations.get(self.active_id) if self.active_id else None
        if conversation is None:
            return
        conversation.tasks = self.tasks.snapshot()
        self.save()

    # -------------------- conversations --------------------
    @property
    def active_conversation(self) -> Conversation:
        if self.active_id is None or self.active_id not in self.conversations:
            raise ConversationNotFoundError(str(self.active_id))
        return self.conversations[self.active_id]

    def get_conversation(self, conversation_id: str) -> Conversation:
        try:
            return self.conversations[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(conversation_id) from None

    def _new_id(self) -> str:
        candidate = int(self._clock() * 1000)
        while str(candidate) in self.conversations:
            candidate += 1
        return str(candidate)

    def create_conversation(self) -> str:
        """Create an empty conversation and make it active"""

        self._flush_active()
        conversation_id = self._new_id()
        self.conversations[conversation_id] = Conversation()
        self._set_active(conversation_id)
        self.save()

        task_logger.log_session_event("created", conversation_id)
        return conversation_id

    def activate(self, conversation_id: str) -> Conversation:
        """Switch conversations, flushing the outgoing live tasks first"""

        conversation = self.get_conversation(conversation_id)
        if self.active_id != conversation_id:
            self._flush_active()
        self._set_active(conversation_id)

        task_logger.log_session_event("activated", conversation_id)
        return conversation

    def _set_active(self, conversation_id: str) -> None:
        self.active_id = conversation_id
        self.tasks.load(self.conversations[conversation_id].tasks)
        bind_conversation(conversation_id)

    def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation; the last remaining one cannot be deleted"""

        self.get_conversation(conversation_id)
        if len(self.conversations) <= 1:
            raise GuardViolation("Cannot delete the last chat. Create a new one first.")

        del self.conversations[conversation_id]
        if conversation_id == self.active_id:
            self._set_active(next(iter(self.conversations)))
        self.save()

        task_logger.log_session_event("deleted", conversation_id, {"active": self.active_id})

    def list_conversations(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": conversation_id,
                "title": conversation.title or "Chat",
                "active": conversation_id == self.active_id,
            }
            for conversation_id, conversation in self.conversations.items()
        ]

    # -------------------- transcript --------------------
    def record_message(self, role: MessageRole, content: str, conversation_id: Optional[str] = None) -> ChatMessage:
        """Append to a transcript; the first user message names the conversation"""

        conversation = self.get_conversation(conversation_id or self.active_id)
        message = ChatMessage(role=role, content=content)
        conversation.messages.append(message)

        if role == MessageRole.USER and conversation.has_default_title:
            conversation.title = content[:TITLE_LENGTH] or "Chat"

        self.save()
        return message

    def begin_pending_reply(self, conversation_id: Optional[str] = None) -> ChatMessage:
        """Show a placeholder while a reply is outstanding; it is not persisted"""

        conversation = self.get_conversation(conversation_id or self.active_id)
        placeholder = ChatMessage(role=MessageRole.ASSISTANT, content=PENDING_REPLY_TEXT, pending=True)
        conversation.messages.append(placeholder)
        return placeholder

    def resolve_pending_reply(self, content: str, conversation_id: Optional[str] = None) -> ChatMessage:
        """Replace the latest placeholder in place, or append when there is none"""

        conversation = self.get_conversation(conversation_id or self.active_id)
        for message in reversed(conversation.messages):
            if message.pending:
                message.content = content
                message.pending = False
                self.save()
                return message
        return self.record_message(MessageRole.ASSISTANT, content, conversation_id=conversation_id)

    def transcript(self, conversation_id: Optional[str] = None) -> List[ChatMessage]:
        return list(self.get_conversation(conversation_id or self.active_id).messages)

    def history(self, conversation_id: Optional[str] = None) -> List[ChatMessage]:
        """Settled messages before the latest one, oldest first"""

        settled = [m for m in self.transcript(conversation_id) if not m.pending]
        return settled[:-1]

    # -------------------- tasks --------------------
    def task_store_for(self, conversation_id: str) -> TaskStore:
        """Live store when active, else a detached store writing to that snapshot"""

        if conversation_id == self.active_id:
            return self.tasks

        conversation = self.get_conversation(conversation_id)

        def flush() -> None:
            conversation.tasks = store.snapshot()
            self.save()

        store = TaskStore(conversation.tasks, on_change=flush)
        return store

    def add_task(self, text: str, when: Optional[str] = None) -> Task:
        clean = (text or "").strip()
        if not clean:
            raise GuardViolation("Please enter a task description.")
        key = resolve_datetime(when, now=self._now())
        return self.tasks.create(key, clean)

    def edit_task(self, task_id: str, text: str) -> Task:
        clean = (text or "").strip()
        if not clean:
            raise GuardViolation("Task text cannot be empty.")
        if self.tasks.edit(task_id, clean) is None:
            raise TaskNotFoundError(task_id)
        return self.tasks.find_by_id(task_id).task

    def delete_task(self, task_id: str) -> Task:
        deleted = self.tasks.delete(task_id)
        if deleted is None:
            raise TaskNotFoundError(task_id)
        return deleted

    def grouped_tasks(self) -> List[Dict[str, Any]]:
        """Buckets of the active conversation in chronological order"""

        return [
            {
                "key": key,
                "label": format_group_header(key),
                "tasks": [task.model_copy() for task in self.tasks.buckets[key]],
            }
            for key in self.tasks.sorted_keys()
        ]
