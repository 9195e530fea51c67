from typing import Dict, Iterable, List, Optional
from datetime import datetime

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from taskpilot.domain.models.task_state import ChatMessage, MessageRole

INSTRUCTIONS = """CRITICAL INSTRUCTIONS FOR TASK OPERATIONS:
You must respond with JSON FIRST when handling task requests, then provide a friendly explanation.

JSON FORMAT - Use this exact structure for all task operations:
[
  {
    "action": "add|edit|delete|move",
    "task": "task description",
    "datetime": "YYYY-MM-DDTHH:MM",
    "id": "task_id_if_editing_or_deleting",
    "find": "text_to_search_for_if_no_id",
    "to": "new_datetime_if_moving"
  }
]

SUPPORTED ACTIONS:
1. ADD/CREATE: {"action": "add", "task": "Buy groceries", "datetime": "2025-08-16T17:00"}
2. EDIT/UPDATE: {"action": "edit", "id": "t123", "task": "Buy organic groceries"} OR {"action": "edit", "find": "Buy groceries", "task": "Buy organic groceries"}
3. DELETE/REMOVE: {"action": "delete", "id": "t123"} OR {"action": "delete", "find": "Buy groceries"}
4. MOVE/RESCHEDULE: {"action": "move", "id": "t123", "to": "2025-08-17T10:00"} OR {"action": "move", "find": "groceries", "to": "tomorrow 10am"}

DATETIME HANDLING:
- Always convert natural language to exact format: YYYY-MM-DDTHH:MM
- "tomorrow 5pm" = "2025-08-16T17:00"
- "Monday 2pm" = "2025-08-19T14:00"
- "in 2 hours" = calculate exact time
- If no time specified, use appropriate default (9am for morning tasks, 6pm for evening)

TASK IDENTIFICATION FOR EDIT/DELETE:
- Use "id" field when you know the exact task ID
- Use "find" field to search by text content (supports fuzzy matching)
- System will find the best match automatically

EXAMPLES OF COMPLEX REQUESTS:
User: "Change my grocery task to include organic vegetables"
Response: [{"action": "edit", "find": "grocery", "task": "Buy organic vegetables and groceries"}]

User: "Move my dentist appointment to Friday at 2pm"
Response: [{"action": "move", "find": "dentist", "to": "2025-08-22T14:00"}]

User: "Delete all tasks about cleaning"
Response: [{"action": "delete", "find": "cleaning"}]

User: "Add 5 random tasks for this weekend"
Response: [
  {"action": "add", "task": "Morning jog in the park", "datetime": "2025-08-16T08:00"},
  {"action": "add", "task": "Read a book", "datetime": "2025-08-16T14:00"},
  {"action": "add", "task": "Meal prep for next week", "datetime": "2025-08-17T10:00"},
  {"action": "add", "task": "Video call with family", "datetime": "2025-08-17T15:00"},
  {"action": "add", "task": "Plan next week's schedule", "datetime": "2025-08-17T19:00"}
]"""


def to_langchain_messages(messages: Iterable[ChatMessage]) -> List[BaseMessage]:
    converted: List[BaseMessage] = []
    for message in messages:
        if message.role == MessageRole.USER:
            converted.append(HumanMessage(content=message.content))
        else:
            converted.append(AIMessage(content=message.content))
    return converted


def render_history(messages: List[BaseMessage]) -> str:
    if not messages:
        return ""

    lines = ["", "", "Previous conversation:"]
    for message in messages:
        role = "User" if isinstance(message, HumanMessage) else "Assistant"
        lines.append(f"{role}: {message.content}")
    return "\n".join(lines) + "\n"


def render_tasks(rows: List[Dict[str, str]]) -> str:
    if not rows:
        return "\n\nNo current tasks."

    lines = ["", "", "Current tasks:"]
    for row in rows:
        lines.append(f'ID: {row["id"]} | "{row["text"]}" | {row["formatted_time"]}')
    return "\n".join(lines) + "\n"


def build_prompt(
    user_input: str,
    history: List[BaseMessage],
    task_rows: List[Dict[str, str]],
    now: Optional[datetime] = None,
) -> str:
    """Assemble the single text payload sent to the chat backend"""

    current_time = (now or datetime.now()).strftime("%m/%d/%Y, %I:%M:%S %p")
    return (
        f"You are an advanced task management assistant. Current time is: {current_time}\n\n"
        f"{INSTRUCTIONS}\n"
        f"{render_history(history)}{render_tasks(task_rows)}\n\n"
        f"User said: {user_input}"
    )
