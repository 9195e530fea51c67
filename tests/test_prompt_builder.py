from datetime import datetime

from langchain_core.messages import AIMessage, HumanMessage

from taskpilot.domain.models.task_state import ChatMessage, MessageRole
from taskpilot.domain.orchestration.prompt_builder import (
    INSTRUCTIONS, build_prompt, render_history, render_tasks, to_langchain_messages
)

NOW = datetime(2025, 8, 15, 10, 0, 42)


def test_transcript_messages_map_to_chat_roles():
    converted = to_langchain_messages([
        ChatMessage(role=MessageRole.USER, content="hi"),
        ChatMessage(role=MessageRole.ASSISTANT, content="hello"),
    ])

    assert isinstance(converted[0], HumanMessage)
    assert isinstance(converted[1], AIMessage)
    assert [m.content for m in converted] == ["hi", "hello"]


def test_history_rendering():
    rendered = render_history([HumanMessage(content="hi"), AIMessage(content="hello")])

    assert rendered == "\n\nPrevious conversation:\nUser: hi\nAssistant: hello\n"
    assert render_history([]) == ""


def test_task_rendering():
    rows = [{"id": "t1", "text": "Buy milk", "datetime": "2025-08-16T17:00",
             "formatted_time": "08/16/2025, 05:00:00 PM"}]

    assert render_tasks(rows) == '\n\nCurrent tasks:\nID: t1 | "Buy milk" | 08/16/2025, 05:00:00 PM\n'
    assert render_tasks([]) == "\n\nNo current tasks."


def test_prompt_layout():
    prompt = build_prompt(
        "add buy milk tomorrow 5pm",
        [HumanMessage(content="hi")],
        [],
        now=NOW,
    )

    assert prompt.startswith(
        "You are an advanced task management assistant. Current time is: 08/15/2025, 10:00:42 AM\n\n"
    )
    assert INSTRUCTIONS in prompt
    assert "Previous conversation:\nUser: hi\n" in prompt
    assert "No current tasks." in prompt
    assert prompt.endswith("\n\nUser said: add buy milk tomorrow 5pm")
    assert prompt.index(INSTRUCTIONS) < prompt.index("Previous conversation:") < prompt.index("No current tasks.")
