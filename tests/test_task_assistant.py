import asyncio

import pytest

from conftest import NOW
from taskpilot.domain.errors import GuardViolation, TransportError
from taskpilot.domain.models.task_state import MessageRole
from taskpilot.domain.orchestration.core.task_assistant import TaskAssistant


class FakeChatClient:
    """Returns canned replies and records prompts"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, prompt: str) -> str:
        self.calls.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _assistant(session, client):
    return TaskAssistant(session, client, now=lambda: NOW)


def test_json_reply_is_reconciled_and_summarized(session):
    client = FakeChatClient(
        'Sure!\n```json\n[{"action":"add","task":"Buy milk","datetime":"tomorrow 5pm"}]\n```\nDone.'
    )

    reply = asyncio.run(_assistant(session, client).send("add buy milk tomorrow 5pm"))

    assert reply.display_text == '✅ Completed 1 task operation(s):\n• Created: "Buy milk"\n\nSure!\nDone.'
    assert [(loc.key, loc.task.text) for loc in session.tasks] == [("2025-08-16T17:00", "Buy milk")]
    assert [(m.role, m.content) for m in session.transcript()] == [
        (MessageRole.USER, "add buy milk tomorrow 5pm"),
        (MessageRole.ASSISTANT, reply.display_text),
    ]
    assert not any(m.pending for m in session.transcript())
    assert client.calls[0].endswith("User said: add buy milk tomorrow 5pm")


def test_prompt_carries_tasks_and_history(session):
    session.add_task("Buy groceries", "2025-08-16T09:00")
    client = FakeChatClient("Hello!", "Noted.")
    assistant = _assistant(session, client)

    asyncio.run(assistant.send("hi"))
    asyncio.run(assistant.send("what is on my list?"))

    second = client.calls[1]
    assert 'ID: t1 | "Buy groceries" | 08/16/2025, 09:00:00 AM' in second
    assert "Previous conversation:\nUser: hi\nAssistant: Hello!\n" in second
    assert "User: what is on my list?" not in second


def test_shorthand_edit_skips_backend(session):
    session.add_task("water plants", "2025-08-16T18:00")
    client = FakeChatClient()

    reply = asyncio.run(_assistant(session, client).send("edit it to watering garden"))

    assert client.calls == []
    assert reply.handled_locally
    assert reply.display_text == "Updated the previous task to: watering garden"
    assert session.tasks.find_by_id("t1").task.text == "watering garden"
    assert session.transcript()[-1].content == "Updated the previous task to: watering garden"


def test_shorthand_without_referenced_task_goes_to_backend(session):
    client = FakeChatClient("There is nothing to edit yet.")

    reply = asyncio.run(_assistant(session, client).send("edit it to watering garden"))

    assert len(client.calls) == 1
    assert not reply.handled_locally
    assert reply.display_text == "There is nothing to edit yet."


def test_malformed_json_shows_reply_as_is(session):
    raw = 'Okay!\n```json\n[{"action": "add", "task": }]\n```'
    client = FakeChatClient(raw)

    reply = asyncio.run(_assistant(session, client).send("add something"))

    assert reply.results == []
    assert reply.display_text == raw.strip()
    assert len(session.tasks) == 0


def test_prose_only_reply(session):
    client = FakeChatClient("  Just chatting.  ")

    reply = asyncio.run(_assistant(session, client).send("how are you?"))

    assert reply.display_text == "Just chatting."
    assert reply.results == []


def test_transport_failure_is_recorded_and_tasks_untouched(session):
    session.add_task("Buy milk", "2025-08-16T17:00")
    before = session.tasks.snapshot()
    client = FakeChatClient(TransportError("HTTP error! status: 500", status_code=500))

    reply = asyncio.run(_assistant(session, client).send("delete buy milk"))

    assert reply.error == "HTTP error! status: 500"
    assert reply.display_text == "Error: HTTP error! status: 500"
    assert session.tasks.snapshot() == before
    assert session.transcript()[-1].content == "Error: HTTP error! status: 500"
    assert not session.transcript()[-1].pending


def test_unexpected_client_failure_is_reported(session):
    client = FakeChatClient(RuntimeError("boom"))

    reply = asyncio.run(_assistant(session, client).send("hello"))

    assert reply.display_text == "Error: boom"


def test_reply_lands_in_originating_conversation(session):
    first = session.active_id
    client = FakeChatClient()
    assistant = _assistant(session, client)

    async def complete(prompt):
        # User switches conversations while the reply is outstanding
        session.create_conversation()
        return '[{"action": "add", "task": "Pay rent", "datetime": "2025-09-01T09:00"}]'

    client.complete = complete
    reply = asyncio.run(assistant.send("add pay rent"))

    assert reply.conversation_id == first
    assert len(session.tasks) == 0
    assert session.transcript() == []
    session.activate(first)
    assert [loc.task.text for loc in session.tasks] == ["Pay rent"]
    assert session.transcript()[-1].content.startswith("✅ Completed 1 task operation(s):")


@pytest.mark.parametrize("message", ["", "   "])
def test_empty_message_is_rejected(session, message):
    client = FakeChatClient()

    with pytest.raises(GuardViolation) as excinfo:
        asyncio.run(_assistant(session, client).send(message))

    assert excinfo.value.notice == "Please enter a message first!"
    assert session.transcript() == []
    assert client.calls == []


def test_impossible_datetime_from_model_does_not_break_the_turn(session):
    session.add_task("Dentist", "2025-08-16T09:00")
    client = FakeChatClient(
        '[{"action": "move", "find": "Dentist", "to": "2025-08-16T24:00"}]',
        "Anything else?",
    )
    assistant = _assistant(session, client)

    reply = asyncio.run(assistant.send("move the dentist to midnight"))
    follow_up = asyncio.run(assistant.send("thanks"))

    assert reply.results[0].to_key == "2025-08-17T00:00"
    assert "08/17/2025, 12:00:00 AM" in reply.display_text
    assert follow_up.display_text == "Anything else?"
    assert not any(m.pending for m in session.transcript())


def test_reply_for_deleted_conversation_is_dropped(session):
    first = session.active_id
    client = FakeChatClient()
    assistant = _assistant(session, client)

    async def complete(prompt):
        # The sending conversation disappears while the reply is outstanding
        session.create_conversation()
        session.delete_conversation(first)
        return '[{"action": "add", "task": "Pay rent"}]'

    client.complete = complete
    reply = asyncio.run(assistant.send("add pay rent"))

    assert reply.conversation_id == first
    assert reply.results == []
    assert first not in session.conversations
    assert session.transcript() == []
    assert len(session.tasks) == 0


def test_failed_reply_for_deleted_conversation_is_dropped(session):
    first = session.active_id
    client = FakeChatClient()
    assistant = _assistant(session, client)

    async def complete(prompt):
        session.create_conversation()
        session.delete_conversation(first)
        raise TransportError("HTTP error! status: 502", status_code=502)

    client.complete = complete
    reply = asyncio.run(assistant.send("hello"))

    assert reply.display_text == "Error: HTTP error! status: 502"
    assert session.transcript() == []
