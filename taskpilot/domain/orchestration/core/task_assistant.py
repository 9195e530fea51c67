from typing import TypedDict, Annotated, List, Dict, Any, Optional, Literal, Protocol
from langgraph.graph import StateGraph, END
from langgraph.graph.message import add_messages
from langchain_core.messages import BaseMessage
from pydantic import BaseModel, Field
from datetime import datetime
import operator
import structlog

from taskpilot.domain.errors import GuardViolation, TransportError
from taskpilot.domain.models.task_state import ActionResult, MessageRole, Operation
from taskpilot.domain.context.session_manager import ConversationSessionManager
from taskpilot.domain.extraction.json_extractor import extract_first_json, parse_action_list
from taskpilot.domain.extraction.shorthand import detect_edit_shorthand
from taskpilot.domain.tasks.action_reconciler import ActionReconciler, summarize_results
from taskpilot.domain.orchestration.prompt_builder import build_prompt, to_langchain_messages

logger = structlog.get_logger(__name__)


class ChatCompleter(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


class AssistantState(TypedDict):
    """State for the request/response workflow graph"""
    conversation_id: str
    user_input: str
    messages: Annotated[List[BaseMessage], add_messages]
    prompt: Optional[str]
    reply: Optional[str]
    prose: Optional[str]
    actions: List[Any]
    results: List[ActionResult]
    display_text: Optional[str]
    handled_locally: bool
    error: Optional[str]
    trace: Annotated[List[str], operator.add]


class AssistantReply(BaseModel):
    """What one user message produced"""
    conversation_id: str
    display_text: str
    results: List[ActionResult] = Field(default_factory=list)
    handled_locally: bool = False
    error: Optional[str] = None


class TaskAssistant:
    """Runs one chat turn: shorthand edit, or model call plus reconciliation"""

    def __init__(
        self,
        session: ConversationSessionManager,
        chat_client: ChatCompleter,
        now=datetime.now,
    ):
        self.session = session
        self.chat_client = chat_client
        self.now = now
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the turn workflow graph"""

        workflow = StateGraph(AssistantState)

        workflow.add_node("shorthand_editor", self.shorthand_node)
        workflow.add_node("prompt_builder", self.prompt_node)
        workflow.add_node("model_caller", self.model_node)
        workflow.add_node("action_extractor", self.extraction_node)
        workflow.add_node("action_reconciler", self.reconcile_node)
        workflow.add_node("reply_synthesizer", self.synthesis_node)
        workflow.add_node("error_handler", self.error_handler_node)
        workflow.add_node("reply_recorder", self.record_node)

        workflow.set_entry_point("shorthand_editor")

        # Local edits never reach the backend
        workflow.add_conditional_edges(
            "shorthand_editor",
            self.route_after_shorthand,
            {
                "handled": "reply_recorder",
                "model": "prompt_builder"
            }
        )
        workflow.add_edge("prompt_builder", "model_caller")

        workflow.add_conditional_edges(
            "model_caller",
            self.check_model_result,
            {
                "success": "action_extractor",
                "error": "error_handler"
            }
        )
        workflow.add_edge("action_extractor", "action_reconciler")
        workflow.add_edge("action_reconciler", "reply_synthesizer")
        workflow.add_edge("reply_synthesizer", "reply_recorder")
        workflow.add_edge("error_handler", "reply_recorder")
        workflow.add_edge("reply_recorder", END)

        return workflow.compile()

    async def shorthand_node(self, state: AssistantState) -> Dict[str, Any]:
        """Apply "edit it to X" style messages to the last referenced task"""

        replacement = detect_edit_shorthand(state["user_input"])
        store = self.session.task_store_for(state["conversation_id"])
        target = store.last_referenced()

        if replacement and target is not None:
            old_text = store.edit(target.task.id, replacement)
            logger.info("Applied edit shorthand", task_id=target.task.id)
            result = ActionResult(
                success=True,
                action={"action": "edit", "id": target.task.id, "task": replacement},
                operation=Operation.EDITED,
                task=target.task.model_copy(),
                old_text=old_text,
                new_text=replacement,
            )
            return {
                "handled_locally": True,
                "results": [result],
                "display_text": f"Updated the previous task to: {replacement}",
                "trace": ["shorthand_editor"],
            }

        return {"handled_locally": False, "trace": ["shorthand_editor"]}

    async def prompt_node(self, state: AssistantState) -> Dict[str, Any]:
        """Embed the current tasks and history into the backend prompt"""

        store = self.session.task_store_for(state["conversation_id"])
        prompt = build_prompt(
            state["user_input"],
            state["messages"],
            store.context_rows(),
            now=self.now(),
        )
        return {"prompt": prompt, "trace": ["prompt_builder"]}

    async def model_node(self, state: AssistantState) -> Dict[str, Any]:
        """Call the backend while a pending placeholder holds the reply's place"""

        logger.info("Calling chat backend", prompt_chars=len(state["prompt"]))
        self.session.begin_pending_reply(state["conversation_id"])

        try:
            reply = await self.chat_client.complete(state["prompt"])
        except TransportError as e:
            logger.error("Chat backend failed", error=str(e))
            return {"error": str(e), "trace": ["model_caller"]}
        except Exception as e:
            logger.exception("Unexpected chat backend failure")
            return {"error": str(e) or e.__class__.__name__, "trace": ["model_caller"]}

        return {"reply": reply, "trace": ["model_caller"]}

    async def extraction_node(self, state: AssistantState) -> Dict[str, Any]:
        """Split the reply into its JSON action list and prose"""

        reply = state["reply"] or ""
        extracted = extract_first_json(reply)
        actions = parse_action_list(extracted.json_text)

        if actions is None:
            # Malformed JSON: no actions, show the reply untouched
            return {"actions": [], "prose": reply, "trace": ["action_extractor"]}

        return {"actions": actions, "prose": extracted.rest_text, "trace": ["action_extractor"]}

    async def reconcile_node(self, state: AssistantState) -> Dict[str, Any]:
        """Apply extracted actions to the conversation's tasks"""

        if not state["actions"]:
            return {"results": [], "trace": ["action_reconciler"]}
        if not self._conversation_exists(state):
            logger.warning("Conversation deleted before reply, skipping actions", actions=len(state["actions"]))
            return {"results": [], "trace": ["action_reconciler"]}

        store = self.session.task_store_for(state["conversation_id"])
        results = ActionReconciler(store, now=self.now).apply(state["actions"])
        return {"results": results, "trace": ["action_reconciler"]}

    async def synthesis_node(self, state: AssistantState) -> Dict[str, Any]:
        """Compose the operation summary and the reply prose"""

        display_text = ""
        summary = summarize_results(state["results"])
        if summary:
            display_text = summary + "\n\n"

        prose = (state["prose"] or "").strip()
        display_text += prose if prose else (state["reply"] or "").strip()

        return {"display_text": display_text, "trace": ["reply_synthesizer"]}

    async def error_handler_node(self, state: AssistantState) -> Dict[str, Any]:
        """Turn a transport failure into a transcript message"""

        return {"display_text": f"Error: {state['error']}", "trace": ["error_handler"]}

    async def record_node(self, state: AssistantState) -> Dict[str, Any]:
        """Write the assistant reply into the originating conversation"""

        if not self._conversation_exists(state):
            logger.warning("Conversation deleted before reply, dropping it", conversation_id=state["conversation_id"])
            return {"trace": ["reply_recorder"]}

        if state["handled_locally"]:
            self.session.record_message(
                MessageRole.ASSISTANT,
                state["display_text"],
                conversation_id=state["conversation_id"],
            )
        else:
            self.session.resolve_pending_reply(
                state["display_text"],
                conversation_id=state["conversation_id"],
            )
        return {"trace": ["reply_recorder"]}

    def _conversation_exists(self, state: AssistantState) -> bool:
        return state["conversation_id"] in self.session.conversations

    def route_after_shorthand(self, state: AssistantState) -> Literal["handled", "model"]:
        return "handled" if state.get("handled_locally") else "model"

    def check_model_result(self, state: AssistantState) -> Literal["success", "error"]:
        return "error" if state.get("error") else "success"

    async def send(self, message: str) -> AssistantReply:
        """Process a user message for the active conversation"""

        text = (message or "").strip()
        if not text:
            raise GuardViolation("Please enter a message first!")

        conversation_id = self.session.active_id
        self.session.record_message(MessageRole.USER, text, conversation_id=conversation_id)
        history = to_langchain_messages(self.session.history(conversation_id))

        initial_state: AssistantState = {
            "conversation_id": conversation_id,
            "user_input": text,
            "messages": history,
            "prompt": None,
            "reply": None,
            "prose": None,
            "actions": [],
            "results": [],
            "display_text": None,
            "handled_locally": False,
            "error": None,
            "trace": [],
        }

        final_state = await self.workflow.ainvoke(initial_state)
        logger.info("Turn complete", trace=final_state["trace"], results=len(final_state["results"]))

        return AssistantReply(
            conversation_id=conversation_id,
            display_text=final_state["display_text"] or "",
            results=final_state["results"],
            handled_locally=final_state["handled_locally"],
            error=final_state["error"],
        )
