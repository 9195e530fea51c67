import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "taskpilot"
) -> None:
    """Route structlog through stdlib logging with JSON or console output"""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            add_service_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Process-wide fields; conversation_id is bound per activation
    structlog.contextvars.bind_contextvars(
        service=service_name,
        version=os.getenv("SERVICE_VERSION", "unknown"),
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add conversation context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    # Conversation the request is working on, if bound
    conversation_id = structlog.contextvars.get_contextvars().get("conversation_id")
    if conversation_id and "conversation_id" not in event_dict:
        event_dict["conversation_id"] = conversation_id

    return event_dict


def bind_conversation(conversation_id: Optional[str]) -> None:
    """Tag subsequent log entries with the active conversation"""

    if conversation_id:
        structlog.contextvars.bind_contextvars(conversation_id=conversation_id)
    else:
        structlog.contextvars.unbind_contextvars("conversation_id")


class TaskLogger:
    """Specialized logger for task assistant events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_task_action(
        self,
        operation: str,
        success: bool,
        task_id: Optional[str] = None,
        error: Optional[str] = None,
        **kwargs
    ):
        """Log one reconciled task action"""

        self.logger.info(
            "task_action",
            operation=operation,
            success=success,
            task_id=task_id,
            error=error,
            **kwargs
        )

    def log_model_call(
        self,
        prompt_chars: int,
        duration_ms: Optional[float] = None,
        reply_chars: Optional[int] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log a round trip to the chat backend"""

        self.logger.info(
            "model_call",
            prompt_chars=prompt_chars,
            reply_chars=reply_chars,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_session_event(
        self,
        event_type: str,
        conversation_id: Optional[str],
        details: Optional[Dict[str, Any]] = None
    ):
        """Log conversation lifecycle events"""

        self.logger.info(
            "session_event",
            event_type=event_type,
            conversation_id=conversation_id,
            details=details or {}
        )


# Global logger instance
task_logger = TaskLogger("taskpilot")
