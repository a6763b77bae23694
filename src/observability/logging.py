"""Structured Logging - JSON logs with correlation.

Provides structured logging for:
- Session events (start, end, state changes)
- Avatar stream events (ready, disconnected, playback)
- Assistant conversation events (thread, runs, replies)
- Error tracking

All session-scoped logs include session_id for correlation.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; else human-readable
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    level_name = "WARNING" if level.upper() == "WARN" else level.upper()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Also route standard logging (uvicorn, httpx) to stdout
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name),
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


# -----------------------------------------------------------------------------
# Event-specific logging functions
# -----------------------------------------------------------------------------


class SessionLogger:
    """Logger for orchestrator session events."""

    def __init__(self, session_id: str | None = None) -> None:
        self._log = get_logger("session")
        if session_id:
            self._log = self._log.bind(session_id=session_id)

    def bind(self, session_id: str) -> "SessionLogger":
        """Return a logger bound to a newly opened session."""
        return SessionLogger(session_id)

    def session_started(self, metadata: dict[str, Any] | None = None) -> None:
        """Log session start."""
        self._log.info(
            "session_started",
            event_type="session.started",
            **(metadata or {}),
        )

    def session_start_failed(self, stage: str, error: dict[str, Any]) -> None:
        """Log a failed start attempt and the stage it failed at."""
        self._log.error(
            "session_start_failed",
            event_type="session.start_failed",
            stage=stage,
            error=error,
        )

    def session_ended(self, reason: str, duration_s: float) -> None:
        """Log session end."""
        self._log.info(
            "session_ended",
            event_type="session.ended",
            reason=reason,
            duration_s=duration_s,
        )

    def state_change(
        self,
        old_state: str,
        new_state: str,
        reason: str,
    ) -> None:
        """Log state transition."""
        self._log.info(
            "state_change",
            event_type="session.state_change",
            old_state=old_state,
            new_state=new_state,
            reason=reason,
        )

    def operation_failed(self, operation: str, error: dict[str, Any]) -> None:
        """Log a recoverable operation failure surfaced as a notice."""
        self._log.warning(
            "operation_failed",
            event_type="session.operation_failed",
            operation=operation,
            error=error,
        )

    def stale_result_discarded(
        self,
        operation: str,
        started_generation: int,
        current_generation: int,
    ) -> None:
        """Log a result that arrived after its session went away."""
        self._log.info(
            "stale_result_discarded",
            event_type="session.stale_result",
            operation=operation,
            started_generation=started_generation,
            current_generation=current_generation,
        )


class AvatarLogger:
    """Logger for avatar stream events."""

    def __init__(self, session_id: str | None = None) -> None:
        self._log = get_logger("avatar")
        if session_id:
            self._log = self._log.bind(session_id=session_id)

    def stream_ready(self, stream_url: str | None) -> None:
        """Log stream bound to the playback sink."""
        self._log.info(
            "stream_ready",
            event_type="avatar.stream_ready",
            stream_url=stream_url,
        )

    def playback_blocked(self, error: str) -> None:
        """Log playback refusal (for example, autoplay blocked)."""
        self._log.warning(
            "playback_blocked",
            event_type="avatar.playback_blocked",
            error=error,
        )

    def stream_disconnected(self) -> None:
        """Log provider-side stream disconnect."""
        self._log.info(
            "stream_disconnected",
            event_type="avatar.stream_disconnected",
        )

    def speak_sent(self, text_length: int, task_type: str) -> None:
        """Log speak task accepted by the provider."""
        self._log.debug(
            "speak_sent",
            event_type="avatar.speak",
            text_length=text_length,
            task_type=task_type,
        )

    def voice_chat_toggled(self, active: bool) -> None:
        """Log voice chat state change."""
        self._log.info(
            "voice_chat_toggled",
            event_type="avatar.voice_chat",
            active=active,
        )

    def teardown_error(self, step: str, error: str) -> None:
        """Log a failure during close that did not block teardown."""
        self._log.warning(
            "teardown_error",
            event_type="avatar.teardown_error",
            step=step,
            error=error,
        )


class ConversationLogger:
    """Logger for assistant conversation events."""

    def __init__(self, thread_id: str | None = None) -> None:
        self._log = get_logger("conversation")
        if thread_id:
            self._log = self._log.bind(thread_id=thread_id)

    def initialized(self, assistant_id: str, thread_id: str) -> None:
        """Log assistant and thread creation."""
        self._log.info(
            "assistant_initialized",
            event_type="conversation.initialized",
            assistant_id=assistant_id,
            thread_id=thread_id,
        )

    def run_created(self, run_id: str) -> None:
        """Log run creation."""
        self._log.debug(
            "run_created",
            event_type="conversation.run_created",
            run_id=run_id,
        )

    def run_finished(
        self,
        run_id: str,
        status: str,
        polls: int,
        elapsed_ms: float,
    ) -> None:
        """Log run leaving the pending states."""
        self._log.info(
            "run_finished",
            event_type="conversation.run_finished",
            run_id=run_id,
            status=status,
            polls=polls,
            elapsed_ms=elapsed_ms,
        )

    def empty_reply(self, run_id: str) -> None:
        """Log a completed run whose latest message carried no text."""
        self._log.warning(
            "empty_reply",
            event_type="conversation.empty_reply",
            run_id=run_id,
        )


# Initialize default logging configuration
def init_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Initialize logging with defaults.

    Call this once at application startup.
    """
    configure_logging(level=level, json_format=json_format)
