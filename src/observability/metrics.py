"""Prometheus Metrics - Session and provider observability.

Exports:
- Session lifecycle counts (started, ended, failed starts)
- Speak task outcomes by routing mode
- Assistant run latency and poll counts
- Stale replies discarded after a session ended
- Provider errors by component
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# -----------------------------------------------------------------------------
# Latency Histograms
# -----------------------------------------------------------------------------

# Assistant run: message posted → run leaves pending states
ASSISTANT_RUN_SECONDS = Histogram(
    "avatar_assistant_run_seconds",
    "Assistant run duration (message posted to run finished)",
    buckets=[0.5, 1.0, 2.0, 3.0, 5.0, 8.0, 13.0, 21.0, 34.0, 60.0, 120.0],
)

ASSISTANT_RUN_POLLS = Histogram(
    "avatar_assistant_run_polls",
    "Run status checks per assistant turn",
    buckets=[1, 2, 3, 5, 8, 13, 21, 34, 60],
)

SESSION_START_SECONDS = Histogram(
    "avatar_session_start_seconds",
    "Time from start request to active session",
    buckets=[0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 8.0, 13.0],
)

# -----------------------------------------------------------------------------
# Counters
# -----------------------------------------------------------------------------

SESSION_STARTED = Counter(
    "avatar_sessions_started_total",
    "Total avatar sessions started",
)

SESSION_ENDED = Counter(
    "avatar_sessions_ended_total",
    "Total avatar sessions ended",
    ["reason"],  # user_request, stream_disconnected, shutdown
)

SESSION_START_FAILED = Counter(
    "avatar_session_start_failures_total",
    "Failed session start attempts",
    ["stage"],  # credentials, avatar, assistant
)

SPEAK_TASKS = Counter(
    "avatar_speak_tasks_total",
    "Submitted speak tasks",
    ["mode", "outcome"],  # direct|assistant, ok|failed
)

STALE_RESULTS = Counter(
    "avatar_stale_results_total",
    "Results discarded because their session was gone",
    ["operation"],
)

ERRORS = Counter(
    "avatar_errors_total",
    "Total errors by component",
    ["component", "type"],  # provider stage or orchestrator operation
)

# -----------------------------------------------------------------------------
# Gauges
# -----------------------------------------------------------------------------

ACTIVE_SESSIONS = Gauge(
    "avatar_active_sessions",
    "Currently active avatar sessions (0 or 1)",
)

VOICE_CHAT_ACTIVE = Gauge(
    "avatar_voice_chat_active",
    "Whether microphone capture is bound to the session",
)

# -----------------------------------------------------------------------------
# Info
# -----------------------------------------------------------------------------

BUILD_INFO = Info(
    "avatar_assistant_build",
    "Build information",
)


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def record_session_start(duration_s: float) -> None:
    """Record session reaching the active state."""
    SESSION_STARTED.inc()
    SESSION_START_SECONDS.observe(duration_s)
    ACTIVE_SESSIONS.set(1)


def record_session_start_failed(stage: str) -> None:
    """Record a failed start attempt."""
    SESSION_START_FAILED.labels(stage=stage).inc()


def record_session_end(reason: str = "user_request") -> None:
    """Record session end."""
    SESSION_ENDED.labels(reason=reason).inc()
    ACTIVE_SESSIONS.set(0)
    VOICE_CHAT_ACTIVE.set(0)


def record_speak(mode: str, outcome: str) -> None:
    """Record a speak task outcome."""
    SPEAK_TASKS.labels(mode=mode, outcome=outcome).inc()


def record_assistant_run(duration_s: float, polls: int) -> None:
    """Record a finished assistant run."""
    ASSISTANT_RUN_SECONDS.observe(duration_s)
    ASSISTANT_RUN_POLLS.observe(polls)


def record_stale_result(operation: str) -> None:
    """Record a discarded stale result."""
    STALE_RESULTS.labels(operation=operation).inc()


def record_voice_chat(active: bool) -> None:
    """Update voice chat gauge."""
    VOICE_CHAT_ACTIVE.set(1 if active else 0)


def record_error(component: str, error_type: str) -> None:
    """Record error by component."""
    ERRORS.labels(component=component, type=error_type).inc()


def set_build_info(version: str, commit: str, build_time: str) -> None:
    """Set build information."""
    BUILD_INFO.info({
        "version": version,
        "commit": commit,
        "build_time": build_time,
    })
