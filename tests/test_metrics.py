"""Tests for Prometheus Metrics."""

from prometheus_client import REGISTRY

from src.observability.metrics import (
    ACTIVE_SESSIONS,
    VOICE_CHAT_ACTIVE,
    record_assistant_run,
    record_error,
    record_session_end,
    record_session_start,
    record_session_start_failed,
    record_speak,
    record_stale_result,
    record_voice_chat,
    set_build_info,
)


def sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestSessionMetrics:
    def test_session_start_sets_gauge(self):
        before = sample("avatar_sessions_started_total")

        record_session_start(0.42)

        assert sample("avatar_sessions_started_total") == before + 1
        assert ACTIVE_SESSIONS._value.get() == 1

    def test_session_end_resets_gauges(self):
        before = sample("avatar_sessions_ended_total", {"reason": "user_request"})
        record_session_start(0.1)
        record_voice_chat(True)

        record_session_end()

        assert sample("avatar_sessions_ended_total", {"reason": "user_request"}) == before + 1
        assert ACTIVE_SESSIONS._value.get() == 0
        assert VOICE_CHAT_ACTIVE._value.get() == 0

    def test_start_failure_by_stage(self):
        before = sample("avatar_session_start_failures_total", {"stage": "credentials"})

        record_session_start_failed("credentials")

        assert sample("avatar_session_start_failures_total", {"stage": "credentials"}) == before + 1


class TestSpeakAndAssistantMetrics:
    def test_speak_outcome(self):
        labels = {"mode": "direct", "outcome": "ok"}
        before = sample("avatar_speak_tasks_total", labels)

        record_speak("direct", "ok")

        assert sample("avatar_speak_tasks_total", labels) == before + 1

    def test_assistant_run(self):
        before = sample("avatar_assistant_run_polls_count")

        record_assistant_run(2.5, polls=3)

        assert sample("avatar_assistant_run_polls_count") == before + 1

    def test_stale_result(self):
        before = sample("avatar_stale_results_total", {"operation": "assistant_reply"})

        record_stale_result("assistant_reply")

        assert sample("avatar_stale_results_total", {"operation": "assistant_reply"}) == before + 1

    def test_error(self):
        labels = {"component": "avatar", "type": "SpeakError"}
        before = sample("avatar_errors_total", labels)

        record_error("avatar", "SpeakError")

        assert sample("avatar_errors_total", labels) == before + 1


class TestBuildInfo:
    def test_set_build_info(self):
        set_build_info("0.1.0", "abc123", "2026-01-01")

        labels = {"version": "0.1.0", "commit": "abc123", "build_time": "2026-01-01"}
        assert sample("avatar_assistant_build_info", labels) == 1.0
