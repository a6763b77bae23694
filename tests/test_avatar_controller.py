"""Tests for the avatar session controller and playback sink."""

import pytest
from unittest.mock import AsyncMock

from src.avatar.controller import AvatarSessionController, AvatarSessionState
from src.avatar.interface import AvatarSession, StreamHandle
from src.avatar.mock_provider import MockAvatarProvider
from src.avatar.playback import PlaybackRejected, PlaybackSink
from src.exceptions import (
    NotInitializedError,
    ProviderUnavailableError,
    SpeakError,
    VoiceChatToggleError,
)


def make_controller(fail_on=None, calls=None, sink=None):
    providers: list[MockAvatarProvider] = []

    def factory(token):
        provider = MockAvatarProvider(token, fail_on=fail_on, calls=calls)
        providers.append(provider)
        return provider

    return AvatarSessionController(factory, sink=sink), providers


class TestPlaybackSink:
    @pytest.mark.asyncio
    async def test_play_and_clear_notify_listeners(self):
        sink = PlaybackSink()
        events = []
        sink.add_listener(lambda action, stream: events.append((action, stream)))
        stream = StreamHandle(url="wss://x", access_token="a", session_id="s")

        sink.attach(stream)
        await sink.play()
        assert sink.is_playing is True
        assert sink.to_dict()["playing"] is True

        await sink.clear()
        assert sink.stream is None
        assert sink.to_dict() is None
        assert events == [("play", stream), ("clear", None)]

    @pytest.mark.asyncio
    async def test_clear_without_stream_is_silent(self):
        sink = PlaybackSink()
        listener = AsyncMock()
        sink.add_listener(listener)

        await sink.clear()

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_playback_keeps_stream(self):
        sink = PlaybackSink()

        def refuse(action, stream):
            raise RuntimeError("autoplay blocked")

        sink.add_listener(refuse)
        sink.attach(StreamHandle(url="wss://x", access_token="a", session_id="s"))

        with pytest.raises(PlaybackRejected, match="autoplay blocked"):
            await sink.play()

        assert sink.stream is not None
        assert sink.is_playing is False


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_binds_stream_and_plays(self):
        controller, providers = make_controller()

        session = await controller.open("tok")

        assert controller.state is AvatarSessionState.OPEN
        assert session.session_id.startswith("mock-")
        assert providers[0].token == "tok"
        assert controller.sink.stream is not None
        assert controller.sink.stream.session_id == session.session_id
        assert controller.sink.is_playing is True

    @pytest.mark.asyncio
    async def test_blocked_playback_is_not_a_failure(self):
        sink = PlaybackSink()

        def refuse(action, stream):
            if action == "play":
                raise RuntimeError("autoplay blocked")

        sink.add_listener(refuse)
        controller, _ = make_controller(sink=sink)

        await controller.open("tok")

        assert controller.state is AvatarSessionState.OPEN
        assert sink.stream is not None
        assert sink.is_playing is False

    @pytest.mark.asyncio
    async def test_open_failure_releases_provider(self):
        controller, _ = make_controller(fail_on={"create_start_avatar"})

        with pytest.raises(ProviderUnavailableError):
            await controller.open("tok")

        assert controller.state is AvatarSessionState.CLOSED
        assert controller.provider is None


class TestSessionCommands:
    @pytest.mark.asyncio
    async def test_speak_verbatim(self):
        controller, providers = make_controller()
        session = await controller.open("tok")

        await controller.speak(session, "Hello world")

        assert providers[0].spoken == ["Hello world"]
        assert ("speak", "Hello world", "repeat") in providers[0].calls

    @pytest.mark.asyncio
    async def test_speak_without_session(self):
        controller, _ = make_controller()

        with pytest.raises(NotInitializedError):
            await controller.speak(AvatarSession("nope"), "hi")

    @pytest.mark.asyncio
    async def test_speak_rejected(self):
        controller, _ = make_controller(fail_on={"speak"})
        session = await controller.open("tok")

        with pytest.raises(SpeakError) as exc_info:
            await controller.speak(session, "hi")

        assert exc_info.value.details["text_length"] == 2
        assert controller.state is AvatarSessionState.OPEN

    @pytest.mark.asyncio
    async def test_voice_chat_toggle(self):
        controller, providers = make_controller()
        session = await controller.open("tok")

        await controller.start_voice_chat(session)
        assert providers[0].listening is True

        await controller.stop_voice_chat(session)
        assert providers[0].listening is False

    @pytest.mark.asyncio
    async def test_voice_chat_failure(self):
        controller, _ = make_controller(fail_on={"start_voice_chat"})
        session = await controller.open("tok")

        with pytest.raises(VoiceChatToggleError) as exc_info:
            await controller.start_voice_chat(session)

        assert exc_info.value.action == "start"

    @pytest.mark.asyncio
    async def test_stale_session_handle_rejected(self):
        controller, _ = make_controller()
        old = await controller.open("t1")
        await controller.close(old)
        await controller.open("t2")

        with pytest.raises(NotInitializedError):
            await controller.speak(old, "hi")


class TestClose:
    @pytest.mark.asyncio
    async def test_stops_voice_chat_before_session(self):
        calls: list[tuple] = []
        controller, _ = make_controller(calls=calls)
        session = await controller.open("tok")
        await controller.start_voice_chat(session)

        await controller.close(session, voice_chat_active=True)

        operations = [c[0] for c in calls]
        assert operations.index("stop_voice_chat") < operations.index("stop_avatar")
        assert controller.sink.stream is None
        assert controller.state is AvatarSessionState.CLOSED

    @pytest.mark.asyncio
    async def test_voice_stop_failure_does_not_block_teardown(self):
        calls: list[tuple] = []
        controller, _ = make_controller(fail_on={"stop_voice_chat"}, calls=calls)
        session = await controller.open("tok")

        await controller.close(session, voice_chat_active=True)

        assert calls[-1][0] == "stop_avatar"
        assert controller.provider is None

    @pytest.mark.asyncio
    async def test_sink_cleared_when_stop_fails(self):
        controller, _ = make_controller(fail_on={"stop_avatar"})
        session = await controller.open("tok")

        with pytest.raises(ProviderUnavailableError):
            await controller.close(session)

        assert controller.sink.stream is None
        assert controller.state is AvatarSessionState.CLOSED


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_provider_disconnect_clears_sink_and_notifies(self):
        controller, providers = make_controller()
        listener = AsyncMock()
        controller.add_disconnect_listener(listener)
        await controller.open("tok")

        await providers[0].simulate_disconnect()

        assert controller.sink.stream is None
        assert controller.state is AvatarSessionState.CLOSED
        listener.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_report_disconnected(self):
        controller, _ = make_controller()
        listener = AsyncMock()
        controller.add_disconnect_listener(listener)

        assert await controller.report_disconnected() is False

        await controller.open("tok")
        assert await controller.report_disconnected() is True
        listener.assert_awaited_once()
        assert controller.provider is None

    @pytest.mark.asyncio
    async def test_report_disconnected_stops_remote_session(self):
        calls: list[tuple] = []
        controller, providers = make_controller(calls=calls)
        await controller.open("tok")

        await controller.report_disconnected()

        assert [c[0] for c in calls] == ["create_start_avatar", "stop_avatar"]
        assert providers[0].is_open is False
        assert controller.sink.stream is None

    @pytest.mark.asyncio
    async def test_report_disconnected_stop_failure_still_disconnects(self):
        controller, _ = make_controller(fail_on={"stop_avatar"})
        listener = AsyncMock()
        controller.add_disconnect_listener(listener)
        await controller.open("tok")

        assert await controller.report_disconnected() is True

        listener.assert_awaited_once()
        assert controller.state is AvatarSessionState.CLOSED
        assert controller.sink.stream is None
