"""Tests for launching streams and VODs with streamlink."""

import sys
import threading

import pytest

from livestream_monitor.core.launcher import (
    ERROR_FOOTER,
    LAUNCHING_MESSAGE,
    NON_PARTNER_NOTE,
    StreamLauncher,
    StreamlinkNotFoundError,
    _validate_additional_args,
    is_absolute_url,
    resolve_quality,
)
from livestream_monitor.core.models import Channel, Livestream, StreamQuality
from livestream_monitor.core.settings import StreamlinkSettings


class Recorder:
    """Collects launcher output and waits for the exit callback."""

    def __init__(self):
        self.lines = []
        self.exit = None
        self._done = threading.Event()

    def on_output(self, line, is_error):
        self.lines.append((line, is_error))

    def on_exit(self, exit_code, keep_open):
        self.exit = (exit_code, keep_open)
        self._done.set()

    def wait(self):
        assert self._done.wait(10), "launcher never reported exit"
        return self.exit


@pytest.fixture
def launcher():
    return StreamLauncher(StreamlinkSettings(path=sys.executable))


def fake_streamlink(monkeypatch, launcher, script):
    """Make the launcher run a Python snippet instead of streamlink."""
    calls = []

    def build_command(url, quality):
        calls.append((url, quality))
        return [sys.executable, "-c", script]

    monkeypatch.setattr(launcher, "build_command", build_command)
    return calls


def stream(is_partner=True, live=True):
    return Livestream(channel=Channel(channel_id="alice"), live=live, is_partner=is_partner)


# --- quality ---


def test_partner_keeps_requested_quality():
    assert resolve_quality(stream(is_partner=True), StreamQuality.LOW) == StreamQuality.LOW


def test_non_partner_gets_source():
    assert resolve_quality(stream(is_partner=False), StreamQuality.LOW) == StreamQuality.SOURCE


# --- command line ---


def test_build_command():
    launcher = StreamLauncher(
        StreamlinkSettings(
            path="streamlink",
            player="mpv",
            player_args="--no-border",
            additional_args="--twitch-low-latency",
        )
    )
    cmd = launcher.build_command("https://www.twitch.tv/alice/", StreamQuality.HIGH)
    assert cmd == [
        "streamlink",
        "--player",
        "mpv",
        "--player-args",
        "--no-border",
        "--twitch-low-latency",
        "https://www.twitch.tv/alice/",
        "high",
    ]


def test_build_command_minimal():
    launcher = StreamLauncher(StreamlinkSettings(path="streamlink"))
    assert launcher.build_command("https://x.tv/a", StreamQuality.SOURCE) == [
        "streamlink",
        "https://x.tv/a",
        "source",
    ]


def test_additional_args_reject_bare_words():
    assert _validate_additional_args("--retry-open 3 ; rm") == ["--retry-open"]


def test_additional_args_bad_quoting():
    assert _validate_additional_args('--title "unterminated') == []


def test_is_absolute_url():
    assert is_absolute_url("https://www.twitch.tv/videos/1")
    assert not is_absolute_url("/videos/1")
    assert not is_absolute_url("")
    assert not is_absolute_url(None)


# --- launch ---


def test_missing_streamlink_raises():
    launcher = StreamLauncher(StreamlinkSettings(path="/nonexistent/streamlink"))
    with pytest.raises(StreamlinkNotFoundError) as excinfo:
        launcher.launch(stream())
    assert excinfo.value.path == "/nonexistent/streamlink"


def test_offline_stream_is_not_launched(monkeypatch, launcher):
    calls = fake_streamlink(monkeypatch, launcher, "pass")
    assert launcher.launch(stream(live=False)) is None
    assert calls == []


def test_clean_exit_closes(monkeypatch, launcher):
    fake_streamlink(monkeypatch, launcher, "print('[cli][info] Starting player')")
    recorder = Recorder()
    launcher.launch(stream(), on_output=recorder.on_output, on_exit=recorder.on_exit)

    assert recorder.wait() == (0, False)
    assert recorder.lines[0] == (LAUNCHING_MESSAGE, False)
    assert ("[cli][info] Starting player", False) in recorder.lines
    assert all(not is_error for _, is_error in recorder.lines)


def test_stderr_keeps_window_open(monkeypatch, launcher):
    script = "import sys; sys.stderr.write('error: No playable streams found\\n')"
    fake_streamlink(monkeypatch, launcher, script)
    recorder = Recorder()
    launcher.launch(stream(), on_output=recorder.on_output, on_exit=recorder.on_exit)

    assert recorder.wait() == (0, True)
    assert ("error: No playable streams found", True) in recorder.lines
    assert recorder.lines[-1] == (ERROR_FOOTER, True)


def test_non_zero_exit_keeps_window_open(monkeypatch, launcher):
    fake_streamlink(monkeypatch, launcher, "raise SystemExit(3)")
    recorder = Recorder()
    launcher.launch(stream(), on_output=recorder.on_output, on_exit=recorder.on_exit)

    assert recorder.wait() == (3, True)
    assert recorder.lines[-1] == (ERROR_FOOTER, True)


def test_non_partner_launch_notes_fallback(monkeypatch, launcher):
    calls = fake_streamlink(monkeypatch, launcher, "pass")
    recorder = Recorder()
    launcher.launch(
        stream(is_partner=False),
        StreamQuality.MEDIUM,
        on_output=recorder.on_output,
        on_exit=recorder.on_exit,
    )
    recorder.wait()

    assert calls == [("https://www.twitch.tv/alice/", StreamQuality.SOURCE)]
    assert (NON_PARTNER_NOTE, False) in recorder.lines


def test_non_partner_source_request_has_no_note(monkeypatch, launcher):
    fake_streamlink(monkeypatch, launcher, "pass")
    recorder = Recorder()
    launcher.launch(
        stream(is_partner=False),
        StreamQuality.SOURCE,
        on_output=recorder.on_output,
        on_exit=recorder.on_exit,
    )
    recorder.wait()
    assert (NON_PARTNER_NOTE, False) not in recorder.lines


def test_default_quality_from_settings(monkeypatch):
    launcher = StreamLauncher(
        StreamlinkSettings(path=sys.executable, default_quality=StreamQuality.LOW)
    )
    calls = fake_streamlink(monkeypatch, launcher, "pass")
    recorder = Recorder()
    launcher.launch(stream(), on_output=recorder.on_output, on_exit=recorder.on_exit)
    recorder.wait()
    assert calls[0][1] == StreamQuality.LOW


def test_playing_stream_is_tracked(monkeypatch, launcher):
    fake_streamlink(monkeypatch, launcher, "import time; time.sleep(30)")
    launcher.launch(stream())
    assert launcher.is_playing("twitch:alice")

    assert launcher.stop_stream("twitch:alice")
    assert not launcher.is_playing("twitch:alice")


# --- VODs ---


def test_open_vod_rejects_relative_url(launcher):
    with pytest.raises(ValueError):
        launcher.open_vod("videos/123")


def test_open_vod(monkeypatch, launcher):
    calls = fake_streamlink(monkeypatch, launcher, "pass")
    recorder = Recorder()
    launcher.open_vod(
        " https://www.twitch.tv/videos/123 ",
        on_output=recorder.on_output,
        on_exit=recorder.on_exit,
    )
    assert recorder.wait() == (0, False)
    assert calls == [("https://www.twitch.tv/videos/123", StreamQuality.SOURCE)]
