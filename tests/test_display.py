"""Tests for display sinks and the overlay wire format."""

import json
import os
import time
from io import StringIO

import pytest
from rich.console import Console

from hotkeytranslator.display import (
    VARIANT,
    WORKING,
    ConsoleDisplaySink,
    DisplayMessage,
    PipeDisplaySink,
    QueueDisplaySink,
    SessionFilter,
    encode_message,
    pipe_path,
)


class TestEncodeMessage:
    def test_working(self):
        assert encode_message(DisplayMessage(kind=WORKING)) == b"SHOW_RHOMBUS"

    def test_variant(self):
        data = encode_message(DisplayMessage(VARIANT, "abc", "google", "Привет"))
        prefix, payload = data.decode("utf-8").split(":", 1)
        assert prefix == "SHOW_VARIANT"
        assert json.loads(payload) == {"SessionId": "abc", "VariantName": "google", "Text": "Привет"}

    def test_variant_keeps_non_ascii(self):
        data = encode_message(DisplayMessage(VARIANT, "abc", "Grok", "Привет"))
        assert "Привет".encode("utf-8") in data


class TestSessionFilter:
    def test_accepts_current_session(self):
        sessions = SessionFilter()
        assert sessions.accept("a")
        assert sessions.accept("a")

    def test_drops_superseded_session(self):
        sessions = SessionFilter()
        sessions.accept("a")
        sessions.accept("b")
        assert not sessions.accept("a")
        assert sessions.accept("b")
        assert sessions.current == "b"


class TestQueueDisplaySink:
    def test_messages_in_order(self):
        sink = QueueDisplaySink()
        sink.show_working()
        sink.show_variant("s1", "google", "Hola")
        assert sink.drain() == [
            DisplayMessage(kind=WORKING),
            DisplayMessage(kind=VARIANT, session_id="s1", provider_name="google", text="Hola"),
        ]
        assert sink.drain() == []


class TestConsoleDisplaySink:
    def _sink(self):
        output = StringIO()
        return ConsoleDisplaySink(Console(file=output, width=120)), output

    def test_prints_variants(self):
        sink, output = self._sink()
        sink.show_variant("s1", "google", "Привет [мир]")
        assert "google" in output.getvalue()
        assert "Привет [мир]" in output.getvalue()

    def test_ignores_superseded_session(self):
        sink, output = self._sink()
        sink.show_variant("s1", "google", "first")
        sink.show_variant("s2", "google", "second")
        sink.show_variant("s1", "Grok", "late")
        assert "late" not in output.getvalue()


class TestPipeDisplaySink:
    def test_pipe_path(self):
        path = pipe_path("TestPipe")
        if os.name == "nt":
            assert path == r"\\.\pipe\TestPipe"
        else:
            assert path.endswith("TestPipe")

    def test_writes_one_message_per_connection(self, tmp_path, monkeypatch):
        target = tmp_path / "overlay"
        target.write_bytes(b"")
        sink = PipeDisplaySink("unused")
        monkeypatch.setattr(sink, "_path", str(target))

        sent = []
        real_send = sink._send

        def record(data):
            sent.append(data)
            real_send(data)

        monkeypatch.setattr(sink, "_send", record)
        sink.show_working()
        sink.show_variant("s1", "google", "Hola")
        sink.close()

        assert sent[0] == b"SHOW_RHOMBUS"
        assert sent[1].startswith(b"SHOW_VARIANT:")
        # Every message opens the file anew and writes at offset 0.
        assert target.read_bytes().startswith(b"SHOW_VARIANT:")

    def test_missing_pipe_is_logged(self, tmp_path, monkeypatch, caplog):
        sink = PipeDisplaySink("unused")
        monkeypatch.setattr(sink, "_path", str(tmp_path / "missing"))
        sink.show_working()
        sink.close()
        assert any("Could not connect" in r.getMessage() for r in caplog.records)

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs POSIX FIFOs")
    def test_large_message_reaches_fifo_reader_whole(self, tmp_path, monkeypatch):
        path = tmp_path / "overlay"
        os.mkfifo(path)
        reader = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
        os.set_blocking(reader, True)

        text = "x" * 200_000
        expected = encode_message(DisplayMessage(VARIANT, "s1", "Grok", text))
        sink = PipeDisplaySink("unused")
        monkeypatch.setattr(sink, "_path", str(path))
        try:
            sink.show_variant("s1", "Grok", text)
            received = bytearray()
            deadline = time.monotonic() + 5
            while len(received) < len(expected) and time.monotonic() < deadline:
                chunk = os.read(reader, 65536)
                if not chunk:
                    # No writer connected yet.
                    time.sleep(0.01)
                received.extend(chunk)
            sink.close()
        finally:
            os.close(reader)

        assert bytes(received) == expected


class TestSessionFilterLimit:
    def test_retired_sessions_are_bounded(self):
        sessions = SessionFilter(retired_limit=4)
        for i in range(100):
            assert sessions.accept(f"s{i}")
        assert len(sessions._retired) == 4
        assert sessions.current == "s99"
        assert not sessions.accept("s98")
        assert not sessions.accept("s95")
