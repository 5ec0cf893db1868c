"""Tests for FrameDecoder."""

import json

import pytest

from agent_workspace.llm import FrameDecoder, StreamEvent


def openai(content: str) -> str:
    payload = {"choices": [{"delta": {"content": content}}]}
    return "data: " + json.dumps(payload, ensure_ascii=False) + "\n\n"


def anthropic_delta(text: str) -> str:
    payload = {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}}
    return "event: content_block_delta\ndata: " + json.dumps(payload, ensure_ascii=False) + "\n\n"


def decode_all(chunks: list[bytes]) -> list[StreamEvent]:
    decoder = FrameDecoder()
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.finish())
    return events


def text_of(events: list[StreamEvent]) -> str:
    return "".join(e.text for e in events if e.kind == "delta")


STREAM = (openai("Hello, ") + openai("wörld 🐱") + openai(" and more") + "data: [DONE]\n\n").encode("utf-8")


class TestFrameDecoder:
    """Tests for incremental frame decoding."""

    def test_whole_stream(self):
        events = decode_all([STREAM])

        assert text_of(events) == "Hello, wörld 🐱 and more"
        assert events[-1].kind == "end"

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 13, 64])
    def test_arbitrary_chunk_boundaries(self, size):
        chunks = [STREAM[i:i + size] for i in range(0, len(STREAM), size)]
        events = decode_all(chunks)

        assert text_of(events) == "Hello, wörld 🐱 and more"
        assert [e.kind for e in events].count("end") == 1

    def test_split_inside_multibyte_character(self):
        raw = openai("🐱").encode("utf-8")
        cut = raw.index("🐱".encode("utf-8")) + 2
        events = decode_all([raw[:cut], raw[cut:]])
        assert text_of(events) == "🐱"

    def test_partial_line_waits_for_newline(self):
        decoder = FrameDecoder()
        raw = openai("abc").encode("utf-8")

        assert decoder.feed(raw[:-2]) == []
        assert [e.text for e in decoder.feed(raw[-2:])] == ["abc"]

    def test_anthropic_events(self):
        stream = (
            "event: message_start\ndata: "
            + json.dumps({"type": "message_start", "message": {}})
            + "\n\n"
            + anthropic_delta("Hi")
            + anthropic_delta(" there")
            + "event: message_stop\ndata: "
            + json.dumps({"type": "message_stop"})
            + "\n\n"
        ).encode("utf-8")

        events = decode_all([stream])
        assert text_of(events) == "Hi there"
        assert events[-1].kind == "end"

    def test_non_data_lines_and_bad_json_are_skipped(self):
        stream = (": keep-alive\n\ndata: {not json}\n\n" + openai("ok")).encode("utf-8")
        events = decode_all([stream])
        assert [(e.kind, e.text) for e in events] == [("delta", "ok")]

    def test_in_band_error(self):
        stream = ("data: " + json.dumps({"error": {"message": "rate limited"}}) + "\n\n").encode()
        [event] = decode_all([stream])
        assert event.kind == "error"
        assert event.text == "rate limited"

    def test_crlf_line_endings(self):
        stream = openai("x").replace("\n", "\r\n").encode("utf-8") + b"data: [DONE]\r\n\r\n"
        events = decode_all([stream])
        assert text_of(events) == "x"
        assert events[-1].kind == "end"

    def test_finish_flushes_unterminated_line(self):
        decoder = FrameDecoder()
        assert decoder.feed(b"data: [DONE]") == []
        assert [e.kind for e in decoder.finish()] == ["end"]
