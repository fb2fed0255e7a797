"""Tests for the incremental SSE decoder"""

import logging

import pytest

from conftest import frame, split_bytes, sse
from llmstream.provider.sse import SSEDecoder, iter_frames


PAYLOAD = (
    sse(frame(content="Hel")) + sse(frame(content="lo")) + "data: [DONE]\n\n"
).encode()


def decode_all(pieces: list[bytes]) -> list[dict]:
    decoder = SSEDecoder()
    frames = []
    for piece in pieces:
        frames.extend(decoder.feed(piece))
    frames.extend(decoder.flush())
    return frames


class TestSSEDecoder:
    def test_single_read(self):
        frames = decode_all([PAYLOAD])

        assert [f["choices"][0]["delta"]["content"] for f in frames] == ["Hel", "lo"]

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 13, 64])
    def test_split_reads_match_single_read(self, size):
        assert decode_all(split_bytes(PAYLOAD, size)) == decode_all([PAYLOAD])

    def test_partial_line_is_buffered(self):
        decoder = SSEDecoder()
        line = sse(frame(content="abc")).encode()

        assert decoder.feed(line[:10]) == []
        assert decoder.buffer
        frames = decoder.feed(line[10:])

        assert len(frames) == 1
        assert frames[0]["choices"][0]["delta"]["content"] == "abc"

    def test_multibyte_character_split_across_reads(self):
        data = sse(frame(content="héllo ✓")).encode()
        cut = data.index("✓".encode()) + 1

        frames = decode_all([data[:cut], data[cut:]])

        assert frames[0]["choices"][0]["delta"]["content"] == "héllo ✓"

    def test_done_sentinel_terminates(self):
        decoder = SSEDecoder()
        frames = decoder.feed(
            (sse(frame(content="a")) + "data: [DONE]\n\n" + sse(frame(content="b"))).encode()
        )

        assert len(frames) == 1
        assert decoder.finished
        assert decoder.feed(sse(frame(content="c")).encode()) == []
        assert decoder.flush() == []

    def test_malformed_line_does_not_stop_decoding(self, caplog):
        data = (sse(frame(content="a")) + "data: {not json\n\n" + sse(frame(content="b"))).encode()

        decoder = SSEDecoder(source="test")
        with caplog.at_level(logging.WARNING):
            frames = decoder.feed(data)

        assert [f["choices"][0]["delta"]["content"] for f in frames] == ["a", "b"]
        assert decoder.parse_errors == 1
        assert decoder.errors[0].line == "data: {not json"
        assert "Failed to parse stream frame" in caplog.text

    def test_non_object_payload_is_a_parse_error(self):
        decoder = SSEDecoder()
        frames = decoder.feed(b"data: [1, 2]\n\n")

        assert frames == []
        assert decoder.parse_errors == 1

    def test_non_data_lines_are_skipped(self):
        data = (": keep-alive\n\nevent: message\n" + sse(frame(content="x"))).encode()

        frames = decode_all([data])

        assert len(frames) == 1

    def test_crlf_line_endings(self):
        data = sse(frame(content="x")).replace("\n", "\r\n").encode()

        frames = decode_all([data])

        assert frames[0]["choices"][0]["delta"]["content"] == "x"

    def test_flush_processes_unterminated_line(self):
        decoder = SSEDecoder()
        data = ("data: " + '{"choices": [{"delta": {"content": "tail"}}]}').encode()

        assert decoder.feed(data) == []
        frames = decoder.flush()

        assert frames[0]["choices"][0]["delta"]["content"] == "tail"


class TestIterFrames:
    @pytest.mark.asyncio
    async def test_iterates_async_byte_stream(self):
        async def reads():
            for piece in split_bytes(PAYLOAD, 4):
                yield piece

        frames = [f async for f in iter_frames(reads())]

        assert len(frames) == 2

    @pytest.mark.asyncio
    async def test_stops_reading_after_done(self):
        consumed = []

        async def reads():
            for piece in [PAYLOAD, sse(frame(content="late")).encode()]:
                consumed.append(piece)
                yield piece

        frames = [f async for f in iter_frames(reads())]

        assert len(frames) == 2
        assert len(consumed) == 1
