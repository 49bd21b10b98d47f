"""Tests for olama/core/stream_decoder.py: incremental NDJSON decoding."""

from __future__ import annotations

import pytest

from olama.core.cancellation import CancellationToken
from olama.core.errors import ErrorKind, OllamaError
from olama.core.stream_decoder import DecodeOutcome, StreamDecoder
from tests.fakes import chunk_line, done_line


def _decoder():
    received: list[str] = []
    token = CancellationToken()
    return StreamDecoder(token, received.append), token, received


def test_fragments_emitted_in_order_and_concatenated():
    decoder, _, received = _decoder()
    outcome = decoder.decode([chunk_line("Hel"), chunk_line("lo, "), chunk_line("world"), done_line()])
    assert outcome is DecodeOutcome.COMPLETED
    assert received == ["Hel", "lo, ", "world"]
    assert decoder.content == "Hello, world"
    assert decoder.fragment_count == 3


def test_blank_lines_are_skipped():
    decoder, _, received = _decoder()
    outcome = decoder.decode(["", chunk_line("a"), "   ", chunk_line("b"), done_line()])
    assert outcome is DecodeOutcome.COMPLETED
    assert received == ["a", "b"]


def test_empty_fragments_emit_nothing():
    decoder, _, received = _decoder()
    decoder.decode([chunk_line(""), chunk_line("x"), done_line()])
    assert received == ["x"]


def test_done_stops_consuming_further_lines():
    decoder, _, received = _decoder()

    def lines():
        yield chunk_line("only")
        yield done_line()
        raise AssertionError("decoder read past done")

    assert decoder.decode(lines()) is DecodeOutcome.COMPLETED
    assert received == ["only"]


def test_fragment_on_done_line_is_kept():
    decoder, _, received = _decoder()
    decoder.decode([chunk_line("tail", done=True)])
    assert received == ["tail"]


def test_bytes_lines_are_decoded_as_utf8():
    decoder, _, received = _decoder()
    decoder.decode([chunk_line("héllo").encode("utf-8"), done_line().encode("utf-8")])
    assert received == ["héllo"]


def test_malformed_line_raises_parse_error_after_earlier_tokens():
    decoder, _, received = _decoder()
    with pytest.raises(OllamaError) as exc_info:
        decoder.decode([chunk_line("ok "), "{not json", chunk_line("never"), done_line()])
    assert exc_info.value.kind is ErrorKind.PARSE_ERROR
    assert received == ["ok "]


def test_wrong_structure_raises_parse_error():
    decoder, _, _ = _decoder()
    with pytest.raises(OllamaError) as exc_info:
        decoder.decode(['{"message": "not-an-object", "done": false}'])
    assert exc_info.value.kind is ErrorKind.PARSE_ERROR


def test_json_array_line_raises_parse_error():
    decoder, _, _ = _decoder()
    with pytest.raises(OllamaError) as exc_info:
        decoder.decode(["[1, 2, 3]"])
    assert exc_info.value.kind is ErrorKind.PARSE_ERROR


def test_server_error_record_raises_server_error():
    decoder, _, _ = _decoder()
    with pytest.raises(OllamaError) as exc_info:
        decoder.decode(['{"error": "model runner crashed"}'])
    assert exc_info.value.kind is ErrorKind.SERVER_ERROR
    assert "model runner crashed" in exc_info.value.detail


def test_stream_ending_without_done_is_parse_error():
    decoder, _, received = _decoder()
    with pytest.raises(OllamaError) as exc_info:
        decoder.decode([chunk_line("partial")])
    assert exc_info.value.kind is ErrorKind.PARSE_ERROR
    assert received == ["partial"]


def test_cancel_checked_before_each_line():
    received: list[str] = []
    token = CancellationToken()

    def on_fragment(fragment: str) -> None:
        received.append(fragment)
        if len(received) == 2:
            token.cancel()

    decoder = StreamDecoder(token, on_fragment)
    lines = [chunk_line(str(i)) for i in range(5)] + [done_line()]
    assert decoder.decode(lines) is DecodeOutcome.CANCELLED
    assert received == ["0", "1"]


def test_already_cancelled_token_reads_nothing():
    decoder, token, received = _decoder()
    token.cancel()
    assert decoder.decode([chunk_line("x"), done_line()]) is DecodeOutcome.CANCELLED
    assert received == []
    assert decoder.lines_read == 0
