"""Tests for SSE frame parsing, splitting and rendering."""

from ssewatch.shared.sse_codec import FrameBuffer, looks_like_json_object, parse_event, render_event, split_frames


class TestParseEvent:
    def test_all_fields(self) -> None:
        event = parse_event("id: X\nevent: Y\ndata: Z\n\n")

        assert event.event_id == "X"
        assert event.kind == "Y"
        assert event.payload == "Z"

    def test_defaults_when_only_data(self) -> None:
        event = parse_event("data: hello")

        assert event.event_id == ""
        assert event.kind == "message"
        assert event.payload == "hello"

    def test_json_object_payload_becomes_system(self) -> None:
        assert parse_event('data: {"a":1}').kind == "system"

    def test_json_object_overrides_explicit_event(self) -> None:
        assert parse_event('event: tick\ndata: {"a":1}').kind == "system"

    def test_json_array_is_not_system(self) -> None:
        assert parse_event("data: [1, 2]").kind == "message"

    def test_first_id_and_event_win_last_data_wins(self) -> None:
        event = parse_event("id: 1\nid: 2\nevent: a\nevent: b\ndata: first\ndata: second")

        assert event.event_id == "1"
        assert event.kind == "a"
        assert event.payload == "second"

    def test_prefixes_are_case_sensitive(self) -> None:
        event = parse_event("ID: 9\nData: nope")

        assert event.event_id == ""
        assert event.payload is None

    def test_malformed_input_never_raises(self) -> None:
        event = parse_event("garbage without fields")

        assert event.event_id == ""
        assert event.kind == "message"
        assert event.payload is None

    def test_json_check_trims_whitespace(self) -> None:
        assert looks_like_json_object('  {"a": 1} ')
        assert not looks_like_json_object('{"a": 1')
        assert not looks_like_json_object(None)


class TestSplitFrames:
    def test_comment_segment_is_discarded(self) -> None:
        assert split_frames("a\n\n:keepalive\n\nb\n\n") == ["a", "b"]

    def test_empty_segments_dropped(self) -> None:
        assert split_frames("\n\n\n\ndata: x\n\n") == ["data: x"]


class TestFrameBuffer:
    def test_frame_split_across_chunks(self) -> None:
        buffer = FrameBuffer()

        assert buffer.feed("id: 1\ndata: hel") == []
        assert buffer.feed("lo\n\ndata: next") == ["id: 1\ndata: hello"]
        assert buffer.pending == "data: next"

    def test_crlf_is_folded(self) -> None:
        buffer = FrameBuffer()

        assert buffer.feed("data: a\r\n\r") == []
        assert buffer.feed("\n: ping\r\n\r\n") == ["data: a"]

    def test_clear_drops_pending(self) -> None:
        buffer = FrameBuffer()
        buffer.feed("data: partial")
        buffer.clear()

        assert buffer.pending == ""


class TestRenderEvent:
    def test_full_frame(self) -> None:
        assert render_event("Z", kind="Y", event_id="X") == "id: X\nevent: Y\ndata: Z\n\n"

    def test_optional_lines_omitted(self) -> None:
        assert render_event("only") == "data: only\n\n"

    def test_rendered_frame_parses_back(self) -> None:
        frames = split_frames(render_event("p", kind="k", event_id="7") + render_event("q"))

        assert [parse_event(f).payload for f in frames] == ["p", "q"]
        assert parse_event(frames[0]).event_id == "7"
