from tripstream.sse import SSEParser, iter_frames, parse_sse_text


STREAM = 'event: progress\ndata: {"step":"a"}\n\nevent: complete\ndata: {"trip":{"x":1}}\n\n'


def _pairs(frames):
    return [(f.event, f.payload) for f in frames]


def test_whole_stream_yields_two_frames():
    assert _pairs(parse_sse_text(STREAM)) == [("progress", {"step": "a"}), ("complete", {"trip": {"x": 1}})]


def test_chunk_splits_do_not_change_frames():
    expected = _pairs(parse_sse_text(STREAM))
    # mid-line, mid-frame and at the blank line between frames
    for cut in (5, 20, len('event: progress\ndata: {"step":"a"}\n'), len(STREAM) - 3):
        parser = SSEParser()
        frames = parser.feed(STREAM[:cut]) + parser.feed(STREAM[cut:]) + parser.close()
        assert _pairs(frames) == expected, cut


def test_partial_line_is_not_parsed_early():
    parser = SSEParser()
    assert parser.feed('event: complete\ndata: {"a":') == []
    assert _pairs(parser.feed('1}\n\n')) == [("complete", {"a": 1})]


def test_multiline_data_is_joined_with_newlines():
    frames = parse_sse_text('event: complete\ndata: {"a":1,\ndata: "b":2}\n\n')
    assert frames[0].payload == {"a": 1, "b": 2}
    assert frames[0].data == '{"a":1,\n"b":2}'


def test_empty_data_line_contributes_an_empty_line():
    frames = parse_sse_text("event: list\ndata: [1,\ndata:\ndata: 2]\n\n")
    assert frames[0].data == "[1,\n\n2]"
    assert frames[0].payload == [1, 2]


def test_malformed_frame_is_skipped():
    parser = SSEParser()
    text = 'event: progress\ndata: {not json\n\nevent: complete\ndata: {"ok":true}\n\n'
    frames = parser.feed(text) + parser.close()
    assert _pairs(frames) == [("complete", {"ok": True})]
    assert parser.skipped == 1


def test_final_frame_without_trailing_blank_line():
    assert _pairs(parse_sse_text('event: complete\ndata: {"done":1}')) == [("complete", {"done": 1})]


def test_later_event_line_overwrites_name():
    assert _pairs(parse_sse_text("event: first\nevent: second\ndata: {}\n\n")) == [("second", {})]


def test_frames_missing_name_or_data_are_discarded():
    text = 'data: {"a":1}\n\nevent: lonely\n\nevent: ok\ndata: 2\n\n'
    assert _pairs(parse_sse_text(text)) == [("ok", 2)]


def test_crlf_and_comment_lines():
    text = ': keep-alive\r\nid: 7\r\nevent: complete\r\ndata: {"a":1}\r\n\r\n'
    assert _pairs(parse_sse_text(text)) == [("complete", {"a": 1})]


def test_multibyte_character_split_across_byte_chunks():
    raw = 'event: complete\ndata: {"city":"Montréal"}\n\n'.encode("utf-8")
    cut = raw.index("é".encode("utf-8")) + 1
    frames = list(iter_frames([raw[:cut], raw[cut:]]))
    assert frames[0].payload == {"city": "Montréal"}
