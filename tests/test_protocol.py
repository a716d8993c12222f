import json

import pytest

from fencelight.core.errors import ConfigError, FramingError
from fencelight.core.protocol import (
    HighlightRequest,
    HighlightResponse,
    JsonLineCodec,
    LegacyLineCodec,
    get_codec,
    validate_language,
)


def test_legacy_request_is_single_line():
    codec = LegacyLineCodec()
    frame = codec.encode_request(HighlightRequest("ts", "line1\nline2"))
    assert frame == "ts;line1\\nline2\n"
    assert frame.count("\n") == 1
    assert codec.decode_request(frame) == HighlightRequest("ts", "line1\nline2")


def test_legacy_splits_at_first_separator():
    req = LegacyLineCodec().decode_request("ts;let a = 1; let b = 2;\n")
    assert req.language == "ts"
    assert req.code == "let a = 1; let b = 2;"


@pytest.mark.parametrize("line", ["no separator here\n", ";code without language\n"])
def test_legacy_bad_request_frame(line):
    with pytest.raises(FramingError):
        LegacyLineCodec().decode_request(line)


def test_legacy_response_restores_newlines():
    codec = LegacyLineCodec()
    frame = codec.encode_response(HighlightResponse(html="<pre>\n<b>x</b>\n</pre>"))
    assert frame.count("\n") == 1
    assert codec.decode_response(frame).html == "<pre>\n<b>x</b>\n</pre>"


def test_legacy_escaping_is_lossy_for_literal_backslash_n():
    # a literal backslash followed by "n" comes back as a real newline
    code = 'console.log("a\\nb")'
    codec = LegacyLineCodec()
    assert codec.decode_request(codec.encode_request(HighlightRequest("ts", code))).code != code


@pytest.mark.parametrize("code", ["a\r", "x\r\ny\r", "\r"])
def test_legacy_keeps_carriage_returns(code):
    codec = LegacyLineCodec()
    frame = codec.encode_request(HighlightRequest("python", code))
    assert codec.decode_request(frame).code == code
    assert codec.decode_response(codec.encode_response(HighlightResponse(html=code))).html == code


@pytest.mark.parametrize(
    "code",
    ["", "x", "a\nb\n", 'print("\\n")', "tab\there\r\nwindows", "unicode: λ → ✓", "trailing\\"],
)
def test_json_round_trip_is_exact(code):
    codec = JsonLineCodec()
    frame = codec.encode_request(HighlightRequest("python", code))
    assert frame.endswith("\n") and frame.count("\n") == 1
    assert codec.decode_request(frame).code == code


def test_json_request_shape():
    frame = JsonLineCodec().encode_request(HighlightRequest("ts", "const x = 1;"))
    assert json.loads(frame) == {"cmd": "HIGHLIGHT", "request": {"language": "ts", "code": "const x = 1;"}}


def test_json_error_response_round_trip():
    codec = JsonLineCodec()
    frame = codec.encode_response(HighlightResponse(html="<pre>oops</pre>", ok=False, error="boom"))
    resp = codec.decode_response(frame)
    assert resp.ok is False
    assert resp.error == "boom"
    assert resp.html == "<pre>oops</pre>"


@pytest.mark.parametrize(
    "line",
    [
        "not json\n",
        "[1, 2]\n",
        '{"cmd": "NOPE"}\n',
        '{"cmd": "HIGHLIGHT"}\n',
        '{"cmd": "HIGHLIGHT", "request": {"language": "ts"}}\n',
    ],
)
def test_json_bad_request_frames(line):
    with pytest.raises(FramingError):
        JsonLineCodec().decode_request(line)


def test_json_reply_without_status_is_framing_error():
    with pytest.raises(FramingError):
        JsonLineCodec().decode_response('{"data": {"html": "x"}}\n')


@pytest.mark.parametrize("bad", ["", "type script", "ts;", "ts\n"])
def test_invalid_language_rejected(bad):
    with pytest.raises(ValueError):
        validate_language(bad)
    with pytest.raises(ValueError):
        LegacyLineCodec().encode_request(HighlightRequest(bad, "x"))


def test_get_codec():
    assert isinstance(get_codec("json"), JsonLineCodec)
    assert isinstance(get_codec("legacy"), LegacyLineCodec)
    with pytest.raises(ConfigError):
        get_codec("xml")
