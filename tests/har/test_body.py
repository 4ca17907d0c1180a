import base64
import json

import pytest
from har_metrics.har.body import (
    build_body_record,
    classify_body,
    filter_body,
    is_json_type,
    sanitize_field_name,
    to_data_url,
)
from har_metrics.har.field_filter import NO_REDACTION, REDACTED, RedactionConfig
from har_metrics.har.models import BodyKind

USER_JSON = '{"user":{"email":"a@b.com"}}'


# --- content type dispatch --- #


@pytest.mark.parametrize(
    "content_type, expected",
    [
        ("application/json", True),
        ("application/json; charset=utf-8", True),
        ("Application/JSON", True),
        ("application/vnd.api+json", True),
        ("application/problem+json; charset=utf-8", True),
        ("text/plain", False),
        ("application/x-www-form-urlencoded", False),
        ("application/jsonp", False),
        (None, False),
    ],
)
def test_is_json_type(content_type, expected):
    assert is_json_type(content_type) is expected


@pytest.mark.parametrize("content_type", [None, "application/json", "text/plain", "multipart/form-data; boundary=x"])
@pytest.mark.parametrize("body", [b"", "", None])
def test_empty_body_yields_no_record(content_type, body):
    assert classify_body(content_type, body) is None


# --- JSON family --- #


def test_json_body_is_echoed_verbatim():
    record = classify_body("application/json", USER_JSON.encode())

    assert record.kind is BodyKind.TEXT
    assert record.model_dump(by_alias=True, exclude_none=True) == {"mimeType": "application/json", "text": USER_JSON}


def test_json_body_keeps_original_formatting_and_key_order():
    text = '{ "z": 1,\n  "a": [1, 2] }'
    record = build_body_record("application/json", text, NO_REDACTION)
    assert record.text == text


def test_vendored_json_keeps_its_mime_type():
    record = classify_body("application/vnd.api+json", USER_JSON.encode())
    assert record.kind is BodyKind.TEXT
    assert record.mime_type == "application/vnd.api+json"
    assert record.text == USER_JSON


@pytest.mark.parametrize("body", [b"{not json", b'{"user":', b"\xff\xfe garbage"])
def test_malformed_json_degrades_to_text(body):
    record = classify_body("application/json", body)

    assert record is not None
    assert record.kind is BodyKind.TEXT
    assert record.mime_type == "application/json"
    assert record.text == body.decode("utf-8", errors="replace")
    assert record.params is None


def test_malformed_json_is_kept_when_a_deny_list_is_active():
    record = build_body_record("application/json", b"{not json", RedactionConfig(deny_list={"password"}))
    assert record.text == "{not json"


def test_json_redaction_reserializes_compactly_in_key_order():
    body = '{"user": {"email": "a@b.com", "password": "hunter2"}, "id": 1}'
    record = build_body_record("application/json", body, RedactionConfig(deny_list={"password"}))

    assert record.text == '{"user":{"email":"a@b.com","password":"[REDACTED]"},"id":1}'
    assert json.loads(record.text)["user"]["password"] == REDACTED


def test_json_is_not_reserialized_when_nothing_matches():
    body = '{ "user": { "email": "a@b.com" } }'
    record = build_body_record("application/json", body, RedactionConfig(deny_list={"password"}))
    assert record.text == body


def test_json_redaction_keeps_non_ascii_text():
    body = '{"name":"Zoë","password":"x"}'
    record = build_body_record("application/json; charset=utf-8", body, RedactionConfig(deny_list={"password"}))
    assert record.text == '{"name":"Zoë","password":"[REDACTED]"}'


# --- URL-encoded forms --- #


def test_urlencoded_body_is_decoded_into_params():
    record = classify_body("application/x-www-form-urlencoded", b"email=dom%40readme.io")

    assert record.model_dump(by_alias=True, exclude_none=True) == {
        "mimeType": "application/x-www-form-urlencoded",
        "params": [{"name": "email", "value": "dom@readme.io"}],
    }


def test_urlencoded_body_keeps_order_repeats_and_blanks():
    record = classify_body("application/x-www-form-urlencoded", b"b=2&a=1&b=3&empty=&space=a+b")
    assert [(p.name, p.value) for p in record.params] == [
        ("b", "2"),
        ("a", "1"),
        ("b", "3"),
        ("empty", ""),
        ("space", "a b"),
    ]


def test_urlencoded_params_are_filtered():
    record = build_body_record(
        "application/x-www-form-urlencoded", b"email=dom%40readme.io&password=123", RedactionConfig(deny_list={"password"})
    )
    assert [(p.name, p.value) for p in record.params] == [("email", "dom@readme.io"), ("password", REDACTED)]


# --- multipart --- #


@pytest.mark.parametrize(
    "name, expected",
    [
        ("owlbert.png", "owlbert_png"),
        ("my file (1).txt", "my_file__1__txt"),
        ("already_safe9", "already_safe9"),
        ("user[avatar]", "user_avatar_"),
        ("", ""),
    ],
)
def test_sanitize_field_name(name, expected):
    assert sanitize_field_name(name) == expected


def test_to_data_url():
    assert to_data_url(b"hi", "text/plain", "hi.txt") == "data:text/plain;name=hi.txt;base64,aGk="
    assert to_data_url(b"hi", "text/plain") == "data:text/plain;base64,aGk="


def test_multipart_scalar_fields(make_multipart):
    content_type, body = make_multipart(
        [("password", "123456"), ("apiKey", "abcdef"), ("another", "Hello world"), ("buster", "1234"), ("buster", "5678")]
    )

    record = classify_body(content_type, body)

    assert record.kind is BodyKind.PARAMS
    assert record.mime_type == content_type
    assert record.model_dump(by_alias=True, exclude_none=True)["params"] == [
        {"name": "password", "value": "123456"},
        {"name": "apiKey", "value": "abcdef"},
        {"name": "another", "value": "Hello world"},
        {"name": "buster", "value": "1234,5678"},
    ]
    assert record.text is None


def test_multipart_with_file(make_multipart, png_bytes):
    content_type, body = make_multipart(
        [("password", "123456"), ("apiKey", "abcdef"), ("buster", "1234"), ("buster", "5678")],
        [("owlbert.png", "owlbert.png", "image/png", png_bytes)],
    )

    record = classify_body(content_type, body)
    params = record.model_dump(by_alias=True, exclude_none=True)["params"]

    expected_data_url = "data:image/png;name=owlbert.png;base64," + base64.b64encode(png_bytes).decode("ascii")
    assert params == [
        {"name": "password", "value": "123456"},
        {"name": "apiKey", "value": "abcdef"},
        {"name": "buster", "value": "1234,5678"},
        {"name": "owlbert_png", "value": expected_data_url, "fileName": "owlbert.png", "contentType": "image/png"},
    ]
    # The literal field name stays resolvable but never reaches the wire.
    assert record.params[-1].raw_name == "owlbert.png"
    assert "raw_name" not in params[-1]


def test_multipart_file_without_content_type_defaults_to_octet_stream():
    content_type = "multipart/form-data; boundary=xyz"
    body = (
        b"--xyz\r\n"
        b'Content-Disposition: form-data; name="upload"; filename="blob.bin"\r\n\r\n'
        b"\x00\x01\r\n"
        b"--xyz--\r\n"
    )

    (param,) = classify_body(content_type, body).params

    assert param.name == "upload"
    assert param.content_type == "application/octet-stream"
    assert param.value == "data:application/octet-stream;name=blob.bin;base64,AAE="
    assert param.raw_name is None


def test_multipart_filtering_redacts_values_only(make_multipart, png_bytes):
    content_type, body = make_multipart(
        [("password", "123456"), ("apiKey", "abcdef")],
        [("owlbert.png", "owlbert.png", "image/png", png_bytes)],
    )

    record = build_body_record(content_type, body, RedactionConfig(deny_list={"password", "owlbert.png"}))

    assert [(p.name, p.value) for p in record.params] == [
        ("password", REDACTED),
        ("apiKey", "abcdef"),
        ("owlbert_png", REDACTED),
    ]
    assert record.params[-1].file_name == "owlbert.png"
    assert record.params[-1].content_type == "image/png"


def test_multipart_allow_list(make_multipart):
    content_type, body = make_multipart([("password", "123456"), ("apiKey", "abcdef")])
    record = build_body_record(content_type, body, RedactionConfig(allow_list={"apiKey"}, deny_list={"apiKey"}))
    assert [(p.name, p.value) for p in record.params] == [("password", REDACTED), ("apiKey", "abcdef")]


@pytest.mark.parametrize(
    "content_type, body",
    [
        ("multipart/form-data", b"--xyz\r\nno boundary declared\r\n--xyz--\r\n"),
        ("multipart/form-data; boundary=xyz", b"this is not multipart at all"),
    ],
)
def test_malformed_multipart_degrades_to_text(content_type, body):
    record = classify_body(content_type, body)
    assert record.kind is BodyKind.TEXT
    assert record.mime_type == content_type
    assert record.text == body.decode()


# --- text fallback --- #


def test_missing_content_type_defaults_to_text_plain():
    record = classify_body(None, USER_JSON.encode())
    assert record.model_dump(by_alias=True, exclude_none=True) == {"mimeType": "text/plain", "text": USER_JSON}


@pytest.mark.parametrize("content_type", ["text/plain", "text/plain;charset=UTF-8", "application/xml", "image/png"])
def test_other_content_types_stay_text(content_type):
    record = classify_body(content_type, b"Hello world")
    assert record.kind is BodyKind.TEXT
    assert record.mime_type == content_type
    assert record.text == "Hello world"


def test_text_bodies_are_not_affected_by_filters():
    record = build_body_record("text/plain", b"password=hunter2", RedactionConfig(deny_list={"password"}))
    assert record.text == "password=hunter2"


def test_string_bodies_are_accepted():
    record = classify_body("text/plain", "Zoë")
    assert record.text == "Zoë"


def test_filter_body_passes_none_through():
    assert filter_body(None, RedactionConfig(deny_list={"a"})) is None


def test_record_never_has_both_text_and_params(make_multipart):
    content_type, body = make_multipart([("a", "1")])
    for record in (
        classify_body(content_type, body),
        classify_body("application/json", b"{}"),
        classify_body("application/x-www-form-urlencoded", b"a=1"),
        classify_body(None, b"plain"),
    ):
        dumped = record.model_dump(by_alias=True, exclude_none=True)
        assert ("text" in dumped) != ("params" in dumped)
