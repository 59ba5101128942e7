"""Tests for vrest.response -- success classification, body reading and unmarshaling."""

from __future__ import annotations

import dataclasses
import io
from unittest.mock import MagicMock

import httpx
import pytest
from pydantic import BaseModel, PydanticUserError

from vrest.body import ContentLength, RawBytesTarget, StreamTarget, StructuredTarget
from vrest.exceptions import (
    InvalidRequestError,
    ResponseNotUnmarshaledError,
    StatusError,
    UnmarshalError,
    find_error,
)
from vrest.response import close_raw_response
from vrest.testing import MockHTTPResponse, mock_http_doer


class Result(BaseModel):
    text: str = ""
    number: int = 0


class ApiError(BaseModel):
    message: str = ""

    def error(self) -> str:
        return self.message


@dataclasses.dataclass(eq=False)
class Conflict(Exception):
    message: str = ""


@dataclasses.dataclass(eq=False)
class DescribedConflict(Exception):
    message: str = ""

    def error(self) -> str:
        return f"conflict: {self.message}"


class Plain:
    def __init__(self, name: str) -> None:
        self.name = name


def responding(make_client, status_code: int, content: bytes = b"", content_type: str = ""):
    """Client whose transport always answers with the given response."""
    headers = {"Content-Type": content_type} if content_type else {}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=content, headers=headers)

    return make_client(handler)


# ---------------------------------------------------------------------------
# Success classification
# ---------------------------------------------------------------------------


class TestSuccessClassification:
    def test_2xx_with_body(self, make_client) -> None:
        client = responding(make_client, 201, b'{"text":"t","number":1}', "application/json")
        target = StructuredTarget(Result)
        req = client.new_request().set_response_body(target)
        req.do_post("/x")
        assert target.value == Result(text="t", number=1)
        assert req.response.error is None
        assert req.response.status_code == 201

    def test_explicit_success_code_accepts_404(self, make_client) -> None:
        client = responding(make_client, 404, b'{"text":"gone"}', "application/json")
        target = StructuredTarget(Result)
        client.new_request().set_success_status_code(404).set_response_body(target).do_get("/x")
        assert target.value.text == "gone"

    def test_explicit_success_codes_exclude_200(self, make_client) -> None:
        client = responding(make_client, 200)
        req = client.new_request().set_success_status_code(404)
        with pytest.raises(StatusError, match="failed with status code 200") as exc_info:
            req.do_get("/x")
        assert exc_info.value.status_code == 200

    def test_success_predicate_override(self, make_client) -> None:
        client = responding(make_client, 302)
        client.overridables.is_success = lambda req: req.response.status_code < 400
        client.new_request().do_get("/x")

    def test_empty_success_body_leaves_destination_alone(self, make_client) -> None:
        client = responding(make_client, 204, content_type="application/json")
        item = Result(text="kept")
        client.new_request().set_response_body(item).do_delete("/x")
        assert item.text == "kept"


# ---------------------------------------------------------------------------
# Failed calls
# ---------------------------------------------------------------------------


class TestStatusErrors:
    def test_empty_error_body(self, make_client) -> None:
        client = responding(make_client, 503)
        req = client.new_request()
        with pytest.raises(StatusError) as exc_info:
            req.do_get("/x")
        exc = exc_info.value
        assert str(exc) == "http request GET https://api.example.com/x failed with status code 503"
        assert exc.status_code == 503
        assert exc.method == "GET"
        assert req.response.error is exc

    def test_raw_text_in_message(self, make_client) -> None:
        client = responding(make_client, 500, b"boom", "text/plain")
        with pytest.raises(StatusError, match="failed: status 500: boom") as exc_info:
            client.new_request().do_get("/x")
        assert exc_info.value.body_text == "boom"
        assert exc_info.value.error_body is None

    def test_error_body_type_describes_itself(self, make_client) -> None:
        client = responding(make_client, 400, b'{"message":"invalid id"}', "application/json")
        client.set_error_body_type(ApiError)
        with pytest.raises(StatusError, match="status 400: invalid id") as exc_info:
            client.new_request().do_get("/x")
        assert exc_info.value.error_body == ApiError(message="invalid id")

    def test_per_request_error_body_wins(self, make_client) -> None:
        client = responding(make_client, 400, b'{"text":"bad","number":2}', "application/json")
        client.set_error_body_type(ApiError)
        detail = Result()
        with pytest.raises(StatusError):
            client.new_request().set_response_error_body(detail).do_get("/x")
        assert detail == Result(text="bad", number=2)

    def test_error_body_without_error_method_uses_str(self, make_client) -> None:
        client = responding(make_client, 422, b'{"text":"x","number":1}', "application/json")
        with pytest.raises(StatusError, match="status 422: text='x' number=1"):
            client.new_request().set_response_error_body(Result).do_get("/x")

    def test_undecodable_error_body_falls_back_to_text(self, make_client) -> None:
        client = responding(make_client, 502, b"<html>bad gateway</html>", "application/json")
        client.set_error_body_type(ApiError)
        with pytest.raises(StatusError, match="<html>bad gateway</html>") as exc_info:
            client.new_request().do_get("/x")
        assert find_error(exc_info.value, UnmarshalError) is None

    def test_codec_schema_failure_does_not_mask_status(self, make_client) -> None:
        client = responding(make_client, 400, b'{"name":"x"}', "application/json")

        def no_schema(req, data, target):
            raise PydanticUserError("cannot build a schema", code=None)

        client.overridables.json_unmarshal = no_schema
        req = client.new_request().set_response_error_body(ApiError)
        with pytest.raises(StatusError, match=r'status 400: \{"name":"x"\}') as exc_info:
            req.do_get("/x")
        assert req.response.error is exc_info.value

    def test_undecodable_error_body_type_rejected_before_transport(self, make_client) -> None:
        calls = []
        client = make_client(lambda request: calls.append(request) or httpx.Response(400))
        req = client.new_request().set_response_error_body(Plain)
        with pytest.raises(InvalidRequestError, match="type Plain cannot be decoded"):
            req.do_get("/x")
        assert calls == []

    def test_exception_error_body_without_error_method_uses_repr(self, make_client) -> None:
        client = responding(make_client, 409, b'{"message":"taken"}', "application/json")
        with pytest.raises(StatusError) as exc_info:
            client.new_request().set_response_error_body(Conflict).do_put("/x")
        assert str(exc_info.value).endswith("status 409: Conflict(message='taken')")
        assert exc_info.value.__cause__ is exc_info.value.error_body

    def test_exception_error_body_prefers_error_method(self, make_client) -> None:
        client = responding(make_client, 409, b'{"message":"taken"}', "application/json")
        with pytest.raises(StatusError, match="status 409: conflict: taken$") as exc_info:
            client.new_request().set_response_error_body(DescribedConflict).do_put("/x")
        assert isinstance(find_error(exc_info.value, DescribedConflict), DescribedConflict)

    def test_raw_bytes_error_body(self, make_client) -> None:
        client = responding(make_client, 500, b"oops", "text/plain")
        target = RawBytesTarget()
        with pytest.raises(StatusError, match="status 500: oops"):
            client.new_request().set_response_error_body(target).do_get("/x")
        assert target.data == b"oops"

    def test_raw_bytes_error_body_untouched_on_success(self, make_client) -> None:
        client = responding(make_client, 200, b"fine", "text/plain")
        target = RawBytesTarget()
        client.new_request().set_response_error_body(target).do_get("/x")
        assert target.data is None

    def test_stream_error_body_rejected_before_transport(self, make_client) -> None:
        calls = []
        client = make_client(lambda request: calls.append(request) or httpx.Response(500))
        req = client.new_request().set_response_error_body(StreamTarget())
        with pytest.raises(InvalidRequestError, match="cannot be a stream target"):
            req.do_get("/x")
        assert calls == []

    def test_success_body_is_not_filled_on_failure(self, make_client) -> None:
        client = responding(make_client, 500, b'{"text":"t"}', "application/json")
        target = StructuredTarget(Result)
        with pytest.raises(StatusError):
            client.new_request().set_response_body(target).do_get("/x")
        assert target.value is None


# ---------------------------------------------------------------------------
# Unmarshaling
# ---------------------------------------------------------------------------


class TestUnmarshal:
    def test_undecodable_type_is_a_configuration_error(self, make_client) -> None:
        client = responding(make_client, 200, b'{"name":"x"}', "application/json")
        req = client.new_request().set_response_body(Plain)
        with pytest.raises(InvalidRequestError):
            req.do_get("/x")
        assert req.response.raw is None

    def test_malformed_success_body(self, make_client) -> None:
        client = responding(make_client, 200, b"{oops", "application/json")
        req = client.new_request().set_response_body(Result)
        with pytest.raises(UnmarshalError, match="failed to unmarshal response body") as exc_info:
            req.do_get("/x")
        assert isinstance(exc_info.value.__cause__, UnmarshalError)
        assert req.response.error is exc_info.value

    def test_no_codec_for_content_type(self, make_client) -> None:
        client = responding(make_client, 200, b"plain words", "text/plain")
        with pytest.raises(UnmarshalError) as exc_info:
            client.new_request().set_response_body(Result).do_get("/x")
        assert find_error(exc_info.value, ResponseNotUnmarshaledError) is not None

    def test_no_destination_ignores_body(self, make_client) -> None:
        client = responding(make_client, 200, b"plain words", "text/plain")
        req = client.new_request()
        req.do_get("/x")
        assert req.response.text == "plain words"

    def test_xml_response(self, make_client) -> None:
        body = b"<Result><text>test</text><number>123</number></Result>"
        client = responding(make_client, 200, body, "application/xml; charset=utf-8")
        target = StructuredTarget(Result)
        client.new_request().set_response_body(target).do_get("/x")
        assert target.value == Result(text="test", number=123)

    def test_force_json(self, make_client) -> None:
        client = responding(make_client, 200, b'{"text":"forced"}', "text/plain")
        target = StructuredTarget(Result)
        client.new_request().force_response_json().set_response_body(target).do_get("/x")
        assert target.value.text == "forced"

    def test_force_xml(self, make_client) -> None:
        client = responding(make_client, 200, b"<R><text>forced</text></R>", "")
        target = StructuredTarget(Result)
        client.new_request().force_response_xml().set_response_body(target).do_get("/x")
        assert target.value.text == "forced"

    def test_unmarshal_override(self, make_client) -> None:
        client = responding(make_client, 200, b"ignored", "application/json")

        def fake(req, data, target):
            target.load({"text": data.decode()})

        client.overridables.json_unmarshal = fake
        target = StructuredTarget(Result)
        client.new_request().set_response_body(target).do_get("/x")
        assert target.value.text == "ignored"


# ---------------------------------------------------------------------------
# Raw bytes, limits and Content-Length capture
# ---------------------------------------------------------------------------


class TestRawBody:
    def test_raw_bytes_target(self, make_client) -> None:
        client = responding(make_client, 200, b"\x89PNG", "application/json")
        target = RawBytesTarget()
        client.new_request().set_response_body(target).do_get("/x")
        assert target.data == b"\x89PNG"

    def test_body_limit_truncates(self, make_client) -> None:
        client = responding(make_client, 200, b"abcdefgh", "application/octet-stream")
        target = RawBytesTarget()
        req = client.new_request().set_response_body_limit(4).set_response_body(target)
        req.do_get("/x")
        assert target.data == b"abcd"

    def test_client_body_limit_is_default(self, make_client) -> None:
        client = responding(make_client, 500, b"0123456789", "text/plain")
        client.set_response_body_limit(3)
        with pytest.raises(StatusError, match="status 500: 012$"):
            client.new_request().do_get("/x")

    def test_content_length_captured(self, make_client) -> None:
        client = responding(make_client, 200, b"abc", "text/plain")
        length = ContentLength()
        client.new_request().set_response_content_length(length).do_get("/x")
        assert length.value == 3

    def test_content_length_absent(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200))
        client.overridables.do_http_request = mock_http_doer(
            MockHTTPResponse(body_stream=io.BytesIO(b"chunked"))
        )
        length = ContentLength()
        client.new_request().set_response_content_length(length).do_get("/x")
        assert length.value == -1


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class TestStreamTarget:
    def test_stream_is_handed_over_open(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200))
        client.overridables.do_http_request = mock_http_doer(
            MockHTTPResponse(body_stream=io.BytesIO(b"large payload"))
        )
        target = StreamTarget()
        req = client.new_request().set_response_body(target)
        req.do_get("/download")

        assert target.response is not None
        assert target.response.stream.closed is False
        assert req.response.body_bytes is None
        with target:
            assert target.read() == b"large payload"

    def test_failed_stream_is_buffered_and_closed(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200))
        client.overridables.do_http_request = mock_http_doer(
            MockHTTPResponse(status_code=404, body_stream=io.BytesIO(b"not here"))
        )
        target = StreamTarget()
        req = client.new_request().set_response_body(target)
        with pytest.raises(StatusError, match="not here"):
            req.do_get("/download")

        assert target.response is None
        assert req.response.raw.stream.closed is True


# ---------------------------------------------------------------------------
# Closing
# ---------------------------------------------------------------------------


class TestCloseRawResponse:
    def test_close_failure_is_logged(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200))
        logger = MagicMock()
        client.set_logger(logger)
        req = client.new_request()
        req.response.raw = MagicMock(spec=httpx.Response)
        req.response.raw.close.side_effect = OSError("connection reset")

        close_raw_response(req)

        logger.error.assert_called_once_with("error when closing response body: connection reset")

    def test_streamed_response_is_left_open(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200))
        req = client.new_request()
        req.response.raw = MagicMock(spec=httpx.Response)
        req.response.streamed = True

        close_raw_response(req)

        req.response.raw.close.assert_not_called()
