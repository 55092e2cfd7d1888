"""Unit tests for weixinify/weixin_api/transport.py.

Covers:
- _parse_filename, _raise_for_errcode, _dump_payload
- request encoding on the wire (token injection, multipart, UTF-8 JSON)
- WeixinTransport.request (success, errcode errors, retry logic, debug dump)
- stream responses decoded as MediaDownload
- AsyncWeixinTransport equivalents
"""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from weixinify.config import WECOM_BASE_URL, WeixinifyConfig
from weixinify.errors import (
    ErrorCode,
    WeixinifyApiError,
    WeixinifyAuthError,
    WeixinifyFileNotFoundError,
    WeixinifyHTTPError,
    WeixinifyNetworkError,
    WeixinifyRetryExhaustedError,
    WeixinifySerializationError,
)
from weixinify.models import FilePath, InMemoryBuffer, MediaDownload, RequestDescriptor
from weixinify.upload import build_upload_request
from weixinify.weixin_api.transport import (
    AsyncWeixinTransport,
    WeixinTransport,
    _dump_payload,
    _parse_filename,
    _raise_for_errcode,
)

TOKEN = "test-token-1234"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_response(
    status_code: int = 200,
    body: dict | None = None,
    headers: dict | None = None,
    content: bytes | None = None,
) -> httpx.Response:
    """Build a minimal httpx.Response with a request attached."""
    if content is None:
        content = json.dumps(body).encode() if body is not None else b""
    default_headers = {"content-type": "application/json"} if body is not None else {}
    resp = httpx.Response(
        status_code,
        content=content,
        headers={**default_headers, **(headers or {})},
    )
    resp.request = httpx.Request("GET", f"{WECOM_BASE_URL}/test?access_token={TOKEN}")
    return resp


def make_config(**overrides) -> WeixinifyConfig:
    """Return a WeixinifyConfig tuned for fast, deterministic tests."""
    defaults = dict(
        access_token=TOKEN,
        retry_max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=False,
    )
    defaults.update(overrides)
    return WeixinifyConfig(**defaults)


class Recorder:
    """httpx.MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        template = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        return httpx.Response(
            template.status_code, headers=template.headers, content=template.content,
        )


def wire_transport(recorder: Recorder, **cfg) -> WeixinTransport:
    config = make_config(**cfg)
    t = WeixinTransport(config)
    t._client.close()
    t._client = httpx.Client(
        transport=httpx.MockTransport(recorder), base_url=config.base_url,
    )
    return t


def async_wire_transport(recorder: Recorder, **cfg) -> AsyncWeixinTransport:
    config = make_config(**cfg)
    t = AsyncWeixinTransport(config)
    t._client = httpx.AsyncClient(
        transport=httpx.MockTransport(recorder), base_url=config.base_url,
    )
    return t


def ok(body: dict | None = None) -> httpx.Response:
    return httpx.Response(200, json=body if body is not None else {"errcode": 0, "errmsg": "ok"})


def form_part_names(request: httpx.Request) -> list[str]:
    """Split a sent multipart body on its declared boundary and list part names."""
    boundary = request.headers["content-type"].split("boundary=", 1)[1].encode()
    names = []
    for chunk in request.content.split(b"--" + boundary)[1:]:
        if chunk.startswith(b"--"):
            break
        head = chunk.split(b"\r\n\r\n", 1)[0]
        names.append(re.search(rb'name="([^"]*)"', head).group(1).decode())
    return names


GET_ITEM = RequestDescriptor(method="GET", url="crm/get_external_contact", params={"external_userid": "e1"})


# ---------------------------------------------------------------------------
# Module helpers
# ---------------------------------------------------------------------------

class TestParseFilename:
    def test_quoted(self):
        assert _parse_filename('attachment; filename="MEDIA_ID.jpg"') == "MEDIA_ID.jpg"

    def test_unquoted(self):
        assert _parse_filename("attachment; filename=voice.amr") == "voice.amr"

    def test_rfc5987(self):
        assert _parse_filename("attachment; filename*=UTF-8''clip.mp4") == "clip.mp4"

    def test_rfc5987_percent_decoded(self):
        assert _parse_filename("attachment; filename*=UTF-8''%E8%A7%86%20a.mp4") == "视 a.mp4"

    def test_rfc5987_with_language_tag(self):
        assert _parse_filename("attachment; filename*=utf-8'zh'%E8%A7%86.mp4") == "视.mp4"

    def test_extended_form_preferred_over_plain(self):
        disposition = 'attachment; filename="fallback.mp4"; filename*=UTF-8''%E8%A7%86.mp4'
        assert _parse_filename(disposition) == "视.mp4"

    @pytest.mark.parametrize("extended", ["bogus-charset''%41", "UTF-8''%FF.mp4"])
    def test_undecodable_extended_form_falls_back(self, extended: str):
        disposition = f'attachment; filename="plain.mp4"; filename*={extended}'
        assert _parse_filename(disposition) == "plain.mp4"

    def test_missing(self):
        assert _parse_filename(None) is None
        assert _parse_filename("inline") is None


class TestRaiseForErrcode:
    def test_generic_errcode_raises_api_error(self):
        with pytest.raises(WeixinifyApiError) as exc_info:
            _raise_for_errcode({"errcode": 40007, "errmsg": "invalid media_id"}, "GET", "media/get")
        err = exc_info.value
        assert type(err) is WeixinifyApiError
        assert err.code == ErrorCode.API_ERROR
        assert err.errcode == 40007
        assert err.errmsg == "invalid media_id"
        assert err.context["path"] == "media/get"

    @pytest.mark.parametrize("errcode", [40001, 40014, 41001, 42001])
    def test_token_errcodes_raise_auth_error(self, errcode: int):
        with pytest.raises(WeixinifyAuthError) as exc_info:
            _raise_for_errcode({"errcode": errcode, "errmsg": "bad token"}, "POST", "message/send")
        assert exc_info.value.code == ErrorCode.AUTH_ERROR
        assert exc_info.value.errcode == errcode


class TestDumpPayload:
    def test_dump_with_payload_and_response(self, capsys):
        _dump_payload(
            method="POST",
            url=f"{WECOM_BASE_URL}/message/send",
            payload={"msgtype": "text"},
            response_status=200,
            response_body={"errcode": 0},
            token=None,
        )
        data = json.loads(capsys.readouterr().err)
        assert data["method"] == "POST"
        assert data["request_body"] == {"msgtype": "text"}
        assert data["response_status"] == 200

    def test_dump_without_response(self, capsys):
        _dump_payload("GET", "u", None, None, None)
        data = json.loads(capsys.readouterr().err)
        assert "response_status" not in data
        assert "request_body" not in data

    def test_token_is_redacted_in_dump(self, capsys):
        secret = "super-secret-token-9999"
        _dump_payload(
            method="POST",
            url=f"{WECOM_BASE_URL}/message/send?access_token={secret}",
            payload={"note": f"token is {secret}"},
            response_status=200,
            response_body=None,
            token=secret,
        )
        assert secret not in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Wire encoding
# ---------------------------------------------------------------------------

class TestWireEncoding:
    def test_access_token_injected(self):
        rec = Recorder(ok())
        with wire_transport(rec) as t:
            t.request(GET_ITEM)
        url = rec.requests[0].url
        assert url.params["access_token"] == TOKEN
        assert url.params["external_userid"] == "e1"
        assert url.path == "/cgi-bin/crm/get_external_contact"

    def test_token_provider_evaluated_per_attempt(self):
        tokens = iter(["tok-1", "tok-2"])
        rec = Recorder(ok({"errcode": -1, "errmsg": "busy"}), ok())
        with wire_transport(rec, token_provider=lambda: next(tokens)) as t:
            t.request(GET_ITEM)
        assert [r.url.params["access_token"] for r in rec.requests] == ["tok-1", "tok-2"]

    def test_json_body_is_utf8_without_escapes(self):
        rec = Recorder(ok())
        desc = RequestDescriptor(
            method="POST", url="message/send", json={"text": {"content": "你好"}},
        )
        with wire_transport(rec) as t:
            t.request(desc)
        req = rec.requests[0]
        assert req.method == "POST"
        assert req.headers["content-type"] == "application/json; charset=utf-8"
        assert "你好".encode() in req.content
        assert json.loads(req.content) == {"text": {"content": "你好"}}

    def test_unserialisable_json_raises_before_sending(self):
        rec = Recorder(ok())
        desc = RequestDescriptor(method="POST", url="message/send", json={"x": object()})
        with wire_transport(rec) as t, pytest.raises(WeixinifySerializationError):
            t.request(desc)
        assert rec.requests == []

    def test_multipart_file_upload(self, photo: Path):
        rec = Recorder(ok({"type": "image", "media_id": "m1", "created_at": 1}))
        desc = build_upload_request(FilePath(photo), "image", "media/upload")
        with wire_transport(rec) as t:
            result = t.request(desc)
        assert result["media_id"] == "m1"

        req = rec.requests[0]
        boundary = desc.multipart.boundary
        assert req.headers["content-type"] == f"multipart/form-data; boundary={boundary}"
        assert req.headers["accept"] == "application/json"
        assert req.url.params["type"] == "image"
        body = req.content
        assert f"--{boundary}".encode() in body
        assert b'name="media"; filename="photo.jpg"' in body
        assert b"Content-Type: image/jpeg" in body
        assert photo.read_bytes() in body

    def test_multipart_description_field(self):
        rec = Recorder(ok({"media_id": "v1"}))
        buf = InMemoryBuffer(data=b"mp4-bytes", filename="v.mp4", mime_type="video/mp4")
        desc = build_upload_request(
            buf, "video", "material/add_material",
            description={"title": "标题", "introduction": "intro"},
        )
        with wire_transport(rec) as t:
            t.request(desc)
        body = rec.requests[0].content
        assert b'name="description"' in body
        assert '{"title": "标题", "introduction": "intro"}'.encode() in body
        assert b"mp4-bytes" in body

    def test_boundary_from_earlier_request_cannot_split_body(self):
        size = 400
        earlier = build_upload_request(
            InMemoryBuffer(data=b"\x00" * size, filename="v.mp4", mime_type="video/mp4"),
            "video", "material/add_material", description={"title": "real"},
        )
        seen = earlier.multipart.boundary.encode()
        forged = (
            b"\r\n--" + seen
            + b'\r\nContent-Disposition: form-data; name="description"\r\n\r\n'
            + b'{"title": "INJECTED"}\r\n--' + seen + b"\r\n"
        ).ljust(size, b"x")
        desc = build_upload_request(
            InMemoryBuffer(data=forged, filename="v.mp4", mime_type="video/mp4"),
            "video", "material/add_material", description={"title": "real"},
        )
        assert desc.multipart.boundary != earlier.multipart.boundary

        rec = Recorder(ok({"media_id": "v1"}))
        with wire_transport(rec) as t:
            t.request(desc)
        assert sorted(form_part_names(rec.requests[0])) == ["description", "media"]
        assert forged in rec.requests[0].content

    def test_boundary_shaped_file_content_stays_in_media_part(self, tmp_path: Path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(
            b"\r\n--WeixinifyFormBoundary" + b"0" * 32
            + b'\r\nContent-Disposition: form-data; name="description"\r\n\r\n{}\r\n',
        )
        rec = Recorder(ok({"media_id": "v1"}))
        desc = build_upload_request(FilePath(path), "video", "material/add_material",
                                    description={"title": "real"})
        with wire_transport(rec) as t:
            t.request(desc)
        assert sorted(form_part_names(rec.requests[0])) == ["description", "media"]

    def test_file_removed_after_build_raises_file_not_found(self, tmp_path: Path):
        path = tmp_path / "gone.jpg"
        path.write_bytes(b"x")
        desc = build_upload_request(FilePath(path), "image", "media/upload")
        path.unlink()
        rec = Recorder(ok())
        with wire_transport(rec) as t, pytest.raises(WeixinifyFileNotFoundError):
            t.request(desc)
        assert rec.requests == []


# ---------------------------------------------------------------------------
# Sync WeixinTransport
# ---------------------------------------------------------------------------

class TestWeixinTransportRequest:
    """Tests for WeixinTransport.request()."""

    def _transport(self, **cfg_overrides) -> WeixinTransport:
        return WeixinTransport(make_config(**cfg_overrides))

    # -- Success cases -------------------------------------------------------

    def test_200_returns_json(self):
        transport = self._transport()
        resp = make_response(200, body={"errcode": 0, "errmsg": "ok", "follow_user": ["a"]})
        with patch.object(transport._client, "request", return_value=resp):
            result = transport.request(GET_ITEM)
        assert result["follow_user"] == ["a"]

    def test_body_without_errcode_returns_json(self):
        transport = self._transport()
        resp = make_response(200, body={"media_id": "m1", "created_at": 1})
        with patch.object(transport._client, "request", return_value=resp):
            assert transport.request(GET_ITEM) == {"media_id": "m1", "created_at": 1}

    def test_empty_body_returns_empty_dict(self):
        transport = self._transport()
        with patch.object(transport._client, "request", return_value=make_response(200)):
            assert transport.request(GET_ITEM) == {}

    def test_non_json_body_raises_http_error(self):
        transport = self._transport()
        resp = make_response(200, content=b"<html>", headers={"content-type": "text/html"})
        with (
            patch.object(transport._client, "request", return_value=resp),
            pytest.raises(WeixinifyHTTPError),
        ):
            transport.request(GET_ITEM)

    # -- Stream responses ----------------------------------------------------

    def test_stream_returns_media_download(self):
        transport = self._transport()
        resp = make_response(
            200,
            content=b"\xff\xd8jpeg",
            headers={
                "content-type": "image/jpeg",
                "content-disposition": 'attachment; filename="m1.jpg"',
            },
        )
        desc = RequestDescriptor(
            method="GET", url="media/get", params={"media_id": "m1"}, response_type="stream",
        )
        with patch.object(transport._client, "request", return_value=resp):
            result = transport.request(desc)
        assert isinstance(result, MediaDownload)
        assert result.content == b"\xff\xd8jpeg"
        assert result.content_type == "image/jpeg"
        assert result.filename == "m1.jpg"

    def test_stream_with_json_body_returns_dict(self):
        transport = self._transport()
        resp = make_response(200, body={"video_url": "http://v"})
        desc = RequestDescriptor(method="GET", url="media/get", response_type="stream")
        with patch.object(transport._client, "request", return_value=resp):
            assert transport.request(desc) == {"video_url": "http://v"}

    def test_stream_with_json_error_raises(self):
        transport = self._transport()
        resp = make_response(
            200,
            content=b'{"errcode":40007,"errmsg":"invalid media_id"}',
            headers={"content-type": "text/plain"},
        )
        desc = RequestDescriptor(method="GET", url="media/get", response_type="stream")
        with (
            patch.object(transport._client, "request", return_value=resp),
            pytest.raises(WeixinifyApiError) as exc_info,
        ):
            transport.request(desc)
        assert exc_info.value.errcode == 40007

    # -- errcode errors ------------------------------------------------------

    def test_errcode_raises_api_error_without_retry(self):
        transport = self._transport()
        resp = make_response(200, body={"errcode": 40007, "errmsg": "invalid media_id"})
        with (
            patch.object(transport._client, "request", return_value=resp) as mock_request,
            pytest.raises(WeixinifyApiError),
        ):
            transport.request(GET_ITEM)
        assert mock_request.call_count == 1

    def test_token_errcode_raises_auth_error(self):
        transport = self._transport()
        resp = make_response(200, body={"errcode": 42001, "errmsg": "access_token expired"})
        with (
            patch.object(transport._client, "request", return_value=resp),
            pytest.raises(WeixinifyAuthError),
        ):
            transport.request(GET_ITEM)

    def test_system_busy_retried_then_succeeds(self):
        transport = self._transport()
        busy = make_response(200, body={"errcode": -1, "errmsg": "system busy"})
        good = make_response(200, body={"errcode": 0, "errmsg": "ok"})
        with patch.object(
            transport._client, "request", side_effect=[busy, good],
        ) as mock_request:
            result = transport.request(GET_ITEM)
        assert result["errmsg"] == "ok"
        assert mock_request.call_count == 2

    def test_system_busy_on_every_attempt_raises_api_error(self):
        transport = self._transport(retry_max_attempts=3)
        busy = make_response(200, body={"errcode": -1, "errmsg": "system busy"})
        with (
            patch.object(transport._client, "request", return_value=busy) as mock_request,
            pytest.raises(WeixinifyApiError) as exc_info,
        ):
            transport.request(GET_ITEM)
        assert exc_info.value.errcode == -1
        assert mock_request.call_count == 3

    # -- HTTP status errors --------------------------------------------------

    def test_404_raises_http_error_immediately(self):
        transport = self._transport()
        resp = make_response(404, content=b"not found")
        with (
            patch.object(transport._client, "request", return_value=resp) as mock_request,
            pytest.raises(WeixinifyHTTPError) as exc_info,
        ):
            transport.request(GET_ITEM)
        assert exc_info.value.context["status_code"] == 404
        assert mock_request.call_count == 1

    def test_500_retried_success_on_second_attempt(self):
        transport = self._transport()
        with patch.object(
            transport._client, "request",
            side_effect=[make_response(500), make_response(200, body={"errcode": 0})],
        ):
            assert transport.request(GET_ITEM) == {"errcode": 0}

    def test_503_retry_exhausted_raises(self):
        transport = self._transport(retry_max_attempts=2)
        with (
            patch.object(transport._client, "request", return_value=make_response(503)) as mock_request,
            pytest.raises(WeixinifyRetryExhaustedError) as exc_info,
        ):
            transport.request(GET_ITEM)
        assert mock_request.call_count == 2
        assert exc_info.value.context == {"attempts": 2, "last_status_code": 503}

    # -- Network errors ------------------------------------------------------

    def test_timeout_retried_success(self):
        transport = self._transport()
        side_effect = [
            httpx.ReadTimeout("timed out", request=MagicMock()),
            make_response(200, body={"errcode": 0}),
        ]
        with patch.object(transport._client, "request", side_effect=side_effect):
            assert transport.request(GET_ITEM) == {"errcode": 0}

    def test_network_error_exhausted_raises_network_error(self):
        transport = self._transport(retry_max_attempts=2)
        with (
            patch.object(
                transport._client, "request",
                side_effect=httpx.ConnectError("connection refused"),
            ) as mock_request,
            pytest.raises(WeixinifyNetworkError) as exc_info,
        ):
            transport.request(GET_ITEM)
        assert mock_request.call_count == 2
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    # -- Metrics -------------------------------------------------------------

    def test_metrics_recorded(self):
        metrics = MagicMock()
        transport = self._transport(metrics=metrics)
        resp = make_response(200, body={"errcode": 0})
        with patch.object(transport._client, "request", return_value=resp):
            transport.request(GET_ITEM)
        names = [c.args[0] for c in metrics.increment.call_args_list]
        assert "weixinify.requests_total" in names
        metrics.timing.assert_called_once()
        assert metrics.timing.call_args.args[0] == "weixinify.request_duration_ms"

    def test_upload_bytes_gauge(self):
        metrics = MagicMock()
        transport = self._transport(metrics=metrics)
        buf = InMemoryBuffer(data=b"x" * 10, filename="a.amr", mime_type="audio/amr")
        desc = build_upload_request(buf, "voice", "media/upload")
        with patch.object(transport._client, "request", return_value=make_response(200, body={})):
            transport.request(desc)
        metrics.gauge.assert_called_once_with(
            "weixinify.upload_bytes", 10, tags={"path": "media/upload"},
        )

    def test_api_error_counted(self):
        metrics = MagicMock()
        transport = self._transport(metrics=metrics)
        resp = make_response(200, body={"errcode": 40007, "errmsg": "x"})
        with (
            patch.object(transport._client, "request", return_value=resp),
            pytest.raises(WeixinifyApiError),
        ):
            transport.request(GET_ITEM)
        names = [c.args[0] for c in metrics.increment.call_args_list]
        assert "weixinify.api_errors_total" in names

    # -- Debug dump ----------------------------------------------------------

    def test_debug_dump_redacts_token(self, capsys):
        rec = Recorder(ok())
        with wire_transport(rec, debug_dump_payload=True) as t:
            t.request(RequestDescriptor(method="POST", url="message/send", json={"a": 1}))
        err = capsys.readouterr().err
        assert '"response_status": 200' in err
        assert TOKEN not in err

    def test_debug_dump_describes_multipart_without_bytes(self, capsys):
        rec = Recorder(ok())
        buf = InMemoryBuffer(data=b"SECRET-BYTES", filename="a.jpg", mime_type="image/jpeg")
        with wire_transport(rec, debug_dump_payload=True) as t:
            t.request(build_upload_request(buf, "image", "media/upload"))
        err = capsys.readouterr().err
        assert '"filename": "a.jpg"' in err
        assert "SECRET-BYTES" not in err

    def test_no_debug_dump_when_disabled(self, capsys):
        rec = Recorder(ok())
        with wire_transport(rec) as t:
            t.request(GET_ITEM)
        assert "response_status" not in capsys.readouterr().err


class TestWeixinTransportLifecycle:
    def test_context_manager_closes_client(self):
        transport = WeixinTransport(make_config())
        with patch.object(transport._client, "close") as mock_close:
            with transport:
                pass
        mock_close.assert_called_once()


# ---------------------------------------------------------------------------
# Async transport
# ---------------------------------------------------------------------------

class TestAsyncWeixinTransport:
    async def test_json_request(self):
        rec = Recorder(ok({"errcode": 0, "errmsg": "ok"}))
        t = async_wire_transport(rec)
        async with t:
            result = await t.request(
                RequestDescriptor(method="POST", url="message/send", json={"x": "中"}),
            )
        assert result == {"errcode": 0, "errmsg": "ok"}
        assert rec.requests[0].url.params["access_token"] == TOKEN
        assert json.loads(rec.requests[0].content) == {"x": "中"}

    async def test_multipart_upload(self, photo: Path):
        rec = Recorder(ok({"media_id": "m1"}))
        desc = build_upload_request(FilePath(photo), "thumb", "media/upload")
        t = async_wire_transport(rec)
        async with t:
            await t.request(desc)
        body = rec.requests[0].content
        assert b'name="media"; filename="photo.jpg"' in body
        assert photo.read_bytes() in body

    async def test_file_part_read_off_event_loop(self, photo: Path):
        expected = photo.read_bytes()
        loop_thread = threading.get_ident()
        reader_threads: list[int] = []
        real_read_bytes = Path.read_bytes

        def spy(path: Path) -> bytes:
            reader_threads.append(threading.get_ident())
            return real_read_bytes(path)

        rec = Recorder(ok({"media_id": "m1"}))
        desc = build_upload_request(FilePath(photo), "image", "media/upload")
        t = async_wire_transport(rec)
        with (
            patch.object(Path, "read_bytes", spy),
            patch(
                "weixinify.weixin_api.transport.open", create=True,
                side_effect=AssertionError("file opened on the event loop"),
            ),
        ):
            async with t:
                await t.request(desc)
        assert reader_threads
        assert loop_thread not in reader_threads
        assert expected in rec.requests[0].content

    async def test_file_part_read_once_across_retries(self, photo: Path):
        calls: list[Path] = []
        real_read_bytes = Path.read_bytes

        def spy(path: Path) -> bytes:
            calls.append(path)
            return real_read_bytes(path)

        rec = Recorder(httpx.Response(500), ok({"media_id": "m1"}))
        desc = build_upload_request(FilePath(photo), "image", "media/upload")
        t = async_wire_transport(rec)
        with patch.object(Path, "read_bytes", spy):
            async with t:
                assert (await t.request(desc))["media_id"] == "m1"
        assert len(rec.requests) == 2
        assert len(calls) == 1
        assert rec.requests[0].content.count(b"\xff\xd8\xff\xe0") == 1

    async def test_file_removed_after_build_raises_file_not_found(self, tmp_path: Path):
        path = tmp_path / "gone.jpg"
        path.write_bytes(b"x")
        desc = build_upload_request(FilePath(path), "image", "media/upload")
        path.unlink()
        rec = Recorder(ok())
        t = async_wire_transport(rec)
        async with t:
            with pytest.raises(WeixinifyFileNotFoundError):
                await t.request(desc)
        assert rec.requests == []

    async def test_system_busy_retried(self):
        rec = Recorder(ok({"errcode": -1, "errmsg": "busy"}), ok({"errcode": 0}))
        t = async_wire_transport(rec)
        async with t:
            assert await t.request(GET_ITEM) == {"errcode": 0}
        assert len(rec.requests) == 2

    async def test_auth_error(self):
        rec = Recorder(ok({"errcode": 40014, "errmsg": "invalid access_token"}))
        t = async_wire_transport(rec)
        async with t:
            with pytest.raises(WeixinifyAuthError):
                await t.request(GET_ITEM)

    async def test_500_exhausted(self):
        rec = Recorder(httpx.Response(500))
        t = async_wire_transport(rec, retry_max_attempts=2)
        async with t:
            with pytest.raises(WeixinifyRetryExhaustedError):
                await t.request(GET_ITEM)
        assert len(rec.requests) == 2

    async def test_stream_download(self):
        rec = Recorder(httpx.Response(200, content=b"AMR", headers={"content-type": "audio/amr"}))
        t = async_wire_transport(rec)
        async with t:
            result = await t.request(
                RequestDescriptor(method="GET", url="media/get/jssdk", response_type="stream"),
            )
        assert isinstance(result, MediaDownload)
        assert result.content == b"AMR"
        assert result.filename is None

    async def test_network_error(self):
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        config = make_config(retry_max_attempts=1)
        t = AsyncWeixinTransport(config)
        t._client = httpx.AsyncClient(transport=httpx.MockTransport(fail), base_url=config.base_url)
        async with t:
            with pytest.raises(WeixinifyNetworkError):
                await t.request(GET_ITEM)
