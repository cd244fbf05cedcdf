"""HTTP layer against httpx.MockTransport: envelopes, error codes, auth and the SSE channel."""

import json

import httpx
import pytest

from chatsync.auth import Auth
from chatsync.errors import AuthError, ChatSyncError, FetchError, SendError, TransportError
from chatsync.messages import MessagesAPI
from chatsync.models.message import MessageKind
from chatsync.transport.channel import PushHandlers
from chatsync.transport.http import HttpClient
from chatsync.transport.sse import SSEPushChannel, iter_sse, new_message_count
from conftest import wait_for


def row(message_id, content="hi", **extra):
    data = {
        "id": message_id,
        "type": "text",
        "content": content,
        "device_id": "web-a",
        "timestamp": f"2024-05-01 12:00:{message_id:02d}",
    }
    data.update(extra)
    return data


def ok(data):
    return httpx.Response(200, json={"success": True, "data": data})


def make_http(handler, token="tok-123"):
    return HttpClient("http://edge.test", token=token, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_latest_sends_bearer_token_and_parses_rows():
    seen = []

    def handler(request):
        seen.append(request)
        return ok([row(3), row(2, "photo.jpg", type="file", r2_key="k/2", file_size=10, mime_type="image/jpeg")])

    http = make_http(handler)
    messages = await MessagesAPI(http).fetch_latest(50)
    await http.close()

    request = seen[0]
    assert request.url.path == "/api/messages"
    assert request.url.params["limit"] == "50"
    assert request.url.params["offset"] == "0"
    assert request.headers["Authorization"] == "Bearer tok-123"
    assert [m.id for m in messages] == [3, 2]
    assert messages[1].kind == MessageKind.FILE
    assert messages[1].file is not None
    assert messages[1].file.r2_key == "k/2"


@pytest.mark.asyncio
async def test_http_status_maps_to_fetch_error():
    http = make_http(lambda request: httpx.Response(401, text="unauthorized"))
    with pytest.raises(FetchError) as exc_info:
        await MessagesAPI(http).fetch_latest(10)
    await http.close()
    assert exc_info.value.code == "http_error"
    assert exc_info.value.details == {"status": 401}


@pytest.mark.asyncio
async def test_unsuccessful_envelope_maps_to_api_error():
    http = make_http(lambda request: httpx.Response(200, json={"success": False, "error": "nope"}))
    with pytest.raises(FetchError) as exc_info:
        await MessagesAPI(http).fetch_latest(10)
    await http.close()
    assert exc_info.value.code == "api_error"
    assert "nope" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_failure_maps_to_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = make_http(handler)
    with pytest.raises(FetchError) as exc_info:
        await MessagesAPI(http).probe(timeout=1.0)
    await http.close()
    assert exc_info.value.code == "network_error"


@pytest.mark.asyncio
async def test_fetch_older_keeps_only_strictly_older_rows_ascending():
    def handler(request):
        assert request.url.params["before"] == "10"
        return ok([row(9), row(10), row(7), row(8)])

    http = make_http(handler)
    older = await MessagesAPI(http).fetch_older(10, 2)
    await http.close()
    assert [m.id for m in older] == [8, 9]


@pytest.mark.asyncio
async def test_poll_parses_camel_case_result():
    def handler(request):
        assert request.url.path == "/api/poll"
        assert request.url.params["deviceId"] == "cli-1"
        assert request.url.params["lastMessageId"] == "42"
        return httpx.Response(200, json={
            "success": True, "hasNewMessages": True, "newMessageCount": 3,
            "timestamp": "2024-05-01T12:00:00.000Z",
        })

    http = make_http(handler)
    result = await MessagesAPI(http).poll("cli-1", 42)
    await http.close()
    assert result.has_new_messages
    assert result.new_message_count == 3


@pytest.mark.asyncio
async def test_send_text_posts_content_and_wraps_failures():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        if len(bodies) == 1:
            return ok({"id": 77})
        return httpx.Response(500, text="boom")

    http = make_http(handler)
    api = MessagesAPI(http)
    result = await api.send_text("hello", "cli-1")
    assert result.id == 77
    assert bodies[0] == {"content": "hello", "deviceId": "cli-1"}

    with pytest.raises(SendError) as exc_info:
        await api.send_text("again", "cli-1")
    await http.close()
    assert exc_info.value.details == {"cause": "http_error"}


@pytest.mark.asyncio
async def test_sync_device_is_best_effort():
    http = make_http(lambda request: httpx.Response(503, text="down"))
    assert await MessagesAPI(http).sync_device("cli-1", "terminal") is False
    await http.close()


@pytest.mark.asyncio
async def test_clear_all_reports_counts_and_raises_on_bad_code():
    responses = [
        ok({"deletedMessages": 4, "deletedFiles": 1, "deletedFileSize": 2048, "deletedR2Files": 1}),
        httpx.Response(403, json={"success": False, "error": "bad code"}),
    ]
    http = make_http(lambda request: responses.pop(0))
    api = MessagesAPI(http)
    result = await api.clear_all("1234")
    assert result.deleted_messages == 4
    assert result.deleted_file_size == 2048
    with pytest.raises(ChatSyncError) as exc_info:
        await api.clear_all("0000")
    await http.close()
    assert exc_info.value.code == "clear_failed"


@pytest.mark.asyncio
async def test_login_installs_token():
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path == "/api/auth/login":
            return httpx.Response(200, json={"success": True, "token": "fresh", "expiresAt": "2024-06-01T00:00:00Z"})
        return httpx.Response(200, json={"valid": True, "payload": {"exp": 1717200000}})

    http = make_http(handler, token=None)
    auth = Auth(http)
    await auth.login("secret")
    assert http.token == "fresh"
    assert "Authorization" not in seen[0].headers
    assert await auth.verify() is True
    assert seen[1].headers["Authorization"] == "Bearer fresh"
    await http.close()


@pytest.mark.asyncio
async def test_login_rejected_raises_auth_error():
    http = make_http(lambda request: httpx.Response(401, json={"success": False, "error": "wrong password"}), token=None)
    with pytest.raises(AuthError):
        await Auth(http).login("wrong")
    assert http.token is None
    await http.close()


@pytest.mark.asyncio
async def test_logout_clears_token_even_on_failure():
    http = make_http(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(AuthError):
        await Auth(http).logout()
    assert http.token is None
    await http.close()


async def _lines(*lines):
    for line in lines:
        yield line


@pytest.mark.asyncio
async def test_iter_sse_groups_fields_into_events():
    events = [
        item async for item in iter_sse(_lines(
            ": comment", "event: connection", 'data: {"deviceId": "a"}', "",
            'data: {"newMessages": 2}', "",
            "event: heartbeat", "data: {}",
        ))
    ]
    assert events == [
        ("connection", '{"deviceId": "a"}'),
        ("message", '{"newMessages": 2}'),
        ("heartbeat", "{}"),
    ]


def test_new_message_count_tolerates_garbage():
    assert new_message_count('{"newMessages": 3}') == 3
    assert new_message_count("not json") == 0
    assert new_message_count('{"other": 1}') == 0
    assert new_message_count("[1, 2]") == 0


@pytest.mark.asyncio
async def test_sse_channel_reports_open_data_and_closure():
    stream = (
        "event: connection\ndata: {}\n\n"
        'event: message\ndata: {"newMessages": 2}\n\n'
        "event: heartbeat\ndata: {}\n\n"
        'event: message\ndata: {"newMessages": 0}\n\n'
    )
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=stream.encode(), headers={"Content-Type": "text/event-stream"})

    calls = []
    handlers = PushHandlers(
        on_open=lambda: calls.append("open"),
        on_data=lambda count: calls.append(("data", count)),
        on_error=lambda exc: calls.append(("error", type(exc))),
    )
    http = make_http(handler)
    channel = SSEPushChannel.factory(http)("cli-1", handlers)
    await wait_for(lambda: len(calls) == 3)
    channel.close()
    await http.close()

    assert calls == ["open", ("data", 2), ("error", TransportError)]
    assert seen[0].url.path == "/api/events"
    assert seen[0].url.params["deviceId"] == "cli-1"
    assert seen[0].url.params["token"] == "tok-123"
    assert not channel.is_open


@pytest.mark.asyncio
async def test_sse_channel_rejected_stream_reports_error():
    calls = []
    handlers = PushHandlers(
        on_open=lambda: calls.append("open"),
        on_data=lambda count: calls.append("data"),
        on_error=lambda exc: calls.append(exc),
    )
    http = make_http(lambda request: httpx.Response(401, text="unauthorized"))
    channel = SSEPushChannel(http, "cli-1", handlers)
    await wait_for(lambda: len(calls) == 1)
    channel.close()
    await http.close()
    assert isinstance(calls[0], TransportError)


@pytest.mark.asyncio
async def test_malformed_row_maps_to_decode_error():
    http = make_http(lambda request: ok([row(1), {"id": "not-a-number", "type": "text"}]))
    with pytest.raises(FetchError) as exc_info:
        await MessagesAPI(http).fetch_latest(10)
    await http.close()
    assert exc_info.value.code == "decode_error"
    assert exc_info.value.details["errors"]


@pytest.mark.asyncio
async def test_malformed_send_response_is_a_send_error():
    http = make_http(lambda request: ok({"unexpected": True}))
    with pytest.raises(SendError) as exc_info:
        await MessagesAPI(http).send_text("hello", "cli-1")
    await http.close()
    assert exc_info.value.details == {"cause": "decode_error"}
