from __future__ import annotations

import anyio
import pytest

from pushserve.exceptions import PushPromiseError
from pushserve.push import push_asset
from pushserve.requests import Request
from pushserve.streaming import FileHandle
from tests.payloads import INDEX_HTML

pytestmark = pytest.mark.anyio


def http_scope(path="/", query_string=b"", push=True, headers=None):
    return {
        "type": "http",
        "http_version": "2" if push else "1.1",
        "method": "GET",
        "path": path,
        "query_string": query_string,
        "headers": headers or [],
        "extensions": {"http.response.push": {}} if push else {},
    }


async def receive():
    await anyio.sleep_forever()


@pytest.fixture
def events(monkeypatch):
    recorded: list[tuple[str, str]] = []
    original = FileHandle.open

    async def open(self):
        recorded.append(("open", self.path))
        return await original(self)

    monkeypatch.setattr(FileHandle, "open", open)
    return recorded


def recording_send(events):
    async def send(message):
        if message["type"] == "http.response.push":
            events.append(("push", message["path"]))
        elif message["type"] == "http.response.start":
            events.append(("start", message["status"]))
        elif message["type"] == "http.response.body":
            events.append(("body", message["body"]))

    return send


@pytest.mark.parametrize("query_string", [b"push=true", b"push", b"push=", b"push=false&x=1"])
async def test_push_before_entry_page(app, settings, events, query_string):
    await app(http_scope(query_string=query_string), receive, recording_send(events))

    assert events == [
        ("push", "/static/styles.css"),
        ("push", "/static/scripts.js"),
        ("open", settings.index_path),
        ("start", 200),
        ("body", INDEX_HTML),
    ]


@pytest.mark.parametrize("query_string", [b"", b"pushed=true", b"x=push"])
async def test_no_push_without_push_key(app, settings, events, query_string):
    await app(http_scope(query_string=query_string), receive, recording_send(events))

    assert events == [
        ("open", settings.index_path),
        ("start", 200),
        ("body", INDEX_HTML),
    ]


async def test_push_forwards_negotiation_headers(app):
    pushes = []

    async def send(message):
        if message["type"] == "http.response.push":
            pushes.append(message)

    headers = [
        (b"user-agent", b"agent/1.0"),
        (b"accept-encoding", b"gzip"),
        (b"cookie", b"secret=1"),
    ]
    await app(http_scope(query_string=b"push", headers=headers), receive, send)

    assert len(pushes) == 2
    for push in pushes:
        assert sorted(push["headers"]) == [
            (b"accept-encoding", b"gzip"),
            (b"user-agent", b"agent/1.0"),
        ]


async def test_push_skipped_without_transport_support(app, settings, events):
    await app(http_scope(query_string=b"push=true", push=False), receive, recording_send(events))

    assert events == [
        ("open", settings.index_path),
        ("start", 200),
        ("body", INDEX_HTML),
    ]


async def test_push_asset_reports_support():
    sent = []

    async def send(message):
        sent.append(message)

    with_push = Request(http_scope(), receive, send)
    without_push = Request(http_scope(push=False), receive, send)

    assert await push_asset(with_push, "/static/styles.css") is True
    assert await push_asset(without_push, "/static/styles.css") is False
    assert sent == [{"type": "http.response.push", "path": "/static/styles.css", "headers": []}]


async def test_push_failure_fails_the_request(app, events):
    async def send(message):
        if message["type"] == "http.response.push":
            raise OSError("connection is closing")
        events.append(("sent", message["type"]))  # pragma: no cover

    with pytest.raises(PushPromiseError) as raised:
        await app(http_scope(query_string=b"push=true"), receive, send)

    assert isinstance(raised.value.__cause__, OSError)
    assert "/static/styles.css" in raised.value.detail
    assert events == []


async def test_push_failure_keeps_earlier_pushes(app, events):
    async def send(message):
        if message["type"] == "http.response.push":
            events.append(("push", message["path"]))
            if message["path"] == "/static/scripts.js":
                raise RuntimeError("push refused")

    with pytest.raises(PushPromiseError):
        await app(http_scope(query_string=b"push=true"), receive, send)

    assert events == [("push", "/static/styles.css"), ("push", "/static/scripts.js")]


async def test_push_is_not_offered_on_static_files(app, events):
    await app(
        http_scope(path="/static/styles.css", query_string=b"push=true"),
        receive,
        recording_send(events),
    )

    assert [event[0] for event in events] == ["open", "start", "body"]


async def test_decoded_question_mark_does_not_push(app, events):
    await app(http_scope(path="/?push"), receive, recording_send(events))

    assert events == [("start", 404), ("body", b"Not found")]
