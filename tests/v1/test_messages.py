"""Tests for message retrieval, tool-facing sends and the live stream endpoint."""

import asyncio

import pytest
from fastapi import Request, status
from fastapi.testclient import TestClient
from sse_starlette import EventSourceResponse, ServerSentEvent

from inbox_broker.api.v1.endpoints.messages import stream_messages
from inbox_broker.schemas import InboxCreated
from inbox_broker.services.broker import InboxBroker

STREAM_TIMEOUT = 1.0


def _seed(broker: InboxBroker, inbox: InboxCreated) -> None:
    events = [
        {"source": "github", "topic": "pr.opened", "ref": "PR-1"},
        {"source": "github", "topic": "issue.opened", "ref": "ISSUE-9"},
        {"source": "ci/runner", "topic": "build.failed", "ref": "PR-1"},
        {"source": "github", "topic": "pr.merged", "ref": "PR-1"},
    ]
    for event in events:
        broker.ingest(inbox.id, inbox.public_key, event)


def test_get_messages_newest_first(
    client: TestClient, broker: InboxBroker, inbox: InboxCreated, owner_headers: dict[str, str]
) -> None:
    _seed(broker, inbox)

    response = client.get(f"/api/v1/inboxes/{inbox.id}/messages", headers=owner_headers)
    assert response.status_code == status.HTTP_200_OK
    topics = [message["body"]["topic"] for message in response.json()]
    assert topics == ["pr.merged", "build.failed", "issue.opened", "pr.opened"]


def test_get_messages_filters_and_limit(
    client: TestClient, broker: InboxBroker, inbox: InboxCreated, owner_headers: dict[str, str]
) -> None:
    """Filters are substring matches combined with AND; limit counts matches."""
    _seed(broker, inbox)
    url = f"/api/v1/inboxes/{inbox.id}/messages"

    pr_events = client.get(url, params={"topic": "pr"}, headers=owner_headers).json()
    assert [m["body"]["topic"] for m in pr_events] == ["pr.merged", "pr.opened"]

    combined = client.get(
        url, params={"source": "github", "ref": "PR-1"}, headers=owner_headers
    ).json()
    assert [m["body"]["topic"] for m in combined] == ["pr.merged", "pr.opened"]

    limited = client.get(url, params={"ref": "PR", "limit": 2}, headers=owner_headers).json()
    assert [m["body"]["topic"] for m in limited] == ["pr.merged", "build.failed"]

    assert client.get(url, params={"topic": "PR"}, headers=owner_headers).json() == []


def test_get_messages_requires_private_secret(client: TestClient, inbox: InboxCreated) -> None:
    url = f"/api/v1/inboxes/{inbox.id}/messages"

    assert client.get(url).status_code == status.HTTP_401_UNAUTHORIZED
    assert client.get(url, params={"secret": inbox.public_key}).status_code == (
        status.HTTP_404_NOT_FOUND
    )


def test_send_message(
    client: TestClient, broker: InboxBroker, inbox: InboxCreated, sender_headers: dict[str, str]
) -> None:
    response = client.post(
        f"/api/v1/inboxes/{inbox.id}/messages",
        json={"source": "agent-7", "topic": "task.done", "payload": {"ok": 1}},
        headers=sender_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["ok"] is True
    assert data["message"]["body"] == {"source": "agent-7", "topic": "task.done", "payload": {"ok": 1}}
    assert data["message"]["headers"]["user-agent"] == "inbox-broker-tool"

    stored = broker.get_messages(inbox.id, inbox.private_secret)
    assert [message.id for message in stored] == [data["message"]["id"]]


def test_send_message_keeps_explicit_null_payload(
    client: TestClient, inbox: InboxCreated, sender_headers: dict[str, str]
) -> None:
    url = f"/api/v1/inboxes/{inbox.id}/messages"

    explicit = client.post(
        url, json={"source": "a", "topic": "t", "payload": None}, headers=sender_headers
    )
    omitted = client.post(url, json={"source": "a", "topic": "t"}, headers=sender_headers)

    assert explicit.json()["message"]["body"] == {"source": "a", "topic": "t", "payload": None}
    assert omitted.json()["message"]["body"] == {"source": "a", "topic": "t"}


def test_send_message_with_empty_topic(
    client: TestClient, inbox: InboxCreated, sender_headers: dict[str, str]
) -> None:
    response = client.post(
        f"/api/v1/inboxes/{inbox.id}/messages",
        json={"source": "agent-7", "topic": ""},
        headers=sender_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert [error["field"] for error in response.json()["errors"]] == ["topic"]


def test_send_message_without_key(client: TestClient, inbox: InboxCreated) -> None:
    response = client.post(
        f"/api/v1/inboxes/{inbox.id}/messages", json={"source": "agent-7", "topic": "t"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_stream_rejects_bad_credentials(
    client: TestClient, broker: InboxBroker, inbox: InboxCreated
) -> None:
    """The stream is refused before any event is sent."""
    url = f"/api/v1/inboxes/{inbox.id}/stream"

    assert client.get(url).status_code == status.HTTP_401_UNAUTHORIZED
    assert client.get(url, params={"secret": inbox.public_key}).status_code == (
        status.HTTP_404_NOT_FOUND
    )
    assert client.get(
        "/api/v1/inboxes/00000000-0000-0000-0000-000000000000/stream",
        params={"secret": inbox.private_secret},
    ).status_code == status.HTTP_404_NOT_FOUND
    assert broker.hub.subscriber_count() == 0


def _stream_request(headers: dict[str, str] | None = None) -> Request:
    raw = [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()]
    return Request(
        {"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""}
    )


async def _next_event(response: EventSourceResponse) -> bytes:
    event = await asyncio.wait_for(response.body_iterator.__anext__(), STREAM_TIMEOUT)
    return ServerSentEvent(**event).encode()


@pytest.mark.asyncio
async def test_stream_resumes_from_last_event_id_and_releases_on_disconnect(
    broker: InboxBroker, inbox: InboxCreated
) -> None:
    """Replay after Last-Event-ID, then the live tail; closing frees the subscriber."""
    first, missed = (
        broker.ingest(inbox.id, inbox.public_key, {"source": "s", "topic": "t", "payload": n})
        for n in range(2)
    )

    response = await stream_messages(
        inbox.id,
        _stream_request({"Last-Event-ID": first.id}),
        broker,
        inbox.private_secret,
        after=None,
    )
    assert isinstance(response, EventSourceResponse)
    assert broker.hub.subscriber_count(inbox.id) == 1

    live = broker.ingest(inbox.id, inbox.public_key, {"source": "s", "topic": "t", "payload": 2})

    replayed = await _next_event(response)
    assert b"event: message" in replayed
    assert f"id: {missed.id}".encode() in replayed
    assert f"id: {live.id}".encode() in await _next_event(response)

    # Runs once the client is gone.
    await response.background()
    with pytest.raises(StopAsyncIteration):
        await _next_event(response)
    assert broker.hub.subscriber_count(inbox.id) == 0


@pytest.mark.asyncio
async def test_stream_after_parameter_takes_precedence(
    broker: InboxBroker, inbox: InboxCreated
) -> None:
    sent = [
        broker.ingest(inbox.id, inbox.public_key, {"source": "s", "topic": "t", "payload": n})
        for n in range(3)
    ]

    response = await stream_messages(
        inbox.id,
        _stream_request({"Last-Event-ID": sent[1].id}),
        broker,
        inbox.private_secret,
        after=sent[0].id,
    )
    events = [await _next_event(response) for _ in range(2)]

    assert f"id: {sent[1].id}".encode() in events[0]
    assert f"id: {sent[2].id}".encode() in events[1]
    await response.background()
    await response.body_iterator.aclose()
    assert broker.hub.subscriber_count(inbox.id) == 0
