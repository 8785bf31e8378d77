"""Tests for the hosted provider channel."""
from __future__ import annotations

import json

import httpx
import pytest

from app.services.push.channels.hosted import HostedPushChannel, logical_id
from app.services.push.types import MemberBatch, NotificationPayload


PAYLOAD = NotificationPayload(title="New event", body="Regionals on Saturday", url="/events/7")


def make_channel(handler=None, **overrides) -> HostedPushChannel:
    options = {"app_id": "app-123", "api_key": "rest-key", "default_icon": "/icons/icon-192x192.png"}
    options.update(overrides)
    transport = httpx.MockTransport(handler) if handler else None
    return HostedPushChannel(
        options["app_id"],
        options["api_key"],
        api_url="https://onesignal.test/api/v1/",
        timeout=2.0,
        default_icon=options["default_icon"],
        transport=transport,
    )


class Recorder:
    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_logical_ids_are_prefixed():
    assert logical_id(42) == "member_42"


@pytest.mark.asyncio
async def test_single_request_for_all_members():
    recorder = Recorder(httpx.Response(200, json={"id": "notif-1", "recipients": 3}))
    channel = make_channel(recorder)

    assert await channel.send_to_members([3, 1, 2], PAYLOAD) is True

    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://onesignal.test/api/v1/notifications"
    assert request.headers["Authorization"] == "Basic rest-key"
    body = json.loads(request.content)
    assert body == {
        "app_id": "app-123",
        "include_external_user_ids": ["member_3", "member_1", "member_2"],
        "headings": {"en": "New event"},
        "contents": {"en": "Regionals on Saturday"},
        "url": "/events/7",
        "icon": "/icons/icon-192x192.png",
        "chrome_web_icon": "/icons/icon-192x192.png",
    }


def test_payload_icon_overrides_default():
    channel = make_channel()
    payload = NotificationPayload(title="Hi", icon="/icons/trophy.png")

    request = channel.build_request([1], payload)

    assert request["icon"] == "/icons/trophy.png"
    assert request["chrome_web_icon"] == "/icons/trophy.png"


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [{"app_id": None}, {"api_key": ""}])
async def test_unconfigured_channel_makes_no_call(overrides):
    recorder = Recorder(httpx.Response(200, json={"id": "x"}))
    channel = make_channel(recorder, **overrides)

    assert channel.enabled is False
    assert await channel.send_to_members([1], PAYLOAD) is False
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_empty_member_list_makes_no_call():
    recorder = Recorder(httpx.Response(200, json={"id": "x"}))

    assert await make_channel(recorder).send_to_members([], PAYLOAD) is False
    assert recorder.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(302, headers={"Location": "https://onesignal.com/login"}, json={"id": "notif-1"}),
        httpx.Response(400, json={"errors": ["Invalid app_id"]}),
        httpx.Response(500, text="upstream exploded"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"errors": ["All included players are not subscribed"]}),
    ],
)
async def test_provider_failures_return_false(response):
    recorder = Recorder(response)

    assert await make_channel(recorder).send_to_members([1, 2], PAYLOAD) is False
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_transport_errors_are_contained():
    recorder = Recorder(httpx.ConnectTimeout("connect timed out"))

    outcome = await make_channel(recorder).deliver(MemberBatch((1,)), PAYLOAD)

    assert outcome.success is False
    assert outcome.terminal is False
    assert "ConnectTimeout" in outcome.error_detail


@pytest.mark.asyncio
async def test_deliver_reports_aggregate_outcome():
    recorder = Recorder(httpx.Response(200, json={"id": "notif-2"}))

    outcome = await make_channel(recorder).deliver(MemberBatch((4, 5)), PAYLOAD)

    assert outcome.success is True
    assert outcome.subscription_id is None
    assert outcome.status_code == 200


def test_collect_targets_batches_without_store():
    channel = make_channel()

    assert channel.collect_targets([1, 2, 3], store=None) == [MemberBatch((1, 2, 3))]
    assert channel.collect_targets([], store=None) == []
