import asyncio
import time

import httpx
import pytest
from httpx import ASGITransport

from status_api.aggregator import (
    HEARTBEAT_PATH,
    SERVICES_PATH,
    AggregationError,
    StatusAggregator,
    merge_status,
)
from status_api.models import UpstreamEndpoint
from tests.mocks.fake_uptime_kuma import HEARTBEAT_PAYLOAD, SERVICES_PAYLOAD
from tests.mocks.fake_uptime_kuma import app as fake_kuma_app

ENDPOINT = UpstreamEndpoint(host="kuma.test", port=3001)


def routed_transport(services=None, heartbeat=None, fail_path=None, error=httpx.ConnectError):
    """MockTransport answering both status-page endpoints, optionally failing one"""

    def handler(request):
        if request.url.path == fail_path:
            raise error("upstream failure", request=request)
        if request.url.path == SERVICES_PATH:
            return httpx.Response(200, json=SERVICES_PAYLOAD if services is None else services)
        if request.url.path == HEARTBEAT_PATH:
            return httpx.Response(200, json=HEARTBEAT_PAYLOAD if heartbeat is None else heartbeat)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def test_merge_status_takes_first_group():
    status = merge_status(SERVICES_PAYLOAD, HEARTBEAT_PAYLOAD)
    assert status.monitors == SERVICES_PAYLOAD["publicGroupList"][0]["monitorList"]
    assert status.heartbeats == HEARTBEAT_PAYLOAD["heartbeatList"]
    assert status.uptimes == HEARTBEAT_PAYLOAD["uptimeList"]


def test_merge_status_empty_group_list_is_an_error():
    with pytest.raises(AggregationError, match="empty publicGroupList"):
        merge_status({"publicGroupList": []}, HEARTBEAT_PAYLOAD)


@pytest.mark.parametrize(
    "services, heartbeat",
    [
        ({}, HEARTBEAT_PAYLOAD),
        ({"publicGroupList": [{"id": 1}]}, HEARTBEAT_PAYLOAD),
        (SERVICES_PAYLOAD, {"heartbeatList": {}}),
        (SERVICES_PAYLOAD, ["not", "a", "mapping"]),
    ],
)
def test_merge_status_missing_keys(services, heartbeat):
    with pytest.raises(AggregationError):
        merge_status(services, heartbeat)


async def test_fetch_status_against_fake_upstream():
    aggregator = StatusAggregator(ENDPOINT, transport=ASGITransport(app=fake_kuma_app))
    status = await aggregator.fetch_status()

    assert status is not None
    assert set(status.model_dump()) == {"monitors", "heartbeats", "uptimes"}
    assert [m["name"] for m in status.monitors] == ["Website", "Game Server"]


async def test_fetch_status_issues_both_requests_to_configured_endpoint():
    seen = []

    def handler(request):
        seen.append((request.url.host, request.url.port, request.url.path))
        payload = SERVICES_PAYLOAD if request.url.path == SERVICES_PATH else HEARTBEAT_PAYLOAD
        return httpx.Response(200, json=payload)

    aggregator = StatusAggregator(
        UpstreamEndpoint(host="10.0.0.5", port=3002), transport=httpx.MockTransport(handler)
    )
    assert await aggregator.fetch_status() is not None
    assert sorted(seen) == [
        ("10.0.0.5", 3002, HEARTBEAT_PATH),
        ("10.0.0.5", 3002, SERVICES_PATH),
    ]


@pytest.mark.parametrize("fail_path", [SERVICES_PATH, HEARTBEAT_PATH])
async def test_fetch_status_returns_none_when_either_call_fails(fail_path):
    aggregator = StatusAggregator(ENDPOINT, transport=routed_transport(fail_path=fail_path))
    assert await aggregator.fetch_status() is None


async def test_fetch_status_returns_none_on_timeout():
    aggregator = StatusAggregator(
        ENDPOINT, timeout=0.1, transport=routed_transport(fail_path=HEARTBEAT_PATH, error=httpx.ReadTimeout)
    )
    assert await aggregator.fetch_status() is None


async def test_fetch_status_returns_none_for_empty_group_list():
    aggregator = StatusAggregator(ENDPOINT, transport=routed_transport(services={"publicGroupList": []}))
    assert await aggregator.fetch_status() is None


async def test_first_failure_cancels_the_other_call():
    cancelled = asyncio.Event()

    async def handler(request):
        if request.url.path == SERVICES_PATH:
            raise httpx.ConnectError("refused", request=request)
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return httpx.Response(200, json=HEARTBEAT_PAYLOAD)

    aggregator = StatusAggregator(ENDPOINT, timeout=10.0, transport=httpx.MockTransport(handler))
    started = time.monotonic()
    assert await aggregator.fetch_status() is None

    assert time.monotonic() - started < 1.0
    assert cancelled.is_set()
