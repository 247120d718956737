"""Status aggregation.

This module is responsible for:
1. Fetching the monitor list and the heartbeat/uptime data from the monitoring service
2. Merging both payloads into one AggregatedStatus
3. Collapsing any failure into a single absent result, never a partial object
"""

import asyncio
from typing import Any, Optional, Tuple

import httpx
from loguru import logger

from status_api.models import AggregatedStatus, UpstreamEndpoint
from status_api.upstream import UpstreamError, fetch_json

SERVICES_PATH = "/api/status-page/services"
HEARTBEAT_PATH = "/api/status-page/heartbeat/services"


class AggregationError(Exception):
    """Upstream payloads arrived but do not have the expected shape"""


def merge_status(services: Any, heartbeat: Any) -> AggregatedStatus:
    """Build AggregatedStatus from the two upstream payloads.

    Only the first public group is reported. An empty group list is an
    explicit failure rather than an empty result.
    """
    try:
        groups = services["publicGroupList"]
    except (KeyError, TypeError) as e:
        raise AggregationError("services payload has no publicGroupList") from e
    if not isinstance(groups, list) or not groups:
        raise AggregationError("services payload has an empty publicGroupList")

    try:
        monitors = groups[0]["monitorList"]
    except (KeyError, TypeError) as e:
        raise AggregationError("first public group has no monitorList") from e

    try:
        heartbeats = heartbeat["heartbeatList"]
        uptimes = heartbeat["uptimeList"]
    except (KeyError, TypeError) as e:
        raise AggregationError(f"heartbeat payload is missing {e}") from e

    try:
        return AggregatedStatus(monitors=monitors, heartbeats=heartbeats, uptimes=uptimes)
    except ValueError as e:
        raise AggregationError(f"unexpected payload types: {e}") from e


class StatusAggregator:
    """Fetches and merges monitoring data for one configured upstream endpoint"""

    def __init__(
        self,
        endpoint: UpstreamEndpoint,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    async def _fetch(self, path: str) -> Any:
        return await fetch_json(self.endpoint.url(path), timeout=self.timeout, transport=self._transport)

    async def _fetch_both(self) -> Tuple[Any, Any]:
        """Fetch both payloads concurrently; the first failure cancels the other call"""
        tasks = [
            asyncio.create_task(self._fetch(SERVICES_PATH)),
            asyncio.create_task(self._fetch(HEARTBEAT_PATH)),
        ]
        try:
            services, heartbeat = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return services, heartbeat

    async def fetch_status(self) -> Optional[AggregatedStatus]:
        """Return merged status, or None if anything went wrong"""
        logger.info(f"Fetching status from monitoring service at {self.endpoint.host}:{self.endpoint.port}")
        try:
            services, heartbeat = await self._fetch_both()
            status = merge_status(services, heartbeat)
        except UpstreamError as e:
            logger.error(f"Failed to fetch monitoring status ({e.kind}): {e}")
            return None
        except AggregationError as e:
            logger.error(f"Failed to aggregate monitoring status: {e}")
            return None

        logger.info(f"Fetched status for {len(status.monitors)} monitors")
        return status
