#!/usr/bin/env python3
import argparse
import os
import sys
from typing import Optional

import httpx
from loguru import logger

STATUS_UP = 1


def get_api_url() -> str:
    """Get API URL from environment variable or use default"""
    return os.getenv("STATUS_API_URL", "http://localhost:8080")


def latest_heartbeat(heartbeats: dict, monitor_id) -> Optional[dict]:
    beats = heartbeats.get(str(monitor_id)) or []
    return beats[-1] if beats else None


def format_monitor_status(monitor: dict, heartbeats: dict, uptimes: dict) -> str:
    """Format a single monitor status into a readable string"""
    monitor_id = monitor.get("id")
    name = monitor.get("name", f"monitor {monitor_id}")
    beat = latest_heartbeat(heartbeats, monitor_id)

    if beat is None:
        state = "unknown"
    else:
        state = "up" if beat.get("status") == STATUS_UP else "down"

    uptime = uptimes.get(f"{monitor_id}_24")
    uptime_str = f"{uptime * 100:.2f}%" if uptime is not None else "n/a"
    ping = beat.get("ping") if beat else None
    ping_str = f", ping: {ping}ms" if ping is not None else ""

    return f"{name:30} | Status: {state:7} | Uptime 24h: {uptime_str:>7}{ping_str}"


def count_online(monitors: list, heartbeats: dict) -> int:
    online = 0
    for monitor in monitors:
        beat = latest_heartbeat(heartbeats, monitor.get("id"))
        if beat is not None and beat.get("status") == STATUS_UP:
            online += 1
    return online


def fetch_status(api_url: str, transport: Optional[httpx.BaseTransport] = None) -> dict:
    with httpx.Client(timeout=15.0, transport=transport) as client:
        response = client.get(f"{api_url}/api/status")
        response.raise_for_status()
        return response.json()


def main(argv: Optional[list] = None, transport: Optional[httpx.BaseTransport] = None) -> int:
    """Check and display aggregated monitor status of a running server"""
    parser = argparse.ArgumentParser(description="Show monitor status reported by the status API")
    parser.add_argument("--url", default=get_api_url(), help="base URL of the status API")
    args = parser.parse_args(argv)

    logger.info(f"Checking monitor status at {args.url}")
    try:
        data = fetch_status(args.url, transport=transport)
    except Exception as e:
        logger.error(f"Failed to get monitor status: {e}")
        return 1

    if "error" in data:
        logger.error(f"Server reported: {data['error']}")
        return 1

    monitors = data["monitors"]
    heartbeats = data["heartbeats"]
    uptimes = data["uptimes"]

    print("\nMonitor Status:")
    print("-" * 80)
    if not monitors:
        print("No monitors on the status page.")
        return 0

    for monitor in sorted(monitors, key=lambda m: str(m.get("name", ""))):
        print(format_monitor_status(monitor, heartbeats, uptimes))
    print("-" * 80)
    print(f"{count_online(monitors, heartbeats)}/{len(monitors)} monitors online")
    return 0


if __name__ == "__main__":
    sys.exit(main())
