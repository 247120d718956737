import httpx

from status_api.check_status import count_online, format_monitor_status, main
from tests.mocks.fake_uptime_kuma import HEARTBEAT_PAYLOAD, SERVICES_PAYLOAD

MONITORS = SERVICES_PAYLOAD["publicGroupList"][0]["monitorList"]
HEARTBEATS = HEARTBEAT_PAYLOAD["heartbeatList"]
UPTIMES = HEARTBEAT_PAYLOAD["uptimeList"]


def status_transport(payload: dict) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200, json=payload))


def test_format_monitor_status_up():
    line = format_monitor_status(MONITORS[0], HEARTBEATS, UPTIMES)
    assert line.startswith("Website")
    assert "Status: up" in line
    assert "99.93%" in line
    assert "ping: 38ms" in line


def test_format_monitor_status_down_without_ping():
    line = format_monitor_status(MONITORS[1], HEARTBEATS, UPTIMES)
    assert "Status: down" in line
    assert "87.50%" in line
    assert "ping" not in line


def test_format_monitor_status_without_heartbeats():
    line = format_monitor_status({"id": 9, "name": "New"}, HEARTBEATS, UPTIMES)
    assert "Status: unknown" in line
    assert "n/a" in line


def test_count_online():
    assert count_online(MONITORS, HEARTBEATS) == 1


def test_main_prints_monitors(capsys):
    payload = {"monitors": MONITORS, "heartbeats": HEARTBEATS, "uptimes": UPTIMES}
    exit_code = main(["--url", "http://status.test"], transport=status_transport(payload))

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Game Server" in out
    assert "1/2 monitors online" in out


def test_main_fails_on_error_sentinel():
    exit_code = main(["--url", "http://status.test"], transport=status_transport({"error": "Unable to fetch status"}))
    assert exit_code == 1


def test_main_fails_when_server_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert main(["--url", "http://status.test"], transport=httpx.MockTransport(handler)) == 1
