import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from status_api.config import Settings
from status_api.main import create_app
from tests.mocks.fake_uptime_kuma import app as fake_kuma_app

INDEX_HTML = b"<!doctype html><html><body><div id=\"root\"></div></body></html>"
APP_JS = b"console.log('portfolio');"


@pytest.fixture
def static_root(tmp_path):
    """Build directory with an entry document and a couple of assets"""
    root = tmp_path / "build"
    (root / "static" / "js").mkdir(parents=True)
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "static" / "js" / "main.js").write_bytes(APP_JS)
    (root / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")
    return root


@pytest.fixture
def game_status_file(tmp_path):
    """Path for the status file; not created by default"""
    return tmp_path / "minecraft-server-status.json"


@pytest.fixture
def make_settings(static_root, game_status_file):
    def _make(**overrides) -> Settings:
        values = {
            "static_root": static_root,
            "game_status_file": game_status_file,
            "uptime_kuma_host": "kuma.test",
            "uptime_kuma_port": 3001,
            "upstream_timeout_seconds": 2.0,
            "deployment_slot": "blue",
            "server_mode": "static",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def client(settings):
    """Client for the app with the upstream wired to the fake Uptime Kuma"""
    app = create_app(settings, upstream_transport=ASGITransport(app=fake_kuma_app))
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c
