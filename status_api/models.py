from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Constants for datetime handling
DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"  # ISO format, milliseconds appended separately


def format_datetime(dt: datetime) -> str:
    """Convert datetime to a UTC ISO string with millisecond precision and a Z suffix"""
    dt = dt.astimezone(timezone.utc)
    return f"{dt.strftime(DATETIME_FORMAT)}.{dt.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UpstreamEndpoint(BaseModel):
    """Address of the monitoring service"""
    host: str
    port: int

    def url(self, path: str) -> str:
        # Internal network only, plain HTTP
        return f"http://{self.host}:{self.port}{path}"


class AggregatedStatus(BaseModel):
    """Monitor list, heartbeats and uptimes merged into one response"""
    monitors: List[Any]
    heartbeats: Dict[str, Any]
    uptimes: Dict[str, Any]


class StatusError(BaseModel):
    error: str = "Unable to fetch status"


class PlayerCount(BaseModel):
    online: int = 0
    max: int = 20


class GameServerStatus(BaseModel):
    """Game server status as written by the infrastructure service"""
    online: bool = False
    players: PlayerCount = Field(default_factory=PlayerCount)
    motd: Optional[str] = None
    error: Optional[str] = None  # Only set on the offline fallback


class DeploymentHealth(BaseModel):
    """Health check payload for blue-green deployments"""
    status: str = "healthy"
    slot: str
    timestamp: str
    uptime: float  # seconds since process start
    environment: str
    version: str


class LivenessResponse(BaseModel):
    status: str = "alive"
    pid: int
    timestamp: str


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "degraded"
    timestamp: str
    dependencies: Optional[Dict[str, bool]] = None
    message: Optional[str] = None
