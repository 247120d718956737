from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from status_api.models import UpstreamEndpoint

GAME_STATUS_FILENAME = "minecraft-server-status.json"
CONTAINER_GAME_STATUS_FILE = Path("/app/public") / GAME_STATUS_FILENAME
PRODUCTION_INFRASTRUCTURE_PATH = Path("/opt/renekris-infrastructure")
DEVELOPMENT_INFRASTRUCTURE_PATH = Path("..") / "renekris-infrastructure"


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8080
    server_mode: Literal["static", "proxy"] = "static"

    deployment_slot: str = "development"
    environment: str = Field(default="development", validation_alias="NODE_ENV")
    app_version: str = "1.0.0"

    uptime_kuma_host: str = "192.168.1.236"
    uptime_kuma_port: int = 3001
    upstream_timeout_seconds: float = 10.0  # Per upstream call
    shutdown_timeout_seconds: int = 30  # Grace period for in-flight responses

    infrastructure_path: Optional[Path] = None
    game_status_file: Optional[Path] = None

    static_root: Path = Path("build")
    dev_server_url: str = "http://localhost:3001"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def upstream(self) -> UpstreamEndpoint:
        """Monitoring service address the aggregator talks to"""
        return UpstreamEndpoint(host=self.uptime_kuma_host, port=self.uptime_kuma_port)

    def resolve_game_status_file(self) -> Path:
        """Pick the status file path.

        An explicit GAME_STATUS_FILE always wins. Otherwise production prefers
        the containerized shared volume and falls back to the infrastructure
        checkout, while development reads from a sibling checkout.
        """
        if self.game_status_file is not None:
            return self.game_status_file

        if self.infrastructure_path is not None:
            base = self.infrastructure_path
        elif self.is_production:
            base = PRODUCTION_INFRASTRUCTURE_PATH
        else:
            base = DEVELOPMENT_INFRASTRUCTURE_PATH
        legacy = base / GAME_STATUS_FILENAME

        if self.is_production and self.infrastructure_path is None:
            if CONTAINER_GAME_STATUS_FILE.exists() or not legacy.exists():
                return CONTAINER_GAME_STATUS_FILE
        return legacy


def get_settings() -> Settings:
    """Build settings once at process start; callers pass the result around."""
    return Settings()
