import json
from pathlib import Path
from typing import Any

from loguru import logger

from status_api.models import GameServerStatus

UNAVAILABLE_MESSAGE = "Status unavailable"


def offline_status() -> dict:
    """Fallback shown when the status file cannot be read"""
    return GameServerStatus(error=UNAVAILABLE_MESSAGE).model_dump()


def read_game_status(path: Path) -> Any:
    """Read the game server status file written by the infrastructure service.

    The parsed document is returned unchanged. A missing, unreadable or
    malformed file degrades to the offline fallback instead of raising.
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning(f"Game status file not found: {path}")
    except (OSError, ValueError) as e:
        logger.error(f"Error reading game status from {path}: {e}")
    return offline_status()
