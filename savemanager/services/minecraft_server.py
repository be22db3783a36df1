# savemanager/services/minecraft_server.py
"""
Bridge to the running Minecraft server.

Everything here that talks to the server is a coroutine and must be awaited
on the event loop; the blocking RCON round trip is pushed to the default
executor. World lookup is a plain filesystem check and is safe anywhere.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from savemanager.core.config import MINECRAFT_SERVER_PATH
from savemanager.services.rcon import (
    RCONClient, get_rcon_config, load_server_properties, strip_minecraft_colors,
)

logger = logging.getLogger(__name__)

SERVER_DIR = MINECRAFT_SERVER_PATH
SAVE_COMMAND = "save-all"

# World folder names are single path segments
_FORBIDDEN_NAME_CHARS = ("/", "\\", "\x00")


def _send_command_sync(command: str) -> dict:
    rcon_config = get_rcon_config(SERVER_DIR)
    if not rcon_config.enabled or not rcon_config.password:
        return {"success": False, "error": "RCON is not enabled. Enable it in server.properties and restart the server."}

    try:
        with RCONClient(rcon_config.host, rcon_config.port, rcon_config.password) as rcon:
            response = rcon.command(command)
        return {"success": True, "response": strip_minecraft_colors(response), "method": "rcon"}
    except ConnectionError as e:
        return {"success": False, "error": f"RCON error: {e}"}


async def send_command(command: str) -> dict:
    """Send a console command to the server via RCON"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _send_command_sync, command)


async def broadcast(message: str) -> dict:
    """Broadcast an already colour-translated message to every player"""
    result = await send_command(f"say {message}")
    if not result.get("success"):
        logger.warning("[SaveManager] Broadcast failed: %s", result.get("error"))
    return result


async def save_all() -> dict:
    """Run the server's own save action"""
    return await send_command(SAVE_COMMAND)


def get_level_name() -> str:
    """Primary world name from server.properties"""
    return load_server_properties(SERVER_DIR).get("level-name", "world") or "world"


def resolve_world(world_name: str) -> Optional[Path]:
    """Folder for a loaded world, or None when it is not available"""
    if not world_name or world_name in (".", ".."):
        return None
    if any(ch in world_name for ch in _FORBIDDEN_NAME_CHARS):
        return None
    world_dir = SERVER_DIR / world_name
    if not world_dir.is_dir():
        return None
    return world_dir
