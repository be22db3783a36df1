# savemanager/services/commands.py
"""
Command Dispatch

Handles the `/backup <world_name>` command for any sender:
- ConsoleSender: the service itself (all permissions, replies go to the log)
- WebSender: a logged-in dashboard user (replies go to a per-user mailbox)

dispatch_command() returns True whenever the label is ours, including on
permission and usage errors; those are reported to the sender instead.
"""

import logging
import threading
from collections import deque
from typing import Deque, Dict, List

from savemanager.services.rcon import strip_minecraft_colors
from savemanager.services.world_backup import BackupResult

logger = logging.getLogger(__name__)

BACKUP_PERMISSION = "savemanager.backup"

RED = "§c"
YELLOW = "§e"
GREEN = "§a"

MAILBOX_SIZE = 50

_mailboxes: Dict[str, Deque[str]] = {}
_mailbox_lock = threading.Lock()


def drain_mailbox(key: str) -> List[str]:
    with _mailbox_lock:
        box = _mailboxes.pop(key, None)
    return list(box) if box else []


class CommandSender:
    name = "unknown"

    def has_permission(self, permission: str) -> bool:
        return False

    def send_message(self, message: str):
        raise NotImplementedError


class ConsoleSender(CommandSender):
    name = "CONSOLE"

    def __init__(self):
        self.messages: List[str] = []

    def has_permission(self, permission: str) -> bool:
        return True

    def send_message(self, message: str):
        text = strip_minecraft_colors(message)
        self.messages.append(text)
        logger.info("[Console] %s", text)


class WebSender(CommandSender):
    """Dashboard user; permissions come from admin emails and config grants"""

    def __init__(self, user_info: dict, granted: bool):
        self.user_info = user_info
        self.name = user_info.get("email", "")
        self._granted = granted

    def has_permission(self, permission: str) -> bool:
        return self._granted

    def send_message(self, message: str):
        with _mailbox_lock:
            box = _mailboxes.setdefault(self.name, deque(maxlen=MAILBOX_SIZE))
            box.append(strip_minecraft_colors(message))


def parse_command_line(command_line: str) -> tuple:
    """Split '/backup world' into ('backup', ['world'])"""
    parts = (command_line or "").strip().lstrip("/").split()
    if not parts:
        return "", []
    return parts[0], parts[1:]


async def dispatch_command(sender: CommandSender, label: str, args: List[str], scheduler=None) -> bool:
    if label.lower() == "backup":
        return await handle_backup_command(sender, args, scheduler=scheduler)
    return False


async def handle_backup_command(sender: CommandSender, args: List[str], scheduler=None) -> bool:
    if not sender.has_permission(BACKUP_PERMISSION):
        sender.send_message(f"{RED}You don't have permission to do that.")
        return True

    if len(args) != 1:
        sender.send_message(f"{RED}Usage: /backup <world_name>")
        return True

    if scheduler is None:
        from savemanager.services.save_scheduler import get_scheduler
        scheduler = get_scheduler()

    world_name = args[0]
    sender.send_message(f"{YELLOW}Starting backup for world: {world_name}")
    logger.info("[SaveManager] %s started a backup of %s", sender.name, world_name)

    def _notify(result: BackupResult):
        if result.success:
            sender.send_message(f"{GREEN}Backup for world '{world_name}' completed.")
        else:
            sender.send_message(f"{RED}Backup for world '{world_name}' failed: {result.error}")

    await scheduler.trigger_manual_backup(world_name, on_complete=_notify)
    return True
