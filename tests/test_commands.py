"""Tests for /backup command dispatch."""

import asyncio

from savemanager.services import commands
from savemanager.services.world_backup import BackupResult


class _FakeScheduler:
    """Records manual backups and completes them immediately."""

    def __init__(self, success=True):
        self.success = success
        self.requested = []

    async def trigger_manual_backup(self, world_name, on_complete=None):
        self.requested.append(world_name)
        result = BackupResult(
            name=world_name,
            success=self.success,
            error=None if self.success else "World not found",
        )
        if on_complete:
            on_complete(result)


class _PlayerSender(commands.CommandSender):
    name = "Steve"

    def __init__(self, allowed):
        self.allowed = allowed
        self.messages = []

    def has_permission(self, permission):
        return self.allowed and permission == commands.BACKUP_PERMISSION

    def send_message(self, message):
        self.messages.append(message)


def test_backup_requires_permission():
    sender = _PlayerSender(allowed=False)
    scheduler = _FakeScheduler()

    handled = asyncio.run(commands.dispatch_command(sender, "backup", ["world"], scheduler=scheduler))

    assert handled is True
    assert sender.messages == ["§cYou don't have permission to do that."]
    assert scheduler.requested == []


def test_backup_requires_exactly_one_argument():
    sender = _PlayerSender(allowed=True)
    scheduler = _FakeScheduler()

    for args in ([], ["world", "world_nether"]):
        sender.messages.clear()
        handled = asyncio.run(commands.dispatch_command(sender, "backup", args, scheduler=scheduler))
        assert handled is True
        assert sender.messages == ["§cUsage: /backup <world_name>"]

    assert scheduler.requested == []


def test_backup_acknowledges_then_reports_completion():
    sender = _PlayerSender(allowed=True)
    scheduler = _FakeScheduler()

    handled = asyncio.run(commands.dispatch_command(sender, "BACKUP", ["world_nether"], scheduler=scheduler))

    assert handled is True
    assert scheduler.requested == ["world_nether"]
    assert sender.messages == [
        "§eStarting backup for world: world_nether",
        "§aBackup for world 'world_nether' completed.",
    ]


def test_backup_reports_failure():
    sender = _PlayerSender(allowed=True)

    asyncio.run(commands.dispatch_command(sender, "backup", ["missing"], scheduler=_FakeScheduler(success=False)))

    assert sender.messages[-1] == "§cBackup for world 'missing' failed: World not found"


def test_unknown_label_is_not_handled():
    sender = _PlayerSender(allowed=True)

    handled = asyncio.run(commands.dispatch_command(sender, "restore", ["world"], scheduler=_FakeScheduler()))

    assert handled is False
    assert sender.messages == []


def test_console_sender_strips_colors():
    sender = commands.ConsoleSender()

    asyncio.run(commands.dispatch_command(sender, "backup", ["world"], scheduler=_FakeScheduler()))

    assert sender.messages == [
        "Starting backup for world: world",
        "Backup for world 'world' completed.",
    ]


def test_web_sender_mailbox_is_drained_once():
    sender = commands.WebSender({"email": "mod@example.com"}, granted=True)
    sender.send_message("§aBackup for world 'world' completed.")

    assert commands.drain_mailbox("mod@example.com") == ["Backup for world 'world' completed."]
    assert commands.drain_mailbox("mod@example.com") == []


def test_parse_command_line():
    assert commands.parse_command_line("/backup world") == ("backup", ["world"])
    assert commands.parse_command_line("  backup   world_the_end ") == ("backup", ["world_the_end"])
    assert commands.parse_command_line("") == ("", [])
