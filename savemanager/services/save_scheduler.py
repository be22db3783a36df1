# savemanager/services/save_scheduler.py
"""
Save & Backup Scheduler

Two independent fixed-rate timers on the event loop:
1. Save timer: broadcast "preparing", then 5 seconds later broadcast
   "saving" and run save-all on the server
2. Backup timer (optional): broadcast "backing up", archive every configured
   world one after another on a worker thread, then broadcast
   "backup complete" back on the loop

A backup sweep that is still running when the next period elapses causes
that firing to be skipped. Manual /backup commands go through
trigger_manual_backup() and are not serialized against sweeps.
"""

import asyncio
import functools
import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set

from savemanager.core.config import DATA_DIR
from savemanager.services import minecraft_server
from savemanager.services.progress import ProgressReport
from savemanager.services.settings import SaveManagerConfig, get_config
from savemanager.services.world_backup import BackupResult, backup_world

logger = logging.getLogger(__name__)

LOG_FILE = DATA_DIR / "savemanager_log.json"
SAVE_NOTICE_DELAY_SECONDS = 5
MAX_LOG_ENTRIES = 100


class SchedulerState(str, Enum):
    """Current activity of the scheduler"""
    STOPPED = "stopped"
    IDLE = "idle"
    SAVING = "saving"
    BACKING_UP = "backing_up"


@dataclass
class SaveManagerStatus:
    """Runtime status"""
    state: SchedulerState = SchedulerState.STOPPED
    next_save_at: Optional[str] = None
    next_backup_at: Optional[str] = None
    last_save_at: Optional[str] = None
    last_backup_at: Optional[str] = None
    current_world: Optional[str] = None
    progress_percent: int = 0
    files_archived: int = 0
    files_total: int = 0
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass
class ActionLog:
    """Log entry for scheduler actions"""
    timestamp: str
    action: str
    status: str  # "success", "failed", "info", "skipped"
    details: str

    def to_dict(self) -> dict:
        return asdict(self)


class SaveScheduler:
    """Runs the save and backup timers"""

    def __init__(self, config: Optional[SaveManagerConfig] = None):
        self.config = config or get_config()
        self.status = SaveManagerStatus()
        self.logs: List[ActionLog] = []

        self._timer_tasks: List[asyncio.Task] = []
        self._pending: Set[asyncio.Task] = set()
        self._running = False
        self._backup_in_progress = False

        self._load_logs()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_logs(self):
        if LOG_FILE.exists():
            try:
                with open(LOG_FILE, "r", encoding="utf-8") as f:
                    data = json.load(f)
                    self.logs = [ActionLog(**log) for log in data[-MAX_LOG_ENTRIES:]]
            except Exception as e:
                logger.warning("[SaveManager] Failed to load logs: %s", e)

    def _save_logs(self):
        try:
            LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            with open(LOG_FILE, "w", encoding="utf-8") as f:
                json.dump([log.to_dict() for log in self.logs[-MAX_LOG_ENTRIES:]], f, indent=2)
        except Exception as e:
            logger.warning("[SaveManager] Failed to save logs: %s", e)

    def _add_log(self, action: str, status: str, details: str):
        self.logs.append(ActionLog(
            timestamp=datetime.now().isoformat(),
            action=action,
            status=status,
            details=details,
        ))
        self.logs = self.logs[-MAX_LOG_ENTRIES:]
        self._save_logs()
        logger.info("[SaveManager] %s: %s (%s)", action, details, status)

    def get_logs(self, limit: int = 50) -> List[dict]:
        return [log.to_dict() for log in self.logs[-limit:]][::-1]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self):
        if self._running:
            return
        self._running = True
        self.status.state = SchedulerState.IDLE

        self._timer_tasks.append(asyncio.create_task(
            self._run_timer("save", self.config.save_interval, self.trigger_save)
        ))
        if self.config.enable_backups:
            self._timer_tasks.append(asyncio.create_task(
                self._run_timer("backup", self.config.backup_interval, self.trigger_backup_sweep)
            ))
        else:
            self.status.next_backup_at = None

        self._add_log(
            "scheduler_start", "success",
            f"Save every {self.config.save_interval}s, "
            + (f"backup every {self.config.backup_interval}s" if self.config.enable_backups else "backups disabled"),
        )

    async def stop(self):
        """Cancel the timers; a running archive job still finishes on its worker"""
        self._running = False
        tasks = self._timer_tasks + list(self._pending)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._timer_tasks = []
        self._pending.clear()
        self.status.state = SchedulerState.STOPPED
        self._add_log("scheduler_stop", "success", "Save scheduler stopped")

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        """Keep a reference to fire-and-forget work so it can be cancelled on stop"""
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run_timer(self, name: str, period_seconds: float, fire: Callable[[], Awaitable]):
        """Fixed-rate timer: first firing after one period, then every period"""
        loop = asyncio.get_running_loop()
        period = float(period_seconds)
        next_fire = loop.time() + period
        logger.info("[SaveManager] %s timer started (%ss)", name, period)

        while self._running:
            self._set_next_fire(name, next_fire - loop.time())
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            try:
                await fire()
            except Exception as e:
                self.status.error_message = str(e)
                self._add_log(f"{name}_error", "failed", f"{name} timer error: {e}")
            next_fire += period
            # Do not burst missed firings after a long stall
            if next_fire < loop.time():
                next_fire = loop.time() + period

    def _set_next_fire(self, name: str, delay: float):
        at = (datetime.now() + timedelta(seconds=max(0.0, delay))).isoformat(timespec="seconds")
        if name == "save":
            self.status.next_save_at = at
        else:
            self.status.next_backup_at = at

    # =========================================================================
    # Save
    # =========================================================================

    async def _broadcast(self, key: str):
        if self.config.enable_broadcast:
            await minecraft_server.broadcast(self.config.message(key))

    async def trigger_save(self) -> asyncio.Task:
        """Save firing: notice now, save after the notice delay"""
        await self._broadcast("preparing")
        return self._spawn(self._delayed_save())

    async def _delayed_save(self):
        await asyncio.sleep(SAVE_NOTICE_DELAY_SECONDS)
        self.status.state = SchedulerState.SAVING
        try:
            await self._broadcast("saving")
            result = await minecraft_server.save_all()
            if result.get("success"):
                self.status.last_save_at = datetime.now().isoformat()
                logger.info("Worlds saved automatically.")
                self._add_log("save", "success", "Worlds saved automatically")
            else:
                self.status.error_message = result.get("error")
                self._add_log("save", "failed", f"Save failed: {result.get('error')}")
        except Exception as e:
            self.status.error_message = str(e)
            self._add_log("save", "failed", f"Save error: {e}")
        finally:
            if self.status.state == SchedulerState.SAVING:
                self.status.state = SchedulerState.BACKING_UP if self._backup_in_progress else SchedulerState.IDLE

    # =========================================================================
    # Backup
    # =========================================================================

    @property
    def backup_in_progress(self) -> bool:
        return self._backup_in_progress

    async def trigger_backup_sweep(self) -> bool:
        """Backup firing; returns False when skipped because a sweep is running"""
        if self._backup_in_progress:
            logger.warning("[SaveManager] Previous backup still running, skipping this run")
            self._add_log("backup_skipped", "skipped", "Previous backup sweep still in progress")
            return False

        self._backup_in_progress = True
        try:
            await self._broadcast("backing_up")
        except Exception:
            self._backup_in_progress = False
            raise
        self._spawn(self._backup_sweep(list(self.config.backup_worlds)))
        return True

    async def _backup_sweep(self, worlds: List[str]):
        loop = asyncio.get_running_loop()
        self.status.state = SchedulerState.BACKING_UP
        self._add_log("backup_started", "info", f"Backing up: {', '.join(worlds) or '(none)'}")
        try:
            results = await loop.run_in_executor(None, self._backup_all_sync, worlds, loop)

            for result in results:
                self._record_result(result)
            self.status.last_backup_at = datetime.now().isoformat()

            await self._broadcast("backup_complete")
        except Exception as e:
            self.status.error_message = str(e)
            self._add_log("backup_error", "failed", f"Backup sweep error: {e}")
        finally:
            self._backup_in_progress = False
            self.status.current_world = None
            if self.status.state == SchedulerState.BACKING_UP:
                self.status.state = SchedulerState.IDLE

    def _backup_all_sync(self, worlds: List[str], loop: asyncio.AbstractEventLoop) -> List[BackupResult]:
        """Worker thread: back up each world in turn"""
        results = []
        for world_name in worlds:
            try:
                result = self._backup_one_sync(world_name, loop)
            except Exception as e:
                logger.exception("[SaveManager] Backup of %s crashed", world_name)
                result = BackupResult(name=world_name, success=False, error=str(e))
            results.append(result)
        return results

    def _backup_one_sync(self, world_name: str, loop: asyncio.AbstractEventLoop) -> BackupResult:
        self._update_status(loop, current_world=world_name, progress_percent=0, files_archived=0, files_total=0)
        result = backup_world(
            world_name,
            self.config.backup_directory(world_name),
            on_progress=functools.partial(self._on_progress, loop),
        )
        done = {"files_archived": result.files_archived, "files_total": result.files_total}
        if result.success:
            done["progress_percent"] = 100
        self._update_status(loop, **done)
        return result

    def _on_progress(self, loop: asyncio.AbstractEventLoop, report: ProgressReport):
        self._update_status(
            loop,
            progress_percent=report.percent,
            files_archived=report.archived,
            files_total=report.total,
        )

    def _update_status(self, loop: asyncio.AbstractEventLoop, **fields):
        """Hand a status update from a worker or reporter thread to the loop"""
        try:
            loop.call_soon_threadsafe(self._apply_status, fields)
        except RuntimeError:
            # Loop already closed after stop(); the archive still finishes
            logger.debug("[SaveManager] Dropped status update after shutdown: %s", fields)

    def _apply_status(self, fields: dict):
        for name, value in fields.items():
            setattr(self.status, name, value)

    def _record_result(self, result: BackupResult):
        if result.success:
            self._add_log(
                "backup_world", "success",
                f"Backed up {result.name} to {result.archive_path} ({result.files_archived} files)",
            )
        else:
            self.status.error_message = f"{result.name}: {result.error}"
            self._add_log("backup_world", "failed", f"Backup of {result.name} failed: {result.error}")

    # =========================================================================
    # Manual Trigger
    # =========================================================================

    async def trigger_manual_backup(
        self,
        world_name: str,
        on_complete: Optional[Callable[[BackupResult], None]] = None,
    ) -> asyncio.Task:
        """Back up one world off the loop; on_complete runs back on the loop"""
        self._add_log("manual_backup", "info", f"Manual backup of {world_name} requested")
        return self._spawn(self._manual_backup(world_name, on_complete))

    async def _manual_backup(self, world_name: str, on_complete):
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None, backup_world, world_name, self.config.backup_directory(world_name),
            )
        except Exception as e:
            logger.exception("[SaveManager] Manual backup of %s crashed", world_name)
            result = BackupResult(name=world_name, success=False, error=str(e))
        self._record_result(result)
        if on_complete is not None:
            on_complete(result)
        return result

    # =========================================================================
    # Status API
    # =========================================================================

    def get_config(self) -> dict:
        data = self.config.to_dict()
        data.pop("permissions", None)
        return data

    def get_status(self) -> dict:
        return self.status.to_dict()


# =============================================================================
# Singleton
# =============================================================================

_scheduler: Optional[SaveScheduler] = None


def get_scheduler() -> SaveScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = SaveScheduler()
    return _scheduler


async def start_scheduler():
    scheduler = get_scheduler()
    await scheduler.start()


async def stop_scheduler():
    scheduler = get_scheduler()
    await scheduler.stop()
