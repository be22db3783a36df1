# savemanager/services/world_backup.py
"""
World Backup Orchestrator

backup_world() turns one world name into one timestamped zip:
1. Resolve the world folder (abort with a warning if it is not loaded)
2. Create the output directory tree
3. Name the archive <world>_<yyyy-MM-dd_HH-mm-ss>.zip
4. Build the file manifest up front so the total is known
5. Run the progress reporter alongside the archive writer
6. Log success or failure and return a BackupResult

Runs on a worker thread. Failures never escape as exceptions; they are
logged and reported through the result. Two jobs for the same world in the
same second write the same file name and the later one wins.
"""

import logging
import time
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from savemanager.services import archive
from savemanager.services import minecraft_server
from savemanager.services.progress import (
    ProgressCounter, ProgressReport, ProgressReporter, REPORT_INTERVAL_SECONDS,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
ARCHIVE_EXTENSION = "zip"


@dataclass(frozen=True)
class ArchiveJob:
    """One world backup, fixed at creation"""
    name: str
    source: Path
    destination_dir: Path
    created_at: datetime

    @property
    def archive_path(self) -> Path:
        timestamp = self.created_at.strftime(TIMESTAMP_FORMAT)
        return self.destination_dir / f"{self.name}_{timestamp}.{ARCHIVE_EXTENSION}"


@dataclass
class BackupResult:
    name: str
    success: bool
    archive_path: Optional[str] = None
    files_total: int = 0
    files_archived: int = 0
    error: Optional[str] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def backup_world(
    world_name: str,
    destination_dir: Path,
    *,
    progress_interval: float = REPORT_INTERVAL_SECONDS,
    on_progress: Optional[Callable[[ProgressReport], None]] = None,
) -> BackupResult:
    """Archive one world into destination_dir (blocking)"""
    world_folder = minecraft_server.resolve_world(world_name)
    if world_folder is None:
        logger.warning("World not found: %s", world_name)
        return BackupResult(name=world_name, success=False, error="World not found")

    started = time.monotonic()
    destination_dir = Path(destination_dir)
    counter = ProgressCounter()
    reporter: Optional[ProgressReporter] = None
    job = None
    total = 0

    try:
        destination_dir.mkdir(parents=True, exist_ok=True)
        job = ArchiveJob(
            name=world_name,
            source=world_folder,
            destination_dir=destination_dir,
            created_at=datetime.now(),
        )

        manifest = archive.build_manifest(job.source)
        total = len(manifest)

        reporter = ProgressReporter(
            label=f"{minecraft_server.get_level_name()}/{world_name}",
            counter=counter,
            total=total,
            interval=progress_interval,
            on_report=on_progress,
        )
        reporter.start()

        archive.write_archive(job.source, manifest, job.archive_path, counter)
    except Exception as e:
        # Unencodable file names surface as UnicodeEncodeError, not OSError
        logger.exception("Failed to back up world %s: %s", world_name, e)
        return BackupResult(
            name=world_name,
            success=False,
            archive_path=str(job.archive_path) if job else None,
            files_total=total,
            files_archived=counter.value,
            error=str(e),
            duration_seconds=round(time.monotonic() - started, 3),
        )
    finally:
        if reporter is not None:
            reporter.stop()
        else:
            counter.finish()

    logger.info("Backed up world %s to %s", world_name, job.archive_path)
    return BackupResult(
        name=world_name,
        success=True,
        archive_path=str(job.archive_path),
        files_total=total,
        files_archived=counter.value,
        duration_seconds=round(time.monotonic() - started, 3),
    )
