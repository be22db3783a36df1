# savemanager/services/archive.py
"""
World Archive Writer

Streams a world directory into a single zip file:
1. build_manifest() walks the tree once, depth-first, in directory-listing
   order, and returns every regular file (the job's fixed total)
2. write_archive() copies each manifest file into an entry named
   <root name>/<relative path>, bumping the progress counter per file

Both functions block on disk I/O and must run on a worker thread.
"""

import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import List, Optional

from savemanager.services.progress import ProgressCounter

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def build_manifest(root: Path) -> List[Path]:
    """Regular files under root; unreadable branches are skipped"""
    files: List[Path] = []
    _collect_files(Path(root), files)
    return files


def _collect_files(folder: Path, files: List[Path]):
    try:
        with os.scandir(folder) as it:
            entries = list(it)
    except OSError as e:
        logger.debug("[Archive] Skipping unreadable directory %s: %s", folder, e)
        return

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                _collect_files(Path(entry.path), files)
            elif entry.is_file():
                files.append(Path(entry.path))
        except OSError:
            # Entry vanished between listing and stat
            continue


def archive_entry_name(root: Path, file_path: Path) -> str:
    """Entry name including the root folder, always '/'-separated"""
    relative = Path(file_path).relative_to(root)
    return f"{Path(root).name}/{relative.as_posix()}"


def _open_source(file_path: Path):
    return open(file_path, "rb")


def _copy_chunks(src, dst):
    shutil.copyfileobj(src, dst, CHUNK_SIZE)


def write_archive(
    root: Path,
    manifest: List[Path],
    archive_path: Path,
    counter: Optional[ProgressCounter] = None,
) -> int:
    """
    Write every manifest file into a new zip at archive_path.

    Any error opening the destination, opening a source file or writing a
    chunk aborts the whole archive and propagates. Entries written before
    the failure stay in the file; later files are not attempted.

    Returns:
        Number of entries written
    """
    root = Path(root)
    written = 0

    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as zipf:
        for file_path in manifest:
            with _open_source(file_path) as src:
                info = zipfile.ZipInfo.from_file(
                    file_path, archive_entry_name(root, file_path), strict_timestamps=False,
                )
                info.compress_type = zipfile.ZIP_DEFLATED
                with zipf.open(info, "w") as dst:
                    _copy_chunks(src, dst)

            written += 1
            if counter is not None:
                counter.increment()

    return written
