"""Tests for world manifest traversal and the zip archive writer."""

import zipfile

import pytest

from savemanager.services import archive
from savemanager.services.progress import ProgressCounter


def _make_world(root, files):
    """Create *files* (relative posix paths) under *root* with small payloads."""
    root.mkdir(parents=True, exist_ok=True)
    for rel in files:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(f"data:{rel}".encode("utf-8"))
    return root


def _entry_names(archive_path):
    with zipfile.ZipFile(archive_path) as zf:
        return zf.namelist()


def test_level_dat_and_region_file_are_archived(tmp_path):
    world = _make_world(tmp_path / "world", ["level.dat", "region/r.0.0.mca"])
    counter = ProgressCounter()

    manifest = archive.build_manifest(world)
    archive.write_archive(world, manifest, tmp_path / "out.zip", counter)

    assert sorted(_entry_names(tmp_path / "out.zip")) == ["world/level.dat", "world/region/r.0.0.mca"]
    assert counter.value == 2


def test_entries_match_every_file_exactly_once(tmp_path):
    files = [
        "level.dat",
        "session.lock",
        "region/r.0.0.mca",
        "region/r.-1.0.mca",
        "data/raids.dat",
        "playerdata/a/b/deep.dat",
    ]
    world = _make_world(tmp_path / "survival", files)
    (world / "empty_dir").mkdir()

    manifest = archive.build_manifest(world)
    archive.write_archive(world, manifest, tmp_path / "out.zip")

    names = _entry_names(tmp_path / "out.zip")
    assert len(names) == len(set(names))
    assert set(names) == {f"survival/{f}" for f in files}


def test_entry_contents_are_copied(tmp_path):
    world = _make_world(tmp_path / "world", ["level.dat"])
    big = world / "region" / "big.mca"
    big.parent.mkdir()
    payload = bytes(range(256)) * 1024  # several chunks
    big.write_bytes(payload)

    archive.write_archive(world, archive.build_manifest(world), tmp_path / "out.zip")

    with zipfile.ZipFile(tmp_path / "out.zip") as zf:
        assert zf.read("world/region/big.mca") == payload
        assert zf.read("world/level.dat") == b"data:level.dat"


def test_directories_are_not_counted(tmp_path):
    world = _make_world(tmp_path / "world", ["a/b/c.dat"])
    (world / "x" / "y").mkdir(parents=True)

    manifest = archive.build_manifest(world)

    assert manifest == [world / "a" / "b" / "c.dat"]


def test_empty_world_produces_empty_archive(tmp_path):
    world = tmp_path / "world_the_end"
    world.mkdir()
    counter = ProgressCounter()

    manifest = archive.build_manifest(world)
    written = archive.write_archive(world, manifest, tmp_path / "end.zip", counter)

    assert manifest == []
    assert written == 0
    assert counter.value == 0
    assert _entry_names(tmp_path / "end.zip") == []


def test_missing_root_yields_empty_manifest(tmp_path):
    assert archive.build_manifest(tmp_path / "does_not_exist") == []


def test_existing_archive_is_truncated(tmp_path):
    world = _make_world(tmp_path / "world", ["level.dat"])
    out = tmp_path / "out.zip"
    out.write_bytes(b"stale bytes that are not a zip")

    archive.write_archive(world, archive.build_manifest(world), out)

    assert _entry_names(out) == ["world/level.dat"]


def test_entry_name_uses_forward_slashes(tmp_path):
    root = tmp_path / "world"
    name = archive.archive_entry_name(root, root / "region" / "sub" / "r.0.0.mca")
    assert name == "world/region/sub/r.0.0.mca"


def test_failure_on_third_file_aborts_and_keeps_earlier_entries(monkeypatch, tmp_path):
    world = _make_world(tmp_path / "world", [f"f{i}.dat" for i in range(1, 6)])
    manifest = archive.build_manifest(world)
    counter = ProgressCounter()
    opened = []
    real_open = archive._open_source

    def _failing_open(path):
        opened.append(path)
        if len(opened) == 3:
            raise OSError("disk read error")
        return real_open(path)

    monkeypatch.setattr(archive, "_open_source", _failing_open)

    with pytest.raises(OSError, match="disk read error"):
        archive.write_archive(world, manifest, tmp_path / "out.zip", counter)

    assert opened == manifest[:3]
    assert counter.value == 2
    expected = {archive.archive_entry_name(world, p) for p in manifest[:2]}
    assert set(_entry_names(tmp_path / "out.zip")) == expected


def test_failure_mid_write_aborts_remaining_files(monkeypatch, tmp_path):
    world = _make_world(tmp_path / "world", [f"f{i}.dat" for i in range(1, 6)])
    manifest = archive.build_manifest(world)
    counter = ProgressCounter()
    opened = []
    real_open = archive._open_source
    real_copy = archive._copy_chunks

    def _recording_open(path):
        opened.append(path)
        return real_open(path)

    def _failing_copy(src, dst):
        if len(opened) == 3:
            dst.write(src.read(4))
            raise OSError("write error")
        real_copy(src, dst)

    monkeypatch.setattr(archive, "_open_source", _recording_open)
    monkeypatch.setattr(archive, "_copy_chunks", _failing_copy)

    with pytest.raises(OSError, match="write error"):
        archive.write_archive(world, manifest, tmp_path / "out.zip", counter)

    assert opened == manifest[:3]
    assert counter.value == 2
    names = set(_entry_names(tmp_path / "out.zip"))
    first_two = {archive.archive_entry_name(world, p) for p in manifest[:2]}
    assert first_two <= names
    assert not names & {archive.archive_entry_name(world, p) for p in manifest[3:]}


def test_unopenable_destination_writes_nothing(monkeypatch, tmp_path):
    world = _make_world(tmp_path / "world", ["level.dat"])
    counter = ProgressCounter()
    opened = []
    monkeypatch.setattr(archive, "_open_source", lambda path: opened.append(path))

    with pytest.raises(OSError):
        archive.write_archive(
            world, archive.build_manifest(world), tmp_path / "missing" / "out.zip", counter,
        )

    assert opened == []
    assert counter.value == 0
    assert not (tmp_path / "missing").exists()
