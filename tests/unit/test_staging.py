"""
Unit tests for ExportStaging.

Tests atomic publishing, manifest contents and cleanup on failure.

License: MIT
"""

import json
import os
import time
from unittest.mock import patch

import pytest

from sqlkg_core.exceptions import SinkError, ValidationError
from sqlkg_core.sink.staging import (
    MANIFEST_NAME,
    STAGING_PREFIX,
    STALE_STAGING_SECONDS,
    ExportStaging,
    file_digest,
)


def _staged_files(out_dir):
    return sorted(p.name for p in out_dir.iterdir())


def test_publish_moves_files_and_writes_manifest(tmp_path):
    out = tmp_path / "out"

    with ExportStaging(out, "run-1", ["nodes.csv"]) as staging:
        staging.path("nodes.csv").write_text("node_id,node_class_ids\n")
        published = staging.publish({"summary": {"node_count": 0}})

    assert _staged_files(out) == [MANIFEST_NAME, "nodes.csv"]
    assert published == {"nodes.csv": out / "nodes.csv"}

    manifest = json.loads((out / MANIFEST_NAME).read_text())
    assert manifest["run_id"] == "run-1"
    assert manifest["summary"] == {"node_count": 0}
    assert manifest["files"]["nodes.csv"]["sha256"] == file_digest(out / "nodes.csv")
    assert staging.published


def test_failure_discards_staging(tmp_path):
    out = tmp_path / "out"

    with pytest.raises(RuntimeError):
        with ExportStaging(out, "run-1") as staging:
            staging.path("nodes.csv").write_text("partial")
            raise RuntimeError("boom")

    assert _staged_files(out) == []


def test_failed_run_keeps_previous_export(tmp_path):
    out = tmp_path / "out"
    with ExportStaging(out, "run-1", ["nodes.csv"]) as staging:
        staging.path("nodes.csv").write_text("old")
        staging.publish()

    with pytest.raises(KeyboardInterrupt):
        with ExportStaging(out, "run-2", ["nodes.csv"]) as staging:
            staging.path("nodes.csv").write_text("new")
            raise KeyboardInterrupt

    assert (out / "nodes.csv").read_text() == "old"
    assert json.loads((out / MANIFEST_NAME).read_text())["run_id"] == "run-1"


def test_stale_variants_removed(tmp_path):
    out = tmp_path / "out"
    with ExportStaging(out, "run-1", ["nodes.csv"]) as staging:
        staging.path("nodes.csv").write_text("plain")
        staging.publish()

    with ExportStaging(out, "run-2", ["nodes.csv"]) as staging:
        staging.path("nodes.csv.gz").write_bytes(b"packed")
        staging.publish()

    assert _staged_files(out) == [MANIFEST_NAME, "nodes.csv.gz"]


def _age(path, seconds):
    then = time.time() - seconds
    for p in [path, *path.iterdir()]:
        os.utime(p, (then, then))


def test_stale_staging_dirs_removed(tmp_path):
    out = tmp_path / "out"
    killed = out / f"{STAGING_PREFIX}killed"
    killed.mkdir(parents=True)
    (killed / "nodes.csv").write_text("node_id,node_class_ids\n")
    _age(killed, STALE_STAGING_SECONDS + 60)

    with ExportStaging(out, "run-1") as staging:
        staging.publish()

    assert _staged_files(out) == [MANIFEST_NAME]


def test_active_staging_dir_of_concurrent_run_kept(tmp_path):
    out = tmp_path / "out"
    running = out / f"{STAGING_PREFIX}running"
    running.mkdir(parents=True)
    (running / "nodes.csv").write_text("node_id,node_class_ids\n0,0\n")

    with ExportStaging(out, "run-1") as staging:
        staging.publish()

    assert _staged_files(out) == [f"{STAGING_PREFIX}running", MANIFEST_NAME]
    assert (running / "nodes.csv").read_text() == "node_id,node_class_ids\n0,0\n"


def test_recent_write_keeps_old_staging_dir(tmp_path):
    out = tmp_path / "out"
    running = out / f"{STAGING_PREFIX}running"
    running.mkdir(parents=True)
    (running / "nodes.csv").write_text("node_id,node_class_ids\n")
    _age(running, STALE_STAGING_SECONDS + 60)
    # A long-running export still appending to its artifact
    with open(running / "nodes.csv", "a") as f:
        f.write("0,0\n")

    with ExportStaging(out, "run-1") as staging:
        staging.publish()

    assert running.is_dir()


def test_stale_after_is_configurable(tmp_path):
    out = tmp_path / "out"
    other = out / f"{STAGING_PREFIX}other"
    other.mkdir(parents=True)
    _age(other, 120)

    with ExportStaging(out, "run-1", stale_after=60) as staging:
        staging.publish()

    assert not other.exists()


def test_unrelated_files_untouched(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "README.txt").write_text("keep me")

    with ExportStaging(out, "run-1", ["nodes.csv"]) as staging:
        staging.publish()

    assert (out / "README.txt").read_text() == "keep me"


def test_output_path_is_file(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")

    with pytest.raises(ValidationError) as exc_info:
        with ExportStaging(target, "run-1"):
            pass

    assert exc_info.value.error_code == "VAL_001"


def test_publish_failure_maps_to_sink_error(tmp_path):
    out = tmp_path / "out"

    with pytest.raises(SinkError) as exc_info:
        with ExportStaging(out, "run-1") as staging:
            staging.path("nodes.csv").write_text("x")
            with patch("sqlkg_core.sink.staging.os.replace", side_effect=OSError("EXDEV")):
                staging.publish()

    assert exc_info.value.error_code == "SINK_004"
    assert not (out / MANIFEST_NAME).exists()
