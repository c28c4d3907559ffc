"""
ExportStaging - write-then-publish handling of an output directory.

Artifacts are written into a hidden staging directory inside the output
directory. Publishing moves them in with ``os.replace`` and writes
``export_manifest.json`` last; a directory without a manifest is never a
complete export. Any failure before publishing removes the staging
directory and leaves the previous export untouched.

One export publishes into a given output directory at a time. Staging
directories of other runs are only removed once they have been idle for
``stale_after`` seconds, so a concurrent run keeps its files.

License: MIT
"""

import hashlib
import json
import os
import shutil
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import structlog

from sqlkg_core.exceptions import SinkError, ValidationError
from sqlkg_core.sink.tabular_sink import GZIP_SUFFIX

logger = structlog.get_logger(__name__)

MANIFEST_NAME = "export_manifest.json"
STAGING_PREFIX = ".sqlkg-staging-"
MANIFEST_FORMAT_VERSION = 1
# Staging directories untouched for this long belong to killed runs
STALE_STAGING_SECONDS = 3600.0


def file_digest(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """sha256 hex digest of a file."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ExportStaging:
    """
    Staging area of one export run.

    Use as a context manager; call ``publish`` inside the block once every
    artifact is closed.

    Attributes:
        output_dir: Final output directory
        staging_dir: Hidden directory receiving the artifacts
        published: Whether publish() completed

    Example:
        >>> with ExportStaging(out_dir, run_id) as staging:
        ...     write_nodes(staging.path("nodes.csv"))
        ...     staging.publish({"node_count": 10})
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        run_id: str,
        artifact_names: Iterable[str] = (),
        stale_after: float = STALE_STAGING_SECONDS,
    ) -> None:
        """
        Initialize ExportStaging.

        Args:
            output_dir: Output directory (created if missing)
            run_id: Run identifier used in the staging directory name
            artifact_names: Base names of every artifact this exporter can
                produce; stale plain or compressed variants are removed on
                publish
            stale_after: Idle seconds after which another run's staging
                directory is considered abandoned
        """
        self.output_dir = Path(output_dir)
        self.run_id = run_id
        self.staging_dir = self.output_dir / f"{STAGING_PREFIX}{run_id}"
        self.artifact_names = tuple(artifact_names)
        self.stale_after = stale_after
        self.published = False
        self._log = logger.bind(component="export_staging", output_dir=str(self.output_dir))

    def __enter__(self) -> "ExportStaging":
        self.prepare()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.published:
            self.discard()

    def prepare(self) -> None:
        """
        Create the output and staging directories, removing staging
        directories abandoned by killed runs.

        Raises:
            ValidationError: If output_dir exists and is not a directory (VAL_001)
            SinkError: If directories cannot be created (SINK_001)
        """
        if self.output_dir.exists() and not self.output_dir.is_dir():
            raise ValidationError(
                message=f"Output path is not a directory: {self.output_dir}",
                error_code="VAL_001",
                details={"output_dir": str(self.output_dir)},
            )
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            self._remove_abandoned_staging()
            self.staging_dir.mkdir()
        except OSError as e:
            raise SinkError(
                message=f"Cannot prepare output directory {self.output_dir}: {e}",
                error_code="SINK_001",
                details={"output_dir": str(self.output_dir)},
                original_exception=e,
            ) from e

        self._log.debug("staging_prepared", staging_dir=str(self.staging_dir))

    def path(self, filename: str) -> Path:
        """Staging path of an artifact file."""
        return self.staging_dir / filename

    def discard(self) -> None:
        """Delete the staging directory and everything in it."""
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir, ignore_errors=True)
            self._log.info("staging_discarded", staging_dir=str(self.staging_dir))

    def publish(self, manifest: Optional[Dict[str, Any]] = None) -> Dict[str, Path]:
        """
        Move staged files into the output directory and write the manifest.

        Args:
            manifest: Extra manifest content (e.g. the export summary)

        Returns:
            Staged file name -> published path

        Raises:
            SinkError: If any move or the manifest write fails (SINK_004)
        """
        staged = sorted(p for p in self.staging_dir.iterdir() if p.is_file())
        manifest_path = self.output_dir / MANIFEST_NAME

        try:
            files: Dict[str, Dict[str, Any]] = {}
            for path in staged:
                files[path.name] = {
                    "bytes": path.stat().st_size,
                    "sha256": file_digest(path),
                }

            # The old export stops being valid from here on
            manifest_path.unlink(missing_ok=True)
            self._remove_stale_artifacts({p.name for p in staged})

            published: Dict[str, Path] = {}
            for path in staged:
                target = self.output_dir / path.name
                os.replace(path, target)
                published[path.name] = target

            document = {
                "format_version": MANIFEST_FORMAT_VERSION,
                "run_id": self.run_id,
                "files": files,
                **(manifest or {}),
            }
            tmp_path = self.staging_dir / (MANIFEST_NAME + ".tmp")
            tmp_path.write_text(
                json.dumps(document, indent=2, sort_keys=True, default=str) + "\n",
                encoding="utf-8",
            )
            os.replace(tmp_path, manifest_path)
            self.staging_dir.rmdir()
        except OSError as e:
            raise SinkError(
                message=f"Publishing export to {self.output_dir} failed: {e}",
                error_code="SINK_004",
                details={"output_dir": str(self.output_dir)},
                original_exception=e,
            ) from e

        self.published = True
        self._log.info("export_published", files=sorted(published), manifest=str(manifest_path))
        return published

    def _remove_stale_artifacts(self, keep: set) -> None:
        for name in self.artifact_names:
            for variant in (name, name + GZIP_SUFFIX):
                if variant in keep:
                    continue
                stale = self.output_dir / variant
                if stale.is_file():
                    stale.unlink()
                    self._log.debug("stale_artifact_removed", path=str(stale))

    def _remove_abandoned_staging(self) -> None:
        cutoff = time.time() - self.stale_after
        for other in self.output_dir.glob(f"{STAGING_PREFIX}*"):
            if not other.is_dir():
                continue
            try:
                last_write = max(
                    [other.stat().st_mtime] + [p.stat().st_mtime for p in other.iterdir()]
                )
            except FileNotFoundError:
                # Published or discarded by its own run meanwhile
                continue
            if last_write >= cutoff:
                self._log.warning("staging_in_use", path=str(other))
                continue
            self._log.warning("stale_staging_removed", path=str(other))
            shutil.rmtree(other, ignore_errors=True)
