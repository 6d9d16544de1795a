"""Storage for test-run artifacts."""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from worker.artifacts.models import Artifact, RunMetadata
from worker.artifacts.naming import (
    RUN_METADATA_PREFIX,
    parse_artifact,
    run_metadata_filename,
)

logger = structlog.get_logger(__name__)


def write_text_atomic(path: Path, content: str) -> None:
    """Write a file so readers never observe a partial write."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ArtifactStore(ABC):
    """Narrow storage contract used by the correlation and report layers.

    Locators are opaque strings; writes must be durable before returning.
    No locking is assumed: concurrent writers use distinct filenames.
    """

    @abstractmethod
    def business_dirs(self) -> list[str]:
        """List business grouping keys."""
        ...

    @abstractmethod
    def list_artifacts(self, scope: str | None = None) -> list[Artifact]:
        """List artifacts for one business (or all when scope is None)."""
        ...

    @abstractmethod
    def read_artifact(self, locator: str) -> str:
        """Read an artifact's text content."""
        ...

    @abstractmethod
    def write_artifact(self, locator: str, content: str) -> str:
        """Write an artifact, returning its locator."""
        ...

    @abstractmethod
    def delete_artifact(self, locator: str) -> bool:
        """Delete an artifact. Returns False if it did not exist."""
        ...

    @abstractmethod
    def write_run_metadata(self, metadata: RunMetadata) -> str:
        """Persist a run metadata record."""
        ...

    @abstractmethod
    def list_run_metadata(self) -> list[RunMetadata]:
        """Load every run metadata record."""
        ...

    def locator(self, business_dir: str, filename: str) -> str:
        """Locator for a file inside a business directory."""
        return f"{business_dir}/{filename}"


class FileArtifactStore(ArtifactStore):
    """File-system artifact store: one sub-directory per business."""

    def __init__(self, base_path: Path | str):
        """
        Initialize storage.

        Args:
            base_path: Results root directory
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, locator: str) -> Path:
        """Map a locator to a path, refusing anything outside the base."""
        base = self.base_path.resolve()
        path = (base / locator).resolve()
        if path == base or not path.is_relative_to(base):
            raise ValueError(f"Locator outside artifact store: {locator!r}")
        return path

    def path_for(self, locator: str) -> Path:
        """File-system path of a locator."""
        return self._resolve(locator)

    def to_locator(self, path: Path | str) -> str:
        """Convert a path produced by an external worker into a locator.

        Paths outside the store are returned unchanged.
        """
        candidate = Path(path).resolve()
        base = self.base_path.resolve()
        if candidate.is_relative_to(base):
            return candidate.relative_to(base).as_posix()
        return str(path)

    def business_dirs(self) -> list[str]:
        return sorted(
            p.name for p in self.base_path.iterdir() if p.is_dir() and not p.name.startswith(".")
        )

    def list_artifacts(self, scope: str | None = None) -> list[Artifact]:
        dirs = [scope] if scope is not None else self.business_dirs()
        artifacts: list[Artifact] = []

        for business_dir in dirs:
            try:
                directory = self._resolve(business_dir)
            except ValueError:
                logger.warning("artifact_scope_rejected", scope=business_dir)
                continue
            if not directory.is_dir():
                continue

            for path in sorted(directory.iterdir()):
                if not path.is_file():
                    continue
                artifact = parse_artifact(
                    business_dir, path.name, self.locator(business_dir, path.name)
                )
                if artifact is not None:
                    artifacts.append(artifact)

        return artifacts

    def read_artifact(self, locator: str) -> str:
        return self._resolve(locator).read_text(encoding="utf-8", errors="replace")

    def write_artifact(self, locator: str, content: str) -> str:
        write_text_atomic(self._resolve(locator), content)
        logger.debug("artifact_written", locator=locator, size=len(content))
        return locator

    def delete_artifact(self, locator: str) -> bool:
        path = self._resolve(locator)
        if not path.is_file():
            return False

        path.unlink()
        logger.info("artifact_deleted", locator=locator)
        return True

    def write_run_metadata(self, metadata: RunMetadata) -> str:
        filename = run_metadata_filename(metadata.test_run_id)
        self.write_artifact(filename, json.dumps(metadata.to_dict(), indent=2))
        return filename

    def list_run_metadata(self) -> list[RunMetadata]:
        records: list[RunMetadata] = []

        for path in sorted(self.base_path.glob(f"{RUN_METADATA_PREFIX}*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                records.append(RunMetadata.from_dict(data))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning("run_metadata_unreadable", file=path.name, error=str(e))

        return records
