"""Pipeline artifacts: filename grammar, parsing and storage."""

from worker.artifacts.models import Artifact, ArtifactKind, ProviderId, RunMetadata
from worker.artifacts.storage import ArtifactStore, FileArtifactStore

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactStore",
    "FileArtifactStore",
    "ProviderId",
    "RunMetadata",
]
