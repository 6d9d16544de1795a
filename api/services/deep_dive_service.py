"""Deep-dive analysis requests, stored as one JSON document."""

import json
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import structlog

from api.exceptions import ConflictError, NotFoundError
from api.schemas.deep_dive import (
    DeepDiveCreate,
    DeepDiveRequest,
    DeepDiveResults,
    DeepDiveStatus,
)
from worker.artifacts.storage import write_text_atomic

logger = structlog.get_logger(__name__)

REQUESTS_FILENAME = "deep-dive-requests.json"

# Serializes read-modify-write cycles within one process
_lock = threading.Lock()


class DeepDiveService:
    """CRUD for deep-dive requests.

    A request is created ``pending`` and completed exactly once by an
    admin update; it is only removed by an explicit delete.
    """

    def __init__(self, data_dir: Path, clock: Callable[[], datetime] | None = None):
        self.path = Path(data_dir) / REQUESTS_FILENAME
        self.clock = clock or (lambda: datetime.now(UTC))

    def _load(self) -> list[DeepDiveRequest]:
        if not self.path.is_file():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        return [DeepDiveRequest.model_validate(item) for item in raw]

    def _dump(self, requests: list[DeepDiveRequest]) -> None:
        payload = [r.model_dump(mode="json", by_alias=True) for r in requests]
        write_text_atomic(self.path, json.dumps(payload, indent=2))

    def _new_id(self, existing: list[DeepDiveRequest], now: datetime) -> str:
        taken = {r.id for r in existing}
        stamp = int(now.timestamp() * 1000)
        while f"DD-{stamp}" in taken:
            stamp += 1
        return f"DD-{stamp}"

    def list_all(self) -> list[DeepDiveRequest]:
        """Every request, newest first."""
        with _lock:
            requests = self._load()
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    def get(self, request_id: str) -> DeepDiveRequest:
        """
        A single request.

        Raises:
            NotFoundError: If no request has this id.
        """
        with _lock:
            requests = self._load()
        for request in requests:
            if request.id == request_id:
                return request
        raise NotFoundError("Deep dive request", request_id)

    def create(self, data: DeepDiveCreate) -> DeepDiveRequest:
        """Store a new pending request."""
        now = self.clock()
        with _lock:
            requests = self._load()
            request = DeepDiveRequest(
                **data.model_dump(),
                id=self._new_id(requests, now),
                status=DeepDiveStatus.PENDING,
                created_at=now.isoformat(),
            )
            requests.append(request)
            self._dump(requests)

        logger.info("deep_dive_created", request_id=request.id, business=request.business_name)
        return request

    def complete(self, request_id: str, results: DeepDiveResults) -> DeepDiveRequest:
        """
        Record the analyst's findings and mark the request completed.

        Raises:
            NotFoundError: If no request has this id.
            ConflictError: If the request is already completed.
        """
        with _lock:
            requests = self._load()
            for index, request in enumerate(requests):
                if request.id != request_id:
                    continue
                if request.status == DeepDiveStatus.COMPLETED:
                    raise ConflictError(f"Deep dive request '{request_id}' is already completed")

                updated = request.model_copy(
                    update={
                        **results.model_dump(include=set(DeepDiveResults.model_fields)),
                        "status": DeepDiveStatus.COMPLETED,
                        "completed_at": self.clock().isoformat(),
                    }
                )
                requests[index] = updated
                self._dump(requests)
                break
            else:
                raise NotFoundError("Deep dive request", request_id)

        logger.info("deep_dive_completed", request_id=request_id)
        return updated

    def delete(self, request_id: str) -> None:
        """
        Remove a request.

        Raises:
            NotFoundError: If no request has this id.
        """
        with _lock:
            requests = self._load()
            remaining = [r for r in requests if r.id != request_id]
            if len(remaining) == len(requests):
                raise NotFoundError("Deep dive request", request_id)
            self._dump(remaining)

        logger.info("deep_dive_deleted", request_id=request_id)
