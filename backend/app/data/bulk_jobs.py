"""
Bulk job tracker — submit-then-poll handling for server-side batch searches.

Status is never inferred locally: every snapshot comes from the server's
own status report. Lifecycle of a tracked record:

  submit  → recorded (usually pending; synchronous completion is accepted)
  poll    → replaced by the server's snapshot
              pending → processing → completed | failed
              pending → completed | failed   (server finished in one step)
  failed  → evicted once the poll that observed it has returned
  download of a completed job → evicted after the bytes are handed over
  anything older than the retention window → evicted lazily on submit/poll

Polling never blocks; scheduling the poll interval is the caller's job.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import quote

from app.data.executor import RequestExecutor
from app.schemas.bulk import BulkJob
from app.schemas.envelope import DECODE_ERROR, VALIDATION_ERROR, ResultEnvelope
from app.schemas.land_registry import BulkSearchRequest

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"pending", "processing", "completed", "failed"},
    "processing": {"processing", "completed", "failed"},
    "completed": {"completed"},
    "failed": {"failed"},
}


@dataclass
class _TrackedJob:
    job: BulkJob
    tracked_at: float


class BulkJobTracker:
    def __init__(
        self,
        executor: RequestExecutor,
        *,
        retention_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._executor = executor
        self._retention = retention_seconds
        self._clock = clock
        self._jobs: dict[str, _TrackedJob] = {}

    # ── Submit ─────────────────────────────────────────────────────────────

    async def submit(self, request: BulkSearchRequest | dict[str, Any]) -> ResultEnvelope:
        """
        Submit a bulk search. Returns the job id on success.
        Malformed requests fail immediately without touching the network.
        """
        try:
            if not isinstance(request, BulkSearchRequest):
                request = BulkSearchRequest.model_validate(request)
        except ValueError as e:
            logger.warning(f"Rejected bulk search request: {e}")
            return ResultEnvelope.fail(VALIDATION_ERROR, "Invalid bulk search request", {"reason": str(e)})

        self.prune()
        envelope = await self._executor.post(
            "/bulk-search", json=request.to_payload(), response_model=BulkJob
        )
        if not envelope.success:
            return envelope
        if envelope.data is None:
            return ResultEnvelope.fail(DECODE_ERROR, "Bulk search accepted without a job record")

        job = envelope.data
        self._jobs[job.request_id] = _TrackedJob(job=job, tracked_at=self._clock())
        logger.info(
            f"Bulk search {job.request_id} submitted ({job.status}): "
            f"{len(request.postcodes)} postcodes, {len(request.title_numbers)} title numbers"
        )
        return ResultEnvelope.ok(job.request_id)

    # ── Poll ───────────────────────────────────────────────────────────────

    async def poll(self, job_id: str) -> ResultEnvelope:
        """Fetch the current server snapshot for a job. Safe to call repeatedly."""
        job_id = (job_id or "").strip()
        if not job_id:
            return ResultEnvelope.fail(VALIDATION_ERROR, "job id is required")

        self.prune()
        envelope = await self._executor.get(
            f"/bulk-search/{quote(job_id, safe='')}", response_model=BulkJob
        )
        if not envelope.success:
            return envelope
        if envelope.data is None:
            return ResultEnvelope.fail(DECODE_ERROR, f"Status report for {job_id} carried no job")

        job = self._record(job_id, envelope.data)
        if job.status == "failed":
            self._jobs.pop(job_id, None)
            logger.warning(f"Bulk search {job_id} failed: {'; '.join(job.errors)}")
        return ResultEnvelope.ok(job.model_copy(deep=True))

    def _record(self, job_id: str, reported: BulkJob) -> BulkJob:
        previous = self._jobs.get(job_id)
        if previous is None:
            self._jobs[job_id] = _TrackedJob(job=reported, tracked_at=self._clock())
            return reported

        old_status = previous.job.status
        if reported.status not in _ALLOWED_TRANSITIONS[old_status]:
            logger.warning(
                f"Bulk search {job_id}: ignoring status regression {old_status} → {reported.status}"
            )
            return previous.job

        if reported.status != old_status:
            logger.info(
                f"Bulk search {job_id}: {old_status} → {reported.status} "
                f"({reported.processed_records}/{reported.total_records} records)"
            )
        previous.job = reported
        return reported

    # ── Download ───────────────────────────────────────────────────────────

    async def download(self, job_id: str) -> Optional[bytes]:
        """
        Raw export bytes for a completed job.
        Returns None (not an error) until a poll has observed completion.
        """
        tracked = self._jobs.get(job_id)
        if tracked is None or tracked.job.status != "completed":
            logger.debug(f"Bulk search {job_id} not downloadable yet")
            return None

        envelope = await self._executor.get_bytes(f"/bulk-export/{quote(job_id, safe='')}")
        if not envelope.success:
            logger.error(f"Download of bulk search {job_id} failed: {envelope.error.message}")
            return None

        self._jobs.pop(job_id, None)
        return envelope.data

    # ── Bookkeeping ────────────────────────────────────────────────────────

    def get(self, job_id: str) -> Optional[BulkJob]:
        tracked = self._jobs.get(job_id)
        return tracked.job.model_copy(deep=True) if tracked else None

    def tracked_ids(self) -> list[str]:
        return list(self._jobs)

    def prune(self) -> int:
        """Evict records older than the retention window. Returns how many went."""
        cutoff = self._clock() - self._retention
        stale = [job_id for job_id, t in self._jobs.items() if t.tracked_at <= cutoff]
        for job_id in stale:
            del self._jobs[job_id]
        if stale:
            logger.info(f"Evicted {len(stale)} bulk search record(s) past retention")
        return len(stale)
