"""In-process background queue for ingestion jobs.

Callers submit ``(tenant_id, url)`` and get an acknowledgment immediately;
worker tasks run :meth:`IngestionService.ingest` in the background.

# ─── HOW THE QUEUE WORKS ──────────────────────────────────────────────
#
#   submit() ──put──→ asyncio.Queue ──get──→ worker N ──→ IngestionService
#                                               │
#                                               └──notify──→ listeners
#
#   - Jobs for the same (tenant, url) are serialized with a per-key lock,
#     so two re-ingestions of one page never interleave their delete and
#     insert steps.
#   - A job that fails with UPSTREAM_TRANSIENT is re-queued after
#     ``retry_delay`` seconds until ``max_attempts`` is reached.
#   - Jobs for a key share one lock; the lock is dropped once no job holds
#     or awaits it.
#   - Queued and running jobs are kept until they finish.  Finished jobs
#     move to a TTL cache bounded by ``history_size`` and ``job_ttl``.
#   - stop() puts interrupted jobs and pending retries back on the queue
#     as QUEUED, so the next start() runs them again.
#   - Job records live in memory only; they are lost on restart.
#   - Listeners may be sync or async; a listener that raises is logged and
#     skipped.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from enum import Enum

import structlog
from cachetools import TTLCache

from synchat.models.knowledge import IngestionReport
from synchat.models.result import ErrorKind, Result
from synchat.services.ingestion.ingestion_service import IngestionService
from synchat.utils.logging import bind_job_context, get_logger


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class IngestionJob:
    """Status record of one submitted ingestion.

    Copies are handed out to callers; the queue owns the live record.
    """

    job_id: str
    tenant_id: str
    url: str
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    report: IngestionReport | None = None
    error_kind: ErrorKind | None = None
    error: str = ""
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.SUCCEEDED, JobStatus.FAILED)


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class IngestionQueue:
    """Runs ingestion jobs on a fixed pool of asyncio worker tasks.

    Parameters
    ----------
    service:
        The ingestion pipeline each job runs.
    workers:
        Number of concurrent worker tasks.
    max_attempts:
        Total attempts for a job failing with a transient error.
    retry_delay:
        Seconds to wait before re-queuing a transiently failed job.
    history_size:
        Maximum number of finished jobs kept for status lookups.
    job_ttl:
        Seconds a finished job stays visible.
    timer:
        Clock for the finished-job TTL; injectable for tests.
    """

    def __init__(
        self,
        service: IngestionService,
        workers: int = 2,
        max_attempts: int = 3,
        retry_delay: float = 5.0,
        history_size: int = 1000,
        job_ttl: float = 3600.0,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._service = service
        self._worker_count = max(1, workers)
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._active: dict[str, IngestionJob] = {}
        self._finished: TTLCache[str, IngestionJob] = TTLCache(
            maxsize=max(1, history_size), ttl=job_ttl, timer=timer
        )
        self._locks: dict[tuple[str, str], _KeyLock] = {}
        self._workers: list[asyncio.Task] = []
        self._pending_retries: set[asyncio.Task] = set()
        self._listeners: list[Callable] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Spawn the worker tasks (idempotent)."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"ingestion-worker-{n}")
            for n in range(self._worker_count)
        ]
        self._logger.info("ingestion_queue_started", workers=self._worker_count)

    async def stop(self) -> None:
        """Cancel workers and scheduled retries.

        Interrupted jobs go back to QUEUED and run again after ``start()``.
        """
        tasks = [*self._workers, *self._pending_retries]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._pending_retries.clear()
        self._logger.info("ingestion_queue_stopped", pending=self._queue.qsize())

    async def join(self) -> None:
        """Wait until every submitted job, including scheduled retries, has finished."""
        while True:
            await self._queue.join()
            if not self._pending_retries:
                return
            await asyncio.wait(set(self._pending_retries))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(self, tenant_id: str, url: str) -> Result[IngestionJob]:
        """Queue an ingestion of *url* for *tenant_id* and return its record."""
        if not tenant_id or not tenant_id.strip():
            return Result.failure(ErrorKind.INVALID_INPUT, "tenant_id is required")
        if not url or not url.startswith(("http://", "https://")):
            return Result.failure(ErrorKind.INVALID_INPUT, f"Invalid URL: {url!r}")

        job = IngestionJob(job_id=uuid.uuid4().hex, tenant_id=tenant_id, url=url)
        self._active[job.job_id] = job
        self._queue.put_nowait(job.job_id)
        self._logger.info("ingestion_job_submitted", job_id=job.job_id, tenant_id=tenant_id, url=url)
        await self._notify(job)
        return Result.success(replace(job), message="Ingestion queued")

    async def retry(self, job_id: str) -> Result[IngestionJob]:
        """Re-queue a FAILED job with a fresh attempt budget."""
        job = self._lookup(job_id)
        if job is None:
            return Result.failure(ErrorKind.INVALID_INPUT, f"Unknown job {job_id}")
        if job.status is not JobStatus.FAILED:
            return Result.failure(
                ErrorKind.INVALID_INPUT,
                f"Job {job_id} is {job.status.value}; only failed jobs can be retried",
            )
        del self._finished[job_id]
        self._active[job_id] = job
        job.attempts = 0
        self._set_status(job, JobStatus.QUEUED)
        job.error_kind, job.error = None, ""
        self._queue.put_nowait(job_id)
        await self._notify(job)
        return Result.success(replace(job), message="Ingestion re-queued")

    def get_job(self, job_id: str) -> IngestionJob | None:
        job = self._lookup(job_id)
        return replace(job) if job is not None else None

    def list_jobs(self, tenant_id: str | None = None) -> list[IngestionJob]:
        """Known jobs in submission order, optionally for one tenant."""
        self._finished.expire()
        jobs = sorted(
            [*self._active.values(), *self._finished.values()],
            key=lambda job: job.created_at,
        )
        return [replace(job) for job in jobs if tenant_id is None or job.tenant_id == tenant_id]

    def add_listener(self, callback: Callable) -> None:
        """Register a sync or async ``callback(job)`` called on every status change."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _worker(self) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self._run(job_id)
            finally:
                self._queue.task_done()

    async def _run(self, job_id: str) -> None:
        job = self._active[job_id]
        try:
            result = await self._attempt(job)
        except asyncio.CancelledError:
            if job.status is JobStatus.RUNNING:
                job.attempts -= 1
            self._set_status(job, JobStatus.QUEUED)
            self._queue.put_nowait(job_id)
            self._logger.warning("ingestion_job_interrupted", job_id=job_id)
            await self._notify(job)
            raise

        if result.ok:
            job.report = result.value
            job.error_kind, job.error = None, ""
            self._finish(job, JobStatus.SUCCEEDED)
            self._logger.info("ingestion_job_succeeded", job_id=job_id, attempts=job.attempts)
        elif result.error_kind is ErrorKind.UPSTREAM_TRANSIENT and job.attempts < self._max_attempts:
            job.error_kind, job.error = result.error_kind, result.message
            self._set_status(job, JobStatus.QUEUED)
            self._schedule_retry(job_id)
            self._logger.warning(
                "ingestion_job_retry_scheduled",
                job_id=job_id,
                attempts=job.attempts,
                delay=self._retry_delay,
                error=result.message,
            )
        else:
            job.error_kind, job.error = result.error_kind, result.message
            self._finish(job, JobStatus.FAILED)
            self._logger.error(
                "ingestion_job_failed",
                job_id=job_id,
                attempts=job.attempts,
                error_kind=result.error_kind.value if result.error_kind else None,
                error=result.message,
            )
        await self._notify(job)

    async def _attempt(self, job: IngestionJob) -> Result[IngestionReport]:
        async with self._serialized((job.tenant_id, job.url)):
            job.attempts += 1
            self._set_status(job, JobStatus.RUNNING)
            await self._notify(job)

            with bind_job_context(job_id=job.job_id, attempt=job.attempts):
                try:
                    return await self._service.ingest(job.tenant_id, job.url)
                except Exception as exc:
                    self._logger.exception("ingestion_job_crashed", error=str(exc))
                    return Result.failure(ErrorKind.UPSTREAM_FATAL, f"Unexpected error: {exc}")

    @asynccontextmanager
    async def _serialized(self, key: tuple[str, str]) -> AsyncIterator[None]:
        entry = self._locks.setdefault(key, _KeyLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if not entry.users:
                del self._locks[key]

    def _schedule_retry(self, job_id: str) -> None:
        async def requeue() -> None:
            try:
                await asyncio.sleep(self._retry_delay)
            finally:
                self._queue.put_nowait(job_id)

        task = asyncio.create_task(requeue())
        self._pending_retries.add(task)
        task.add_done_callback(self._pending_retries.discard)

    def _lookup(self, job_id: str) -> IngestionJob | None:
        return self._active.get(job_id) or self._finished.get(job_id)

    def _finish(self, job: IngestionJob, status: JobStatus) -> None:
        self._set_status(job, status)
        self._active.pop(job.job_id, None)
        self._finished[job.job_id] = job

    @staticmethod
    def _set_status(job: IngestionJob, status: JobStatus) -> None:
        job.status = status
        job.updated_at = time.time()

    async def _notify(self, job: IngestionJob) -> None:
        snapshot = replace(job)
        for callback in list(self._listeners):
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "ingestion_listener_error",
                    job_id=job.job_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
