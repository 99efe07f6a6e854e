"""Discovery queue for ingredients unknown at request time.

A task moves ``pending -> in_progress -> resolved | failed``. Only the worker
changes status; it claims a task with a compare-and-set so two workers never
process the same key. An attempt that is interrupted goes back to
pending, and one left in progress past the lease by a dead worker is released
for another claim. Failed tasks stay failed until an operator requeues
them.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol

from nutrition_resolver.domain.discovery import DiscoveryStatus, DiscoveryTask
from nutrition_resolver.domain.errors import DiscoveryExhaustedError
from nutrition_resolver.domain.nutrition import CanonicalNutrientProfile
from nutrition_resolver.domain.resolution import FoodQuery
from nutrition_resolver.services.reconciliation import reconcile
from nutrition_resolver.services.sources import SourceFanOut

_logger = logging.getLogger(__name__)


class DiscoveryTaskRepository(Protocol):
    """Storage contract for discovery tasks keyed by ingredient key."""

    def get(self, ingredient_key: str) -> DiscoveryTask | None:
        """Return the task for a key, if any."""

    def add(self, task: DiscoveryTask) -> DiscoveryTask:
        """Insert a task unless one exists for its key; return the stored task."""

    def list_pending(self, limit: int, now: datetime) -> list[DiscoveryTask]:
        """Return pending tasks whose retry time has come."""

    def list_stale(self, limit: int, stale_before: datetime) -> list[DiscoveryTask]:
        """Return in-progress tasks last attempted before ``stale_before``."""

    def list_by_status(
        self, status: DiscoveryStatus | None, limit: int
    ) -> list[DiscoveryTask]:
        """Return tasks, optionally filtered by status."""

    def compare_and_set(
        self,
        task: DiscoveryTask,
        expected_status: DiscoveryStatus,
        expected_attempts: int | None = None,
    ) -> bool:
        """Replace the stored task only if it still has ``expected_status``.

        When ``expected_attempts`` is given the stored attempt count must match
        too.
        """


@dataclass
class InMemoryDiscoveryTaskRepository(DiscoveryTaskRepository):
    """Process-local task table."""

    tasks: dict[str, DiscoveryTask] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(self, ingredient_key: str) -> DiscoveryTask | None:
        with self._lock:
            return self.tasks.get(ingredient_key)

    def add(self, task: DiscoveryTask) -> DiscoveryTask:
        with self._lock:
            return self.tasks.setdefault(task.ingredient_key, task)

    def list_pending(self, limit: int, now: datetime) -> list[DiscoveryTask]:
        with self._lock:
            due = [
                task
                for task in self.tasks.values()
                if task.status is DiscoveryStatus.PENDING
                and (task.next_attempt_at is None or task.next_attempt_at <= now)
            ]
        return due[:limit]

    def list_stale(self, limit: int, stale_before: datetime) -> list[DiscoveryTask]:
        with self._lock:
            stale = [
                task
                for task in self.tasks.values()
                if task.status is DiscoveryStatus.IN_PROGRESS
                and task.last_attempt_at is not None
                and task.last_attempt_at < stale_before
            ]
        return stale[:limit]

    def list_by_status(
        self, status: DiscoveryStatus | None, limit: int
    ) -> list[DiscoveryTask]:
        with self._lock:
            tasks = [
                task
                for task in self.tasks.values()
                if status is None or task.status is status
            ]
        return tasks[:limit]

    def compare_and_set(
        self,
        task: DiscoveryTask,
        expected_status: DiscoveryStatus,
        expected_attempts: int | None = None,
    ) -> bool:
        with self._lock:
            current = self.tasks.get(task.ingredient_key)
            if current is None or current.status is not expected_status:
                return False
            if expected_attempts is not None and current.attempts != expected_attempts:
                return False
            self.tasks[task.ingredient_key] = task
            return True


@dataclass
class DiscoveryQueue:
    """Idempotent entry point for queueing and inspecting discovery tasks."""

    repository: DiscoveryTaskRepository

    def enqueue(self, ingredient_key: str, requested_by: str) -> DiscoveryTask:
        """Queue a key for discovery; an existing task is returned unchanged."""
        existing = self.repository.get(ingredient_key)
        if existing is not None:
            return existing
        task = self.repository.add(
            DiscoveryTask(ingredient_key=ingredient_key, requested_by=requested_by)
        )
        _logger.info("Queued discovery for %s (%s)", ingredient_key, requested_by)
        return task

    def get(self, ingredient_key: str) -> DiscoveryTask | None:
        return self.repository.get(ingredient_key)

    def requeue(self, ingredient_key: str) -> DiscoveryTask | None:
        """Reset a failed task to pending with a fresh attempt budget.

        Tasks in any other state are returned as they are.
        """
        task = self.repository.get(ingredient_key)
        if task is None or task.status is not DiscoveryStatus.FAILED:
            return task
        reset = replace(
            task,
            status=DiscoveryStatus.PENDING,
            attempts=0,
            next_attempt_at=None,
            last_error=None,
        )
        if self.repository.compare_and_set(reset, DiscoveryStatus.FAILED):
            _logger.info("Requeued discovery for %s", ingredient_key)
            return reset
        return self.repository.get(ingredient_key)

    def list_tasks(
        self, status: DiscoveryStatus | None = None, limit: int = 50
    ) -> list[DiscoveryTask]:
        return self.repository.list_by_status(status, limit)


@dataclass
class DiscoveryWorker:
    """Background consumer that resolves queued ingredients one at a time."""

    queue: DiscoveryQueue
    fan_out: SourceFanOut
    acceptance_threshold: float = 0.5
    max_attempts: int = 3
    backoff_seconds: float = 30.0
    claim_batch_size: int = 5
    lease_seconds: float = 300.0

    async def process_next(self, now: datetime | None = None) -> DiscoveryTask | None:
        """Claim and process one due task; return its new state.

        Returns None when no pending task is due or every due task was
        claimed by another worker first.
        """
        current_time = now or datetime.now(tz=UTC)
        repository = self.queue.repository
        self._release_stale(current_time)
        for task in repository.list_pending(self.claim_batch_size, current_time):
            claimed = replace(
                task,
                status=DiscoveryStatus.IN_PROGRESS,
                attempts=task.attempts + 1,
                last_attempt_at=current_time,
            )
            if repository.compare_and_set(claimed, DiscoveryStatus.PENDING):
                _logger.info(
                    "Discovery attempt %s/%s for %s",
                    claimed.attempts,
                    self.max_attempts,
                    claimed.ingredient_key,
                )
                try:
                    return await self._attempt(claimed, current_time)
                except BaseException as error:
                    self._interrupt(claimed, current_time, error)
                    raise
        return None

    async def run_forever(self, poll_seconds: float = 5.0) -> None:
        """Process tasks until cancelled, sleeping when the queue is idle."""
        while True:
            try:
                processed = await self.process_next()
            except Exception:
                _logger.exception("Discovery worker iteration failed")
                processed = None
            if processed is None:
                await asyncio.sleep(poll_seconds)

    def start_workers(
        self, count: int, poll_seconds: float = 5.0
    ) -> list[asyncio.Task[None]]:
        """Start a fixed pool of polling loops on the running event loop."""
        return [
            asyncio.create_task(
                self.run_forever(poll_seconds), name=f"discovery-worker-{index}"
            )
            for index in range(count)
        ]

    async def _attempt(self, task: DiscoveryTask, now: datetime) -> DiscoveryTask:
        query = FoodQuery.from_ingredient_key(task.ingredient_key)
        candidates = await self.fan_out.search(query)
        profile = reconcile(candidates)
        if profile is not None and profile.confidence >= self.acceptance_threshold:
            return self._resolve(task, profile)

        best = "none" if profile is None else f"{profile.confidence:.2f}"
        reason = f"No acceptable match (best confidence: {best})"
        if task.attempts < self.max_attempts:
            delay = self.backoff_seconds * 2 ** (task.attempts - 1)
            retry = replace(
                task,
                status=DiscoveryStatus.PENDING,
                next_attempt_at=now + timedelta(seconds=delay),
                last_error=reason,
            )
            self._transition(retry)
            _logger.info(
                "Discovery for %s will retry in %.0fs: %s",
                task.ingredient_key,
                delay,
                reason,
            )
            return retry

        estimates = await self.fan_out.search_fallback(query)
        estimate = reconcile(candidates + estimates)
        if estimate is not None:
            return self._resolve(task, estimate)

        error = DiscoveryExhaustedError(task.ingredient_key, task.attempts)
        failed = replace(task, status=DiscoveryStatus.FAILED, last_error=str(error))
        self._transition(failed)
        _logger.error("%s", error)
        return failed

    def _resolve(
        self, task: DiscoveryTask, profile: CanonicalNutrientProfile
    ) -> DiscoveryTask:
        resolved = replace(
            task,
            status=DiscoveryStatus.RESOLVED,
            next_attempt_at=None,
            last_error=None,
            result=profile,
        )
        self._transition(resolved)
        _logger.info(
            "Discovery resolved %s from %s (confidence %.2f)",
            task.ingredient_key,
            ", ".join(profile.provenance),
            profile.confidence,
        )
        return resolved

    def _release_stale(self, now: datetime) -> None:
        stale_before = now - timedelta(seconds=self.lease_seconds)
        repository = self.queue.repository
        for task in repository.list_stale(self.claim_batch_size, stale_before):
            released = replace(
                task,
                status=DiscoveryStatus.PENDING,
                next_attempt_at=None,
                last_error="Attempt abandoned past its lease",
            )
            if repository.compare_and_set(
                released, DiscoveryStatus.IN_PROGRESS, expected_attempts=task.attempts
            ):
                _logger.warning(
                    "Released discovery for %s stuck in progress since %s",
                    task.ingredient_key,
                    task.last_attempt_at,
                )

    def _interrupt(
        self, task: DiscoveryTask, now: datetime, error: BaseException
    ) -> None:
        delay = self.backoff_seconds * 2 ** (task.attempts - 1)
        retry = replace(
            task,
            status=DiscoveryStatus.PENDING,
            next_attempt_at=now + timedelta(seconds=delay),
            last_error=f"Attempt interrupted: {type(error).__name__}",
        )
        self._transition(retry)
        _logger.warning(
            "Discovery attempt for %s interrupted (%s); retry in %.0fs",
            task.ingredient_key,
            type(error).__name__,
            delay,
        )

    def _transition(self, task: DiscoveryTask) -> None:
        if not self.queue.repository.compare_and_set(
            task, DiscoveryStatus.IN_PROGRESS
        ):
            _logger.warning(
                "Discovery task %s changed while in progress", task.ingredient_key
            )


async def stop_workers(tasks: list[asyncio.Task[None]]) -> None:
    """Cancel worker loops and wait for them to exit."""
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
