"""
=============================================================================
WORKER THREAD POOL
=============================================================================

Runs accepted connections on a bounded set of threads so the accept loop
never blocks on a slow client or a slow handler.

    accept loop                 queue (bounded)            workers
    ───────────                 ───────────────            ───────
    conn ──submit()──►  [ job | job | job | ... ]  ──►  Worker-0
                                                   ──►  Worker-1
                                                   ──►  ...  (≤ max_workers)

    queue full  →  submit() returns False  →  caller answers 503

Workers start at min_workers and grow one at a time, up to max_workers,
while every existing worker is busy and jobs are waiting. A None in the
queue is a poison pill that tells one worker to exit.

A job that raises is logged and counted; the worker keeps running.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class Job:
    """A deferred call: func(*args)."""

    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """Pulls jobs off the shared queue until it receives a poison pill."""

    def __init__(self, jobs: "queue.Queue[Optional[Job]]", worker_id: int):
        super().__init__(name=f"kurt-worker-{worker_id}", daemon=True)
        self.jobs = jobs
        self.worker_id = worker_id
        self.busy = False
        self.completed = 0
        self.failed = 0

    def run(self):
        logger.debug("Worker %d started", self.worker_id)
        while True:
            job = self.jobs.get()
            try:
                if job is None:
                    break
                self._execute(job)
            finally:
                self.jobs.task_done()
        logger.debug("Worker %d stopped", self.worker_id)

    def _execute(self, job: Job) -> None:
        self.busy = True
        started = time.monotonic()
        try:
            job.func(*job.args)
            self.completed += 1
        except Exception:
            self.failed += 1
            logger.exception(
                "Worker %d job failed after %.3fs",
                self.worker_id, time.monotonic() - started,
            )
        finally:
            self.busy = False


class ThreadPool:
    """
    Bounded, growing pool of Worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()
        if not pool.submit(handle, conn):
            reject(conn)
        pool.shutdown()
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, queue_size: int = 100):
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("need 1 <= min_workers <= max_workers")
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size

        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._closing = False

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            logger.debug("Starting thread pool with %d workers", self.min_workers)
            for _ in range(self.min_workers):
                self._spawn_locked()
            self._started = True
            self._closing = False

    def _spawn_locked(self) -> Worker:
        worker = Worker(self._jobs, len(self._workers))
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(self, func: Callable[..., Any], *args: Any) -> bool:
        """
        Queue func(*args) without blocking.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started or self._closing:
            raise RuntimeError("Thread pool is not running")
        try:
            self._jobs.put_nowait(Job(func, args))
        except queue.Full:
            return False
        self._maybe_grow()
        return True

    def _maybe_grow(self) -> None:
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if all(w.busy for w in self._workers) and self._jobs.qsize() > 0:
                logger.debug(
                    "Scaling up: %d -> %d workers",
                    len(self._workers), len(self._workers) + 1,
                )
                self._spawn_locked()

    def shutdown(self, wait: bool = True, timeout: float = 2.0) -> None:
        """
        Stop every worker.

        With wait=True, jobs already queued run first. Each worker gets up
        to *timeout* seconds to exit after its poison pill.
        """
        with self._lock:
            if not self._started:
                return
            self._closing = True
            workers = list(self._workers)

        if not wait:
            while True:
                try:
                    self._jobs.get_nowait()
                    self._jobs.task_done()
                except queue.Empty:
                    break

        for _ in workers:
            # Blocks if the queue is full; workers are still draining it.
            self._jobs.put(None)
        for worker in workers:
            worker.join(timeout=timeout)

        with self._lock:
            self._workers.clear()
            self._started = False
        logger.debug("Thread pool stopped")

    @property
    def running(self) -> bool:
        return self._started and not self._closing

    @property
    def stats(self) -> Dict[str, int]:
        workers = list(self._workers)
        return {
            "workers": len(workers),
            "busy": sum(1 for w in workers if w.busy),
            "queued": self._jobs.qsize(),
            "completed": sum(w.completed for w in workers),
            "failed": sum(w.failed for w in workers),
        }
