"""Async processor: decouples paho callback from blocking store upserts.

Wraps MessageHandler with a bounded queue + worker threads so the paho
network loop thread returns immediately after enqueue instead of blocking
on the database. Messages are handled in parallel with no ordering between
them; the store's upsert-by-key is the only serialization point.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_NUM_WORKERS = 4

MessageCallback = Callable[[str, bytes], None]


class AsyncMessageProcessor:
    """Queue + worker threads wrapper for a (topic, payload) handler.

    - paho callback → enqueue() returns immediately
    - Worker threads → handler() blocks on the store (in parallel)
    - Bounded queue provides backpressure
    """

    def __init__(
        self,
        handler: MessageCallback,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        num_workers: int = DEFAULT_NUM_WORKERS,
    ):
        self._handler = handler
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._num_workers = num_workers
        self._stop_event = threading.Event()
        self._accepting = False

        # Metrics
        self._enqueued = 0
        self._dropped = 0
        self._processed = 0
        self._errors = 0
        self._lock = threading.Lock()

        self._workers: list[threading.Thread] = []

    def start(self) -> None:
        """Start worker threads."""
        self._stop_event.clear()
        for i in range(self._num_workers):
            t = threading.Thread(
                target=self._worker_loop,
                args=(i,),
                daemon=True,
                name=f"ingest-worker-{i}",
            )
            t.start()
            self._workers.append(t)
        self._accepting = True
        logger.info(
            "[ASYNC_PROC] Started workers=%d queue_max=%d",
            self._num_workers, self._queue.maxsize,
        )

    def stop(self, drain_timeout: Optional[float] = 5.0) -> bool:
        """Stop workers, giving queued messages up to drain_timeout to finish.

        Returns:
            True if the queue was fully drained
        """
        self._accepting = False
        drained = self._wait_drained(drain_timeout)
        if not drained:
            logger.warning(
                "[ASYNC_PROC] Drain timeout, abandoning %d queued messages",
                self._queue.unfinished_tasks,
            )

        self._stop_event.set()
        for t in self._workers:
            t.join(timeout=5.0)
        self._workers.clear()
        logger.info("[ASYNC_PROC] Stopped. %s", self.metrics)
        return drained

    def enqueue(self, topic: str, payload: bytes) -> bool:
        """Enqueue a message for async processing. Returns False if dropped."""
        if not self._accepting:
            with self._lock:
                self._dropped += 1
            logger.warning("[ASYNC_PROC] Not running, dropped message topic=%s", topic)
            return False

        try:
            self._queue.put_nowait((topic, payload))
            with self._lock:
                self._enqueued += 1
            return True
        except queue.Full:
            with self._lock:
                self._dropped += 1
            logger.warning("[ASYNC_PROC] Queue full, dropped message topic=%s", topic)
            return False

    def _wait_drained(self, timeout: Optional[float]) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def _worker_loop(self, worker_id: int) -> None:
        while not self._stop_event.is_set():
            try:
                topic, payload = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue

            try:
                self._handler(topic, payload)
                with self._lock:
                    self._processed += 1
            except Exception as e:
                with self._lock:
                    self._errors += 1
                logger.error(
                    "[ASYNC_PROC] Worker %d error: %s", worker_id, e,
                )
            finally:
                self._queue.task_done()

    @property
    def metrics(self) -> dict:
        with self._lock:
            return {
                "queue_depth": self._queue.qsize(),
                "queue_max": self._queue.maxsize,
                "enqueued": self._enqueued,
                "dropped": self._dropped,
                "processed": self._processed,
                "errors": self._errors,
            }
