"""Background worker pool that drains the job queue."""

import concurrent.futures
import threading

from ledger_worker.core.errors import QueueError
from ledger_worker.core.models import JobResult
from ledger_worker.core.queue import JobQueue
from ledger_worker.core.utils import get_logger
from ledger_worker.workers.dispatcher import Dispatcher

logger = get_logger("ledger-worker.worker")

SAMPLE_JOB_COUNT = 3


class JobRunner:
    """JobRunner runs a fixed number of worker threads, each polling the shared queue."""

    def __init__(self, queue: JobQueue, dispatcher: Dispatcher, worker_count: int = 10, dequeue_timeout: int = 5) -> None:
        """Initialize JobRunner with the queue to drain and the dispatcher to run jobs with."""
        self.queue = queue
        self.dispatcher = dispatcher
        self.worker_count = worker_count
        self.dequeue_timeout = dequeue_timeout
        self._stop = threading.Event()
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None
        self._futures: list[concurrent.futures.Future] = []

    @property
    def running(self) -> bool:
        return self._executor is not None and not self._stop.is_set()

    def start(self) -> None:
        """Start the worker threads."""
        if self._executor is not None:
            return
        self._stop.clear()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.worker_count, thread_name_prefix="ledger-worker"
        )
        self._futures = [self._executor.submit(self.run_worker, worker_id) for worker_id in range(self.worker_count)]
        logger.info(f"Started {self.worker_count} workers on queue '{self.queue.name}'")

    def stop(self, wait: bool = True) -> None:
        """Signal every worker to stop after its current poll, optionally waiting for them."""
        self._stop.set()
        if self._executor is None:
            return
        self._executor.shutdown(wait=wait)
        for future in self._futures:
            if future.done() and future.exception() is not None:
                logger.error(f"Worker exited with an error: {future.exception()}")
        self._executor = None
        self._futures = []
        logger.info("Workers stopped")

    def run_once(self, worker_id: int = 0) -> JobResult | None:
        """Dequeue and dispatch a single job; ``None`` when nothing arrived before the timeout."""
        try:
            job = self.queue.dequeue(self.dequeue_timeout)
        except QueueError:
            logger.exception(f"Worker {worker_id}: error dequeuing job")
            return None
        if job is None:
            return None
        logger.info(f"Worker {worker_id} picked up job: {job.id} (Type: {job.type})")
        result = self.dispatcher.dispatch(job)
        if not result.success:
            logger.error(f"Worker {worker_id}: job {job.id} failed: {result.error}")
        return result

    def run_worker(self, worker_id: int) -> None:
        """Poll the queue until :meth:`stop` is called."""
        logger.info(f"Worker {worker_id} started")
        while not self._stop.is_set():
            self.run_once(worker_id)
        logger.info(f"Worker {worker_id} stopped")


def enqueue_sample_jobs(queue: JobQueue) -> list[str]:
    """Enqueue a few diagnostic jobs, handy to check a fresh deployment end to end."""
    job_ids = []
    for i in range(1, SAMPLE_JOB_COUNT + 1):
        job_ids.append(queue.enqueue("hello_world", {"message": f"Hello world {i}"}))
        job_ids.append(queue.enqueue("print_message", f"Sample message {i}"))
    logger.info(f"Enqueued {len(job_ids)} sample jobs; queue depth is now {queue.depth()}")
    return job_ids
