"""Workers package: the job dispatcher and the worker pool that drains the queue."""
