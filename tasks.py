"""Background task processing via RQ with synchronous fallback.

When Redis and RQ are available, tasks are enqueued for a worker process.
Otherwise, tasks execute synchronously in the calling thread.

Usage:
    from tasks import enqueue, enqueue_status_sweep
    enqueue(some_function, arg1, arg2)
    enqueue_status_sweep(app)   # admin trigger / scheduler job
"""

from __future__ import annotations

import logging

import redis
from rq import Queue

logger = logging.getLogger(__name__)

_queue = None


def init_tasks(app) -> None:
    """Initialize RQ queue if Redis is available. Call once from create_app()."""
    global _queue
    _queue = None

    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        app.logger.info("Task backend: synchronous (no REDIS_URL)")
        return

    try:
        conn = redis.Redis.from_url(redis_url)
        conn.ping()
        _queue = Queue(connection=conn)
        app.logger.info("Task backend: RQ (%s)", redis_url)
    except Exception as e:
        app.logger.warning("Task backend: synchronous (Redis error: %s)", e)


def set_queue(queue) -> None:
    """Swap the active queue (tests pass an RQ queue bound to fakeredis)."""
    global _queue
    _queue = queue


def enqueue(func, *args, **kwargs):
    """Push a task to RQ if available, else call synchronously.

    Returns the RQ Job object or the function's return value.
    """
    if _queue is not None:
        try:
            job = _queue.enqueue(func, *args, **kwargs)
            logger.debug("Enqueued %s (job=%s)", func.__name__, job.id)
            return job
        except Exception as e:
            logger.warning("RQ enqueue failed (%s), falling back to sync: %s", func.__name__, e)

    # Synchronous fallback
    logger.debug("Running %s synchronously", func.__name__)
    return func(*args, **kwargs)


def is_async_available() -> bool:
    """Check if RQ background processing is available."""
    return _queue is not None


# ── Status sweep ──────────────────────────────────────────

def status_sweep_job() -> dict:
    """Worker entry point. Builds its own app since Flask apps don't pickle.

    The worker app never starts a scheduler of its own.
    """
    from app import create_app
    from status_detector import run_status_sweep

    return run_status_sweep(create_app(start_scheduler=False))


def enqueue_status_sweep(app):
    """Queue a full account status sweep, or run it inline without a worker.

    Errors are logged, never raised, so the scheduler thread survives.
    """
    try:
        if _queue is not None:
            return enqueue(status_sweep_job)

        from status_detector import run_status_sweep
        report = run_status_sweep(app)
        logger.info("Status sweep finished: %d analyzed, %d changed, %d failed",
                    report["analyzed"], len(report["changed"]), len(report["failed"]),
                    extra={"job": "status_sweep"})
        return report
    except Exception:
        logger.exception("Status sweep failed", extra={"job": "status_sweep"})
        return None
