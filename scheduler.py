"""
Centralized Scheduler: Registers all periodic background jobs.

Jobs:
  - Account status sweep (daily, STATUS_SWEEP_HOUR)
  - TTL cache cleanup (every 1 hour)
"""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler


def init_scheduler(app, start: bool = True):
    """Build the background scheduler and register every periodic job.

    Returns the scheduler instance; it is only started when ``start`` is true.
    """
    scheduler = BackgroundScheduler(daemon=True)

    # 1. Account status sweep: daily cron
    from tasks import enqueue_status_sweep
    scheduler.add_job(
        func=enqueue_status_sweep,
        args=[app],
        trigger="cron",
        hour=app.config.get("STATUS_SWEEP_HOUR", 3),
        id="status_sweep",
        replace_existing=True,
    )

    # 2. TTL cache cleanup: every 1 hour
    def _cleanup_cache():
        from cache_backend import get_cache
        try:
            removed = get_cache().cleanup()
        except Exception as e:
            app.logger.warning("Cache cleanup failed: %s", e, extra={"job": "cache_cleanup"})
            return
        if removed:
            app.logger.info("Cache cleanup removed %d entries", removed,
                            extra={"job": "cache_cleanup"})

    scheduler.add_job(
        func=_cleanup_cache,
        trigger="interval",
        hours=1,
        id="cache_cleanup",
        replace_existing=True,
    )

    if start:
        scheduler.start()
        app.logger.info("Centralized scheduler started (status sweep, cache cleanup)")
    return scheduler
