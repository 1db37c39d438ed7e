"""
Study Tracker: Flask application factory

Wires configuration, logging, cache, task queue, database and the
background scheduler that runs the daily account status sweep.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask

import database


def create_app(test_config: dict[str, Any] | None = None, start_scheduler: bool = True) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import FEATURE_FLAGS, config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    # Copy so tests can toggle flags per app
    app.config["FEATURE_FLAGS"] = dict(app.config.get("FEATURE_FLAGS", FEATURE_FLAGS))

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Cache backend (Redis or in-memory fallback)
    from cache_backend import init_cache
    init_cache(app)

    # Background task processing (RQ or synchronous fallback)
    from tasks import init_tasks
    init_tasks(app)

    # Register database teardown, create schema, run migrations
    database.init_app(app)

    # Start centralized scheduler (status sweep, cache cleanup).
    # RQ workers build their own app and pass start_scheduler=False.
    if start_scheduler and not app.config.get("TESTING"):
        from scheduler import init_scheduler
        app.extensions["scheduler"] = init_scheduler(app)

    return app


if __name__ == "__main__":
    # No routes: the process only hosts the background scheduler
    import time

    scheduler = create_app().extensions["scheduler"]
    try:
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()
