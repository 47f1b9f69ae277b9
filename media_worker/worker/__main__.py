from __future__ import annotations

import logging
import signal
import sys

from sqlalchemy import text

from media_worker.core.config import settings
from media_worker.core.logging import configure_logging
from media_worker.db.session import engine
from media_worker.worker.context import WorkerContext
from media_worker.worker.loop import run_worker

logger = logging.getLogger("media_worker.worker")


def _handle_signal(signum, frame):
    # In-flight work is not drained; the job stays running until an operator retries it.
    logger.info("%s received, shutting down.", signal.Signals(signum).name)
    raise SystemExit(0)


def check_store() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def main() -> int:
    configure_logging(settings.worker_id)
    logger.info("Worker online.")

    try:
        check_store()
    except Exception as e:
        logger.error("DB connection failed: %s", e)
        return 1

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        ctx = WorkerContext.from_settings(settings)
        run_worker(ctx)
        return 0
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0
    except Exception:
        logger.exception("Fatal")
        return 1
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
