#!/usr/bin/env python
"""
Notification Outbox Worker

Standalone process delivering queued notifications (NotificationOutbox rows)
when the API runs with OUTBOX_ENABLED=false, or to drain a backlog.

Run with:
    python worker.py

Or with environment:
    WORKER_POLL_INTERVAL=10 WORKER_BATCH_SIZE=50 python worker.py
"""

import time
import signal

from app.config import settings
from app.database import SessionLocal, create_tables
from app.services.notification_outbox import OutboxProcessor
from app.utils.logging_config import get_logger, setup_logging

logger = get_logger("worker")

RUNNING = True


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully"""
    global RUNNING
    logger.info("Received shutdown signal, finishing current batch...")
    RUNNING = False


def process_outbox(db, batch_size: int):
    """Deliver one batch; returns (delivered, failed)"""
    try:
        return OutboxProcessor(db).process_batch(limit=batch_size)
    except Exception as e:
        logger.error(f"Error in outbox processing: {e}")
        db.rollback()
        return 0, 0


def run_worker():
    """Main worker loop"""
    poll_interval = settings.worker_poll_interval
    batch_size = settings.worker_batch_size

    logger.info("=" * 50)
    logger.info("Starting Notification Outbox Worker")
    logger.info(f"Poll interval: {poll_interval}s")
    logger.info(f"Batch size: {batch_size}")
    logger.info("=" * 50)

    cycle = 0

    while RUNNING:
        cycle += 1
        start_time = time.time()

        db = SessionLocal()
        try:
            delivered, failed = process_outbox(db, batch_size)

            # Log results (only if something happened)
            if delivered + failed > 0:
                duration = time.time() - start_time
                logger.info(
                    f"Cycle {cycle}: {delivered} delivered / {failed} failed | {duration:.2f}s"
                )
        finally:
            db.close()

        # Sleep until next poll
        if RUNNING:
            time.sleep(poll_interval)

    logger.info("Worker shutdown complete")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, json_format=settings.log_json, include_uvicorn=False)
    create_tables()

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        run_worker()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
