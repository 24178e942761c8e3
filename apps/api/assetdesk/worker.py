"""
Background worker for the attestation scheduler.

Usage:
    python -m assetdesk.worker

Runs one scheduler pass every SCHEDULER_INTERVAL_SECONDS. For production,
run this as a separate process (e.g., systemd service, Docker container),
or call POST /internal/scheduled/attestations from an external cron instead.
"""

import asyncio
import logging

from assetdesk.core.config import settings
from assetdesk.core.structured_logging import build_log_context
from assetdesk.db.session import SessionLocal
from assetdesk.services import attestation_scheduler
from assetdesk.services.notification_service import EmailNotifier

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_once() -> dict:
    """Run every scheduler pass once with the configured notifier."""
    notifier = EmailNotifier()
    with SessionLocal() as db:
        return attestation_scheduler.run_scheduled_tasks(db, notifier)


async def worker_loop() -> None:
    """Main worker loop - runs the scheduler on a fixed interval."""
    logger.info("Worker starting (interval: %ss)", settings.SCHEDULER_INTERVAL_SECONDS)

    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set - emails will be logged but not sent")

    while True:
        try:
            summary = await asyncio.to_thread(run_once)
            if summary["errors"]:
                logger.warning("Scheduler pass finished with %s error(s)", len(summary["errors"]))
        except Exception as e:
            logger.error("Error in worker loop: %s", type(e).__name__)

        await asyncio.sleep(settings.SCHEDULER_INTERVAL_SECONDS)


def main() -> None:
    """Entry point for the worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")
    except Exception:
        logger.exception("Worker crashed", extra=build_log_context(pass_name="worker"))
        raise


if __name__ == "__main__":
    main()
