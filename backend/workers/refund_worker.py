import asyncio
import logging

from config.env import REFUND_CHECK_INTERVAL_SECONDS
from database import get_db
from utils.refunds import process_pending_refunds

logger = logging.getLogger(__name__)


async def refund_worker():
    db = get_db()

    while True:
        try:
            counts = await process_pending_refunds(db)
            if any(counts.values()):
                logger.info(
                    "Refund sweep: completed=%s failed=%s skipped=%s",
                    counts["completed"],
                    counts["failed"],
                    counts["skipped"],
                )
        except Exception:
            logger.exception("REFUND_WORKER_ERROR")

        await asyncio.sleep(REFUND_CHECK_INTERVAL_SECONDS)
