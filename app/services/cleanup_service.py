"""
app/services/cleanup_service.py

Purpose: Background hygiene

- Periodically clears expired verification codes
- Verification never depends on this; expiry is checked on every confirm
"""

import asyncio
from datetime import datetime
from typing import Callable

from app.core.logging import get_logger
from app.services.account_service import AccountStore
from utils.time_utils import utcnow

logger = get_logger(__name__)


async def run_code_cleanup(store: AccountStore, clock: Callable[[], datetime] = utcnow) -> int:
    """
    Runs one sweep. Returns the number of accounts touched.
    """
    return await store.cleanup_expired_codes(clock())


async def code_cleanup_loop(
    store: AccountStore,
    interval_seconds: int,
    clock: Callable[[], datetime] = utcnow
):
    """
    Sweeps forever until cancelled. A failed sweep is logged and retried
    on the next tick.
    """
    logger.info(f"Expired-code cleanup running every {interval_seconds}s")

    while True:
        try:
            await run_code_cleanup(store, clock)
        except Exception as e:
            logger.error(f"Expired-code cleanup failed: {e}", exc_info=True)

        await asyncio.sleep(interval_seconds)
