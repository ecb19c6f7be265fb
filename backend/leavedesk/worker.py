"""Worker process for the scheduled monthly accrual.

Wakes up once per interval and runs accrual for the current month. A period
that has already been applied credits nothing, so waking daily is enough to
catch the first day of each month.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from leavedesk.config import configure_logging, get_settings
from leavedesk.db import get_session_factory
from leavedesk.services.accrual import has_completed_run, period_of, run_monthly_accrual

logger = logging.getLogger(__name__)


async def run_accrual_once(today: date | None = None) -> None:
    """Run accrual for the month of ``today`` unless a clean run already exists."""
    today = today or date.today()
    period = period_of(today)
    session_factory = get_session_factory()
    async with session_factory() as session:
        if await has_completed_run(session, period):
            logger.debug("Accrual for %s already completed", period)
            return
        logger.info("Running monthly accrual for %s", period)
        await run_monthly_accrual(session, period, today=today)


async def run_accrual_loop() -> None:
    """Main worker loop."""
    interval = get_settings().worker_interval_seconds
    logger.info("Accrual worker started (interval=%ss)", interval)

    while True:
        try:
            await run_accrual_once()
        except Exception:
            logger.exception("Accrual run failed for %s", date.today())

        await asyncio.sleep(interval)


def main() -> None:
    """Entry point for the worker process."""
    configure_logging()
    asyncio.run(run_accrual_loop())


if __name__ == "__main__":
    main()
