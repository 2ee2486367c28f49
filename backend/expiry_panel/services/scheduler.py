import asyncio
import logging
from typing import Optional

from ..config import settings
from ..exceptions import StorageUnavailableError
from .config_resolver import ConfigResolver
from .notifications import Notifier, SweepResult, run_expiry_sweep
from .store import KVStore, SqlKVStore
from .telegram import telegram_notifier

logger = logging.getLogger(__name__)


class LightweightScheduler:
    """
    A simple in-memory scheduler for the periodic expiry sweep.
    One pass per interval, no retry between passes.
    """

    def __init__(self, interval: Optional[int] = None,
                 store: Optional[KVStore] = None,
                 notifier: Optional[Notifier] = None):
        self._check_interval = interval or settings.EXPIRY_CHECK_INTERVAL  # seconds
        self._is_running = False
        self.store = store or SqlKVStore()
        self.notifier = notifier or telegram_notifier

    async def start(self):
        """Start the scheduler loop"""
        if self._is_running:
            return

        self._is_running = True
        logger.info(f"✅ Expiry scheduler started (every {self._check_interval}s)")

        while self._is_running:
            try:
                await self.run_tasks()
            except StorageUnavailableError as e:
                logger.error(f"❌ Expiry sweep skipped, storage unavailable: {e}")
            except Exception as e:
                logger.error(f"❌ Scheduler error: {e}", exc_info=True)

            await asyncio.sleep(self._check_interval)

    async def stop(self):
        """Stop the scheduler loop"""
        self._is_running = False
        logger.info("🛑 Expiry scheduler stopped")

    async def run_tasks(self) -> SweepResult:
        """Execute periodic tasks sequentially"""
        resolver = ConfigResolver.from_settings()
        return await run_expiry_sweep(self.store, resolver, self.notifier)


scheduler = LightweightScheduler()
