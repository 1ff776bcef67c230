"""
Periodic tournament status sweep.

An asyncio task owned by the application lifespan: first run after a short
delay, then every interval. The blocking database work runs in the threadpool.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from arena.services.tournament_status import StatusUpdate, sweep_tournament_statuses

logger = logging.getLogger(__name__)


class StatusSweeper:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: float = 60,
        initial_delay_seconds: float = 5,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.last_check_time: Optional[datetime] = None
        self.last_updates: List[StatusUpdate] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _sweep(self) -> List[StatusUpdate]:
        with self.session_factory() as session:
            return sweep_tournament_statuses(session)

    def record(self, updates: List[StatusUpdate]) -> None:
        self.last_check_time = datetime.utcnow()
        self.last_updates = updates

    async def run_once(self) -> List[StatusUpdate]:
        updates = await run_in_threadpool(self._sweep)
        self.record(updates)
        if updates:
            logger.info("Automatically updated %d tournament statuses", len(updates))
        else:
            logger.debug("No tournament status updates needed")
        return updates

    async def _loop(self) -> None:
        await asyncio.sleep(self.initial_delay_seconds)
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Tournament status sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.is_running:
            logger.info("Tournament status sweeper is already running")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Tournament status sweeper started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Tournament status sweeper stopped")

    def status(self) -> Dict:
        return {
            "is_running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "last_check_time": self.last_check_time.isoformat() if self.last_check_time else None,
            "last_updates": [u.to_dict() for u in self.last_updates],
        }
