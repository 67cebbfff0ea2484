"""Background workers started by the application lifespan."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from otpmarket.domain.orders import OrderNotFound, OrderService

from .service import ReconciliationService

logger = logging.getLogger(__name__)


class OrderMonitor:
    """One task per in-flight order that polls for the code until the order is terminal.

    Each tick re-reads the order, so a monitor that outlives its order (cancelled,
    swept, completed elsewhere) simply stops.
    """

    def __init__(self, orders: OrderService, interval: float = 10.0) -> None:
        self.orders = orders
        self.interval = interval
        self.tasks: Dict[str, asyncio.Task] = {}

    def track(self, order_id: str) -> None:
        task = self.tasks.get(order_id)
        if task and not task.done():
            return
        self.tasks[order_id] = asyncio.create_task(self._watch(order_id))

    async def resume(self) -> int:
        """Start monitors for every live order, e.g. after a restart."""
        order_ids = await self.orders.active_order_ids()
        for order_id in order_ids:
            self.track(order_id)
        if order_ids:
            logger.info("Resumed monitoring for %s live orders", len(order_ids))
        return len(order_ids)

    async def stop(self) -> None:
        tasks = list(self.tasks.values())
        self.tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _watch(self, order_id: str) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    snapshot = await self.orders.get_order_status(order_id)
                except OrderNotFound:
                    logger.warning("Monitored order %s disappeared", order_id)
                    break
                except Exception as exc:  # pylint: disable=broad-except
                    logger.error("Monitoring order %s failed: %s", order_id, exc)
                    continue
                if snapshot.is_terminal:
                    logger.debug("Order %s reached %s, monitor done", order_id, snapshot.status.value)
                    break
        except asyncio.CancelledError:
            logger.debug("Monitor for order %s cancelled", order_id)
        finally:
            if self.tasks.get(order_id) is asyncio.current_task():
                self.tasks.pop(order_id, None)


class SweepScheduler:
    def __init__(self, reconciliation: ReconciliationService, interval: float = 60.0) -> None:
        self.reconciliation = reconciliation
        self.interval = interval
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.reconciliation.sweep()
                except Exception as exc:  # pylint: disable=broad-except
                    logger.error("Scheduled sweep failed: %s", exc)
        except asyncio.CancelledError:
            logger.debug("Sweep scheduler cancelled")
