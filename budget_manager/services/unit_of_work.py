"""
Compensating Unit of Work

The stores we target offer no multi-row transactions. A multi-step write
registers an undo action after each step succeeds; on failure the undo
actions run newest first.

Usage:
    uow = UnitOfWork("materialize")
    record = await storage.insert_contribution(contribution)
    uow.add("delete contribution", lambda: storage.delete_contribution(record.id))
    ...
    report = await uow.rollback()
"""

from typing import Awaitable, Callable

import structlog
from pydantic import BaseModel

from budget_manager.models.scheduling import RollbackReport

logger = structlog.get_logger(__name__)


class Compensation(BaseModel):
    description: str
    action: Callable[[], Awaitable[object]]


class UnitOfWork:
    """Stack of compensations for one multi-step write."""

    def __init__(self, operation: str):
        self.operation = operation
        self._compensations: list[Compensation] = []

    @property
    def pending(self) -> int:
        return len(self._compensations)

    def add(self, description: str, action: Callable[[], Awaitable[object]]) -> None:
        """Register the undo of a write that just succeeded."""
        self._compensations.append(Compensation(description=description, action=action))

    def commit(self) -> None:
        """Forget every compensation. Call once all steps succeeded."""
        self._compensations.clear()

    async def rollback(self) -> RollbackReport:
        """
        Run every registered compensation, newest first.

        A failing compensation is recorded and the rest still run.
        """
        report = RollbackReport()
        while self._compensations:
            compensation = self._compensations.pop()
            try:
                await compensation.action()
                report.compensated.append(compensation.description)
            except Exception as e:
                logger.error(
                    "compensation_failed",
                    operation=self.operation,
                    step=compensation.description,
                    error=str(e),
                )
                report.failed.append(compensation.description)
        return report
