"""
Obligation Materializer

Turns a due obligation into a concrete record:
- an AutoContribution produces a GoalContribution and raises the goal's
  current amount (never past its target)
- a RecurringTransaction produces a Transaction

DESIGN DECISION: Materialization is planned first, then committed.
`plan` is pure and decides everything (skip, amount, record, new schedule).
`materialize` applies the plan as one unit of work:

    (a)  insert the record
    (b1) add the amount to the goal          (auto-contributions only)
    (b2) advance the schedule                (always last)

Each write that succeeds registers its compensation. A failure in (a)
leaves nothing behind. A failure after (a) runs the compensations newest
first and raises PartialCommitError. Because the schedule moves last, an
obligation whose commit failed is still due and is picked up again on the
next run.

Skips are values, never exceptions.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from budget_manager.audit import AuditLogger, create_correlation_id
from budget_manager.models.finance import (
    AutoContribution,
    ContributionSource,
    GoalContribution,
    RecurringTransaction,
    SavingsGoal,
    Transaction,
)
from budget_manager.models.scheduling import (
    BatchResult,
    GoalDelta,
    ItemResult,
    ItemStatus,
    MaterializationOutcome,
    MaterializationPlan,
    PersistInstruction,
    ScheduleAdvance,
    Skip,
    SkipReason,
)
from budget_manager.scheduling.frequency import next_date
from budget_manager.services.storage import FinanceStorageInterface
from budget_manager.services.unit_of_work import UnitOfWork
from budget_manager.validation import ValidationError, validate_obligation

logger = structlog.get_logger(__name__)

Obligation = Union[AutoContribution, RecurringTransaction]


class MaterializationError(Exception):
    """The record could not be created. Nothing was written."""

    def __init__(self, obligation_id: UUID, message: str):
        self.obligation_id = obligation_id
        super().__init__(message)


class PartialCommitError(Exception):
    """
    A write after the record insert failed.

    `rolled_back` is True when every compensation succeeded, i.e. the
    store is back to its state before the attempt.
    """

    def __init__(
        self,
        obligation_id: UUID,
        message: str,
        rolled_back: bool,
        compensated: Optional[list[str]] = None,
        failed: Optional[list[str]] = None,
    ):
        self.obligation_id = obligation_id
        self.rolled_back = rolled_back
        self.compensated = compensated or []
        self.failed_compensations = failed or []
        super().__init__(message)


def _obligation_type(item: Obligation) -> str:
    return "auto_contribution" if isinstance(item, AutoContribution) else "recurring_transaction"


class ObligationMaterializer:
    """
    Plans and commits materializations against a finance store.

    Usage:
        materializer = ObligationMaterializer(storage, audit_logger)
        result = await materializer.process_batch(items, as_of=date.today())
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    def plan(
        self,
        item: Obligation,
        as_of: date,
        goal: Optional[SavingsGoal] = None,
    ) -> Union[MaterializationPlan, Skip]:
        """
        Decide what materializing `item` on `as_of` would do.

        Args:
            item: The obligation
            as_of: Today's date
            goal: The target goal (required for auto-contributions)

        Returns:
            A plan, or a Skip explaining why nothing should happen

        Raises:
            ValidationError: If the configured amount is not positive
            ValueError: If an auto-contribution is planned without its goal
        """
        if isinstance(item, AutoContribution):
            if goal is None or goal.id != item.goal_id:
                raise ValueError(f"Auto-contribution {item.id} needs its goal to be planned")
            if goal.remaining_amount <= 0:
                return Skip(
                    obligation_id=item.id,
                    reason=SkipReason.ALREADY_COMPLETE,
                    message=f"Goal '{goal.name}' already reached its target",
                )

        if item.next_occurrence > as_of:
            return Skip(
                obligation_id=item.id,
                reason=SkipReason.NOT_DUE,
                message=f"Not due until {item.next_occurrence.isoformat()}",
            )

        if not item.is_active:
            return Skip(
                obligation_id=item.id,
                reason=SkipReason.INACTIVE,
                message="Obligation is paused",
            )

        if isinstance(item, RecurringTransaction) and item.end_date and item.end_date < as_of:
            return Skip(
                obligation_id=item.id,
                reason=SkipReason.ENDED,
                message=f"Schedule ended on {item.end_date.isoformat()}",
            )

        validate_obligation(item)

        schedule = ScheduleAdvance(
            obligation_id=item.id,
            last_occurrence=as_of,
            next_occurrence=next_date(as_of, item.frequency, as_of),
        )

        if isinstance(item, AutoContribution):
            amount = min(item.amount, goal.remaining_amount)
            record = GoalContribution(
                goal_id=goal.id,
                amount=amount,
                contribution_date=as_of,
                source=ContributionSource.AUTO,
                notes=f"Auto-contribution ({item.frequency.value})",
            )
            instruction = PersistInstruction(
                record=record,
                goal_delta=GoalDelta(goal_id=goal.id, amount=amount),
                schedule=schedule,
            )
        else:
            amount = item.amount
            record = Transaction(
                owner_id=item.owner_id,
                category_id=item.category_id,
                amount=amount,
                date=as_of,
                type=item.type,
                description=item.description,
            )
            instruction = PersistInstruction(record=record, schedule=schedule)

        return MaterializationPlan(obligation=item, amount=amount, instruction=instruction)

    async def materialize(
        self,
        item: Obligation,
        as_of: date,
        correlation_id: Optional[UUID] = None,
    ) -> Union[MaterializationOutcome, Skip]:
        """
        Plan and commit one obligation.

        The obligation is reloaded from storage and planned against the
        stored schedule, so a stale or repeated `item` is skipped as not due
        once it has been materialized.

        Raises:
            ValidationError: Non-positive amount (nothing written)
            MaterializationError: Obligation lookup or record insert failed (nothing written)
            PartialCommitError: A later write failed; compensations were attempted
        """
        goal = None
        if isinstance(item, AutoContribution):
            try:
                goal = await self._storage.get_goal(item.goal_id)
            except Exception as e:
                raise MaterializationError(item.id, f"Failed to load goal: {e}") from e
            if goal is None:
                raise MaterializationError(item.id, f"Goal not found: {item.goal_id}")
            rule = goal.auto_contribution
            if rule is None or rule.id != item.id:
                raise MaterializationError(item.id, f"Goal {item.goal_id} has no auto-contribution {item.id}")
            item = rule
        else:
            try:
                stored = await self._storage.get_recurring(item.id)
            except Exception as e:
                raise MaterializationError(item.id, f"Failed to load recurring transaction: {e}") from e
            if stored is None:
                raise MaterializationError(item.id, f"Recurring transaction not found: {item.id}")
            item = stored

        plan = self.plan(item, as_of, goal)
        if isinstance(plan, Skip):
            return plan

        instruction = plan.instruction
        uow = UnitOfWork(f"materialize {_obligation_type(item)} {item.id}")

        # (a) record
        try:
            if isinstance(instruction.record, GoalContribution):
                saved = await self._storage.insert_contribution(instruction.record)
                uow.add(
                    "delete contribution",
                    lambda: self._storage.delete_contribution(saved.id),
                )
            else:
                saved = await self._storage.insert_transaction(instruction.record)
                uow.add(
                    "delete transaction",
                    lambda: self._storage.delete_transaction(saved.id),
                )
        except Exception as e:
            raise MaterializationError(item.id, f"Failed to create record: {e}") from e

        # (b1) aggregate, (b2) schedule
        try:
            delta = instruction.goal_delta
            if delta is not None:
                await self._storage.add_to_goal_amount(delta.goal_id, delta.amount)
                uow.add(
                    "restore goal amount",
                    lambda: self._storage.add_to_goal_amount(delta.goal_id, -delta.amount),
                )

            updated = await self._storage.update_schedule(
                item.id,
                instruction.schedule.last_occurrence,
                instruction.schedule.next_occurrence,
            )
        except Exception as e:
            report = await uow.rollback()
            await self._audit.log_rollback(
                operation=uow.operation,
                compensated=report.compensated,
                failed=report.failed,
                correlation_id=correlation_id,
            )
            raise PartialCommitError(
                item.id,
                f"Commit failed after record insert: {e}",
                rolled_back=report.complete,
                compensated=report.compensated,
                failed=report.failed,
            ) from e

        uow.commit()

        await self._audit.log_materialized(
            obligation_id=item.id,
            obligation_type=_obligation_type(item),
            amount=str(plan.amount),
            record_id=saved.id,
            next_occurrence=instruction.schedule.next_occurrence.isoformat(),
            correlation_id=correlation_id,
        )

        return MaterializationOutcome(
            obligation_id=item.id,
            amount=plan.amount,
            record_id=saved.id,
            updated_next_occurrence=instruction.schedule.next_occurrence,
            updated_obligation=updated,
        )

    async def _process_item(
        self,
        item: Obligation,
        as_of: date,
        correlation_id: UUID,
    ) -> ItemResult:
        kind = _obligation_type(item)
        try:
            outcome = await self.materialize(item, as_of, correlation_id)
        except ValidationError as e:
            error_kind, error, rolled_back = "validation", e, None
        except MaterializationError as e:
            error_kind, error, rolled_back = "clean_failure", e, None
        except PartialCommitError as e:
            error_kind, error, rolled_back = "partial_commit", e, e.rolled_back
        except Exception as e:
            logger.exception("materialization_unexpected_error", obligation_id=str(item.id))
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"obligation_id": str(item.id), "obligation_type": kind},
                correlation_id=correlation_id,
            )
            error_kind, error, rolled_back = "unexpected", e, None
        else:
            if isinstance(outcome, Skip):
                await self._audit.log_skipped(
                    obligation_id=item.id,
                    obligation_type=kind,
                    reason=outcome.reason.value,
                    correlation_id=correlation_id,
                )
                return ItemResult(
                    obligation_id=item.id,
                    status=ItemStatus.SKIPPED,
                    skip_reason=outcome.reason,
                )
            return ItemResult(
                obligation_id=item.id,
                status=ItemStatus.SUCCEEDED,
                amount=outcome.amount,
                record_id=outcome.record_id,
            )

        await self._audit.log_failed(
            obligation_id=item.id,
            obligation_type=kind,
            error_kind=error_kind,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        return ItemResult(
            obligation_id=item.id,
            status=ItemStatus.FAILED,
            amount=Decimal("0"),
            error_kind=error_kind,
            error=str(error),
            rolled_back=rolled_back,
        )

    async def process_batch(
        self,
        items: Iterable[Obligation],
        as_of: date,
        correlation_id: Optional[UUID] = None,
        is_user_action: bool = False,
    ) -> BatchResult:
        """
        Materialize every item, isolating failures.

        Items are committed one after another. A failing item is recorded
        and the batch moves on; completed items are never undone.

        Returns:
            BatchResult with per-item results and aggregate counts
        """
        correlation_id = correlation_id or create_correlation_id()
        batch = BatchResult()

        for item in items:
            batch.record(await self._process_item(item, as_of, correlation_id))

        await self._audit.log_batch_completed(
            batch_type="obligations",
            processed=batch.processed_count,
            succeeded=batch.succeeded_count,
            failed=batch.failed_count,
            skipped=batch.skipped_count,
            total_amount=str(batch.total_amount_applied),
            correlation_id=correlation_id,
            is_user_action=is_user_action,
        )
        return batch
