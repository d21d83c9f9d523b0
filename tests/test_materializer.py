"""
Tests for the obligation materializer.

Failures are injected with small InMemoryFinanceStorage subclasses so the
compensation path runs against real store state.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from budget_manager.models.audit import AuditEventType
from budget_manager.models.finance import ContributionSource, Frequency
from budget_manager.models.scheduling import (
    ItemStatus,
    MaterializationOutcome,
    MaterializationPlan,
    Skip,
    SkipReason,
)
from budget_manager.scheduling import (
    MaterializationError,
    ObligationMaterializer,
    PartialCommitError,
)
from budget_manager.services.storage import InMemoryFinanceStorage
from budget_manager.validation import ValidationError

from tests.factories import make_goal, make_recurring

AS_OF = date(2025, 10, 1)


class FailingInsertStorage(InMemoryFinanceStorage):
    async def insert_transaction(self, transaction):
        raise RuntimeError("insert rejected")

    async def insert_contribution(self, contribution):
        raise RuntimeError("insert rejected")


class FailingScheduleStorage(InMemoryFinanceStorage):
    async def update_schedule(self, obligation_id, last_occurrence, next_occurrence):
        raise RuntimeError("schedule write timed out")


class FailingScheduleAndUndoStorage(FailingScheduleStorage):
    async def delete_contribution(self, contribution_id):
        raise RuntimeError("delete rejected")


class WrongGoalStorage(InMemoryFinanceStorage):
    """Hands back the goal asked for under some other id."""

    async def get_goal(self, goal_id):
        goal = await super().get_goal(goal_id)
        return goal.model_copy(update={"id": uuid4()})


class FailingOnceStorage(InMemoryFinanceStorage):
    """Rejects the transaction insert for one category only."""

    def __init__(self, poisoned_category_id):
        super().__init__()
        self.poisoned_category_id = poisoned_category_id

    async def insert_transaction(self, transaction):
        if transaction.category_id == self.poisoned_category_id:
            raise RuntimeError("insert rejected")
        return await super().insert_transaction(transaction)


async def _seed_goal(storage, goal):
    await storage.insert_goals([goal])
    return goal


async def _seed_recurring(storage, item):
    await storage.insert_recurring([item])
    return item


class TestPlan:
    """Tests for the side-effect free planning step."""

    def test_auto_contribution_truncated_to_remaining(self, owner_id):
        """Test 950/1000 with a 100 rule contributes only 50."""
        goal = make_goal(owner_id, target="1000", current="950", amount="100")
        materializer = ObligationMaterializer(InMemoryFinanceStorage())

        plan = materializer.plan(goal.auto_contribution, AS_OF, goal)

        assert isinstance(plan, MaterializationPlan)
        assert plan.amount == Decimal("50")
        assert plan.instruction.record.amount == Decimal("50")
        assert plan.instruction.record.source == ContributionSource.AUTO
        assert plan.instruction.goal_delta.amount == Decimal("50")
        assert plan.updated_next_occurrence == date(2025, 11, 1)

    def test_completed_goal_skipped(self, owner_id):
        goal = make_goal(owner_id, target="1000", current="1000")
        plan = ObligationMaterializer(InMemoryFinanceStorage()).plan(goal.auto_contribution, AS_OF, goal)
        assert isinstance(plan, Skip)
        assert plan.reason == SkipReason.ALREADY_COMPLETE

    def test_not_due_skipped(self, owner_id):
        item = make_recurring(owner_id, uuid4(), next_occurrence=date(2025, 10, 2))
        plan = ObligationMaterializer(InMemoryFinanceStorage()).plan(item, AS_OF)
        assert isinstance(plan, Skip)
        assert plan.reason == SkipReason.NOT_DUE

    def test_inactive_skipped(self, owner_id):
        item = make_recurring(owner_id, uuid4(), is_active=False)
        plan = ObligationMaterializer(InMemoryFinanceStorage()).plan(item, AS_OF)
        assert plan.reason == SkipReason.INACTIVE

    def test_ended_schedule_skipped(self, owner_id):
        item = make_recurring(owner_id, uuid4(), end_date=date(2025, 9, 30))
        plan = ObligationMaterializer(InMemoryFinanceStorage()).plan(item, AS_OF)
        assert plan.reason == SkipReason.ENDED

    def test_non_positive_amount_rejected(self, owner_id):
        item = make_recurring(owner_id, uuid4(), amount="0")
        with pytest.raises(ValidationError):
            ObligationMaterializer(InMemoryFinanceStorage()).plan(item, AS_OF)

    def test_weekly_recurring_plan(self, owner_id):
        category_id = uuid4()
        item = make_recurring(owner_id, category_id, amount="25", frequency=Frequency.WEEKLY,
                              next_occurrence=date(2025, 9, 28))

        plan = ObligationMaterializer(InMemoryFinanceStorage()).plan(item, AS_OF)

        assert plan.instruction.record.date == AS_OF
        assert plan.instruction.record.category_id == category_id
        assert plan.instruction.goal_delta is None
        assert plan.instruction.schedule.last_occurrence == AS_OF
        assert plan.updated_next_occurrence == date(2025, 10, 8)

    def test_auto_contribution_requires_goal(self, owner_id):
        goal = make_goal(owner_id)
        with pytest.raises(ValueError):
            ObligationMaterializer(InMemoryFinanceStorage()).plan(goal.auto_contribution, AS_OF)


class TestMaterialize:
    """Tests for committing a single obligation."""

    @pytest.mark.asyncio
    async def test_auto_contribution_commits_all_writes(self, storage, audit_logger, audit_storage, owner_id):
        goal = await _seed_goal(storage, make_goal(owner_id, target="1000", current="950"))
        materializer = ObligationMaterializer(storage, audit_logger)

        outcome = await materializer.materialize(goal.auto_contribution, AS_OF)

        assert isinstance(outcome, MaterializationOutcome)
        assert outcome.amount == Decimal("50")
        assert storage.goals[goal.id].current_amount == Decimal("1000")
        assert storage.goals[goal.id].auto_contribution.next_occurrence == date(2025, 11, 1)
        assert storage.goals[goal.id].auto_contribution.last_occurrence == AS_OF
        assert list(storage.contributions) == [outcome.record_id]
        assert audit_storage.events[-1].event_type == AuditEventType.OBLIGATION_MATERIALIZED

    @pytest.mark.asyncio
    async def test_second_run_same_day_is_not_due(self, storage, owner_id):
        """Test materializing twice on one date produces one transaction."""
        item = await _seed_recurring(storage, make_recurring(owner_id, uuid4()))
        materializer = ObligationMaterializer(storage)

        outcome = await materializer.materialize(item, AS_OF)
        again = await materializer.materialize(outcome.updated_obligation, AS_OF)

        assert isinstance(again, Skip)
        assert again.reason == SkipReason.NOT_DUE
        assert len(storage.transactions) == 1
        assert storage.recurring[item.id].next_occurrence == date(2025, 11, 1)

    @pytest.mark.asyncio
    async def test_missing_goal_is_clean_failure(self, storage, owner_id):
        goal = make_goal(owner_id)
        with pytest.raises(MaterializationError):
            await ObligationMaterializer(storage).materialize(goal.auto_contribution, AS_OF)
        assert storage.contributions == {}

    @pytest.mark.asyncio
    async def test_insert_failure_writes_nothing(self, owner_id):
        storage = FailingInsertStorage()
        item = await _seed_recurring(storage, make_recurring(owner_id, uuid4()))

        with pytest.raises(MaterializationError):
            await ObligationMaterializer(storage).materialize(item, AS_OF)

        assert storage.transactions == {}
        assert storage.recurring[item.id].next_occurrence == AS_OF

    @pytest.mark.asyncio
    async def test_schedule_failure_rolls_back(self, audit_logger, audit_storage, owner_id):
        """A failed schedule write undoes the contribution and the goal delta."""
        storage = FailingScheduleStorage()
        goal = await _seed_goal(storage, make_goal(owner_id, current="200"))

        with pytest.raises(PartialCommitError) as exc_info:
            await ObligationMaterializer(storage, audit_logger).materialize(goal.auto_contribution, AS_OF)

        assert exc_info.value.rolled_back
        assert exc_info.value.compensated == ["restore goal amount", "delete contribution"]
        assert storage.contributions == {}
        assert storage.goals[goal.id].current_amount == Decimal("200")
        assert storage.goals[goal.id].auto_contribution.next_occurrence == AS_OF
        assert audit_storage.events[-1].event_type == AuditEventType.ROLLBACK_PERFORMED

    @pytest.mark.asyncio
    async def test_failed_compensation_reported(self, audit_logger, audit_storage, owner_id):
        storage = FailingScheduleAndUndoStorage()
        goal = await _seed_goal(storage, make_goal(owner_id, current="200"))

        with pytest.raises(PartialCommitError) as exc_info:
            await ObligationMaterializer(storage, audit_logger).materialize(goal.auto_contribution, AS_OF)

        assert not exc_info.value.rolled_back
        assert exc_info.value.failed_compensations == ["delete contribution"]
        assert storage.goals[goal.id].current_amount == Decimal("200")
        assert len(storage.contributions) == 1
        assert audit_storage.events[-1].event_type == AuditEventType.ROLLBACK_FAILED

    @pytest.mark.asyncio
    async def test_stale_item_not_materialized_twice(self, storage, owner_id):
        """Test the stored schedule decides, not the copy the caller holds."""
        item = await _seed_recurring(storage, make_recurring(owner_id, uuid4()))
        materializer = ObligationMaterializer(storage)

        await materializer.materialize(item, AS_OF)
        again = await materializer.materialize(item, AS_OF)

        assert isinstance(again, Skip)
        assert again.reason == SkipReason.NOT_DUE
        assert len(storage.transactions) == 1

    @pytest.mark.asyncio
    async def test_stale_rule_not_contributed_twice(self, storage, owner_id):
        goal = await _seed_goal(storage, make_goal(owner_id, current="0"))
        materializer = ObligationMaterializer(storage)

        await materializer.materialize(goal.auto_contribution, AS_OF)
        again = await materializer.materialize(goal.auto_contribution, AS_OF)

        assert again.reason == SkipReason.NOT_DUE
        assert len(storage.contributions) == 1
        assert storage.goals[goal.id].current_amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_unknown_recurring_is_clean_failure(self, storage, owner_id):
        item = make_recurring(owner_id, uuid4())
        with pytest.raises(MaterializationError):
            await ObligationMaterializer(storage).materialize(item, AS_OF)
        assert storage.transactions == {}

    @pytest.mark.asyncio
    async def test_removed_rule_is_clean_failure(self, storage, owner_id):
        goal = make_goal(owner_id)
        rule = goal.auto_contribution
        goal.auto_contribution = None
        await storage.insert_goals([goal])

        with pytest.raises(MaterializationError):
            await ObligationMaterializer(storage).materialize(rule, AS_OF)
        assert storage.contributions == {}


class TestProcessBatch:
    """Tests for batch isolation and counting."""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(self, audit_logger, audit_storage, owner_id):
        poisoned = uuid4()
        storage = FailingOnceStorage(poisoned)
        ok_first = await _seed_recurring(storage, make_recurring(owner_id, uuid4(), amount="100"))
        broken = await _seed_recurring(storage, make_recurring(owner_id, poisoned, amount="200"))
        ok_last = await _seed_recurring(storage, make_recurring(owner_id, uuid4(), amount="300"))

        batch = await ObligationMaterializer(storage, audit_logger).process_batch(
            [ok_first, broken, ok_last], AS_OF
        )

        assert batch.processed_count == 3
        assert batch.succeeded_count == 2
        assert batch.failed_count == 1
        assert batch.total_amount_applied == Decimal("400")
        assert [r.status for r in batch.results] == [
            ItemStatus.SUCCEEDED, ItemStatus.FAILED, ItemStatus.SUCCEEDED,
        ]
        assert batch.results[1].error_kind == "clean_failure"
        assert len(storage.transactions) == 2
        assert audit_storage.events[-1].event_type == AuditEventType.BATCH_COMPLETED

    @pytest.mark.asyncio
    async def test_skips_and_validation_failures_counted(self, storage, owner_id):
        due = await _seed_recurring(storage, make_recurring(owner_id, uuid4(), amount="100"))
        later = await _seed_recurring(
            storage, make_recurring(owner_id, uuid4(), next_occurrence=date(2025, 12, 1))
        )
        invalid = await _seed_recurring(storage, make_recurring(owner_id, uuid4(), amount="-5"))

        batch = await ObligationMaterializer(storage).process_batch([due, later, invalid], AS_OF)

        assert batch.skipped_count == 1
        assert batch.processed_count == 2
        assert batch.succeeded_count + batch.failed_count == batch.processed_count
        assert batch.results[1].skip_reason == SkipReason.NOT_DUE
        assert batch.results[2].error_kind == "validation"

    @pytest.mark.asyncio
    async def test_partial_commit_reported_per_item(self, owner_id):
        storage = FailingScheduleStorage()
        item = await _seed_recurring(storage, make_recurring(owner_id, uuid4()))

        batch = await ObligationMaterializer(storage).process_batch([item], AS_OF)

        assert batch.failed_count == 1
        assert batch.results[0].error_kind == "partial_commit"
        assert batch.results[0].rolled_back is True
        assert storage.transactions == {}

    @pytest.mark.asyncio
    async def test_empty_batch(self, storage):
        batch = await ObligationMaterializer(storage).process_batch([], AS_OF)
        assert batch.processed_count == 0
        assert batch.total_amount_applied == Decimal("0")

    @pytest.mark.asyncio
    async def test_unexpected_error_isolated(self, audit_logger, audit_storage, owner_id):
        storage = WrongGoalStorage()
        goal = await _seed_goal(storage, make_goal(owner_id))

        batch = await ObligationMaterializer(storage, audit_logger).process_batch(
            [goal.auto_contribution], AS_OF
        )

        assert batch.failed_count == 1
        assert batch.results[0].error_kind == "unexpected"
        assert AuditEventType.SYSTEM_ERROR in [e.event_type for e in audit_storage.events]

    @pytest.mark.asyncio
    async def test_duplicate_rule_applied_once(self, storage, owner_id):
        goal = await _seed_goal(storage, make_goal(owner_id, target="1000", current="0"))
        rule = goal.auto_contribution

        batch = await ObligationMaterializer(storage).process_batch([rule, rule], AS_OF)

        assert batch.succeeded_count == 1
        assert batch.skipped_count == 1
        assert batch.results[1].skip_reason == SkipReason.NOT_DUE
        assert batch.total_amount_applied == Decimal("100")
        assert len(storage.contributions) == 1
        assert storage.goals[goal.id].current_amount == Decimal("100")
