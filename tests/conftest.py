"""Shared fixtures: in-memory storage and a few canonical rows."""

from uuid import uuid4

import pytest

from budget_manager.audit import AuditLogger
from budget_manager.models.finance import Category, SpendingBucket, TransactionType
from budget_manager.services.storage import InMemoryAuditStorage, InMemoryFinanceStorage


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def storage():
    return InMemoryFinanceStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def groceries(owner_id):
    return Category(
        owner_id=owner_id,
        name="Groceries",
        type=TransactionType.EXPENSE,
        bucket=SpendingBucket.NEEDS,
    )


@pytest.fixture
def salary(owner_id):
    return Category(owner_id=owner_id, name="Salary", type=TransactionType.INCOME)
