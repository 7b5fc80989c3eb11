"""Builders for test rows and transactions."""
from datetime import date
from decimal import Decimal

from src.db.core import (
    UserDB,
    AccountDB,
    GoalDB,
    BudgetDB,
    BudgetCategoryDB,
    BudgetType,
    TransactionType,
)
from src.models.transaction import Transaction, GoalAllocation


def make_user(db, username: str) -> UserDB:
    user = UserDB(username=username, email=f"{username}@example.com")
    db.add(user)
    db.commit()
    return user


def make_account(db, user_id: int, name: str = "Checking") -> AccountDB:
    account = AccountDB(user_id=user_id, account_name=name)
    db.add(account)
    db.commit()
    return account


def make_goal(db, user_id: int, name: str = "Trip") -> GoalDB:
    goal = GoalDB(user_id=user_id, name=name, value=Decimal("1000.00"), due_date=date(2025, 12, 31))
    db.add(goal)
    db.commit()
    return goal


def make_budget(db, user_id: int, categories, start=date(2025, 3, 1), end=date(2025, 3, 31), name="Groceries") -> BudgetDB:
    budget = BudgetDB(
        user_id=user_id,
        name=name,
        value=Decimal("500.00"),
        budget_type=BudgetType.MONTHLY,
        start_date=start,
        end_date=end,
        categories=[BudgetCategoryDB(category=c) for c in categories],
    )
    db.add(budget)
    db.commit()
    return budget


def make_transaction(user_id: int, account_id: int, **overrides) -> Transaction:
    fields = dict(
        user_id=user_id,
        account_id=account_id,
        name="Supermarket",
        category="Groceries",
        parent_category="Food",
        transaction_type=TransactionType.CARD,
        transaction_date=date(2025, 3, 15),
        value=Decimal("100.00"),
    )
    fields.update(overrides)
    return Transaction(**fields)


def allocation(goal_id: int, percentage: str, name: str = "Trip") -> GoalAllocation:
    return GoalAllocation(goal_id=goal_id, goal_name=name, percentage=Decimal(percentage))

