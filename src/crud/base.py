from typing import Protocol, Optional, List, Dict, Any
from datetime import date

from src.models.transaction import Transaction
from src.models.monthly_balance import MonthlyBalance
from src.models.goal import Goal, GoalIncrement
from src.models.budget import Budget


# ===== STORE INTERFACES =====
# The ledger coordinator depends on these, so tests can swap in fakes.

class TransactionStoreProtocol(Protocol):
    def verify_account_owner(self, user_id: int, account_id: int) -> None: ...

    def save(self, transaction: Transaction) -> Transaction: ...

    def find_by_id(self, transaction_id: int) -> Optional[Transaction]: ...

    def update(self, transaction_id: int, changes: Dict[str, Any]) -> Optional[Transaction]: ...

    def find_by_id_and_delete(self, transaction_id: int) -> Optional[Transaction]: ...

    def list_all(self, user_id: int) -> List[Transaction]: ...

    def find_by_category_with_date_range(
        self, user_id: int, categories: List[str], start_date: date, end_date: date
    ) -> List[Transaction]: ...

    def delete_goal_from_transactions(self, goal_id: int) -> int: ...


class MonthlyBalanceStoreProtocol(Protocol):
    def find_monthly_balance(self, transaction: Transaction, period: date) -> Optional[MonthlyBalance]: ...

    def save(self, balance: MonthlyBalance) -> MonthlyBalance: ...

    def update(self, balance_id: int, balance: MonthlyBalance) -> Optional[MonthlyBalance]: ...


class GoalStoreProtocol(Protocol):
    def increment_goals_in_bulk(self, increments: List[GoalIncrement]) -> None: ...

    def find_by_id(self, goal_id: int) -> Optional[Goal]: ...

    def find_by_id_and_delete(self, goal_id: int) -> Optional[Goal]: ...


class BudgetStoreProtocol(Protocol):
    def update_budgets_by_new_transaction(self, transaction: Transaction) -> int: ...

    def find_by_id(self, budget_id: int) -> Optional[Budget]: ...
