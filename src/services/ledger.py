"""
Ledger Service

Owns every write to transactions and keeps the derived aggregates consistent
with them: the per-account monthly balances, the saved value of each goal and
the spent value of each budget. Creating a transaction applies its effects,
deleting one reverses them, and updating a field that feeds an aggregate
reverses the old version before applying the new one.
"""
from sqlalchemy.orm import Session
from decimal import Decimal
from typing import Optional, List, Dict, Any, Union

from src.db.core import (
    TransactionType,
    InvestmentType,
    NotFoundError,
    MonthlyBalanceMissingError,
    EmptyPayloadError,
    ForbiddenError,
)
from src.crud.base import (
    TransactionStoreProtocol,
    MonthlyBalanceStoreProtocol,
    GoalStoreProtocol,
    BudgetStoreProtocol,
)
from src.crud.crud_transaction import TransactionStore
from src.crud.crud_monthly_balance import MonthlyBalanceStore
from src.crud.crud_goal import GoalStore
from src.crud.crud_budget import BudgetStore
from src.models.transaction import Transaction, TransactionUpdate, TransactionTypes
from src.models.monthly_balance import MonthlyBalance
from src.models.goal import Goal, GoalIncrement
from src.models.budget import Budget, BudgetSpent
from src.services.dates import calculate_last_month, first_day_of_month
from src.logging_config import get_logger

logger = get_logger(__name__)

# Fields whose change moves money between aggregates
TRIGGER_FIELDS = frozenset({
    "value",
    "category",
    "parent_category",
    "account_id",
    "transaction_date",
    "goals_list",
    "transaction_type",
})

NULLABLE_FIELDS = frozenset({"investment_type"})

ZERO = Decimal("0.00")


def check_void_payload(payload: Any, action: str) -> None:
    if not payload:
        raise EmptyPayloadError(f"No information provided to {action} Transaction")


def check_user_access(
    instance: Union[Transaction, Goal, Budget],
    user_id: int,
    is_admin: bool,
    action: str,
    model_name: str = "Transaction"
) -> None:
    """Only the owner or an admin may touch an instance"""
    if not is_admin and instance.user_id != user_id:
        logger.warning(f"User {user_id} denied {action} on {model_name.lower()} {instance.id}")
        raise ForbiddenError(
            f"User {user_id} is not allowed to {action} {model_name} with id {instance.id}"
        )


def normalize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Drop explicit nulls for required fields; a null goals list means no goals"""
    normalized = {}
    for field, value in changes.items():
        if field == "goals_list" and value is None:
            normalized[field] = []
        elif value is not None or field in NULLABLE_FIELDS:
            normalized[field] = value
    return normalized


def should_trigger_recalculation(changes: Dict[str, Any]) -> bool:
    return any(field in TRIGGER_FIELDS for field in changes)


def get_transaction_types() -> TransactionTypes:
    return TransactionTypes(
        transaction_types=[t.value for t in TransactionType],
        investment_types=[t.value for t in InvestmentType],
    )


class LedgerCoordinator:
    def __init__(
        self,
        transaction_store: TransactionStoreProtocol,
        monthly_balance_store: MonthlyBalanceStoreProtocol,
        goal_store: GoalStoreProtocol,
        budget_store: BudgetStoreProtocol,
    ):
        self.transaction_store = transaction_store
        self.monthly_balance_store = monthly_balance_store
        self.goal_store = goal_store
        self.budget_store = budget_store

    # ===== TRANSACTION OPERATIONS =====

    def create_transaction(self, content: Union[Transaction, Dict[str, Any], None]) -> Transaction:
        """Persist a transaction, then fold it into its balance, goals and budgets"""
        check_void_payload(content, "create")
        transaction = content if isinstance(content, Transaction) else Transaction.model_validate(content)

        saved = self.transaction_store.save(transaction)
        logger.info(f"Created transaction {saved.id} for user {saved.user_id}")

        self._apply_effects(saved, sign=1)
        return saved

    def delete_transaction(self, transaction_id: int, user_id: int, is_admin: bool = False) -> Transaction:
        """Reverse a transaction's effects, then delete it. Returns the deleted transaction."""
        transaction = self.transaction_store.find_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction with id {transaction_id} not found. Cannot execute delete action.")
        check_user_access(transaction, user_id, is_admin, "delete")

        self._apply_effects(transaction, sign=-1)
        self.transaction_store.find_by_id_and_delete(transaction_id)

        logger.info(f"Deleted transaction {transaction_id}")
        return transaction

    def update_transaction(
        self,
        transaction_id: int,
        payload: Union[TransactionUpdate, Dict[str, Any], None],
        user_id: int,
        is_admin: bool = False
    ) -> Transaction:
        """Apply a partial update, moving aggregates when a trigger field changes"""
        if not isinstance(payload, TransactionUpdate):
            check_void_payload(payload, "update")
            payload = TransactionUpdate.model_validate(payload)
        changes = payload.model_dump(exclude_unset=True)
        check_void_payload(changes, "update")
        changes = normalize_changes(changes)
        check_void_payload(changes, "update")

        transaction = self.transaction_store.find_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction with id {transaction_id} not found. Cannot execute update action.")
        check_user_access(transaction, user_id, is_admin, "update")

        # The owner must also own the destination account
        if "account_id" in changes and changes["account_id"] != transaction.account_id:
            self.transaction_store.verify_account_owner(transaction.user_id, changes["account_id"])

        if should_trigger_recalculation(changes):
            merged = Transaction.model_validate({**transaction.model_dump(), **changes, "id": transaction.id})
            logger.info(f"Recalculating aggregates for transaction {transaction_id}")
            self._apply_effects(transaction, sign=-1)
            self._apply_effects(merged, sign=1)

        updated = self.transaction_store.update(transaction_id, changes)
        if updated is None:
            raise NotFoundError(f"Transaction with id {transaction_id} not found. Cannot execute update action.")
        return updated

    def get_transaction(self, transaction_id: int, user_id: int, is_admin: bool = False) -> Optional[Transaction]:
        transaction = self.transaction_store.find_by_id(transaction_id)
        if transaction is None:
            return None
        check_user_access(transaction, user_id, is_admin, "get")
        return transaction

    def list_transactions(self, user_id: int) -> List[Transaction]:
        return self.transaction_store.list_all(user_id)

    def get_transaction_types(self) -> TransactionTypes:
        return get_transaction_types()

    # ===== GOAL AND BUDGET OPERATIONS =====

    def delete_goal(self, goal_id: int, user_id: int, is_admin: bool = False) -> Goal:
        """Detach a goal from every transaction, then delete it. Saved amounts are not reversed."""
        goal = self.goal_store.find_by_id(goal_id)
        if goal is None:
            raise NotFoundError(f"Goal with id {goal_id} not found. Cannot execute delete action.")
        check_user_access(goal, user_id, is_admin, "delete", "Goal")

        logger.info(f"Removing goal {goal_id} from transactions")
        self.transaction_store.delete_goal_from_transactions(goal_id)
        self.goal_store.find_by_id_and_delete(goal_id)

        logger.info(f"Deleted goal {goal_id}")
        return goal

    def calculate_budget_spent(self, budget_id: int, user_id: int, is_admin: bool = False) -> BudgetSpent:
        """Sum the values of the budget's transactions straight from the transaction store"""
        budget = self.budget_store.find_by_id(budget_id)
        if budget is None:
            raise NotFoundError(f"Budget with id {budget_id} not found. Cannot execute get action.")
        check_user_access(budget, user_id, is_admin, "get", "Budget")

        transactions = self.transaction_store.find_by_category_with_date_range(
            budget.user_id, budget.categories, budget.start_date, budget.end_date
        )
        logger.info(f"Calculating spent for budget {budget_id} from user {budget.user_id}")

        spent = sum((t.value for t in transactions), ZERO)
        return BudgetSpent(budget_id=budget_id, spent=spent)

    # ===== AGGREGATE MAINTENANCE =====

    def _apply_effects(self, transaction: Transaction, sign: int) -> None:
        """Apply (sign=1) or reverse (sign=-1) a transaction's effect on every aggregate"""
        if sign > 0:
            self._add_to_monthly_balance(transaction)
            signed = transaction
        else:
            self._subtract_from_monthly_balance(transaction)
            signed = transaction.model_copy(update={"value": -transaction.value})

        self._update_goals(signed)
        self.budget_store.update_budgets_by_new_transaction(signed)

    def _add_to_monthly_balance(self, transaction: Transaction) -> None:
        period = transaction.transaction_date
        balance = self.monthly_balance_store.find_monthly_balance(transaction, period)

        if balance is None:
            opening = self._get_last_month_closing(transaction)
            balance = MonthlyBalance(
                user_id=transaction.user_id,
                account_id=transaction.account_id,
                month=period.month,
                year=period.year,
                opening_balance=opening,
                closing_balance=opening + transaction.value,
                transactions=[transaction.id],
            )
            self.monthly_balance_store.save(balance)
            logger.debug(f"Opened monthly balance {period.month}/{period.year} for account {transaction.account_id}")
            return

        if transaction.id not in balance.transactions:
            balance.transactions.append(transaction.id)
        balance.closing_balance += transaction.value
        self.monthly_balance_store.update(balance.id, balance)

    def _subtract_from_monthly_balance(self, transaction: Transaction) -> None:
        balance = self.monthly_balance_store.find_monthly_balance(transaction, transaction.transaction_date)
        if balance is None:
            logger.error(f"No monthly balance to subtract transaction {transaction.id} from")
            raise MonthlyBalanceMissingError(
                f"Monthly balance for transaction {transaction.id} not found. Cannot execute subtract action."
            )

        balance.transactions = [t for t in balance.transactions if t != transaction.id]
        balance.closing_balance -= transaction.value
        self.monthly_balance_store.update(balance.id, balance)

    def _get_last_month_closing(self, transaction: Transaction) -> Decimal:
        """Closing balance of the previous month, or zero when there is none"""
        period = transaction.transaction_date
        year, month = calculate_last_month(period.year, period.month)
        previous = self.monthly_balance_store.find_monthly_balance(transaction, first_day_of_month(year, month))
        return previous.closing_balance if previous else ZERO

    def _update_goals(self, transaction: Transaction) -> None:
        if not transaction.goals_list:
            return

        increments = [
            GoalIncrement(goal_id=entry.goal_id, amount=transaction.value * entry.percentage)
            for entry in transaction.goals_list
        ]
        self.goal_store.increment_goals_in_bulk(increments)


def build_ledger_coordinator(db: Session) -> LedgerCoordinator:
    """Wire a coordinator to SQLAlchemy-backed stores sharing one session"""
    return LedgerCoordinator(
        transaction_store=TransactionStore(db),
        monthly_balance_store=MonthlyBalanceStore(db),
        goal_store=GoalStore(db),
        budget_store=BudgetStore(db),
    )
