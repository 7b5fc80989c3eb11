from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, update
from typing import List, Optional

from src.db.core import BudgetDB, BudgetCategoryDB
from src.models.transaction import Transaction
from src.models.budget import Budget
from src.logging_config import get_logger

logger = get_logger(__name__)


# ===== UTILITY FUNCTIONS =====

def transaction_categories(transaction: Transaction) -> List[str]:
    """Category names a transaction counts against"""
    categories = [transaction.category, transaction.parent_category]
    return [c for c in dict.fromkeys(categories) if c]


# ===== DATABASE OPERATIONS =====

class BudgetStore:
    """Keeps each budget's spent value in step with its transactions"""

    def __init__(self, db: Session):
        self.db = db

    def update_budgets_by_new_transaction(self, transaction: Transaction) -> int:
        """Add the transaction's signed value to every matching budget in one statement.

        A budget matches when it belongs to the transaction's user, its date range
        contains the transaction date, and it tracks the transaction's category or
        parent category. Returns the number of budgets touched.
        """
        categories = transaction_categories(transaction)
        if not categories:
            return 0

        matching_budget_ids = select(BudgetCategoryDB.budget_id).where(
            BudgetCategoryDB.category.in_(categories)
        )
        stmt = (
            update(BudgetDB)
            .where(
                BudgetDB.user_id == transaction.user_id,
                BudgetDB.start_date <= transaction.transaction_date,
                BudgetDB.end_date >= transaction.transaction_date,
                BudgetDB.id.in_(matching_budget_ids),
            )
            .values(spent_value=BudgetDB.spent_value + transaction.value)
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update budgets for transaction {transaction.id}: {e}")
            raise

        logger.debug(f"Applied {transaction.value} to {result.rowcount} budgets")
        return result.rowcount

    def find_by_id(self, budget_id: int) -> Optional[Budget]:
        db_budget = self.db.query(BudgetDB).options(
            selectinload(BudgetDB.categories)
        ).filter(BudgetDB.id == budget_id).first()
        if db_budget is None:
            return None
        return Budget(
            id=db_budget.id,
            user_id=db_budget.user_id,
            name=db_budget.name,
            value=db_budget.value,
            budget_type=db_budget.budget_type,
            start_date=db_budget.start_date,
            end_date=db_budget.end_date,
            categories=[c.category for c in db_budget.categories],
            spent_value=db_budget.spent_value,
        )
