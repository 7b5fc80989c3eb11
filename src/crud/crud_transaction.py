from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc
from typing import Optional, List, Dict, Any
from datetime import datetime, date

from src.db.core import TransactionDB, TransactionGoalDB, AccountDB, NotFoundError
from src.models.transaction import Transaction, GoalAllocation
from src.logging_config import get_logger

logger = get_logger(__name__)


# ===== UTILITY FUNCTIONS =====

def build_goal_rows(goals_list: List[Any]) -> List[TransactionGoalDB]:
    """Convert allocations (models or dicts) into ordered goal rows"""
    rows = []
    for position, entry in enumerate(goals_list):
        allocation = GoalAllocation.model_validate(entry)
        rows.append(TransactionGoalDB(
            goal_id=allocation.goal_id,
            goal_name=allocation.goal_name,
            percentage=allocation.percentage,
            position=position,
        ))
    return rows


# ===== DATABASE OPERATIONS =====

class TransactionStore:
    """Persists transactions and their ordered goal allocations"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(TransactionDB).options(selectinload(TransactionDB.goals_list))

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action} transaction: {e}")
            raise

    def verify_account_owner(self, user_id: int, account_id: int) -> None:
        """Raise NotFoundError unless the account exists and belongs to the user"""
        account = self.db.query(AccountDB).filter(
            AccountDB.id == account_id,
            AccountDB.user_id == user_id
        ).first()
        if not account:
            raise NotFoundError(f"Account with id {account_id} not found")

    def save(self, transaction: Transaction) -> Transaction:
        """Create a new transaction"""
        self.verify_account_owner(transaction.user_id, transaction.account_id)

        db_transaction = TransactionDB(
            user_id=transaction.user_id,
            account_id=transaction.account_id,
            name=transaction.name,
            category=transaction.category,
            parent_category=transaction.parent_category,
            transaction_type=transaction.transaction_type,
            transaction_date=transaction.transaction_date,
            value=transaction.value,
            investment_type=transaction.investment_type,
            goals_list=build_goal_rows(transaction.goals_list),
        )

        self.db.add(db_transaction)
        self._commit("create")
        self.db.refresh(db_transaction)
        logger.debug(f"Created transaction {db_transaction.id} for user {transaction.user_id}")
        return Transaction.model_validate(db_transaction)

    def find_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """Get a transaction by ID"""
        db_transaction = self._query().filter(TransactionDB.id == transaction_id).first()
        if db_transaction is None:
            return None
        return Transaction.model_validate(db_transaction)

    def update(self, transaction_id: int, changes: Dict[str, Any]) -> Optional[Transaction]:
        """Apply a partial update; returns None when the transaction is gone"""
        db_transaction = self._query().filter(TransactionDB.id == transaction_id).first()
        if db_transaction is None:
            return None

        for field, value in changes.items():
            if field == "goals_list":
                db_transaction.goals_list = build_goal_rows(value or [])
            elif field not in ("id", "user_id"):
                setattr(db_transaction, field, value)

        db_transaction.updated_at = datetime.utcnow()
        self._commit("update")
        self.db.refresh(db_transaction)
        return Transaction.model_validate(db_transaction)

    def find_by_id_and_delete(self, transaction_id: int) -> Optional[Transaction]:
        """Delete a transaction, returning its last state"""
        db_transaction = self._query().filter(TransactionDB.id == transaction_id).first()
        if db_transaction is None:
            return None

        deleted = Transaction.model_validate(db_transaction)
        self.db.delete(db_transaction)
        self._commit("delete")
        return deleted

    def list_all(self, user_id: int) -> List[Transaction]:
        """List a user's transactions, newest first"""
        db_transactions = self._query().filter(
            TransactionDB.user_id == user_id
        ).order_by(desc(TransactionDB.transaction_date), desc(TransactionDB.id)).all()
        return [Transaction.model_validate(t) for t in db_transactions]

    def find_by_category_with_date_range(
        self,
        user_id: int,
        categories: List[str],
        start_date: date,
        end_date: date
    ) -> List[Transaction]:
        """Transactions whose category or parent category is in the list, within the inclusive range"""
        if not categories:
            return []

        db_transactions = self._query().filter(
            TransactionDB.user_id == user_id,
            TransactionDB.transaction_date >= start_date,
            TransactionDB.transaction_date <= end_date,
            (TransactionDB.category.in_(categories)) | (TransactionDB.parent_category.in_(categories))
        ).order_by(TransactionDB.transaction_date).all()
        return [Transaction.model_validate(t) for t in db_transactions]

    def delete_goal_from_transactions(self, goal_id: int) -> int:
        """Remove a goal's allocations from every transaction; returns how many transactions changed"""
        affected = self.db.query(TransactionGoalDB.transaction_id).filter(
            TransactionGoalDB.goal_id == goal_id
        ).distinct().count()

        self.db.query(TransactionGoalDB).filter(
            TransactionGoalDB.goal_id == goal_id
        ).delete(synchronize_session=False)
        self._commit("detach goal from")

        logger.info(f"Removed goal {goal_id} from {affected} transactions")
        return affected
