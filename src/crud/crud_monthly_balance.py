from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import Optional
from datetime import date

from src.db.core import MonthlyBalanceDB, MonthlyBalanceTransactionDB
from src.models.monthly_balance import MonthlyBalance
from src.models.transaction import Transaction
from src.logging_config import get_logger

logger = get_logger(__name__)


# ===== UTILITY FUNCTIONS =====

def to_monthly_balance(db_balance: MonthlyBalanceDB) -> MonthlyBalance:
    return MonthlyBalance(
        id=db_balance.id,
        user_id=db_balance.user_id,
        account_id=db_balance.account_id,
        month=db_balance.month,
        year=db_balance.year,
        opening_balance=db_balance.opening_balance,
        closing_balance=db_balance.closing_balance,
        transactions=[link.transaction_id for link in db_balance.transaction_links],
    )


# ===== DATABASE OPERATIONS =====

class MonthlyBalanceStore:
    """One aggregate row per (user, account, year, month)"""

    def __init__(self, db: Session):
        self.db = db

    def _query_period(self, user_id: int, account_id: int, month: int, year: int):
        return self.db.query(MonthlyBalanceDB).options(
            selectinload(MonthlyBalanceDB.transaction_links)
        ).filter(
            MonthlyBalanceDB.user_id == user_id,
            MonthlyBalanceDB.account_id == account_id,
            MonthlyBalanceDB.year == year,
            MonthlyBalanceDB.month == month
        )

    def find_by_period(self, user_id: int, account_id: int, month: int, year: int) -> Optional[MonthlyBalance]:
        db_balance = self._query_period(user_id, account_id, month, year).first()
        return to_monthly_balance(db_balance) if db_balance else None

    def find_monthly_balance(self, transaction: Transaction, period: date) -> Optional[MonthlyBalance]:
        """Balance of the transaction's account for the month containing `period`"""
        return self.find_by_period(transaction.user_id, transaction.account_id, period.month, period.year)

    def save(self, balance: MonthlyBalance) -> MonthlyBalance:
        """Insert a new monthly balance.

        When another writer created the same period first, the unique constraint
        rejects the insert; this balance's movement and transaction ids are then
        folded into the existing row instead.
        """
        db_balance = MonthlyBalanceDB(
            user_id=balance.user_id,
            account_id=balance.account_id,
            month=balance.month,
            year=balance.year,
            opening_balance=balance.opening_balance,
            closing_balance=balance.closing_balance,
            transaction_links=[
                MonthlyBalanceTransactionDB(transaction_id=transaction_id)
                for transaction_id in dict.fromkeys(balance.transactions)
            ],
        )

        try:
            self.db.add(db_balance)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self._query_period(balance.user_id, balance.account_id, balance.month, balance.year).first()
            if existing is None:
                raise
            logger.warning(
                f"Monthly balance {balance.month}/{balance.year} for account {balance.account_id} "
                f"already exists, merging into {existing.id}"
            )
            return self._merge_into(existing, balance)

        self.db.refresh(db_balance)
        return to_monthly_balance(db_balance)

    def _merge_into(self, db_balance: MonthlyBalanceDB, balance: MonthlyBalance) -> MonthlyBalance:
        known = {link.transaction_id for link in db_balance.transaction_links}
        for transaction_id in balance.transactions:
            if transaction_id not in known:
                db_balance.transaction_links.append(MonthlyBalanceTransactionDB(transaction_id=transaction_id))
                known.add(transaction_id)
        db_balance.closing_balance += balance.closing_balance - balance.opening_balance

        self._commit(db_balance.id)
        self.db.refresh(db_balance)
        return to_monthly_balance(db_balance)

    def update(self, balance_id: int, balance: MonthlyBalance) -> Optional[MonthlyBalance]:
        """Overwrite balances and transaction membership; returns None when the row is gone"""
        db_balance = self.db.query(MonthlyBalanceDB).options(
            selectinload(MonthlyBalanceDB.transaction_links)
        ).filter(MonthlyBalanceDB.id == balance_id).first()
        if db_balance is None:
            return None

        wanted = list(dict.fromkeys(balance.transactions))
        kept = [link for link in db_balance.transaction_links if link.transaction_id in wanted]
        kept_ids = {link.transaction_id for link in kept}
        db_balance.transaction_links = kept + [
            MonthlyBalanceTransactionDB(transaction_id=transaction_id)
            for transaction_id in wanted
            if transaction_id not in kept_ids
        ]
        db_balance.opening_balance = balance.opening_balance
        db_balance.closing_balance = balance.closing_balance

        self._commit(balance_id)
        self.db.refresh(db_balance)
        return to_monthly_balance(db_balance)

    def _commit(self, balance_id: int) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update monthly balance {balance_id}: {e}")
            raise
