import os
from typing import List, Optional
from sqlalchemy import create_engine, ForeignKey, Index, UniqueConstraint, Integer, String, DECIMAL, DateTime, Date
from sqlalchemy.types import Enum
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Mapped, relationship, mapped_column
from datetime import datetime, date
from decimal import Decimal
import enum


DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///pocket_ledger.db")


class NotFoundError(Exception):
    pass


class MonthlyBalanceMissingError(NotFoundError):
    """An existing transaction has no monthly balance to subtract from."""


class EmptyPayloadError(ValueError):
    pass


class ForbiddenError(Exception):
    pass


class Base(DeclarativeBase):
    pass


class UserRole(enum.Enum):
    USER = "user"
    ADMIN = "admin"


class AccountType(enum.Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT_CARD = "CREDIT_CARD"
    INVESTMENT = "INVESTMENT"
    OTHER = "OTHER"


class TransactionType(enum.Enum):
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    TRANSFER = "transfer"
    BANK_SLIP = "bank_slip"
    CARD = "card"
    INVESTMENT = "investment"


class InvestmentType(enum.Enum):
    CDB = "cdb"
    LCI = "lci"
    LCA = "lca"
    STOCK = "stock"
    FUND = "fund"
    CRA = "cra"
    CRI = "cri"
    DEBENTURE = "debenture"
    CURRENCY = "currency"
    LC = "lc"
    LF = "lf"
    FII = "fii"
    TREASURY = "treasury"


class BudgetType(enum.Enum):
    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


class UserDB(Base):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        UniqueConstraint("username", name="uq_user_username"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.USER)

    # Audit Trail
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    accounts = relationship("AccountDB", back_populates="user")
    transactions = relationship("TransactionDB", back_populates="user")
    goals = relationship("GoalDB", back_populates="user")
    budgets = relationship("BudgetDB", back_populates="user")


class AccountDB(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        # Prevent duplicate account names per user
        UniqueConstraint("user_id", "account_name", name="uq_user_account_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))

    account_name: Mapped[str] = mapped_column(String(255), nullable=False)  # "Nubank", "Itau Checking"
    account_type: Mapped[AccountType] = mapped_column(Enum(AccountType), default=AccountType.CHECKING)
    institution_name: Mapped[Optional[str]] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserDB", back_populates="accounts")
    transactions = relationship("TransactionDB", back_populates="account")
    monthly_balances = relationship("MonthlyBalanceDB", back_populates="account")


class TransactionDB(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        # Performance indexes for common queries
        Index("idx_transactions_user_date", "user_id", "transaction_date"),
        Index("idx_transactions_user_account", "user_id", "account_id"),
        Index("idx_transactions_category", "category"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)

    # Basic Transaction Data
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    parent_category: Mapped[str] = mapped_column(String(100), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    value: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)  # signed
    investment_type: Mapped[Optional[InvestmentType]] = mapped_column(Enum(InvestmentType))

    # Audit Trail
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("UserDB", back_populates="transactions")
    account = relationship("AccountDB", back_populates="transactions")
    goals_list: Mapped[List["TransactionGoalDB"]] = relationship(
        back_populates="transaction",
        order_by="TransactionGoalDB.position",
        cascade="all, delete-orphan",
    )


class TransactionGoalDB(Base):
    """One entry of a transaction's ordered goals list."""
    __tablename__ = "transaction_goals"

    __table_args__ = (
        Index("idx_transaction_goals_goal", "goal_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    goal_id: Mapped[int] = mapped_column(ForeignKey("goals.id"), nullable=False)
    goal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    percentage: Mapped[Decimal] = mapped_column(DECIMAL(5, 4), nullable=False, default=Decimal("0"))  # 0..1
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    transaction: Mapped["TransactionDB"] = relationship(back_populates="goals_list")
    goal = relationship("GoalDB")


class MonthlyBalanceDB(Base):
    __tablename__ = "monthly_balances"

    __table_args__ = (
        # One aggregate per account and calendar month
        UniqueConstraint("user_id", "account_id", "year", "month", name="uq_monthly_balance_period"),
        Index("idx_monthly_balances_account_period", "account_id", "year", "month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-12
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    opening_balance: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    closing_balance: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account = relationship("AccountDB", back_populates="monthly_balances")
    transaction_links: Mapped[List["MonthlyBalanceTransactionDB"]] = relationship(
        back_populates="monthly_balance",
        cascade="all, delete-orphan",
    )


class MonthlyBalanceTransactionDB(Base):
    __tablename__ = "monthly_balance_transactions"

    # Composite Primary Key
    monthly_balance_id: Mapped[int] = mapped_column(ForeignKey("monthly_balances.id", ondelete="CASCADE"), primary_key=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id", ondelete="CASCADE"), primary_key=True)

    monthly_balance: Mapped["MonthlyBalanceDB"] = relationship(back_populates="transaction_links")


class GoalDB(Base):
    __tablename__ = "goals"

    __table_args__ = (
        Index("idx_goals_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)  # target
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    saved_value: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False, default=Decimal("0.00"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserDB", back_populates="goals")


class BudgetDB(Base):
    __tablename__ = "budgets"

    __table_args__ = (
        # Prevent duplicate budget names per user
        UniqueConstraint("user_id", "name", name="uq_user_budget_name"),
        Index("idx_budgets_user_period", "user_id", "start_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)  # cap
    budget_type: Mapped[BudgetType] = mapped_column(Enum(BudgetType), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    spent_value: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False, default=Decimal("0.00"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserDB", back_populates="budgets")
    categories: Mapped[List["BudgetCategoryDB"]] = relationship(
        back_populates="budget",
        cascade="all, delete-orphan",
    )


class BudgetCategoryDB(Base):
    __tablename__ = "budget_categories"

    __table_args__ = (
        # Prevent duplicate categories per budget
        UniqueConstraint("budget_id", "category", name="uq_budget_category"),
        Index("idx_budget_categories_category", "category"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    budget_id: Mapped[int] = mapped_column(ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)

    budget: Mapped["BudgetDB"] = relationship(back_populates="categories")


engine = create_engine(DATABASE_URL, echo=os.getenv("SQL_ECHO", "false").lower() == "true")
session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency to get the database session
def get_db():
    database = session_local()
    try:
        yield database
    finally:
        database.close()
