from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date
from decimal import Decimal

from src.db.core import TransactionType, InvestmentType

# ===== TRANSACTION PYDANTIC MODELS =====

class GoalAllocation(BaseModel):
    """Share of a transaction's value routed to one goal"""
    goal_id: int = Field(..., description="Goal receiving the allocation")
    goal_name: str = Field(..., min_length=1, max_length=255)
    percentage: Decimal = Field(..., ge=0, le=1, description="Fraction of the value, between 0 and 1")

    class Config:
        from_attributes = True


class TransactionCreate(BaseModel):
    account_id: int = Field(..., description="Account ID for this transaction")
    name: str = Field(..., min_length=1, max_length=255, description="Transaction description")
    category: str = Field(..., min_length=1, max_length=100)
    parent_category: str = Field(..., min_length=1, max_length=100)
    transaction_type: TransactionType = Field(..., description="Type of transaction")
    transaction_date: date = Field(..., description="Date of the transaction")
    value: Decimal = Field(..., description="Signed transaction amount")
    investment_type: Optional[InvestmentType] = None
    goals_list: List[GoalAllocation] = Field(default_factory=list)

    @field_validator('value')
    @classmethod
    def validate_value(cls, v: Decimal) -> Decimal:
        return round(v, 2)

    @field_validator('name', 'category', 'parent_category')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class TransactionUpdate(BaseModel):
    """Update transaction - all fields optional"""
    account_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    parent_category: Optional[str] = Field(None, min_length=1, max_length=100)
    transaction_type: Optional[TransactionType] = None
    transaction_date: Optional[date] = None
    value: Optional[Decimal] = None
    investment_type: Optional[InvestmentType] = None
    goals_list: Optional[List[GoalAllocation]] = None

    @field_validator('value')
    @classmethod
    def validate_value(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round(v, 2) if v is not None else v


class Transaction(TransactionCreate):
    """A transaction as it flows through the ledger; id is None until persisted"""
    id: Optional[int] = None
    user_id: int

    class Config:
        from_attributes = True


class TransactionResponse(Transaction):
    id: int


class TransactionTypes(BaseModel):
    transaction_types: List[str]
    investment_types: List[str]
