from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from decimal import Decimal

# ===== MONTHLY BALANCE PYDANTIC MODELS =====

class MonthlyBalance(BaseModel):
    """Per account, per calendar month aggregate of transaction values"""
    id: Optional[int] = None
    user_id: int
    account_id: int
    month: int = Field(..., ge=1, le=12)
    year: int
    opening_balance: Decimal = Field(default=Decimal("0.00"))
    closing_balance: Decimal = Field(default=Decimal("0.00"))
    transactions: List[int] = Field(default_factory=list, description="IDs of the transactions folded into this month")

    @field_validator('opening_balance', 'closing_balance')
    @classmethod
    def validate_balance(cls, v: Decimal) -> Decimal:
        return round(v, 2)
