from pydantic import BaseModel, Field
from typing import List
from datetime import date
from decimal import Decimal

from src.db.core import BudgetType

# ===== BUDGET PYDANTIC MODELS =====

class Budget(BaseModel):
    id: int
    user_id: int
    name: str
    value: Decimal = Field(..., description="Spending cap")
    budget_type: BudgetType
    start_date: date
    end_date: date
    categories: List[str] = Field(default_factory=list, description="Category names the budget tracks")
    spent_value: Decimal = Field(..., description="Running total kept by the ledger")


class BudgetSpent(BaseModel):
    budget_id: int
    spent: Decimal = Field(..., description="Sum of the values of the budget's transactions")
