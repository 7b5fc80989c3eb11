from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal

# ===== GOAL PYDANTIC MODELS =====

class GoalIncrement(BaseModel):
    """Signed amount to add to a goal's saved value"""
    goal_id: int = Field(..., description="Goal to increment")
    amount: Decimal = Field(..., description="Signed increment")


class Goal(BaseModel):
    id: int
    user_id: int
    name: str
    value: Decimal = Field(..., description="Target amount")
    due_date: date
    saved_value: Decimal = Field(..., description="Amount saved so far")

    class Config:
        from_attributes = True
