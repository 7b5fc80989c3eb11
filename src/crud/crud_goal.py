from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import update, bindparam
from typing import List, Optional

from src.db.core import GoalDB
from src.models.goal import Goal, GoalIncrement
from src.logging_config import get_logger

logger = get_logger(__name__)


# ===== DATABASE OPERATIONS =====

class GoalStore:
    """Tracks how much has been saved towards each goal"""

    def __init__(self, db: Session):
        self.db = db

    def increment_goals_in_bulk(self, increments: List[GoalIncrement]) -> None:
        """Add each signed amount to its goal's saved value in a single executemany.

        Increments for goals that no longer exist match no row and are ignored.
        """
        if not increments:
            return

        goals = GoalDB.__table__
        stmt = (
            update(goals)
            .where(goals.c.id == bindparam("target_goal_id"))
            .values(saved_value=goals.c.saved_value + bindparam("amount", type_=goals.c.saved_value.type))
        )
        params = [{"target_goal_id": i.goal_id, "amount": i.amount} for i in increments]

        try:
            self.db.execute(stmt, params)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to increment {len(increments)} goals: {e}")
            raise

        logger.debug(f"Incremented {len(increments)} goals")

    def find_by_id(self, goal_id: int) -> Optional[Goal]:
        db_goal = self.db.get(GoalDB, goal_id)
        return Goal.model_validate(db_goal) if db_goal else None

    def find_by_id_and_delete(self, goal_id: int) -> Optional[Goal]:
        """Delete a goal, returning its last state"""
        db_goal = self.db.get(GoalDB, goal_id)
        if db_goal is None:
            return None

        deleted = Goal.model_validate(db_goal)
        try:
            self.db.delete(db_goal)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete goal {goal_id}: {e}")
            raise
        return deleted
