from fastapi import APIRouter
from fastapi.params import Depends
from src.db.core import NotFoundError, ForbiddenError
from src.models.goal import Goal
from src.models.user import CurrentUser
from src.routers.transactions import get_current_user, get_ledger, to_http_error
from src.services.ledger import LedgerCoordinator

router = APIRouter(
    prefix="/goals",
    tags=["goals"],
)


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: int,
    ledger: LedgerCoordinator = Depends(get_ledger),
    current_user: CurrentUser = Depends(get_current_user)
) -> Goal:
    try:
        return ledger.delete_goal(goal_id, current_user.id, current_user.is_admin)
    except (NotFoundError, ForbiddenError) as e:
        raise to_http_error(e) from e
