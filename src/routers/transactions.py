from fastapi import APIRouter, HTTPException
from typing import List
from fastapi.params import Depends
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from src.db.core import NotFoundError, ForbiddenError, get_db
from src.models.transaction import TransactionCreate, TransactionUpdate, TransactionResponse, TransactionTypes, Transaction
from src.models.user import CurrentUser
from src.services.ledger import LedgerCoordinator, build_ledger_coordinator

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)

# A placeholder for user authentication
def get_current_user() -> CurrentUser:
    return CurrentUser(id=1)


def get_ledger(db: Session = Depends(get_db)) -> LedgerCoordinator:
    return build_ledger_coordinator(db)


def to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ForbiddenError):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.get("/types")
def read_transaction_types(ledger: LedgerCoordinator = Depends(get_ledger)) -> TransactionTypes:
    return ledger.get_transaction_types()

@router.post("/", status_code=201)
def create_transaction(
    transaction: TransactionCreate,
    ledger: LedgerCoordinator = Depends(get_ledger),
    current_user: CurrentUser = Depends(get_current_user)
) -> TransactionResponse:
    content = Transaction(**transaction.model_dump(), user_id=current_user.id)
    try:
        created = ledger.create_transaction(content)
    except (NotFoundError, ValueError) as e:
        raise to_http_error(e) from e
    except IntegrityError as e:
        raise HTTPException(status_code=400, detail="Database integrity error.") from e
    return TransactionResponse.model_validate(created.model_dump())

@router.get("/")
def read_transactions(
    ledger: LedgerCoordinator = Depends(get_ledger),
    current_user: CurrentUser = Depends(get_current_user)
) -> List[TransactionResponse]:
    transactions = ledger.list_transactions(current_user.id)
    return [TransactionResponse.model_validate(t.model_dump()) for t in transactions]

@router.get("/{transaction_id}")
def read_transaction(
    transaction_id: int,
    ledger: LedgerCoordinator = Depends(get_ledger),
    current_user: CurrentUser = Depends(get_current_user)
) -> TransactionResponse:
    try:
        transaction = ledger.get_transaction(transaction_id, current_user.id, current_user.is_admin)
    except ForbiddenError as e:
        raise to_http_error(e) from e
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return TransactionResponse.model_validate(transaction.model_dump())

@router.patch("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    transaction: TransactionUpdate,
    ledger: LedgerCoordinator = Depends(get_ledger),
    current_user: CurrentUser = Depends(get_current_user)
) -> TransactionResponse:
    try:
        updated = ledger.update_transaction(transaction_id, transaction, current_user.id, current_user.is_admin)
    except (NotFoundError, ForbiddenError, ValueError) as e:
        raise to_http_error(e) from e
    except IntegrityError as e:
        raise HTTPException(status_code=400, detail="Database integrity error.") from e
    return TransactionResponse.model_validate(updated.model_dump())

@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    ledger: LedgerCoordinator = Depends(get_ledger),
    current_user: CurrentUser = Depends(get_current_user)
) -> TransactionResponse:
    try:
        deleted = ledger.delete_transaction(transaction_id, current_user.id, current_user.is_admin)
    except (NotFoundError, ForbiddenError) as e:
        raise to_http_error(e) from e
    return TransactionResponse.model_validate(deleted.model_dump())
