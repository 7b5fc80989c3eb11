from fastapi import FastAPI

from .logging_config import setup_logging
from .routers.transactions import router as transactions_router
from .routers.goals import router as goals_router
from .routers.budgets import router as budgets_router

setup_logging()

app = FastAPI(title="Pocket Ledger API")

app.include_router(transactions_router)
app.include_router(goals_router)
app.include_router(budgets_router)


@app.get("/")
def read_root():
    return "Server is running."
