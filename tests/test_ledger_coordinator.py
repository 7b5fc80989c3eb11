"""Coordinator behaviour against autospecced stores."""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import create_autospec

import pytest

from src.crud.crud_budget import BudgetStore
from src.crud.crud_goal import GoalStore
from src.crud.crud_monthly_balance import MonthlyBalanceStore
from src.crud.crud_transaction import TransactionStore
from src.db.core import (
    BudgetType,
    EmptyPayloadError,
    ForbiddenError,
    MonthlyBalanceMissingError,
    NotFoundError,
    TransactionType,
)
from src.models.budget import Budget
from src.models.goal import Goal, GoalIncrement
from src.models.monthly_balance import MonthlyBalance
from src.models.transaction import TransactionUpdate
from src.services.ledger import LedgerCoordinator, should_trigger_recalculation, normalize_changes
from tests.helpers import make_transaction, allocation

OWNER_ID = 1
ACCOUNT_ID = 3


@pytest.fixture
def stores():
    return SimpleNamespace(
        transactions=create_autospec(TransactionStore, instance=True),
        balances=create_autospec(MonthlyBalanceStore, instance=True),
        goals=create_autospec(GoalStore, instance=True),
        budgets=create_autospec(BudgetStore, instance=True),
    )


@pytest.fixture
def ledger(stores):
    return LedgerCoordinator(
        transaction_store=stores.transactions,
        monthly_balance_store=stores.balances,
        goal_store=stores.goals,
        budget_store=stores.budgets,
    )


def stored_transaction(**overrides):
    fields = dict(id=7, goals_list=[allocation(11, "0.25")])
    fields.update(overrides)
    return make_transaction(OWNER_ID, fields.pop("account_id", ACCOUNT_ID), **fields)


def march_balance(closing="100.00", transactions=(7,)):
    return MonthlyBalance(
        id=5,
        user_id=OWNER_ID,
        account_id=ACCOUNT_ID,
        month=3,
        year=2025,
        opening_balance=Decimal("0.00"),
        closing_balance=Decimal(closing),
        transactions=list(transactions),
    )


def balance_lookup(balances_by_period):
    """side_effect for find_monthly_balance keyed by (account_id, year, month); fresh copies per call"""
    def find(transaction, period):
        balance = balances_by_period.get((transaction.account_id, period.year, period.month))
        return balance.model_copy(deep=True) if balance else None
    return find


def goal_amounts(stores):
    return [
        [(i.goal_id, i.amount) for i in c.args[0]]
        for c in stores.goals.increment_goals_in_bulk.call_args_list
    ]


def budget_values(stores):
    return [c.args[0].value for c in stores.budgets.update_budgets_by_new_transaction.call_args_list]


class TestCreateTransaction:
    def test_rejects_empty_payload(self, ledger, stores):
        with pytest.raises(EmptyPayloadError, match="No information provided to create Transaction"):
            ledger.create_transaction({})
        with pytest.raises(EmptyPayloadError):
            ledger.create_transaction(None)
        stores.transactions.save.assert_not_called()

    def test_opens_month_with_zero_when_no_history(self, ledger, stores):
        stores.transactions.save.return_value = stored_transaction()
        stores.balances.find_monthly_balance.return_value = None

        ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID))

        saved = stores.balances.save.call_args.args[0]
        assert (saved.month, saved.year) == (3, 2025)
        assert saved.opening_balance == Decimal("0")
        assert saved.closing_balance == Decimal("100")
        assert saved.transactions == [7]
        stores.balances.update.assert_not_called()

    def test_opening_carries_previous_month_closing(self, ledger, stores):
        stores.transactions.save.return_value = stored_transaction()
        february = march_balance(closing="40.00").model_copy(update={"month": 2, "id": 4})
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 2): february})

        ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID))

        lookups = [c.args[1] for c in stores.balances.find_monthly_balance.call_args_list]
        assert lookups == [date(2025, 3, 15), date(2025, 2, 1)]
        saved = stores.balances.save.call_args.args[0]
        assert saved.opening_balance == Decimal("40")
        assert saved.closing_balance == Decimal("140")

    def test_january_looks_back_to_previous_december(self, ledger, stores):
        stores.transactions.save.return_value = stored_transaction(transaction_date=date(2025, 1, 10))
        stores.balances.find_monthly_balance.return_value = None

        ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID, transaction_date=date(2025, 1, 10)))

        assert stores.balances.find_monthly_balance.call_args_list[1].args[1] == date(2024, 12, 1)

    def test_existing_month_is_updated_in_place(self, ledger, stores):
        stores.transactions.save.return_value = stored_transaction(id=8, value=Decimal("50.00"))
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 3): march_balance()})

        ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID, value=Decimal("50.00")))

        balance_id, updated = stores.balances.update.call_args.args
        assert balance_id == 5
        assert updated.closing_balance == Decimal("150")
        assert updated.transactions == [7, 8]
        stores.balances.save.assert_not_called()

    def test_goals_receive_their_share(self, ledger, stores):
        stores.transactions.save.return_value = stored_transaction(
            goals_list=[allocation(11, "0.25"), allocation(12, "0.5", name="Car")]
        )
        stores.balances.find_monthly_balance.return_value = None

        ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID))

        stores.goals.increment_goals_in_bulk.assert_called_once_with([
            GoalIncrement(goal_id=11, amount=Decimal("25")),
            GoalIncrement(goal_id=12, amount=Decimal("50")),
        ])

    def test_no_goal_call_without_goals(self, ledger, stores):
        stores.transactions.save.return_value = stored_transaction(goals_list=[])
        stores.balances.find_monthly_balance.return_value = None

        ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID))

        stores.goals.increment_goals_in_bulk.assert_not_called()

    def test_budgets_updated_once_with_saved_transaction(self, ledger, stores):
        saved = stored_transaction()
        stores.transactions.save.return_value = saved
        stores.balances.find_monthly_balance.return_value = None

        result = ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID))

        assert result == saved
        stores.budgets.update_budgets_by_new_transaction.assert_called_once_with(saved)

    def test_accepts_plain_dict(self, ledger, stores):
        stores.transactions.save.return_value = stored_transaction()
        stores.balances.find_monthly_balance.return_value = None

        ledger.create_transaction(make_transaction(OWNER_ID, ACCOUNT_ID).model_dump())

        assert stores.transactions.save.call_args.args[0].name == "Supermarket"


class TestDeleteTransaction:
    def test_missing_transaction(self, ledger, stores):
        stores.transactions.find_by_id.return_value = None

        with pytest.raises(NotFoundError, match="Cannot execute delete action"):
            ledger.delete_transaction(7, OWNER_ID)
        stores.balances.find_monthly_balance.assert_not_called()

    def test_other_user_is_forbidden(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()

        with pytest.raises(ForbiddenError, match="User 2 is not allowed to delete Transaction with id 7"):
            ledger.delete_transaction(7, 2)
        stores.transactions.find_by_id_and_delete.assert_not_called()
        stores.balances.update.assert_not_called()

    def test_admin_may_delete_any_transaction(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 3): march_balance()})

        ledger.delete_transaction(7, 2, is_admin=True)

        stores.transactions.find_by_id_and_delete.assert_called_once_with(7)

    def test_missing_monthly_balance_aborts(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.balances.find_monthly_balance.return_value = None

        with pytest.raises(MonthlyBalanceMissingError, match="not found. Cannot execute subtract action."):
            ledger.delete_transaction(7, OWNER_ID)
        stores.transactions.find_by_id_and_delete.assert_not_called()
        stores.goals.increment_goals_in_bulk.assert_not_called()

    def test_reverses_every_aggregate(self, ledger, stores):
        transaction = stored_transaction()
        stores.transactions.find_by_id.return_value = transaction
        stores.balances.find_monthly_balance.side_effect = balance_lookup(
            {(ACCOUNT_ID, 2025, 3): march_balance(closing="130.00", transactions=(6, 7))}
        )

        deleted = ledger.delete_transaction(7, OWNER_ID)

        assert deleted == transaction
        _, updated = stores.balances.update.call_args.args
        assert updated.closing_balance == Decimal("30")
        assert updated.transactions == [6]
        assert goal_amounts(stores) == [[(11, Decimal("-25"))]]
        assert budget_values(stores) == [Decimal("-100")]


class TestUpdateTransaction:
    def test_rejects_empty_payload(self, ledger, stores):
        with pytest.raises(EmptyPayloadError, match="No information provided to update Transaction"):
            ledger.update_transaction(7, {}, OWNER_ID)
        with pytest.raises(EmptyPayloadError):
            ledger.update_transaction(7, TransactionUpdate(), OWNER_ID)
        stores.transactions.find_by_id.assert_not_called()

    def test_payload_of_only_nulls_is_empty(self, ledger, stores):
        with pytest.raises(EmptyPayloadError, match="No information provided to update Transaction"):
            ledger.update_transaction(7, {"name": None}, OWNER_ID)
        with pytest.raises(EmptyPayloadError):
            ledger.update_transaction(7, TransactionUpdate(name=None, value=None), OWNER_ID)
        stores.transactions.find_by_id.assert_not_called()
        stores.transactions.update.assert_not_called()

    def test_missing_transaction(self, ledger, stores):
        stores.transactions.find_by_id.return_value = None

        with pytest.raises(NotFoundError, match="Cannot execute update action"):
            ledger.update_transaction(7, {"name": "Rent"}, OWNER_ID)

    def test_other_user_is_forbidden(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()

        with pytest.raises(ForbiddenError):
            ledger.update_transaction(7, {"value": Decimal("1")}, 2)
        stores.transactions.update.assert_not_called()

    def test_non_trigger_field_leaves_aggregates_alone(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.transactions.update.return_value = stored_transaction(name="Rent")

        result = ledger.update_transaction(7, TransactionUpdate(name="Rent"), OWNER_ID)

        assert result.name == "Rent"
        stores.transactions.update.assert_called_once_with(7, {"name": "Rent"})
        assert stores.balances.method_calls == []
        assert stores.goals.method_calls == []
        assert stores.budgets.method_calls == []

    def test_value_change_reverses_then_reapplies_once(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.transactions.update.return_value = stored_transaction(value=Decimal("200.00"))
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 3): march_balance()})

        ledger.update_transaction(7, {"value": Decimal("200.00")}, OWNER_ID)

        reversed_balance, reapplied_balance = [c.args[1] for c in stores.balances.update.call_args_list]
        assert reversed_balance.closing_balance == Decimal("0")
        assert reversed_balance.transactions == []
        assert reapplied_balance.closing_balance == Decimal("300")
        assert goal_amounts(stores) == [[(11, Decimal("-25"))], [(11, Decimal("50"))]]
        assert budget_values(stores) == [Decimal("-100"), Decimal("200")]
        stores.transactions.update.assert_called_once_with(7, {"value": Decimal("200.00")})

    def test_account_change_moves_between_balances(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.transactions.update.return_value = stored_transaction(account_id=9)
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 3): march_balance()})

        ledger.update_transaction(7, {"account_id": 9}, OWNER_ID)

        stores.transactions.verify_account_owner.assert_called_once_with(OWNER_ID, 9)
        accounts = [c.args[0].account_id for c in stores.balances.find_monthly_balance.call_args_list]
        assert accounts == [ACCOUNT_ID, 9, 9]
        new_balance = stores.balances.save.call_args.args[0]
        assert new_balance.account_id == 9
        assert new_balance.closing_balance == Decimal("100")

    def test_account_change_to_foreign_account_is_rejected(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.transactions.verify_account_owner.side_effect = NotFoundError("Account with id 9 not found")

        with pytest.raises(NotFoundError, match="Account with id 9 not found"):
            ledger.update_transaction(7, {"account_id": 9}, OWNER_ID)

        assert stores.balances.method_calls == []
        assert stores.goals.method_calls == []
        assert stores.budgets.method_calls == []
        stores.transactions.update.assert_not_called()

    def test_same_account_skips_ownership_lookup(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.transactions.update.return_value = stored_transaction()
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 3): march_balance()})

        ledger.update_transaction(7, {"account_id": ACCOUNT_ID, "value": Decimal("100.00")}, OWNER_ID)

        stores.transactions.verify_account_owner.assert_not_called()

    def test_goals_list_change_uses_new_allocations(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.transactions.update.return_value = stored_transaction()
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 3): march_balance()})

        payload = TransactionUpdate(goals_list=[allocation(12, "1", name="Car")])
        ledger.update_transaction(7, payload, OWNER_ID)

        assert goal_amounts(stores) == [[(11, Decimal("-25"))], [(12, Decimal("100"))]]

    def test_type_change_triggers_recalculation(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()
        stores.transactions.update.return_value = stored_transaction(transaction_type=TransactionType.WITHDRAW)
        stores.balances.find_monthly_balance.side_effect = balance_lookup({(ACCOUNT_ID, 2025, 3): march_balance()})

        ledger.update_transaction(7, {"transaction_type": TransactionType.WITHDRAW}, OWNER_ID)

        assert stores.budgets.update_budgets_by_new_transaction.call_count == 2


class TestReads:
    def test_get_missing_returns_none(self, ledger, stores):
        stores.transactions.find_by_id.return_value = None
        assert ledger.get_transaction(7, OWNER_ID) is None

    def test_get_checks_ownership(self, ledger, stores):
        stores.transactions.find_by_id.return_value = stored_transaction()

        with pytest.raises(ForbiddenError, match="not allowed to get Transaction"):
            ledger.get_transaction(7, 2)
        assert ledger.get_transaction(7, 2, is_admin=True).id == 7

    def test_list_is_scoped_to_user(self, ledger, stores):
        stores.transactions.list_all.return_value = [stored_transaction()]

        assert [t.id for t in ledger.list_transactions(OWNER_ID)] == [7]
        stores.transactions.list_all.assert_called_once_with(OWNER_ID)

    def test_transaction_types(self, ledger):
        types = ledger.get_transaction_types()

        assert types.transaction_types == ["withdraw", "deposit", "transfer", "bank_slip", "card", "investment"]
        assert len(types.investment_types) == 13
        assert "treasury" in types.investment_types


def stored_goal(**overrides):
    fields = dict(id=11, user_id=OWNER_ID, name="Trip", value=Decimal("1000.00"),
                  due_date=date(2025, 12, 31), saved_value=Decimal("25.00"))
    fields.update(overrides)
    return Goal(**fields)


def stored_budget(**overrides):
    fields = dict(id=4, user_id=OWNER_ID, name="Groceries", value=Decimal("500.00"),
                  budget_type=BudgetType.MONTHLY, start_date=date(2025, 3, 1), end_date=date(2025, 3, 31),
                  categories=["Groceries", "Food"], spent_value=Decimal("0.00"))
    fields.update(overrides)
    return Budget(**fields)


class TestDeleteGoal:
    def test_detaches_from_transactions_then_deletes(self, ledger, stores):
        goal = stored_goal()
        stores.goals.find_by_id.return_value = goal
        order = []
        stores.transactions.delete_goal_from_transactions.side_effect = lambda goal_id: order.append("detach") or 2
        stores.goals.find_by_id_and_delete.side_effect = lambda goal_id: order.append("delete") or goal

        deleted = ledger.delete_goal(11, OWNER_ID)

        assert deleted == goal
        assert order == ["detach", "delete"]
        stores.transactions.delete_goal_from_transactions.assert_called_once_with(11)
        stores.goals.find_by_id_and_delete.assert_called_once_with(11)
        stores.goals.increment_goals_in_bulk.assert_not_called()

    def test_missing_goal(self, ledger, stores):
        stores.goals.find_by_id.return_value = None

        with pytest.raises(NotFoundError, match="Goal with id 11 not found"):
            ledger.delete_goal(11, OWNER_ID)
        stores.transactions.delete_goal_from_transactions.assert_not_called()

    def test_other_user_is_forbidden(self, ledger, stores):
        stores.goals.find_by_id.return_value = stored_goal()

        with pytest.raises(ForbiddenError, match="User 2 is not allowed to delete Goal with id 11"):
            ledger.delete_goal(11, 2)
        stores.transactions.delete_goal_from_transactions.assert_not_called()
        stores.goals.find_by_id_and_delete.assert_not_called()

        ledger.delete_goal(11, 2, is_admin=True)
        stores.goals.find_by_id_and_delete.assert_called_once_with(11)


class TestBudgetSpent:
    def test_sums_matching_transactions(self, ledger, stores):
        stores.budgets.find_by_id.return_value = stored_budget()
        stores.transactions.find_by_category_with_date_range.return_value = [
            stored_transaction(id=7, value=Decimal("100.00")),
            stored_transaction(id=8, value=Decimal("-20.50")),
        ]

        result = ledger.calculate_budget_spent(4, OWNER_ID)

        assert result.budget_id == 4
        assert result.spent == Decimal("79.50")
        stores.transactions.find_by_category_with_date_range.assert_called_once_with(
            OWNER_ID, ["Groceries", "Food"], date(2025, 3, 1), date(2025, 3, 31)
        )

    def test_no_transactions_is_zero(self, ledger, stores):
        stores.budgets.find_by_id.return_value = stored_budget()
        stores.transactions.find_by_category_with_date_range.return_value = []

        assert ledger.calculate_budget_spent(4, OWNER_ID).spent == Decimal("0")

    def test_missing_budget(self, ledger, stores):
        stores.budgets.find_by_id.return_value = None

        with pytest.raises(NotFoundError, match="Budget with id 4 not found"):
            ledger.calculate_budget_spent(4, OWNER_ID)

    def test_other_user_is_forbidden(self, ledger, stores):
        stores.budgets.find_by_id.return_value = stored_budget()

        with pytest.raises(ForbiddenError, match="not allowed to get Budget with id 4"):
            ledger.calculate_budget_spent(4, 2)
        stores.transactions.find_by_category_with_date_range.assert_not_called()


def test_trigger_fields():
    assert should_trigger_recalculation({"value": 1})
    assert should_trigger_recalculation({"name": "x", "transaction_date": date(2025, 1, 1)})
    assert not should_trigger_recalculation({"name": "x", "investment_type": None})


def test_normalize_changes_drops_nulls_for_required_fields():
    changes = normalize_changes({"name": None, "investment_type": None, "goals_list": None})
    assert changes == {"investment_type": None, "goals_list": []}
