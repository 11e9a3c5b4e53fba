import logging
from database.expense_dao import ExpenseDAO
from models.expense import Expense
from services.budget_service import BudgetService
from utils.date_helpers import format_date, to_date
from utils.errors import InvalidArgumentError, StorageError

logger = logging.getLogger(__name__)


class ExpenseService:
    """Manual expense entry. Shares the budget alert path with generated expenses."""

    def __init__(self, expense_dao: ExpenseDAO, budget_service: BudgetService):
        self._dao = expense_dao
        self._budget = budget_service

    def get_all(self) -> list[Expense]:
        return self._dao.get_all()

    def add_expense(
        self,
        amount: float,
        category: str,
        description: str,
        date,
        card_id: int | None = None,
    ) -> Expense:
        d = to_date(date)
        if d is None:
            raise InvalidArgumentError(f"Invalid date: {date!r}")
        if amount is None or amount <= 0:
            raise InvalidArgumentError("Amount must be positive.")
        if not category or not category.strip():
            raise InvalidArgumentError("Category cannot be empty.")

        expense = self._dao.create(
            amount=amount,
            category=category,
            description=description,
            date=format_date(d),
            card_id=card_id,
        )
        check_budget(self._budget, expense)
        return expense


def check_budget(budget_service: BudgetService, expense: Expense):
    """Run the budget evaluator for a stored expense without letting it fail the caller."""
    try:
        budget_service.on_expense_inserted(expense)
    except StorageError:
        logger.error(
            "Budget check failed for expense %s (%s)", expense.id, expense.category,
            exc_info=True,
        )
