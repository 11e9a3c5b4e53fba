import logging
from database.budget_dao import BudgetDAO
from database.category_dao import CategoryDAO
from database.expense_dao import ExpenseDAO
from models.budget import Budget, BudgetAlert
from models.category import Category
from models.expense import Expense
from services.notification_service import NotificationService
from utils.constants import BUDGET_ALERT_THRESHOLDS
from utils.date_helpers import parse_month
from utils.errors import InvalidArgumentError

logger = logging.getLogger(__name__)


class BudgetService:
    def __init__(
        self,
        budget_dao: BudgetDAO,
        category_dao: CategoryDAO,
        expense_dao: ExpenseDAO,
        notifications: NotificationService,
        thresholds: tuple[int, ...] = BUDGET_ALERT_THRESHOLDS,
    ):
        self._budget_dao = budget_dao
        self._category_dao = category_dao
        self._expense_dao = expense_dao
        self._notifications = notifications
        self._thresholds = tuple(sorted(thresholds))

    def get_budget(self, category: str, month: str) -> float:
        """Effective budget for a category in a YYYY-MM month; 0 means no budget.

        A month override wins over the category's default budget.
        """
        override = self._budget_dao.get_by_category_month(category, month)
        if override is not None:
            return override.limit_amount
        cat = self._category_dao.get_by_name(category)
        return cat.budget if cat else 0.0

    def get_month_spending(self, category: str, month: str) -> float:
        return self._expense_dao.get_category_spending(category, month)

    def set_category_budget(self, category: str, budget: float) -> Category:
        if budget < 0:
            raise InvalidArgumentError("Budget must be non-negative.")
        cat = self._category_dao.set_budget(category, budget)
        if cat is None:
            raise InvalidArgumentError(f"Unknown category: {category}")
        return cat

    def set_month_budget(self, category: str, month: str, limit_amount: float) -> Budget:
        if limit_amount < 0:
            raise InvalidArgumentError("Budget must be non-negative.")
        if parse_month(month) is None:
            raise InvalidArgumentError(f"Invalid month: {month}")
        return self._budget_dao.upsert(category, month, limit_amount)

    def on_expense_inserted(self, expense: Expense) -> list[BudgetAlert]:
        """Fire the alerts whose threshold this expense crossed.

        Must run after the expense is stored: month-to-date spend is read
        back including it. Only thresholds moving from below to at-or-above
        alert, so an already exceeded threshold stays quiet.
        """
        month = expense.month
        budget = self.get_budget(expense.category, month)
        if budget <= 0:
            return []

        # Cent rounding keeps float sums from landing just under a threshold
        spent_after = round(self.get_month_spending(expense.category, month), 2)
        spent_before = round(spent_after - expense.amount, 2)
        percent_before = spent_before / budget * 100
        percent_after = spent_after / budget * 100

        alerts = []
        for threshold in self._thresholds:
            if percent_after >= threshold and percent_before < threshold:
                alert = BudgetAlert(
                    category=expense.category,
                    spent=spent_after,
                    budget=budget,
                    threshold=threshold,
                )
                alerts.append(alert)
                self._notifications.schedule_budget_alert(
                    expense.category, spent_after, budget, threshold
                )
        if alerts:
            logger.info(
                "%s at %.0f%% of %s budget, crossed %s",
                expense.category, percent_after, month,
                ", ".join(f"{a.threshold}%" for a in alerts),
            )
        return alerts
