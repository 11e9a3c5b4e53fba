import logging
import os
import sys

# Ensure project root is on sys.path when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.db_manager import DatabaseManager
from database.expense_dao import ExpenseDAO
from database.recurring_dao import RecurringDAO
from database.category_dao import CategoryDAO
from database.budget_dao import BudgetDAO

from services.notification_service import LoggingNotifier, NotificationService, Notifier
from services.budget_service import BudgetService
from services.expense_service import ExpenseService
from services.recurring_service import RecurringService

from utils.app_config import get_db_folder, get_log_level
from utils.errors import GenerationError

logger = logging.getLogger(__name__)


class App:
    """Wires the store, DAOs and services together around one DatabaseManager."""

    def __init__(self, db: DatabaseManager, notifier: Notifier | None = None):
        self.db = db

        # ── DAOs ─────────────────────────────────────────────────────────────
        self.expense_dao = ExpenseDAO(db)
        self.recurring_dao = RecurringDAO(db, self.expense_dao)
        self.category_dao = CategoryDAO(db)
        self.budget_dao = BudgetDAO(db)

        # ── Services ─────────────────────────────────────────────────────────
        self.notifications = NotificationService(
            notifier or LoggingNotifier(),
            enabled=db.get_setting("reminders_enabled", "1") == "1",
            currency_symbol=db.get_setting("currency_symbol", "$"),
        )
        self.budget_svc = BudgetService(
            self.budget_dao, self.category_dao, self.expense_dao, self.notifications
        )
        self.expense_svc = ExpenseService(self.expense_dao, self.budget_svc)
        self.recurring_svc = RecurringService(
            self.recurring_dao, self.expense_dao, self.budget_svc, self.notifications
        )

    def close(self):
        self.db.close()


def main() -> int:
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ── Bootstrap: read DB folder from pre-DB config ──────────────────────────
    db = DatabaseManager.open(db_folder=get_db_folder())
    app = App(db)

    # ── Apply due recurring expenses ─────────────────────────────────────────
    try:
        report = app.recurring_svc.generate_due()
    except GenerationError as exc:
        logger.error("%s", exc)
        for outcome in exc.report.failures:
            logger.error("  recurring expense %s: %s", outcome.recurring_id, outcome.error)
        return 1
    finally:
        app.close()

    for outcome in report.conflicts:
        logger.warning(
            "Recurring expense %s changed during generation; retried next start",
            outcome.recurring_id,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
