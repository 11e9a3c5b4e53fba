import logging
from datetime import date, timedelta
from models.budget import BudgetAlert
from utils.constants import REMINDER_OFFSETS
from utils.currency import format_currency
from utils.date_helpers import format_date, format_display_date, to_date, today

logger = logging.getLogger(__name__)


class Notifier:
    """Backend that actually delivers notifications (push service, OS scheduler...)."""

    def schedule(self, identifier: str, title: str, body: str,
                 trigger: date | None, data: dict):
        """trigger=None means deliver immediately."""
        raise NotImplementedError

    def cancel(self, identifier: str):
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Writes notifications to the log. Used when no device backend is wired in."""

    def schedule(self, identifier, title, body, trigger, data):
        when = format_date(trigger) if trigger else "now"
        logger.info("Notification %s (%s): %s - %s", identifier, when, title, body)

    def cancel(self, identifier):
        logger.info("Notification %s cancelled", identifier)


def reminder_ids(owner_id: int) -> list[str]:
    return [f"{owner_id}-{suffix}" for _, suffix in REMINDER_OFFSETS]


class NotificationService:
    """Fire-and-forget front for a Notifier.

    Backend failures are logged and swallowed so they can never undo the
    data change that triggered them.
    """

    def __init__(self, notifier: Notifier, enabled: bool = True, currency_symbol: str = "$"):
        self._notifier = notifier
        self._enabled = enabled
        self._symbol = currency_symbol

    def schedule_reminder(
        self,
        owner_id: int,
        description: str,
        amount: float,
        due_date,
        now=None,
    ) -> list[str]:
        """Schedule the 7/3/1/0-day reminders for a payment due on due_date.

        Reminders whose trigger date is not after now are skipped. Returns
        the identifiers handed to the backend.
        """
        if not self._enabled:
            return []
        due = to_date(due_date)
        ref = to_date(now) if now is not None else today()
        if due is None:
            logger.warning("Not scheduling reminder for %s: bad due date %r", owner_id, due_date)
            return []

        scheduled = []
        for days, suffix in REMINDER_OFFSETS:
            trigger = due - timedelta(days=days)
            if trigger <= ref:
                continue
            identifier = f"{owner_id}-{suffix}"
            amount_str = format_currency(amount, self._symbol)
            if days == 0:
                title = "Payment Due Today"
                body = f"{description} - {amount_str} is due today!"
            else:
                title = "Upcoming Payment"
                plural = "s" if days > 1 else ""
                body = (
                    f"{description} - {amount_str} is due in {days} day{plural} "
                    f"({format_display_date(due)})"
                )
            data = {
                "type": "recurring",
                "expense_id": owner_id,
                "description": description,
                "amount": amount,
                "due_date": format_date(due),
            }
            if self._deliver(identifier, title, body, trigger, data):
                scheduled.append(identifier)
        return scheduled

    def cancel_reminders(self, owner_id: int):
        if not self._enabled:
            return
        for identifier in reminder_ids(owner_id):
            try:
                self._notifier.cancel(identifier)
            except Exception:
                logger.warning("Cancelling notification %s failed", identifier, exc_info=True)

    def schedule_budget_alert(
        self,
        category: str,
        spend: float,
        budget: float,
        threshold: int,
    ) -> BudgetAlert | None:
        """Deliver an immediate alert when spend is at or past threshold percent of budget."""
        if budget <= 0:
            return None
        alert = BudgetAlert(category=category, spent=spend, budget=budget, threshold=threshold)
        if alert.percentage < threshold:
            return None
        if self._enabled:
            data = {
                "type": "budget",
                "category": category,
                "current_spending": spend,
                "budget": budget,
                "threshold": threshold,
            }
            self._deliver(
                f"budget-{category}-{threshold}", alert.title, alert.body(self._symbol), None, data
            )
        return alert

    def _deliver(self, identifier, title, body, trigger, data) -> bool:
        try:
            self._notifier.schedule(identifier, title, body, trigger, data)
        except Exception:
            logger.warning("Scheduling notification %s failed", identifier, exc_info=True)
            return False
        return True
