import logging
from dataclasses import replace
from datetime import date
from database.expense_dao import ExpenseDAO
from database.recurring_dao import RecurringDAO
from models.expense import Expense
from models.generation import (
    CONFLICT, ENDED, GENERATED, INVALID, STORAGE_ERROR, UP_TO_DATE,
    DefinitionOutcome, GenerationReport,
)
from models.recurring_expense import RecurringExpense
from services.budget_service import BudgetService
from services.expense_service import check_budget
from services.notification_service import NotificationService
from utils.date_helpers import format_date, parse_date, to_date, today
from utils.errors import (
    ConcurrencyError, GenerationError, InvalidArgumentError, StorageError,
)
from utils.occurrence import next_occurrence, validate_schedule

logger = logging.getLogger(__name__)


class RecurringService:
    def __init__(
        self,
        recurring_dao: RecurringDAO,
        expense_dao: ExpenseDAO,
        budget_service: BudgetService,
        notifications: NotificationService,
    ):
        self._dao = recurring_dao
        self._expense_dao = expense_dao
        self._budget = budget_service
        self._notifications = notifications

    def get_all(self) -> list[RecurringExpense]:
        return self._dao.get_all()

    def get_by_id(self, recurring_id: int) -> RecurringExpense | None:
        return self._dao.get_by_id(recurring_id)

    def get_generated_expenses(self, recurring_id: int) -> list[Expense]:
        return self._expense_dao.get_by_recurring_id(recurring_id)

    def create(
        self,
        amount: float,
        category: str,
        description: str,
        frequency: str,
        start_date,
        interval: int = 1,
        end_date=None,
        card_id: int | None = None,
        now=None,
    ) -> RecurringExpense:
        start, end = self._validate(amount, category, frequency, interval, start_date, end_date)
        recurring = self._dao.create(
            amount=amount, category=category, description=description,
            frequency=frequency, interval=interval,
            start_date=format_date(start),
            end_date=format_date(end) if end else None,
            card_id=card_id,
        )
        self._schedule_next_reminder(recurring, now)
        return recurring

    def update(
        self,
        recurring_id: int,
        amount: float,
        category: str,
        description: str,
        frequency: str,
        start_date,
        interval: int = 1,
        end_date=None,
        card_id: int | None = None,
        now=None,
    ) -> RecurringExpense:
        """Replace the editable fields; the checkpoint is kept as is.

        Reminders are cancelled and re-derived from the updated schedule.
        """
        start, end = self._validate(amount, category, frequency, interval, start_date, end_date)
        existing = self._dao.get_by_id(recurring_id)
        if existing is None:
            raise InvalidArgumentError(f"Recurring expense {recurring_id} does not exist.")
        checkpoint = parse_date(existing.last_generated) if existing.last_generated else None
        if checkpoint and start > checkpoint:
            raise InvalidArgumentError(
                f"Start date cannot move past the last generated occurrence "
                f"({existing.last_generated})."
            )
        next_occurrence(checkpoint or start, frequency, interval)

        self._notifications.cancel_reminders(recurring_id)
        recurring = self._dao.update(
            recurring_id=recurring_id, amount=amount, category=category,
            description=description, frequency=frequency, interval=interval,
            start_date=format_date(start),
            end_date=format_date(end) if end else None,
            card_id=card_id,
        )
        self._schedule_next_reminder(recurring, now)
        return recurring

    def delete(self, recurring_id: int):
        """Delete the definition and its pending reminders. Generated expenses stay."""
        self._notifications.cancel_reminders(recurring_id)
        self._dao.delete(recurring_id)

    def next_due_date(self, recurring: RecurringExpense) -> date | None:
        """Next occurrence after the checkpoint, or None once past end_date."""
        candidate = next_occurrence(recurring.checkpoint, recurring.frequency, recurring.interval)
        end = parse_date(recurring.end_date) if recurring.end_date else None
        if end and candidate > end:
            return None
        return candidate

    def generate_due(self, now=None) -> GenerationReport:
        """
        Materialize every occurrence due on or before now (default: today) for
        all recurring expenses, catching up one occurrence at a time.

        Definitions are re-read from the store on every call. A failure on one
        definition never stops the others; if any definition hit a storage
        error, GenerationError is raised once all of them were attempted.
        """
        ref = to_date(now) if now is not None else today()
        if ref is None:
            raise InvalidArgumentError(f"Invalid reference date: {now!r}")

        report = GenerationReport()
        for recurring in self._dao.get_all():
            outcome = self._generate_for(recurring, ref)
            report.outcomes.append(outcome)
            # Committed occurrences moved the checkpoint even if the run stopped early
            if outcome.generated:
                self._reschedule_reminders(recurring, outcome, ref)

        logger.info("Recurring generation as of %s: %s", format_date(ref), report.summary())
        if report.failures:
            raise GenerationError(report)
        return report

    def _generate_for(self, recurring: RecurringExpense, ref: date) -> DefinitionOutcome:
        outcome = DefinitionOutcome(recurring_id=recurring.id, status=UP_TO_DATE)
        # CAS compares against the stored value exactly as read
        expected = recurring.last_generated
        try:
            cursor, end = self._loop_bounds(recurring)
            while True:
                cursor = next_occurrence(cursor, recurring.frequency, recurring.interval)
                if end is not None and cursor > end:
                    outcome.status = ENDED
                    break
                if cursor > ref:
                    break
                occurrence = format_date(cursor)
                expense = self._dao.materialize_occurrence(recurring, occurrence, expected)
                expected = occurrence
                outcome.generated.append(expense)
                check_budget(self._budget, expense)
        except InvalidArgumentError as exc:
            outcome.status = INVALID
            outcome.error = exc
            logger.error("Recurring expense %s is invalid: %s", recurring.id, exc)
        except ConcurrencyError as exc:
            outcome.status = CONFLICT
            outcome.error = exc
            logger.warning("%s; will retry on the next run", exc)
        except StorageError as exc:
            outcome.status = STORAGE_ERROR
            outcome.error = exc
            logger.error(
                "Storage failure while generating recurring expense %s",
                recurring.id, exc_info=True,
            )
        else:
            if outcome.generated and outcome.status == UP_TO_DATE:
                outcome.status = GENERATED
        return outcome

    def _loop_bounds(self, recurring: RecurringExpense) -> tuple[date, date | None]:
        start = parse_date(recurring.start_date)
        if start is None:
            raise InvalidArgumentError(f"Invalid start date: {recurring.start_date!r}")
        cursor = parse_date(recurring.checkpoint)
        if cursor is None:
            raise InvalidArgumentError(f"Invalid checkpoint: {recurring.last_generated!r}")
        if cursor < start:
            raise InvalidArgumentError(
                f"Checkpoint {recurring.last_generated} is before start date {recurring.start_date}"
            )
        end = None
        if recurring.end_date:
            end = parse_date(recurring.end_date)
            if end is None:
                raise InvalidArgumentError(f"Invalid end date: {recurring.end_date!r}")
        return cursor, end

    def _reschedule_reminders(self, recurring: RecurringExpense, outcome: DefinitionOutcome, ref: date):
        advanced = replace(recurring, last_generated=outcome.generated[-1].date)
        self._notifications.cancel_reminders(recurring.id)
        try:
            self._schedule_next_reminder(advanced, ref)
        except InvalidArgumentError as exc:
            logger.warning("No reminder for recurring expense %s: %s", recurring.id, exc)

    def _schedule_next_reminder(self, recurring: RecurringExpense, now=None):
        due = self.next_due_date(recurring)
        if due is None:
            return
        self._notifications.schedule_reminder(
            recurring.id, recurring.description, recurring.amount, due, now=now
        )

    def _validate(self, amount, category, frequency, interval, start_date, end_date):
        if amount is None or amount <= 0:
            raise InvalidArgumentError("Amount must be positive.")
        if not category or not category.strip():
            raise InvalidArgumentError("Category cannot be empty.")
        validate_schedule(frequency, interval)
        start = to_date(start_date)
        if start is None:
            raise InvalidArgumentError(f"Invalid start date: {start_date!r}")
        end = None
        if end_date:
            end = to_date(end_date)
            if end is None:
                raise InvalidArgumentError(f"Invalid end date: {end_date!r}")
            if end < start:
                raise InvalidArgumentError("End date cannot be before start date.")
        # Rejects schedules whose first step is off the calendar before anything is stored
        next_occurrence(start, frequency, interval)
        return start, end
