import logging
from typing import Optional
from database.db_manager import DatabaseManager
from database.expense_dao import ExpenseDAO
from models.expense import Expense
from models.recurring_expense import RecurringExpense
from utils.errors import ConcurrencyError

logger = logging.getLogger(__name__)


class RecurringDAO:
    def __init__(self, db: DatabaseManager, expense_dao: ExpenseDAO):
        self._db = db
        self._expense_dao = expense_dao

    def _row_to_model(self, row) -> RecurringExpense:
        return RecurringExpense(
            id=row["id"],
            amount=row["amount"],
            category=row["category"],
            description=row["description"],
            frequency=row["frequency"],
            interval=row["interval"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            last_generated=row["last_generated"],
            card_id=row["card_id"],
            created_at=row["created_at"],
        )

    def get_all(self) -> list[RecurringExpense]:
        with self._db.reading() as conn:
            rows = conn.execute(
                "SELECT * FROM recurring_expenses ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, recurring_id: int) -> Optional[RecurringExpense]:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM recurring_expenses WHERE id = ?", (recurring_id,)
            ).fetchone()
        return self._row_to_model(row) if row else None

    def create(
        self,
        amount: float,
        category: str,
        description: str,
        frequency: str,
        interval: int,
        start_date: str,
        end_date: str | None = None,
        card_id: int | None = None,
    ) -> RecurringExpense:
        """Insert a definition; its checkpoint starts at start_date."""
        with self._db.transaction() as conn:
            cursor = conn.execute(
                """INSERT INTO recurring_expenses
                   (amount, category, description, frequency, interval,
                    start_date, end_date, last_generated, card_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    amount, category, description, frequency, interval,
                    start_date, end_date, start_date, card_id,
                ),
            )
            return self.get_by_id(cursor.lastrowid)

    def update(
        self,
        recurring_id: int,
        amount: float,
        category: str,
        description: str,
        frequency: str,
        interval: int,
        start_date: str,
        end_date: str | None = None,
        card_id: int | None = None,
    ) -> Optional[RecurringExpense]:
        """Replace the editable fields. last_generated is left untouched."""
        with self._db.transaction() as conn:
            conn.execute(
                """UPDATE recurring_expenses SET
                   amount=?, category=?, description=?, frequency=?,
                   interval=?, start_date=?, end_date=?, card_id=?
                   WHERE id=?""",
                (
                    amount, category, description, frequency, interval,
                    start_date, end_date, card_id, recurring_id,
                ),
            )
            return self.get_by_id(recurring_id)

    def delete(self, recurring_id: int):
        """Remove the definition. Expenses it generated are kept."""
        with self._db.transaction() as conn:
            conn.execute(
                "DELETE FROM recurring_expenses WHERE id = ?", (recurring_id,)
            )

    def materialize_occurrence(
        self,
        recurring: RecurringExpense,
        occurrence_date: str,
        expected_checkpoint: str | None,
    ) -> Expense:
        """Insert the expense for one occurrence and move the checkpoint to it.

        Both writes share one transaction. The checkpoint only moves if it
        still equals expected_checkpoint; otherwise ConcurrencyError is raised
        and the inserted expense is rolled back.
        """
        with self._db.transaction() as conn:
            # Checkpoint first: a lost race must not reach the occurrence index.
            # IS instead of = so a NULL checkpoint still compares.
            cursor = conn.execute(
                """UPDATE recurring_expenses SET last_generated = ?
                   WHERE id = ? AND last_generated IS ?""",
                (occurrence_date, recurring.id, expected_checkpoint),
            )
            if cursor.rowcount == 0:
                raise ConcurrencyError(recurring.id, expected_checkpoint, occurrence_date)
            expense = self._expense_dao.create(
                amount=recurring.amount,
                category=recurring.category,
                description=recurring.description,
                date=occurrence_date,
                card_id=recurring.card_id,
                recurring_id=recurring.id,
            )
        logger.debug(
            "Materialized recurring expense %s on %s", recurring.id, occurrence_date
        )
        return expense
