from typing import Optional
from database.db_manager import DatabaseManager
from models.expense import Expense


class ExpenseDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Expense:
        return Expense(
            id=row["id"],
            amount=row["amount"],
            category=row["category"],
            description=row["description"],
            date=row["date"],
            card_id=row["card_id"],
            recurring_id=row["recurring_id"],
            created_at=row["created_at"],
        )

    def get_all(self) -> list[Expense]:
        with self._db.reading() as conn:
            rows = conn.execute(
                "SELECT * FROM expenses ORDER BY date DESC, id DESC"
            ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, expense_id: int) -> Optional[Expense]:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM expenses WHERE id = ?", (expense_id,)
            ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_recurring_id(self, recurring_id: int) -> list[Expense]:
        with self._db.reading() as conn:
            rows = conn.execute(
                "SELECT * FROM expenses WHERE recurring_id = ? ORDER BY date ASC",
                (recurring_id,),
            ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_category_spending(self, category: str, month: str) -> float:
        """Sum of expense amounts for one category in a YYYY-MM month."""
        with self._db.reading() as conn:
            row = conn.execute(
                """SELECT COALESCE(SUM(amount), 0) AS total
                   FROM expenses
                   WHERE category = ?
                     AND strftime('%Y-%m', date) = ?""",
                (category, month),
            ).fetchone()
        return row["total"]

    def create(
        self,
        amount: float,
        category: str,
        description: str,
        date: str,
        card_id: int | None = None,
        recurring_id: int | None = None,
    ) -> Expense:
        """Insert one expense. Joins the caller's transaction when one is open."""
        with self._db.transaction() as conn:
            cursor = conn.execute(
                """INSERT INTO expenses
                   (amount, category, description, date, card_id, recurring_id)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (amount, category, description, date, card_id, recurring_id),
            )
            return self.get_by_id(cursor.lastrowid)

