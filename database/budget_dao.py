from typing import Optional
from database.db_manager import DatabaseManager
from models.budget import Budget


class BudgetDAO:
    """Per-month overrides of a category's default budget."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Budget:
        return Budget(
            id=row["id"],
            category=row["category"],
            month=row["month"],
            limit_amount=row["limit_amount"],
        )

    def get_by_category_month(self, category: str, month: str) -> Optional[Budget]:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM budgets WHERE category = ? AND month = ?",
                (category, month),
            ).fetchone()
        return self._row_to_model(row) if row else None

    def upsert(self, category: str, month: str, limit_amount: float) -> Budget:
        with self._db.transaction() as conn:
            conn.execute(
                """INSERT INTO budgets(category, month, limit_amount)
                   VALUES (?, ?, ?)
                   ON CONFLICT(category, month)
                   DO UPDATE SET limit_amount = excluded.limit_amount""",
                (category, month, limit_amount),
            )
            return self.get_by_category_month(category, month)

