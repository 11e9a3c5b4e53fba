from typing import Optional
from database.db_manager import DatabaseManager
from models.category import Category


class CategoryDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            icon=row["icon"],
            color=row["color"],
            budget=row["budget"],
        )

    def get_by_name(self, name: str) -> Optional[Category]:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM categories WHERE name = ?", (name,)
            ).fetchone()
        return self._row_to_model(row) if row else None

    def set_budget(self, name: str, budget: float) -> Optional[Category]:
        with self._db.transaction() as conn:
            conn.execute(
                "UPDATE categories SET budget = ? WHERE name = ?", (budget, name)
            )
            return self.get_by_name(name)
