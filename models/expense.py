from dataclasses import dataclass
from typing import Optional


@dataclass
class Expense:
    id: int
    amount: float
    category: str
    description: str
    date: str                   # 'YYYY-MM-DD', occurrence date
    card_id: Optional[int] = None
    recurring_id: Optional[int] = None
    created_at: str = ""

    @property
    def month(self) -> str:
        return self.date[:7]

    @property
    def is_recurring(self) -> bool:
        return self.recurring_id is not None
