from dataclasses import dataclass
from typing import Optional


@dataclass
class RecurringExpense:
    id: int
    amount: float
    category: str
    description: str
    frequency: str              # 'daily' | 'weekly' | 'monthly' | 'yearly'
    interval: int               # every N periods
    start_date: str             # 'YYYY-MM-DD'
    end_date: Optional[str] = None
    last_generated: Optional[str] = None   # checkpoint, 'YYYY-MM-DD'
    card_id: Optional[int] = None
    created_at: str = ""

    @property
    def checkpoint(self) -> str:
        """Date the next catch-up run starts from."""
        return self.last_generated or self.start_date
