from dataclasses import dataclass
from utils.currency import format_currency


@dataclass
class Budget:
    id: int
    category: str
    month: str          # 'YYYY-MM'
    limit_amount: float


@dataclass
class BudgetAlert:
    category: str
    spent: float
    budget: float
    threshold: int      # percent

    @property
    def percentage(self) -> float:
        if self.budget <= 0:
            return 0.0
        return self.spent / self.budget * 100

    @property
    def remaining(self) -> float:
        return max(0.0, self.budget - self.spent)

    @property
    def title(self) -> str:
        return f"Budget Alert: {self.category}"

    def body(self, symbol: str = "$") -> str:
        if self.percentage >= 100:
            return (
                f"You've exceeded your budget for {self.category}! "
                f"You've spent {format_currency(self.spent, symbol)} of your "
                f"{format_currency(self.budget, symbol)} budget."
            )
        return (
            f"You've used {self.percentage:.0f}% of your {self.category} budget. "
            f"{format_currency(self.remaining, symbol)} remaining."
        )
