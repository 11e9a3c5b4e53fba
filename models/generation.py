from dataclasses import dataclass, field
from typing import Optional
from models.expense import Expense

UP_TO_DATE = "up_to_date"
GENERATED = "generated"
ENDED = "ended"
CONFLICT = "conflict"
STORAGE_ERROR = "storage_error"
INVALID = "invalid"


@dataclass
class DefinitionOutcome:
    recurring_id: int
    status: str
    generated: list[Expense] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status in (UP_TO_DATE, GENERATED, ENDED)


@dataclass
class GenerationReport:
    outcomes: list[DefinitionOutcome] = field(default_factory=list)

    @property
    def generated(self) -> list[Expense]:
        return [e for o in self.outcomes for e in o.generated]

    @property
    def conflicts(self) -> list[DefinitionOutcome]:
        return [o for o in self.outcomes if o.status == CONFLICT]

    @property
    def failures(self) -> list[DefinitionOutcome]:
        return [o for o in self.outcomes if o.status == STORAGE_ERROR]

    @property
    def invalid(self) -> list[DefinitionOutcome]:
        return [o for o in self.outcomes if o.status == INVALID]

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    def outcome_for(self, recurring_id: int) -> DefinitionOutcome | None:
        for o in self.outcomes:
            if o.recurring_id == recurring_id:
                return o
        return None

    def summary(self) -> str:
        return (
            f"{len(self.outcomes)} recurring expense(s) checked, "
            f"{len(self.generated)} expense(s) generated, "
            f"{len(self.conflicts)} conflict(s), "
            f"{len(self.failures)} storage failure(s), "
            f"{len(self.invalid)} invalid"
        )
