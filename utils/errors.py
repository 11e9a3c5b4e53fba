"""Error kinds raised by the recurring-expense core.

InvalidArgumentError   bad input, never retried
ConcurrencyError       checkpoint moved underneath us, retry on the next run
StorageError           sqlite failure, the transaction was rolled back
GenerationError        a generation run finished with storage failures
"""


class RecurringExpenseError(Exception):
    pass


class InvalidArgumentError(RecurringExpenseError, ValueError):
    pass


class ConcurrencyError(RecurringExpenseError):
    def __init__(self, recurring_id: int, expected: str | None, occurrence_date: str):
        super().__init__(
            f"Concurrent update detected for recurring expense {recurring_id}: "
            f"checkpoint is no longer {expected!r}"
        )
        self.recurring_id = recurring_id
        self.expected = expected
        self.occurrence_date = occurrence_date


class StorageError(RecurringExpenseError):
    pass


class GenerationError(RecurringExpenseError):
    def __init__(self, report):
        failed = [o.recurring_id for o in report.failures]
        super().__init__(
            f"Recurring expense generation failed for {len(failed)} "
            f"definition(s): {failed}"
        )
        self.report = report
