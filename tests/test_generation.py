from datetime import date, datetime

import pytest

from database.recurring_dao import RecurringDAO
from models.generation import CONFLICT, ENDED, GENERATED, INVALID, STORAGE_ERROR, UP_TO_DATE
from services.recurring_service import RecurringService
from utils.errors import GenerationError, InvalidArgumentError, StorageError


def _monthly(app, **overrides):
    fields = dict(
        amount=50.0, category="Bills", description="Internet",
        frequency="monthly", interval=1, start_date="2024-01-15",
        now=date(2024, 1, 15),
    )
    fields.update(overrides)
    return app.recurring_svc.create(**fields)


def _dates(app, recurring_id):
    return [e.date for e in app.recurring_svc.get_generated_expenses(recurring_id)]


def _service_with(app, dao):
    return RecurringService(dao, app.expense_dao, app.budget_svc, app.notifications)


class InterferingDAO(RecurringDAO):
    """Moves a definition's checkpoint behind the engine's back before its Nth write."""

    def __init__(self, db, expense_dao, victim_id, new_checkpoint, on_write=1):
        super().__init__(db, expense_dao)
        self._store = db
        self._victim_id = victim_id
        self._new_checkpoint = new_checkpoint
        self._on_write = on_write
        self._writes = 0
        self.interfered = False

    def materialize_occurrence(self, recurring, occurrence_date, expected_checkpoint):
        if recurring.id == self._victim_id:
            self._writes += 1
            interfere = self._writes == self._on_write
        else:
            interfere = False
        if interfere:
            self.interfered = True
            with self._store.transaction() as conn:
                conn.execute(
                    "UPDATE recurring_expenses SET last_generated = ? WHERE id = ?",
                    (self._new_checkpoint, recurring.id),
                )
        return super().materialize_occurrence(recurring, occurrence_date, expected_checkpoint)


class FailingDAO(RecurringDAO):
    """Simulates the store going away for one definition."""

    def __init__(self, db, expense_dao, broken_id):
        super().__init__(db, expense_dao)
        self._broken_id = broken_id

    def materialize_occurrence(self, recurring, occurrence_date, expected_checkpoint):
        if recurring.id == self._broken_id:
            raise StorageError("database is locked")
        return super().materialize_occurrence(recurring, occurrence_date, expected_checkpoint)


def test_monthly_catch_up(app):
    r = _monthly(app)

    report = app.recurring_svc.generate_due(date(2024, 4, 20))

    assert _dates(app, r.id) == ["2024-02-15", "2024-03-15", "2024-04-15"]
    assert app.recurring_svc.get_by_id(r.id).last_generated == "2024-04-15"
    outcome = report.outcome_for(r.id)
    assert outcome.status == GENERATED
    assert len(outcome.generated) == 3
    assert all(e.amount == 50.0 and e.category == "Bills" for e in report.generated)


def test_second_run_generates_nothing(app):
    r = _monthly(app)
    app.recurring_svc.generate_due(date(2024, 4, 20))

    report = app.recurring_svc.generate_due(date(2024, 4, 20))

    assert report.generated == []
    assert report.outcome_for(r.id).status == UP_TO_DATE
    assert len(_dates(app, r.id)) == 3


def test_occurrence_due_today_is_generated(app):
    r = _monthly(app)
    app.recurring_svc.generate_due(datetime(2024, 2, 15, 0, 1))
    assert _dates(app, r.id) == ["2024-02-15"]


def test_nothing_due_before_first_step(app):
    r = _monthly(app)
    report = app.recurring_svc.generate_due(date(2024, 2, 14))
    assert report.generated == []
    assert app.recurring_svc.get_by_id(r.id).last_generated == "2024-01-15"


def test_weekly_end_date_is_inclusive_and_final(app):
    r = app.recurring_svc.create(
        amount=9.99, category="Food", description="Meal kit",
        frequency="weekly", start_date="2024-01-25", end_date="2024-02-01",
        now=date(2024, 1, 25),
    )

    first = app.recurring_svc.generate_due(date(2030, 1, 1))
    second = app.recurring_svc.generate_due(date(2031, 1, 1))

    assert _dates(app, r.id) == ["2024-02-01"]
    assert first.outcome_for(r.id).status == ENDED
    assert second.outcome_for(r.id).status == ENDED
    assert second.generated == []
    assert app.recurring_svc.get_by_id(r.id).last_generated == "2024-02-01"


def test_end_date_between_occurrences(app):
    r = _monthly(app, end_date="2024-03-01")
    app.recurring_svc.generate_due(date(2024, 12, 31))
    assert _dates(app, r.id) == ["2024-02-15"]


def test_interval_and_month_end_clamping_in_catch_up(app):
    r = _monthly(app, start_date="2024-01-31", interval=1, now=date(2024, 1, 31))
    app.recurring_svc.generate_due(date(2024, 4, 30))
    assert _dates(app, r.id) == ["2024-02-29", "2024-03-29", "2024-04-29"]


def test_daily_and_yearly_definitions(app):
    daily = app.recurring_svc.create(
        amount=3.0, category="Food", description="Coffee", frequency="daily",
        interval=2, start_date="2024-03-01", now=date(2024, 3, 1),
    )
    yearly = app.recurring_svc.create(
        amount=120.0, category="Bills", description="Domain", frequency="yearly",
        start_date="2020-02-29", now=date(2020, 2, 29),
    )
    app.recurring_svc.generate_due(date(2024, 3, 7))
    assert _dates(app, daily.id) == ["2024-03-03", "2024-03-05", "2024-03-07"]
    assert _dates(app, yearly.id) == ["2021-02-28", "2022-02-28", "2023-02-28", "2024-02-28"]


def test_concurrent_checkpoint_change_aborts_only_that_definition(app, db):
    victim = _monthly(app, description="Rent")
    bystander = _monthly(app, description="Gym")
    dao = InterferingDAO(db, app.expense_dao, victim.id, "2024-03-15")
    service = _service_with(app, dao)

    report = service.generate_due(date(2024, 4, 20))

    assert dao.interfered
    assert report.outcome_for(victim.id).status == CONFLICT
    assert report.outcome_for(victim.id).generated == []
    assert _dates(app, victim.id) == []
    assert app.recurring_svc.get_by_id(victim.id).last_generated == "2024-03-15"
    assert report.outcome_for(bystander.id).status == GENERATED
    assert len(_dates(app, bystander.id)) == 3


def test_conflict_is_retried_from_fresh_state_next_run(app, db):
    victim = _monthly(app)
    service = _service_with(app, InterferingDAO(db, app.expense_dao, victim.id, "2024-03-15"))
    service.generate_due(date(2024, 4, 20))

    report = app.recurring_svc.generate_due(date(2024, 4, 20))

    assert report.outcome_for(victim.id).status == GENERATED
    assert _dates(app, victim.id) == ["2024-04-15"]


def test_conflict_after_partial_progress_still_replans_reminders(app, db, notifier):
    r = app.recurring_svc.create(
        amount=20.0, category="Food", description="Groceries", frequency="weekly",
        start_date="2024-01-01", now=date(2024, 1, 1),
    )
    assert notifier.pending[f"{r.id}-dueday"]["data"]["due_date"] == "2024-01-08"
    dao = InterferingDAO(db, app.expense_dao, r.id, "2024-01-15", on_write=2)

    report = _service_with(app, dao).generate_due(date(2024, 1, 16))

    outcome = report.outcome_for(r.id)
    assert outcome.status == CONFLICT
    assert [e.date for e in outcome.generated] == ["2024-01-08"]
    assert _dates(app, r.id) == ["2024-01-08"]
    # The reminders for the already generated 2024-01-08 payment are gone
    assert f"{r.id}-dueday" in notifier.cancelled
    assert not any(key.startswith(f"{r.id}-") for key in notifier.pending)


def test_unreachable_checkpoint_is_isolated(app, db):
    healthy = _monthly(app)
    with db.transaction() as conn:
        cursor = conn.execute(
            """INSERT INTO recurring_expenses
               (amount, category, description, frequency, interval,
                start_date, last_generated)
               VALUES (5, 'Other', 'overflow', 'daily', 1, '9999-12-31', '9999-12-31')"""
        )
        bad_id = cursor.lastrowid

    report = app.recurring_svc.generate_due(date(2024, 4, 20))

    assert report.outcome_for(bad_id).status == INVALID
    assert isinstance(report.outcome_for(bad_id).error, InvalidArgumentError)
    assert report.outcome_for(healthy.id).status == GENERATED
    assert len(_dates(app, healthy.id)) == 3


def test_last_occurrence_on_the_calendar_is_still_generated(app, db, notifier):
    with db.transaction() as conn:
        cursor = conn.execute(
            """INSERT INTO recurring_expenses
               (amount, category, description, frequency, interval,
                start_date, last_generated)
               VALUES (5, 'Other', 'edge', 'daily', 1, '9999-12-30', '9999-12-30')"""
        )
        edge_id = cursor.lastrowid

    report = app.recurring_svc.generate_due(date(9999, 12, 31))

    outcome = report.outcome_for(edge_id)
    assert [e.date for e in outcome.generated] == ["9999-12-31"]
    assert outcome.status == INVALID
    assert app.recurring_svc.get_by_id(edge_id).last_generated == "9999-12-31"
    assert not any(key.startswith(f"{edge_id}-") for key in notifier.pending)


def test_create_rejects_schedule_off_the_calendar(app):
    with pytest.raises(ValueError):
        _monthly(app, frequency="yearly", interval=8000)
    assert app.recurring_svc.get_all() == []


def test_storage_error_is_reported_after_all_definitions(app, db):
    broken = _monthly(app, description="Broken")
    healthy = _monthly(app, description="Healthy")
    service = _service_with(app, FailingDAO(db, app.expense_dao, broken.id))

    with pytest.raises(GenerationError) as excinfo:
        service.generate_due(date(2024, 4, 20))

    report = excinfo.value.report
    assert [o.recurring_id for o in report.failures] == [broken.id]
    assert report.outcome_for(broken.id).status == STORAGE_ERROR
    assert isinstance(report.outcome_for(broken.id).error, StorageError)
    assert len(_dates(app, healthy.id)) == 3
    assert _dates(app, broken.id) == []
    assert app.recurring_svc.get_by_id(broken.id).last_generated == "2024-01-15"


def test_corrupt_definition_is_isolated(app, db):
    good = _monthly(app)
    with db.transaction() as conn:
        cursor = conn.execute(
            """INSERT INTO recurring_expenses
               (amount, category, description, frequency, interval,
                start_date, last_generated)
               VALUES (5, 'Other', 'broken', 'monthly', 1, 'garbage', 'garbage')"""
        )
        bad_id = cursor.lastrowid

    report = app.recurring_svc.generate_due(date(2024, 4, 20))

    assert report.outcome_for(bad_id).status == INVALID
    assert report.outcome_for(good.id).status == GENERATED
    assert not report.ok


def test_generated_expenses_trigger_budget_alerts(app, notifier):
    app.budget_svc.set_category_budget("Bills", 100)
    _monthly(app, amount=85.0)

    app.recurring_svc.generate_due(date(2024, 3, 20))

    alerts = notifier.budget_alerts
    assert [a["data"]["threshold"] for a in alerts] == [80, 80]
    assert all(a["data"]["category"] == "Bills" for a in alerts)


def test_notification_failures_do_not_undo_generation(app, notifier):
    app.budget_svc.set_category_budget("Bills", 10)
    r = _monthly(app)
    notifier.fail = True

    report = app.recurring_svc.generate_due(date(2024, 4, 20))

    assert report.ok
    assert len(_dates(app, r.id)) == 3


def test_reminders_follow_the_checkpoint(app, notifier):
    r = _monthly(app)
    assert set(notifier.pending) == {
        f"{r.id}-7days", f"{r.id}-3days", f"{r.id}-1day", f"{r.id}-dueday",
    }
    assert notifier.pending[f"{r.id}-dueday"]["data"]["due_date"] == "2024-02-15"

    app.recurring_svc.generate_due(date(2024, 4, 20))

    assert f"{r.id}-dueday" in notifier.cancelled
    assert notifier.pending[f"{r.id}-dueday"]["data"]["due_date"] == "2024-05-15"


def test_update_keeps_checkpoint_and_reschedules(app, notifier):
    r = _monthly(app)
    app.recurring_svc.generate_due(date(2024, 2, 20))

    updated = app.recurring_svc.update(
        r.id, amount=60.0, category="Bills", description="Fiber",
        frequency="weekly", start_date="2024-01-15", now=date(2024, 2, 20),
    )

    assert updated.last_generated == "2024-02-15"
    assert updated.amount == 60.0
    assert notifier.pending[f"{r.id}-dueday"]["data"]["due_date"] == "2024-02-22"


def test_update_rejects_start_after_checkpoint(app):
    r = _monthly(app)
    app.recurring_svc.generate_due(date(2024, 2, 20))
    with pytest.raises(ValueError):
        app.recurring_svc.update(
            r.id, amount=50.0, category="Bills", description="Internet",
            frequency="monthly", start_date="2024-03-01",
        )


def test_delete_cancels_reminders_and_keeps_expenses(app, notifier):
    r = _monthly(app)
    app.recurring_svc.generate_due(date(2024, 3, 20))

    app.recurring_svc.delete(r.id)

    assert app.recurring_svc.get_by_id(r.id) is None
    assert not any(key.startswith(f"{r.id}-") for key in notifier.pending)
    assert _dates(app, r.id) == ["2024-02-15", "2024-03-15"]


@pytest.mark.parametrize("overrides", [
    {"amount": 0},
    {"amount": -5},
    {"category": " "},
    {"frequency": "hourly"},
    {"interval": 0},
    {"start_date": "31/01/2024"},
    {"end_date": "2023-12-31"},
])
def test_create_validates_input(app, overrides):
    with pytest.raises(ValueError):
        _monthly(app, **overrides)
    assert app.recurring_svc.get_all() == []


def test_next_due_date_respects_end_date(app):
    r = _monthly(app, end_date="2024-02-10")
    assert app.recurring_svc.next_due_date(r) is None
    r = _monthly(app)
    assert app.recurring_svc.next_due_date(r) == date(2024, 2, 15)
