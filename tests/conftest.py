import pytest

from database.db_manager import DatabaseManager
from main import App
from services.notification_service import Notifier


class RecordingNotifier(Notifier):
    """Keeps every notification in memory; set fail=True to simulate a broken backend."""

    def __init__(self):
        self.sent = []
        self.pending = {}
        self.cancelled = []
        self.fail = False

    def schedule(self, identifier, title, body, trigger, data):
        if self.fail:
            raise RuntimeError("notification backend unavailable")
        entry = {
            "id": identifier, "title": title, "body": body,
            "trigger": trigger, "data": data,
        }
        self.sent.append(entry)
        self.pending[identifier] = entry

    def cancel(self, identifier):
        if self.fail:
            raise RuntimeError("notification backend unavailable")
        self.cancelled.append(identifier)
        self.pending.pop(identifier, None)

    @property
    def budget_alerts(self):
        return [n for n in self.sent if n["data"]["type"] == "budget"]


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(db, notifier):
    return App(db, notifier)
