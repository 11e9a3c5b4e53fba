import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator
from utils.constants import DB_FILE, DB_TIMEOUT, DEFAULT_CATEGORIES, DEFAULT_SETTINGS
from utils.errors import StorageError

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_path: str | None = None, timeout: float = DB_TIMEOUT):
        self.db_path = db_path or DB_FILE
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                # isolation_level=None: statements autocommit unless inside transaction()
                self._conn = sqlite3.connect(
                    self.db_path,
                    timeout=self._timeout,
                    check_same_thread=False,
                    isolation_level=None,
                )
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA journal_mode = WAL")
            except sqlite3.Error as exc:
                self._conn = None
                raise StorageError(f"Cannot open database {self.db_path}: {exc}") from exc
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Unit of work: everything executed inside commits or rolls back together.

        A nested call joins the outer transaction. sqlite3 errors are
        re-raised as StorageError after the rollback.
        """
        conn = self.get_connection()
        if conn.in_transaction:
            yield conn
            return
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot start transaction: {exc}") from exc
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException as exc:
            if conn.in_transaction:
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error:
                    logger.exception("Rollback failed on %s", self.db_path)
            if isinstance(exc, sqlite3.Error):
                raise StorageError(str(exc)) from exc
            raise

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        """Connection for read-only queries; sqlite3 errors become StorageError."""
        conn = self.get_connection()
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def initialize(self):
        """Create schema and seed defaults."""
        with self.transaction() as conn:
            self._create_schema(conn)
            self._migrate_schema(conn)
            self._seed_defaults(conn)
        logger.debug("Database initialized at %s", self.db_path)

    def _create_schema(self, conn: sqlite3.Connection):
        # executescript() would commit the open transaction, so run statements one by one
        statements = [
            """CREATE TABLE IF NOT EXISTS categories (
                id      INTEGER PRIMARY KEY AUTOINCREMENT,
                name    TEXT NOT NULL UNIQUE,
                icon    TEXT NOT NULL DEFAULT 'dots-horizontal',
                color   TEXT NOT NULL DEFAULT '#B5B5B5',
                budget  REAL NOT NULL DEFAULT 0 CHECK(budget >= 0)
            )""",
            """CREATE TABLE IF NOT EXISTS budgets (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                category     TEXT NOT NULL,
                month        TEXT NOT NULL,
                limit_amount REAL NOT NULL CHECK(limit_amount >= 0),
                UNIQUE(category, month)
            )""",
            """CREATE TABLE IF NOT EXISTS recurring_expenses (
                id             INTEGER PRIMARY KEY AUTOINCREMENT,
                amount         REAL NOT NULL CHECK(amount > 0),
                category       TEXT NOT NULL,
                description    TEXT NOT NULL DEFAULT '',
                frequency      TEXT NOT NULL CHECK(frequency IN ('daily','weekly','monthly','yearly')),
                interval       INTEGER NOT NULL DEFAULT 1 CHECK(interval >= 1),
                start_date     TEXT NOT NULL,
                end_date       TEXT,
                last_generated TEXT,
                card_id        INTEGER,
                created_at     TEXT NOT NULL DEFAULT (datetime('now'))
            )""",
            """CREATE TABLE IF NOT EXISTS expenses (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                amount       REAL NOT NULL CHECK(amount > 0),
                category     TEXT NOT NULL,
                description  TEXT NOT NULL DEFAULT '',
                date         TEXT NOT NULL,
                card_id      INTEGER,
                recurring_id INTEGER,
                created_at   TEXT NOT NULL DEFAULT (datetime('now'))
            )""",
            """CREATE TABLE IF NOT EXISTS app_settings (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )""",
            "CREATE INDEX IF NOT EXISTS idx_expenses_date          ON expenses(date)",
            "CREATE INDEX IF NOT EXISTS idx_expenses_category_date ON expenses(category, date)",
            # One expense per occurrence, even if two writers slip past the checkpoint
            """CREATE UNIQUE INDEX IF NOT EXISTS ux_expenses_occurrence
               ON expenses(recurring_id, date) WHERE recurring_id IS NOT NULL""",
        ]
        for sql in statements:
            conn.execute(sql)

    def _migrate_schema(self, conn: sqlite3.Connection):
        """Idempotent ALTER TABLE for columns added after initial release."""
        cols = {row[1] for row in conn.execute("PRAGMA table_info(categories)").fetchall()}
        if "budget" not in cols:
            conn.execute(
                "ALTER TABLE categories ADD COLUMN budget REAL NOT NULL DEFAULT 0"
            )
        cols = {row[1] for row in conn.execute("PRAGMA table_info(expenses)").fetchall()}
        if "recurring_id" not in cols:
            conn.execute("ALTER TABLE expenses ADD COLUMN recurring_id INTEGER")
        # Rows written before the checkpoint was seeded at creation
        conn.execute(
            "UPDATE recurring_expenses SET last_generated = start_date "
            "WHERE last_generated IS NULL"
        )

    def _seed_defaults(self, conn: sqlite3.Connection):
        for key, value in DEFAULT_SETTINGS:
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

        for cat in DEFAULT_CATEGORIES:
            conn.execute(
                """INSERT OR IGNORE INTO categories(name, icon, color, budget)
                   VALUES (?, ?, ?, ?)""",
                (cat["name"], cat["icon"], cat["color"], cat["budget"]),
            )

    def get_setting(self, key: str, default: str = "") -> str:
        with self.reading() as conn:
            row = conn.execute(
                "SELECT value FROM app_settings WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    @staticmethod
    def open(db_folder: str | None = None) -> "DatabaseManager":
        """Startup factory: opens (and creates if needed) the expenses DB.

        db_folder: if provided, the DB file is stored in that directory instead of CWD.
        """
        if db_folder:
            os.makedirs(db_folder, exist_ok=True)
            path = os.path.join(db_folder, DB_FILE)
        else:
            path = DB_FILE
        db = DatabaseManager(path)
        db.initialize()
        return db

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
