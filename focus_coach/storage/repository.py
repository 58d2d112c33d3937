"""
Repository pattern for data access.

Handles database operations and data persistence logic.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from focus_coach.config.loader import DEFAULT_SETTINGS

from .db import DEFAULT_DB_PATH, get_connection
from .models import (
    ActivitySample,
    FeedbackEntry,
    Goal,
    HabitStatus,
    Task,
    UsageRecord,
)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        priority TEXT NOT NULL DEFAULT 'medium',
        due_date TEXT,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS goals (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'active',
        target_value REAL,
        current_value REAL NOT NULL DEFAULT 0,
        deadline TEXT,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS habits (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        streak INTEGER NOT NULL DEFAULT 0,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS habit_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        habit_id INTEGER NOT NULL,
        date TEXT NOT NULL,
        completed INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (habit_id) REFERENCES habits (id),
        UNIQUE (habit_id, date)
    );

    CREATE TABLE IF NOT EXISTS activity_sample (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        app_name TEXT NOT NULL,
        window_title TEXT,
        duration INTEGER NOT NULL,
        category TEXT NOT NULL,
        productivity_score REAL NOT NULL
    );

    CREATE TABLE IF NOT EXISTS llm_usage (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        provider TEXT NOT NULL,
        model TEXT NOT NULL,
        input_tokens INTEGER NOT NULL,
        output_tokens INTEGER NOT NULL,
        cost REAL NOT NULL,
        request_kind TEXT NOT NULL DEFAULT 'chat',
        latency_ms INTEGER
    );

    CREATE TABLE IF NOT EXISTS feedback_entry (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        trigger_kind TEXT NOT NULL,
        content TEXT NOT NULL,
        mood_score REAL NOT NULL,
        productivity_score REAL NOT NULL,
        user_rating INTEGER
    );

    CREATE INDEX IF NOT EXISTS idx_activity_timestamp ON activity_sample(timestamp);
    CREATE INDEX IF NOT EXISTS idx_usage_timestamp ON llm_usage(timestamp);
"""


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create all tables if they don't exist and seed default settings.

    The ``activity_sample`` and ``llm_usage`` tables are append-only ledgers.
    No UPDATE or DELETE operations should ever be performed on them.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.executemany(
            "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
            list(DEFAULT_SETTINGS.items()),
        )
        conn.commit()
    finally:
        conn.close()


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _format_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class CoachRepository:
    """Repository for the settings store and the usage/activity/feedback ledgers.

    Every method opens its own connection, so an instance can be shared by
    components that run their queries on worker threads.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize(self) -> None:
        initialize_schema(self.db_path)

    # ---- settings ----

    def get_setting(self, key: str) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def get_settings(self) -> Dict[str, str]:
        """Return every stored setting as raw strings."""
        conn = get_connection(self.db_path)
        try:
            return {key: value for key, value in conn.execute("SELECT key, value FROM settings")}
        finally:
            conn.close()

    def set_setting(self, key: str, value: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT OR REPLACE INTO settings (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
            """, (key, str(value)))
            conn.commit()
        finally:
            conn.close()

    # ---- activity ledger ----

    def insert_activity_sample(self, sample: ActivitySample) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO activity_sample
                (timestamp, app_name, window_title, duration, category, productivity_score)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                sample.timestamp.isoformat(),
                sample.app_name,
                sample.window_title,
                sample.duration,
                sample.category,
                sample.productivity_score,
            ))
            conn.commit()
        finally:
            conn.close()

    def fetch_activity_samples(
        self,
        since: datetime,
        until: Optional[datetime] = None
    ) -> List[ActivitySample]:
        """Fetch activity samples in a time range, oldest first.

        Args:
            since: Inclusive lower bound
            until: Optional exclusive upper bound

        Returns:
            List of samples in insertion (focus-change) order
        """
        conn = get_connection(self.db_path)
        try:
            query = """
                SELECT timestamp, app_name, window_title, duration, category, productivity_score
                FROM activity_sample
                WHERE timestamp >= ?
            """
            params = [since.isoformat()]
            if until is not None:
                query += " AND timestamp < ?"
                params.append(until.isoformat())
            query += " ORDER BY id ASC"

            return [
                ActivitySample(
                    timestamp=datetime.fromisoformat(row[0]),
                    app_name=row[1],
                    window_title=row[2],
                    duration=row[3],
                    category=row[4],
                    productivity_score=row[5],
                )
                for row in conn.execute(query, params).fetchall()
            ]
        finally:
            conn.close()

    # ---- usage ledger ----

    def insert_usage_record(self, record: UsageRecord) -> None:
        """Append a single usage record to the ledger."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO llm_usage
                (timestamp, provider, model, input_tokens, output_tokens,
                 cost, request_kind, latency_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.timestamp.isoformat(),
                record.provider,
                record.model,
                record.input_tokens,
                record.output_tokens,
                record.cost,
                record.request_kind,
                record.latency_ms,
            ))
            conn.commit()
        finally:
            conn.close()

    def fetch_usage_records(
        self,
        since: Optional[datetime] = None,
        provider: Optional[str] = None,
        limit: int = 1000
    ) -> List[UsageRecord]:
        """Get recent usage records with optional filtering, newest first."""
        conn = get_connection(self.db_path)
        try:
            query = """
                SELECT timestamp, provider, model, input_tokens, output_tokens,
                       cost, request_kind, latency_ms
                FROM llm_usage
            """
            params: list = []
            conditions = []
            if since is not None:
                conditions.append("timestamp >= ?")
                params.append(since.isoformat())
            if provider:
                conditions.append("provider = ?")
                params.append(provider)
            if conditions:
                query += " WHERE " + " AND ".join(conditions)
            query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
            params.append(limit)

            return [
                UsageRecord(
                    timestamp=datetime.fromisoformat(row[0]),
                    provider=row[1],
                    model=row[2],
                    input_tokens=row[3],
                    output_tokens=row[4],
                    cost=row[5],
                    request_kind=row[6],
                    latency_ms=row[7],
                )
                for row in conn.execute(query, params).fetchall()
            ]
        finally:
            conn.close()

    def total_cost_since(self, since: datetime) -> float:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT SUM(cost) FROM llm_usage WHERE timestamp >= ?",
                (since.isoformat(),)
            ).fetchone()
            return float(row[0] or 0)
        finally:
            conn.close()

    def usage_breakdown_since(self, since: datetime) -> List[Dict[str, object]]:
        """Aggregate usage per provider/model, most expensive first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT
                    provider,
                    model,
                    COUNT(*) as request_count,
                    SUM(input_tokens) as input_tokens,
                    SUM(output_tokens) as output_tokens,
                    SUM(cost) as total_cost
                FROM llm_usage
                WHERE timestamp >= ?
                GROUP BY provider, model
                ORDER BY total_cost DESC, provider, model
            """, (since.isoformat(),))
            return [
                {
                    "provider": row[0],
                    "model": row[1],
                    "request_count": row[2],
                    "input_tokens": row[3] or 0,
                    "output_tokens": row[4] or 0,
                    "total_cost": float(row[5] or 0),
                }
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    # ---- feedback ----

    def insert_feedback_entry(self, entry: FeedbackEntry) -> int:
        """Persist a feedback entry and return its new id."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT INTO feedback_entry
                (timestamp, trigger_kind, content, mood_score, productivity_score, user_rating)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                entry.timestamp.isoformat(),
                entry.trigger_kind,
                entry.content,
                entry.mood_score,
                entry.productivity_score,
                entry.user_rating,
            ))
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def fetch_recent_feedback(self, limit: int = 10) -> List[FeedbackEntry]:
        """Return the most recent feedback entries, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, timestamp, trigger_kind, content, mood_score,
                       productivity_score, user_rating
                FROM feedback_entry
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
            """, (limit,))
            return [
                FeedbackEntry(
                    id=row[0],
                    timestamp=datetime.fromisoformat(row[1]),
                    trigger_kind=row[2],
                    content=row[3],
                    mood_score=row[4],
                    productivity_score=row[5],
                    user_rating=row[6],
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def set_feedback_rating(self, feedback_id: int, rating: int) -> bool:
        """Overwrite the rating of an entry. Returns False if no entry matched."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "UPDATE feedback_entry SET user_rating = ? WHERE id = ?",
                (rating, feedback_id)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    # ---- tasks, goals, habits (read models owned by the UI) ----

    def fetch_tasks(self) -> List[Task]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, title, status, priority, due_date, created_at
                FROM tasks ORDER BY created_at DESC, id DESC
            """)
            return [
                Task(
                    id=row[0],
                    title=row[1],
                    status=row[2],
                    priority=row[3],
                    due_date=_parse_dt(row[4]),
                    created_at=_parse_dt(row[5]),
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def fetch_goals(self) -> List[Goal]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, title, status, target_value, current_value, deadline, created_at
                FROM goals ORDER BY created_at DESC, id DESC
            """)
            return [
                Goal(
                    id=row[0],
                    title=row[1],
                    status=row[2],
                    target_value=row[3],
                    current_value=row[4] or 0.0,
                    deadline=_parse_dt(row[5]),
                    created_at=_parse_dt(row[6]),
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def fetch_habits_for_day(self, day: Optional[date] = None) -> List[HabitStatus]:
        """Active habits joined with their completion entry for ``day``."""
        day = day or date.today()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT h.id, h.name, h.streak, COALESCE(he.completed, 0)
                FROM habits h
                LEFT JOIN habit_entries he ON h.id = he.habit_id AND he.date = ?
                WHERE h.is_active = 1
                ORDER BY h.created_at DESC, h.id DESC
            """, (day.isoformat(),))
            return [
                HabitStatus(id=row[0], name=row[1], streak=row[2], completed_today=bool(row[3]))
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def insert_task(self, task: Task) -> int:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT INTO tasks (title, status, priority, due_date, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                task.title,
                task.status,
                task.priority,
                _format_dt(task.due_date),
                _format_dt(task.created_at or datetime.now()),
            ))
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def insert_goal(self, goal: Goal) -> int:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT INTO goals (title, status, target_value, current_value, deadline, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                goal.title,
                goal.status,
                goal.target_value,
                goal.current_value,
                _format_dt(goal.deadline),
                _format_dt(goal.created_at or datetime.now()),
            ))
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def insert_habit(self, name: str, streak: int = 0) -> int:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "INSERT INTO habits (name, streak, created_at) VALUES (?, ?, ?)",
                (name, streak, datetime.now().isoformat())
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def log_habit_entry(self, habit_id: int, day: date, completed: bool) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT OR REPLACE INTO habit_entries (habit_id, date, completed)
                VALUES (?, ?, ?)
            """, (habit_id, day.isoformat(), int(completed)))
            conn.commit()
        finally:
            conn.close()
