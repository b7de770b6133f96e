"""
Focus history for SkylarFocus.

Keeps a log of completed pomodoros and credited count-up sessions, and
derives daily/weekly statistics and streaks from it.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

from loguru import logger


@dataclass
class FocusRecord:
    """A credited stretch of focus time."""
    id: Optional[int] = None
    kind: str = "pomodoro"  # pomodoro | session
    task_id: Optional[str] = None
    task_text: Optional[str] = None
    minutes: int = 25
    started_at: Optional[datetime] = None
    ended_at: datetime = field(default_factory=datetime.now)


@dataclass
class FocusStats:
    """Focus statistics."""
    today_pomodoros: int = 0
    today_minutes: int = 0
    week_pomodoros: int = 0
    week_minutes: int = 0
    total_pomodoros: int = 0
    total_minutes: int = 0
    current_streak: int = 0
    longest_streak: int = 0


class FocusHistory:
    """
    SQLite log of focus time.

    Usage:
        history = FocusHistory("data/focus_history.db")
        history.record_pomodoro("task-1", "Write report", 25, datetime.now())
        stats = history.get_stats(date.today())
    """

    def __init__(self, db_path: str | Path = "data/focus_history.db"):
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self):
        """Initialize SQLite database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS focus_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    task_id TEXT,
                    task_text TEXT,
                    minutes INTEGER NOT NULL,
                    started_at TIMESTAMP,
                    ended_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_records_ended
                ON focus_records(ended_at)
            """)
            conn.commit()

    # =========================================================================
    # Recording
    # =========================================================================

    def _insert(self, record: FocusRecord) -> FocusRecord:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("""
                INSERT INTO focus_records (kind, task_id, task_text, minutes, started_at, ended_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                record.kind,
                record.task_id,
                record.task_text,
                record.minutes,
                record.started_at.isoformat() if record.started_at else None,
                record.ended_at.isoformat(),
            ))
            conn.commit()
            record.id = cursor.lastrowid
        return record

    def record_pomodoro(
        self,
        task_id: Optional[str],
        task_text: Optional[str],
        minutes: int,
        completed_at: datetime,
    ) -> FocusRecord:
        """Log one completed focus interval."""
        return self._insert(FocusRecord(
            kind="pomodoro",
            task_id=task_id,
            task_text=task_text,
            minutes=minutes,
            started_at=completed_at - timedelta(minutes=minutes),
            ended_at=completed_at,
        ))

    def record_session(
        self,
        task_id: Optional[str],
        started_at: datetime,
        ended_at: datetime,
        minutes: int,
    ) -> FocusRecord:
        """Log minutes credited from a count-up session."""
        return self._insert(FocusRecord(
            kind="session",
            task_id=task_id,
            minutes=minutes,
            started_at=started_at,
            ended_at=ended_at,
        ))

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self, today: Optional[date] = None) -> FocusStats:
        """Get focus statistics relative to ``today``."""
        stats = FocusStats()

        today = today or datetime.now().date()
        week_start = today - timedelta(days=today.weekday())

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row

            query = """
                SELECT COALESCE(SUM(kind = 'pomodoro'), 0) as pomodoros,
                       COALESCE(SUM(minutes), 0) as minutes
                FROM focus_records
            """

            row = conn.execute(query + " WHERE DATE(ended_at) = DATE(?)", (today.isoformat(),)).fetchone()
            stats.today_pomodoros = row["pomodoros"]
            stats.today_minutes = row["minutes"]

            row = conn.execute(
                query + " WHERE DATE(ended_at) >= DATE(?) AND DATE(ended_at) <= DATE(?)",
                (week_start.isoformat(), today.isoformat()),
            ).fetchone()
            stats.week_pomodoros = row["pomodoros"]
            stats.week_minutes = row["minutes"]

            row = conn.execute(query).fetchone()
            stats.total_pomodoros = row["pomodoros"]
            stats.total_minutes = row["minutes"]

            rows = conn.execute("""
                SELECT DISTINCT DATE(ended_at) as focus_date
                FROM focus_records
                WHERE DATE(ended_at) <= DATE(?)
                ORDER BY focus_date DESC
            """, (today.isoformat(),)).fetchall()

        dates = [datetime.strptime(r["focus_date"], "%Y-%m-%d").date() for r in rows]
        stats.current_streak = self._current_streak(dates, today)
        stats.longest_streak = self._longest_streak(dates)
        return stats

    @staticmethod
    def _current_streak(dates: List[date], today: date) -> int:
        """Consecutive days ending today, or yesterday if today has nothing yet."""
        if not dates:
            return 0
        check_date = today if dates[0] == today else today - timedelta(days=1)
        streak = 0
        for d in dates:
            if d != check_date:
                break
            streak += 1
            check_date -= timedelta(days=1)
        return streak

    @staticmethod
    def _longest_streak(dates: List[date]) -> int:
        if not dates:
            return 0
        longest = current = 1
        for i in range(1, len(dates)):
            if dates[i] == dates[i - 1] - timedelta(days=1):
                current += 1
                longest = max(longest, current)
            else:
                current = 1
        return longest

    def format_stats(self, today: Optional[date] = None) -> str:
        """Format statistics as readable string."""
        stats = self.get_stats(today)

        lines = [
            "📊 Focus Statistics:",
            "",
            f"Today: {stats.today_pomodoros} pomodoros ({stats.today_minutes} minutes)",
            f"This week: {stats.week_pomodoros} pomodoros ({stats.week_minutes} minutes)",
            f"Total: {stats.total_pomodoros} pomodoros ({stats.total_minutes} minutes)",
            "",
            f"🔥 Current streak: {stats.current_streak} days",
            f"🏆 Longest streak: {stats.longest_streak} days",
        ]

        return "\n".join(lines)

    def get_recent(self, limit: int = 10) -> List[FocusRecord]:
        """Get the most recent records, newest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute("""
                SELECT * FROM focus_records
                ORDER BY ended_at DESC, id DESC
                LIMIT ?
            """, (limit,)).fetchall()

        records = []
        for row in rows:
            records.append(FocusRecord(
                id=row["id"],
                kind=row["kind"],
                task_id=row["task_id"],
                task_text=row["task_text"],
                minutes=row["minutes"],
                started_at=datetime.fromisoformat(row["started_at"]) if row["started_at"] else None,
                ended_at=datetime.fromisoformat(row["ended_at"]),
            ))
        logger.debug(f"Loaded {len(records)} focus records")
        return records
