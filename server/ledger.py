"""Submission, task and sprint ledger.

The dispute engine only reads submissions and writes back review outcomes.
This SQLite implementation stands in for the task/review service.
"""

import sqlite3
import threading
import time

from protocol import REVIEW_DISPUTED, REVIEW_PENDING


class SubmissionLedger:
    """SQLite-backed submissions with their tasks and sprints."""

    def __init__(self, db_path: str = ":memory:"):
        self.db = sqlite3.connect(db_path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS sprints (
                id TEXT PRIMARY KEY,
                dispute_window_ends_at REAL
            )
        """)
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL DEFAULT '',
                base_points INTEGER NOT NULL DEFAULT 0,
                sprint_id TEXT
            )
        """)
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS submissions (
                id TEXT PRIMARY KEY,
                task_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                reviewer_id TEXT,
                review_status TEXT NOT NULL DEFAULT 'pending',
                quality_score INTEGER,
                earned_points INTEGER NOT NULL DEFAULT 0,
                reviewed_at REAL
            )
        """)
        self.db.commit()

    # --- Seeding ---

    def add_sprint(self, sprint_id: str, dispute_window_ends_at: float | None = None):
        self.db.execute(
            "INSERT OR REPLACE INTO sprints (id, dispute_window_ends_at) VALUES (?, ?)",
            (sprint_id, dispute_window_ends_at),
        )
        self.db.commit()

    def add_task(self, task_id: str, base_points: int, sprint_id: str | None = None, title: str = ""):
        self.db.execute(
            "INSERT OR REPLACE INTO tasks (id, title, base_points, sprint_id) VALUES (?, ?, ?, ?)",
            (task_id, title, base_points, sprint_id),
        )
        self.db.commit()

    def add_submission(self, submission_id: str, task_id: str, user_id: str,
                       reviewer_id: str | None = None, review_status: str = REVIEW_PENDING,
                       quality_score: int | None = None, earned_points: int = 0):
        self.db.execute(
            "INSERT OR REPLACE INTO submissions (id, task_id, user_id, reviewer_id, review_status, "
            "quality_score, earned_points, reviewed_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (submission_id, task_id, user_id, reviewer_id, review_status, quality_score, earned_points,
             None if review_status == REVIEW_PENDING else time.time()),
        )
        self.db.commit()

    # --- Reads ---

    def get_submission(self, submission_id: str) -> dict | None:
        row = self.db.execute("SELECT * FROM submissions WHERE id = ?", (submission_id,)).fetchone()
        return dict(row) if row else None

    def get_task(self, task_id: str) -> dict | None:
        row = self.db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return dict(row) if row else None

    def get_sprint(self, sprint_id: str) -> dict | None:
        row = self.db.execute("SELECT * FROM sprints WHERE id = ?", (sprint_id,)).fetchone()
        return dict(row) if row else None

    # --- Writes ---

    def mark_disputed(self, submission_id: str) -> bool:
        with self._lock:
            cursor = self.db.execute(
                "UPDATE submissions SET review_status = ? WHERE id = ?",
                (REVIEW_DISPUTED, submission_id),
            )
            self.db.commit()
            return cursor.rowcount > 0

    def apply_review(self, submission_id: str, review_status: str, quality_score: int,
                     earned_points: int, reviewed_at: float | None = None) -> bool:
        """Overwrite the review outcome of a submission."""
        with self._lock:
            cursor = self.db.execute(
                "UPDATE submissions SET review_status = ?, quality_score = ?, earned_points = ?, "
                "reviewed_at = ? WHERE id = ?",
                (review_status, quality_score, earned_points,
                 time.time() if reviewed_at is None else reviewed_at, submission_id),
            )
            self.db.commit()
            return cursor.rowcount > 0

    def close(self):
        self.db.close()
