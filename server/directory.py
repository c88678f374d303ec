"""User directory and per-org dispute policy.

SQLite-backed roles and point totals per user, plus the policy overrides
each organization applies to its disputes.
"""

import sqlite3
import json
import threading

from policy import DisputeConfig
from protocol import Role


class UserDirectory:
    """SQLite-backed user roles and point totals."""

    def __init__(self, db_path: str = ":memory:"):
        self.db = sqlite3.connect(db_path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                role TEXT NOT NULL DEFAULT 'member',
                total_points INTEGER NOT NULL DEFAULT 0
            )
        """)
        self.db.commit()

    def add_user(self, user_id: str, role: Role = Role.MEMBER, total_points: int = 0):
        self.db.execute(
            "INSERT INTO users (id, role, total_points) VALUES (?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET role = excluded.role",
            (user_id, role.value, total_points),
        )
        self.db.commit()

    def get_user(self, user_id: str) -> dict | None:
        row = self.db.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def get_role(self, user_id: str) -> Role | None:
        """Role of a known user, or None if the directory has never seen them."""
        user = self.get_user(user_id)
        return Role(user["role"]) if user else None

    def credit_points(self, user_id: str, amount: int) -> int:
        """Add to a user's total points. Returns the new total."""
        with self._lock:
            cursor = self.db.execute(
                "UPDATE users SET total_points = total_points + ? WHERE id = ?",
                (amount, user_id),
            )
            if cursor.rowcount == 0:
                self.db.rollback()
                raise KeyError(f"Unknown user {user_id}")
            self.db.commit()
            row = self.db.execute("SELECT total_points FROM users WHERE id = ?", (user_id,)).fetchone()
            return row["total_points"]

    def close(self):
        self.db.close()


class PolicyStore:
    """Per-organization DisputeConfig overrides."""

    def __init__(self, db_path: str = ":memory:"):
        self.db = sqlite3.connect(db_path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self):
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS org_policy (
                org TEXT PRIMARY KEY,
                overrides TEXT NOT NULL DEFAULT '{}'
            )
        """)
        self.db.commit()

    def set_config(self, overrides: dict, org: str = "default") -> DisputeConfig:
        config = DisputeConfig.from_dict(overrides)
        self.db.execute(
            "INSERT INTO org_policy (org, overrides) VALUES (?, ?) "
            "ON CONFLICT(org) DO UPDATE SET overrides = excluded.overrides",
            (org, json.dumps(overrides)),
        )
        self.db.commit()
        return config

    def get_config(self, org: str = "default") -> DisputeConfig:
        row = self.db.execute("SELECT overrides FROM org_policy WHERE org = ?", (org,)).fetchone()
        if not row:
            return DisputeConfig()
        return DisputeConfig.from_dict(json.loads(row["overrides"]))

    def close(self):
        self.db.close()
