"""Append-only comment ledger for disputes.

Discussion comments and mediation entries share one table; the entry kind
is a column, so free text can never pass for a mediation proposal.
"""

import sqlite3
import threading
import time
import uuid

from models import DisputeComment, ENTRY_TYPES
from protocol import EntryKind, Visibility


class CommentLedger:
    """SQLite-backed dispute comment ledger."""

    def __init__(self, db_path: str = ":memory:"):
        self.db = sqlite3.connect(db_path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        self.db.execute("PRAGMA journal_mode=WAL")
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS dispute_comments (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                dispute_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                content TEXT NOT NULL,
                visibility TEXT NOT NULL,
                created_at REAL NOT NULL
            )
        """)
        self.db.execute(
            "CREATE INDEX IF NOT EXISTS idx_comments_dispute ON dispute_comments(dispute_id, kind)"
        )
        self.db.commit()

    def append(self, dispute_id: str, user_id: str, content: str,
               visibility: Visibility = Visibility.PARTIES_ONLY,
               kind: EntryKind = EntryKind.DISCUSSION,
               created_at: float | None = None) -> DisputeComment:
        comment_id = uuid.uuid4().hex[:16]
        now = time.time() if created_at is None else created_at
        with self._lock:
            cursor = self.db.execute(
                "INSERT INTO dispute_comments (id, dispute_id, user_id, kind, content, visibility, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (comment_id, dispute_id, user_id, kind.value, content, visibility.value, now),
            )
            self.db.commit()
            seq = cursor.lastrowid
        return ENTRY_TYPES[kind](
            id=comment_id, dispute_id=dispute_id, user_id=user_id, content=content,
            visibility=visibility, created_at=now, seq=seq,
        )

    def find_latest(self, dispute_id: str, kind: EntryKind) -> DisputeComment | None:
        """Most recent entry of one kind, ordered by time then insertion."""
        row = self.db.execute(
            "SELECT * FROM dispute_comments WHERE dispute_id = ? AND kind = ? "
            "ORDER BY created_at DESC, seq DESC LIMIT 1",
            (dispute_id, kind.value),
        ).fetchone()
        return self._row_to_entry(row) if row else None

    def list_entries(self, dispute_id: str) -> list[DisputeComment]:
        rows = self.db.execute(
            "SELECT * FROM dispute_comments WHERE dispute_id = ? ORDER BY created_at ASC, seq ASC",
            (dispute_id,),
        ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def list_visible_to(self, dispute_id: str, viewer_id: str, arbitrator_id: str | None,
                        is_admin: bool = False) -> list[DisputeComment]:
        """Entries the viewer may read. Arbitrator-scoped entries need the current arbitrator or an admin."""
        sees_arbitrator = is_admin or (arbitrator_id is not None and viewer_id == arbitrator_id)
        return [
            c for c in self.list_entries(dispute_id)
            if c.visibility == Visibility.PARTIES_ONLY or sees_arbitrator
        ]

    def _row_to_entry(self, row) -> DisputeComment:
        kind = EntryKind(row["kind"])
        return ENTRY_TYPES[kind](
            id=row["id"],
            dispute_id=row["dispute_id"],
            user_id=row["user_id"],
            content=row["content"],
            visibility=Visibility(row["visibility"]),
            created_at=row["created_at"],
            seq=row["seq"],
        )

    def close(self):
        self.db.close()
