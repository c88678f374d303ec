"""Dispute record storage.

SQLite-backed CRUD for dispute rows. Every status change goes through
compare_and_swap so concurrent actors on the same dispute cannot both win.
"""

import sqlite3
import json
import threading
import time
import uuid
from enum import Enum

from models import Dispute
from protocol import (
    DisputeStatus, DisputeTier, Resolution, SettlementStatus,
    ACTIVE_STATUSES, LIST_LIMIT,
)

# Writable columns. compare_and_swap rejects anything else.
COLUMNS = (
    "task_id", "submission_id", "sprint_id", "disputant_id", "reviewer_id",
    "arbitrator_id", "status", "tier", "reason", "evidence_text",
    "evidence_links", "evidence_files", "response_text", "response_links",
    "response_submitted_at", "response_deadline", "mediation_deadline", "mediation_proposal_id",
    "appeal_deadline", "resolution", "resolution_notes", "new_quality_score",
    "resolved_at", "settlement_status", "settlement", "settlement_error",
    "created_at", "updated_at",
)
JSON_COLUMNS = {"evidence_links", "evidence_files", "response_links", "settlement"}


def _encode(column: str, value):
    if isinstance(value, Enum):
        return value.value
    if column in JSON_COLUMNS:
        return None if value is None else json.dumps(value)
    return value


class DisputeStore:
    """SQLite-backed dispute storage with compare-and-swap updates."""

    def __init__(self, db_path: str = ":memory:"):
        self.db = sqlite3.connect(db_path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_db()

    def _init_db(self):
        self.db.execute("PRAGMA journal_mode=WAL")
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS disputes (
                id TEXT PRIMARY KEY,
                task_id TEXT NOT NULL,
                submission_id TEXT NOT NULL,
                sprint_id TEXT,
                disputant_id TEXT NOT NULL,
                reviewer_id TEXT NOT NULL,
                arbitrator_id TEXT,
                status TEXT NOT NULL DEFAULT 'open',
                tier TEXT NOT NULL DEFAULT 'mediation',
                reason TEXT NOT NULL,
                evidence_text TEXT NOT NULL DEFAULT '',
                evidence_links TEXT NOT NULL DEFAULT '[]',
                evidence_files TEXT NOT NULL DEFAULT '[]',
                response_text TEXT,
                response_links TEXT NOT NULL DEFAULT '[]',
                response_submitted_at REAL,
                response_deadline REAL,
                mediation_deadline REAL,
                mediation_proposal_id TEXT,
                appeal_deadline REAL,
                resolution TEXT,
                resolution_notes TEXT,
                new_quality_score INTEGER,
                resolved_at REAL,
                settlement_status TEXT NOT NULL DEFAULT 'none',
                settlement TEXT,
                settlement_error TEXT,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        self.db.execute("CREATE INDEX IF NOT EXISTS idx_disputes_status ON disputes(status)")
        self.db.execute("CREATE INDEX IF NOT EXISTS idx_disputes_submission ON disputes(submission_id)")
        self.db.execute("CREATE INDEX IF NOT EXISTS idx_disputes_disputant ON disputes(disputant_id, created_at)")
        self.db.commit()

    def create(self, fields: dict) -> Dispute:
        """Insert a new dispute row. Returns the stored record."""
        dispute_id = uuid.uuid4().hex[:16]
        values = dict(fields)
        now = values.setdefault("created_at", time.time())
        values.setdefault("updated_at", now)
        unknown = set(values) - set(COLUMNS)
        if unknown:
            raise ValueError(f"Unknown dispute columns: {sorted(unknown)}")

        columns = ["id"] + list(values)
        params = [dispute_id] + [_encode(c, values[c]) for c in values]
        with self._lock:
            self.db.execute(
                f"INSERT INTO disputes ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                params,
            )
            self.db.commit()
        return self.get(dispute_id)

    def get(self, dispute_id: str) -> Dispute | None:
        with self._lock:
            row = self.db.execute("SELECT * FROM disputes WHERE id = ?", (dispute_id,)).fetchone()
        if not row:
            return None
        return self._row_to_dispute(row)

    def list_disputes(self, status: DisputeStatus | None = None, tier: DisputeTier | None = None,
             sprint_id: str | None = None, party_id: str | None = None,
             limit: int = LIST_LIMIT) -> list[Dispute]:
        """List disputes newest first. party_id restricts to disputes the user is party to."""
        clauses, params = [], []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if tier is not None:
            clauses.append("tier = ?")
            params.append(tier.value)
        if sprint_id is not None:
            clauses.append("sprint_id = ?")
            params.append(sprint_id)
        if party_id is not None:
            clauses.append("(disputant_id = ? OR reviewer_id = ? OR arbitrator_id = ?)")
            params.extend([party_id] * 3)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.execute(
            f"SELECT * FROM disputes {where} ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (*params, limit),
        ).fetchall()
        return [self._row_to_dispute(r) for r in rows]

    def active_for_submission(self, submission_id: str) -> Dispute | None:
        """The non-terminal dispute on a submission, if any."""
        active = [s.value for s in ACTIVE_STATUSES]
        row = self.db.execute(
            f"SELECT * FROM disputes WHERE submission_id = ? AND status IN ({', '.join('?' for _ in active)}) "
            "ORDER BY created_at DESC LIMIT 1",
            (submission_id, *active),
        ).fetchone()
        return self._row_to_dispute(row) if row else None

    def latest_by_disputant(self, user_id: str) -> Dispute | None:
        row = self.db.execute(
            "SELECT * FROM disputes WHERE disputant_id = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (user_id,),
        ).fetchone()
        return self._row_to_dispute(row) if row else None

    def compare_and_swap(self, dispute_id: str, expected_status: DisputeStatus,
                         changes: dict, **expect) -> bool:
        """Apply changes iff the row still has expected_status (and every expect column).

        An expect value of None means the column must be NULL. Returns False
        when the row moved on or does not exist.
        """
        values = dict(changes)
        values.setdefault("updated_at", time.time())
        unknown = (set(values) | set(expect)) - set(COLUMNS)
        if unknown:
            raise ValueError(f"Unknown dispute columns: {sorted(unknown)}")

        assignments = ", ".join(f"{c} = ?" for c in values)
        params = [_encode(c, v) for c, v in values.items()]
        conditions = ["id = ?", "status = ?"]
        params.extend([dispute_id, expected_status.value])
        for column, value in expect.items():
            if value is None:
                conditions.append(f"{column} IS NULL")
            else:
                conditions.append(f"{column} = ?")
                params.append(_encode(column, value))

        with self._lock:
            cursor = self.db.execute(
                f"UPDATE disputes SET {assignments} WHERE {' AND '.join(conditions)}",
                params,
            )
            self.db.commit()
            return cursor.rowcount > 0

    def add_evidence_file(self, dispute_id: str, path: str, max_files: int) -> list[str] | None:
        """Record an evidence path. Returns the new file list, or None when full.

        Re-adding a path already on the dispute is a no-op.
        """
        with self._lock:
            row = self.db.execute("SELECT evidence_files FROM disputes WHERE id = ?", (dispute_id,)).fetchone()
            if not row:
                return None
            files = json.loads(row["evidence_files"])
            if path in files:
                return files
            if len(files) >= max_files:
                return None
            files.append(path)
            self.db.execute(
                "UPDATE disputes SET evidence_files = ?, updated_at = ? WHERE id = ?",
                (json.dumps(files), time.time(), dispute_id),
            )
            self.db.commit()
            return files

    def _row_to_dispute(self, row) -> Dispute:
        return Dispute(
            id=row["id"],
            task_id=row["task_id"],
            submission_id=row["submission_id"],
            sprint_id=row["sprint_id"],
            disputant_id=row["disputant_id"],
            reviewer_id=row["reviewer_id"],
            arbitrator_id=row["arbitrator_id"],
            status=DisputeStatus(row["status"]),
            tier=DisputeTier(row["tier"]),
            reason=row["reason"],
            evidence_text=row["evidence_text"],
            evidence_links=json.loads(row["evidence_links"]),
            evidence_files=json.loads(row["evidence_files"]),
            response_text=row["response_text"],
            response_links=json.loads(row["response_links"]),
            response_submitted_at=row["response_submitted_at"],
            response_deadline=row["response_deadline"],
            mediation_deadline=row["mediation_deadline"],
            mediation_proposal_id=row["mediation_proposal_id"],
            appeal_deadline=row["appeal_deadline"],
            resolution=Resolution(row["resolution"]) if row["resolution"] else None,
            resolution_notes=row["resolution_notes"],
            new_quality_score=row["new_quality_score"],
            resolved_at=row["resolved_at"],
            settlement_status=SettlementStatus(row["settlement_status"]),
            settlement=json.loads(row["settlement"]) if row["settlement"] else None,
            settlement_error=row["settlement_error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def close(self):
        self.db.close()
