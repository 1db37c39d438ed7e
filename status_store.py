"""Storage interface for the status detector, with SQLite / in-memory swap.

The detector only needs a handful of queries, so it depends on the
``StatusRepository`` protocol rather than on the database module:

    from status_store import StatusStoreDB, InMemoryStatusStore
    detector = StudentStatusDetector(StatusStoreDB())        # app context
    detector = StudentStatusDetector(InMemoryStatusStore())  # fixtures
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional, Protocol

from database import get_db
from db_stores import row_to_record, row_to_student
from errors import StudentNotFound
from models import ActivityRecord, Student, format_timestamp, parse_timestamp

# ── Protocol ───────────────────────────────────────────────

class StatusRepository(Protocol):
    def get_student(self, student_id: int) -> Student: ...
    def fetch_recent_activity(self, student_id: int, since: datetime) -> list[ActivityRecord]: ...
    def update_status(self, student_id: int, status: str, confidence: int,
                      signals: dict, analyzed_at: datetime) -> None: ...
    def list_by_status(self, status: str) -> list[int]: ...
    def touch_activity(self, student_id: int, at: datetime, lms: bool = False) -> None: ...
    def count_by_status(self, university_id: int) -> list[tuple[str, int, Optional[float]]]: ...


# ── In-Memory Implementation ──────────────────────────────

class InMemoryStatusStore:
    """Dict-backed repository for tests, demos and dry runs."""

    def __init__(self) -> None:
        self.students: dict[int, Student] = {}
        self.records: dict[int, list[ActivityRecord]] = {}

    def add_student(self, student_id: int, **fields: Any) -> Student:
        student = Student(id=student_id, **fields)
        self.students[student_id] = student
        self.records.setdefault(student_id, [])
        return student

    def add_record(self, student_id: int, timestamp: datetime | None, site_name: str | None = None,
                   assignment_title: str | None = None, duration_minutes: int | None = 30) -> ActivityRecord:
        record = ActivityRecord(
            student_id=student_id,
            session_start=timestamp,
            created_at=timestamp,
            site_name=site_name,
            assignment_title=assignment_title,
            duration_minutes=duration_minutes,
            is_active=False,
        )
        self.records.setdefault(student_id, []).append(record)
        return record

    def get_student(self, student_id: int) -> Student:
        try:
            return self.students[student_id]
        except KeyError:
            raise StudentNotFound(student_id) from None

    def fetch_recent_activity(self, student_id: int, since: datetime) -> list[ActivityRecord]:
        return [
            r for r in self.records.get(student_id, [])
            if r.timestamp is not None and r.timestamp > parse_timestamp(since)
        ]

    def update_status(self, student_id: int, status: str, confidence: int,
                      signals: dict, analyzed_at: datetime) -> None:
        student = self.get_student(student_id)
        student.account_status = status
        student.status_confidence = confidence
        student.graduation_signals = dict(signals)
        student.last_active = analyzed_at

    def list_by_status(self, status: str) -> list[int]:
        return [s.id for s in self.students.values() if s.account_status == status]

    def touch_activity(self, student_id: int, at: datetime, lms: bool = False) -> None:
        student = self.get_student(student_id)
        student.last_active = at
        if lms:
            student.last_lms_activity = at

    def count_by_status(self, university_id: int) -> list[tuple[str, int, Optional[float]]]:
        groups: dict[str, list[int]] = {}
        for s in self.students.values():
            if s.university_id == university_id:
                groups.setdefault(s.account_status, []).append(s.status_confidence)
        return [
            (status, len(scores), sum(scores) / len(scores))
            for status, scores in groups.items()
        ]


# ── SQLite Implementation ─────────────────────────────────

class StatusStoreDB:
    """Reads and writes the students / time_logs tables. Needs an app context."""

    def get_student(self, student_id: int) -> Student:
        row = get_db().execute("SELECT * FROM students WHERE id = ?", (student_id,)).fetchone()
        if row is None:
            raise StudentNotFound(student_id)
        return row_to_student(row)

    def fetch_recent_activity(self, student_id: int, since: datetime) -> list[ActivityRecord]:
        rows = get_db().execute(
            "SELECT * FROM time_logs WHERE student_id = ? "
            "AND COALESCE(NULLIF(session_start, ''), created_at) > ? "
            "ORDER BY created_at DESC",
            (student_id, format_timestamp(since)),
        ).fetchall()
        return [row_to_record(r) for r in rows]

    def update_status(self, student_id: int, status: str, confidence: int,
                      signals: dict, analyzed_at: datetime) -> None:
        db = get_db()
        cur = db.execute(
            "UPDATE students SET account_status = ?, status_confidence = ?, "
            "graduation_signals = ?, last_active = ? WHERE id = ?",
            (status, confidence, json.dumps(signals), format_timestamp(analyzed_at), student_id),
        )
        db.commit()
        if cur.rowcount == 0:
            raise StudentNotFound(student_id)

    def list_by_status(self, status: str) -> list[int]:
        rows = get_db().execute(
            "SELECT id FROM students WHERE account_status = ? ORDER BY id", (status,),
        ).fetchall()
        return [r["id"] for r in rows]

    def touch_activity(self, student_id: int, at: datetime, lms: bool = False) -> None:
        db = get_db()
        if lms:
            cur = db.execute(
                "UPDATE students SET last_lms_activity = ?, last_active = ? WHERE id = ?",
                (format_timestamp(at), format_timestamp(at), student_id),
            )
        else:
            cur = db.execute(
                "UPDATE students SET last_active = ? WHERE id = ?",
                (format_timestamp(at), student_id),
            )
        db.commit()
        if cur.rowcount == 0:
            raise StudentNotFound(student_id)

    def count_by_status(self, university_id: int) -> list[tuple[str, int, Optional[float]]]:
        rows = get_db().execute(
            "SELECT account_status, COUNT(*) AS count, AVG(status_confidence) AS avg_confidence "
            "FROM students WHERE university_id = ? GROUP BY account_status",
            (university_id,),
        ).fetchall()
        return [(r["account_status"], r["count"], r["avg_confidence"]) for r in rows]

