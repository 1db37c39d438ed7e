"""
DB-backed store classes for the study tracker.

Each class wraps one table (or one student's slice of it) and reads/writes
through the per-request SQLite connection from database.get_db().
"""

from __future__ import annotations

import json
from datetime import datetime, date, timedelta
from typing import Optional

from database import get_db
from errors import AssignmentNotFound, StudentNotFound
from models import (
    ACCOUNT_STATUSES,
    ActivityRecord,
    Assignment,
    Student,
    StudentProfile,
    format_timestamp,
    parse_timestamp,
)


# ── Row converters ───────────────────────────────────────────────────


def row_to_student(r) -> Student:
    try:
        signals = json.loads(r["graduation_signals"] or "{}")
    except (json.JSONDecodeError, TypeError):
        signals = {}
    return Student(
        id=r["id"],
        name=r["name"],
        email=r["email"],
        university_id=r["university_id"],
        account_status=r["account_status"],
        status_confidence=r["status_confidence"],
        graduation_signals=signals,
        last_lms_activity=parse_timestamp(r["last_lms_activity"]),
        last_active=parse_timestamp(r["last_active"]),
        codename=r["codename"],
        show_on_leaderboard=bool(r["show_on_leaderboard"]),
    )


def row_to_record(r) -> ActivityRecord:
    return ActivityRecord(
        id=r["id"],
        student_id=r["student_id"],
        assignment_id=r["assignment_id"],
        session_start=parse_timestamp(r["session_start"]),
        session_end=parse_timestamp(r["session_end"]),
        duration_minutes=r["duration_minutes"],
        site_name=r["site_name"],
        assignment_title=r["assignment_title"],
        url=r["url"],
        is_active=bool(r["is_active"]),
        created_at=parse_timestamp(r["created_at"]),
    )


def row_to_assignment(r) -> Assignment:
    return Assignment(
        id=r["id"],
        student_id=r["student_id"],
        title=r["title"],
        assignment_type=r["assignment_type"],
        course_name=r["course_name"],
        due_date=parse_timestamp(r["due_date"]),
        estimated_hours=r["estimated_hours"],
        actual_hours=r["actual_hours"],
        is_completed=bool(r["is_completed"]),
        completed_at=parse_timestamp(r["completed_at"]),
        word_count=r["word_count"],
        problem_count=r["problem_count"],
        page_count=r["page_count"],
        canvas_url=r["canvas_url"],
        created_at=parse_timestamp(r["created_at"]),
    )


def week_start(today: date | None = None) -> date:
    """Monday of the current week."""
    today = today or date.today()
    return today - timedelta(days=today.weekday())


# ── Students ─────────────────────────────────────────────────────────


class StudentStoreDB:
    """Sign-up and lookup. Status fields are written by status_store.StatusStoreDB."""

    @staticmethod
    def create(name: str, email: str, university_id: int | None = None,
               codename: str = "", show_on_leaderboard: bool = True) -> Student:
        """Insert a student together with a default profile."""
        db = get_db()
        now = datetime.now().isoformat()
        cur = db.execute(
            "INSERT INTO students (name, email, university_id, codename, "
            "show_on_leaderboard, last_active, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (name, email, university_id, codename, int(show_on_leaderboard), now, now),
        )
        student_id = cur.lastrowid
        db.execute(
            "INSERT INTO student_profiles (student_id, created_at, updated_at) VALUES (?, ?, ?)",
            (student_id, now, now),
        )
        db.commit()
        return StudentStoreDB.get(student_id)

    @staticmethod
    def get(student_id: int) -> Student:
        row = get_db().execute("SELECT * FROM students WHERE id = ?", (student_id,)).fetchone()
        if row is None:
            raise StudentNotFound(student_id)
        return row_to_student(row)

    @staticmethod
    def set_status(student_id: int, status: str) -> None:
        """Manual override, e.g. an admin confirming a graduation."""
        if status not in ACCOUNT_STATUSES:
            raise ValueError(f"Unknown account status: {status!r}")
        db = get_db()
        cur = db.execute("UPDATE students SET account_status = ? WHERE id = ?", (status, student_id))
        db.commit()
        if cur.rowcount == 0:
            raise StudentNotFound(student_id)

    @staticmethod
    def count_for_university(university_id: int) -> int:
        return get_db().execute(
            "SELECT COUNT(*) AS c FROM students WHERE university_id = ?", (university_id,),
        ).fetchone()["c"]


class UniversityStoreDB:

    @staticmethod
    def create(name: str, domain: str = "") -> int:
        db = get_db()
        cur = db.execute(
            "INSERT INTO universities (name, domain, created_at) VALUES (?, ?, ?)",
            (name, domain, datetime.now().isoformat()),
        )
        db.commit()
        return cur.lastrowid


# ── Profiles ─────────────────────────────────────────────────────────


class ProfileStoreDB:
    """A student's time-estimation coefficients."""

    FIELDS = ("writing_speed", "reading_speed", "problem_solving_speed",
              "procrastination_factor", "peak_hour_start", "peak_hour_end")

    def __init__(self, student_id: int):
        self.student_id = student_id

    def load(self) -> StudentProfile:
        row = get_db().execute(
            "SELECT * FROM student_profiles WHERE student_id = ?", (self.student_id,),
        ).fetchone()
        if row is None:
            raise StudentNotFound(self.student_id)
        return StudentProfile(student_id=self.student_id, **{f: row[f] for f in self.FIELDS})

    def update(self, **changes) -> StudentProfile:
        """Update the given coefficients; None values are left unchanged.

        Raises InvalidProfile before writing if a speed would become
        zero or negative.
        """
        profile = self.load()
        for name, value in changes.items():
            if name not in self.FIELDS:
                raise TypeError(f"Unknown profile field: {name}")
            if value is not None:
                setattr(profile, name, value)
        profile.validate()

        db = get_db()
        db.execute(
            "UPDATE student_profiles SET writing_speed=?, reading_speed=?, "
            "problem_solving_speed=?, procrastination_factor=?, peak_hour_start=?, "
            "peak_hour_end=?, updated_at=? WHERE student_id=?",
            (*(getattr(profile, f) for f in self.FIELDS),
             datetime.now().isoformat(), self.student_id),
        )
        db.commit()
        return profile


# ── Assignments ──────────────────────────────────────────────────────


class AssignmentStoreDB:

    def __init__(self, student_id: int):
        self.student_id = student_id

    def add(self, title: str, due_date: datetime, assignment_type: str = "",
            estimated_hours: float | None = None, word_count: int | None = None,
            problem_count: int | None = None, page_count: int | None = None,
            course_name: str = "", canvas_url: str = "") -> Assignment:
        db = get_db()
        cur = db.execute(
            "INSERT INTO assignments (student_id, title, assignment_type, course_name, "
            "due_date, estimated_hours, word_count, problem_count, page_count, canvas_url, "
            "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (self.student_id, title, assignment_type, course_name, due_date.isoformat(),
             estimated_hours, word_count, problem_count, page_count, canvas_url,
             datetime.now().isoformat()),
        )
        db.commit()
        return self.get(cur.lastrowid)

    @staticmethod
    def get(assignment_id: int) -> Assignment:
        row = get_db().execute("SELECT * FROM assignments WHERE id = ?", (assignment_id,)).fetchone()
        if row is None:
            raise AssignmentNotFound(assignment_id)
        return row_to_assignment(row)

    def by_canvas_url(self, canvas_url: str) -> Optional[Assignment]:
        row = get_db().execute(
            "SELECT * FROM assignments WHERE student_id = ? AND canvas_url = ?",
            (self.student_id, canvas_url),
        ).fetchone()
        return row_to_assignment(row) if row else None

    def all(self) -> list[Assignment]:
        rows = get_db().execute(
            "SELECT * FROM assignments WHERE student_id = ? ORDER BY due_date ASC",
            (self.student_id,),
        ).fetchall()
        return [row_to_assignment(r) for r in rows]

    @staticmethod
    def mark_complete(assignment_id: int, actual_hours: float) -> Assignment:
        db = get_db()
        cur = db.execute(
            "UPDATE assignments SET is_completed = 1, completed_at = ?, actual_hours = ? "
            "WHERE id = ?",
            (datetime.now().isoformat(), actual_hours, assignment_id),
        )
        db.commit()
        if cur.rowcount == 0:
            raise AssignmentNotFound(assignment_id)
        return AssignmentStoreDB.get(assignment_id)

    def completed_count(self) -> int:
        return get_db().execute(
            "SELECT COUNT(*) AS c FROM assignments WHERE student_id = ? AND is_completed = 1",
            (self.student_id,),
        ).fetchone()["c"]

    @staticmethod
    def hours_tracked(assignment_id: int) -> float:
        row = get_db().execute(
            "SELECT COALESCE(SUM(duration_minutes), 0) AS minutes FROM time_logs "
            "WHERE assignment_id = ?",
            (assignment_id,),
        ).fetchone()
        return row["minutes"] / 60.0


# ── Time Logs ────────────────────────────────────────────────────────


class TimeLogStoreDB:
    """Browser-extension sessions for one student."""

    def __init__(self, student_id: int):
        self.student_id = student_id

    def start(self, started_at: datetime, site_name: str = "", assignment_title: str = "",
              url: str = "", assignment_id: int | None = None) -> ActivityRecord:
        db = get_db()
        cur = db.execute(
            "INSERT INTO time_logs (student_id, assignment_id, session_start, site_name, "
            "assignment_title, url, is_active, created_at) VALUES (?, ?, ?, ?, ?, ?, 1, ?)",
            (self.student_id, assignment_id, format_timestamp(started_at), site_name or "",
             assignment_title or "", url or "", datetime.now().isoformat()),
        )
        db.commit()
        return self.get(cur.lastrowid)

    def get(self, log_id: int) -> ActivityRecord:
        row = get_db().execute(
            "SELECT * FROM time_logs WHERE id = ? AND student_id = ?", (log_id, self.student_id),
        ).fetchone()
        return row_to_record(row)

    def active(self) -> list[ActivityRecord]:
        rows = get_db().execute(
            "SELECT * FROM time_logs WHERE student_id = ? AND is_active = 1 ORDER BY id",
            (self.student_id,),
        ).fetchall()
        return [row_to_record(r) for r in rows]

    def finish_active(self, duration_minutes: int, ended_at: datetime) -> list[ActivityRecord]:
        """Close every open session; returns the finalized records."""
        open_ids = [r.id for r in self.active()]
        if not open_ids:
            return []
        db = get_db()
        db.execute(
            "UPDATE time_logs SET session_end = ?, duration_minutes = ?, is_active = 0 "
            "WHERE student_id = ? AND is_active = 1",
            (format_timestamp(ended_at), duration_minutes, self.student_id),
        )
        db.commit()
        return [self.get(log_id) for log_id in open_ids]

    def hours_since(self, since: datetime) -> float:
        row = get_db().execute(
            "SELECT COALESCE(SUM(duration_minutes), 0) AS minutes FROM time_logs "
            "WHERE student_id = ? AND session_start >= ?",
            (self.student_id, format_timestamp(since)),
        ).fetchone()
        return row["minutes"] / 60.0

    def hours_today(self) -> float:
        return self.hours_since(datetime.combine(date.today(), datetime.min.time()))

    def hours_this_week(self) -> float:
        return self.hours_since(datetime.combine(week_start(), datetime.min.time()))


# ── Badges ───────────────────────────────────────────────────────────


class BadgeStoreDB:

    def __init__(self, student_id: int):
        self.student_id = student_id

    def award(self, badge_type: str, name: str, message: str,
              assignment_id: int | None = None) -> dict:
        db = get_db()
        now = datetime.now().isoformat()
        cur = db.execute(
            "INSERT INTO badges (student_id, badge_type, badge_name, badge_message, "
            "assignment_id, earned_at) VALUES (?, ?, ?, ?, ?, ?)",
            (self.student_id, badge_type, name, message, assignment_id, now),
        )
        db.commit()
        return {
            "id": cur.lastrowid,
            "student_id": self.student_id,
            "badge_type": badge_type,
            "badge_name": name,
            "badge_message": message,
            "assignment_id": assignment_id,
            "earned_at": now,
        }

    def has_for_assignment(self, badge_type: str, assignment_id: int) -> bool:
        return get_db().execute(
            "SELECT 1 FROM badges WHERE student_id = ? AND badge_type = ? AND assignment_id = ?",
            (self.student_id, badge_type, assignment_id),
        ).fetchone() is not None

    def has_ever(self, badge_type: str) -> bool:
        return get_db().execute(
            "SELECT 1 FROM badges WHERE student_id = ? AND badge_type = ?",
            (self.student_id, badge_type),
        ).fetchone() is not None

    def has_today(self, badge_type: str) -> bool:
        return get_db().execute(
            "SELECT 1 FROM badges WHERE student_id = ? AND badge_type = ? AND earned_at >= ?",
            (self.student_id, badge_type, date.today().isoformat()),
        ).fetchone() is not None

    def all(self) -> list[dict]:
        rows = get_db().execute(
            "SELECT * FROM badges WHERE student_id = ? ORDER BY earned_at DESC",
            (self.student_id,),
        ).fetchall()
        return [dict(r) for r in rows]


# ── Leaderboard ──────────────────────────────────────────────────────


class LeaderboardStoreDB:
    """Weekly study-hour ranking within a university."""

    @staticmethod
    def weekly(university_id: int, limit: int = 20) -> list[dict]:
        since = datetime.combine(week_start(), datetime.min.time()).isoformat()
        rows = get_db().execute(
            "SELECT s.id AS student_id, s.codename, "
            "COALESCE(SUM(t.duration_minutes), 0) / 60.0 AS hours "
            "FROM students s "
            "LEFT JOIN time_logs t ON t.student_id = s.id AND t.session_start >= ? "
            "WHERE s.university_id = ? AND s.show_on_leaderboard = 1 "
            "GROUP BY s.id ORDER BY hours DESC, s.id ASC LIMIT ?",
            (since, university_id, limit),
        ).fetchall()
        result = []
        for i, r in enumerate(rows, 1):
            result.append({
                "rank": i,
                "student_id": r["student_id"],
                "codename": r["codename"] or f"Student #{r['student_id']}",
                "hours": round(r["hours"], 1),
            })
        return result
