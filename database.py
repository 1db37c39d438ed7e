"""
SQLite database layer for the study tracker.

Uses raw sqlite3 with WAL mode and parameterized queries.
A schema_version table handles migrations.
"""

from __future__ import annotations

import fcntl
import sqlite3
from datetime import datetime
from pathlib import Path

from flask import current_app, g

DEFAULT_DATABASE = str(Path(__file__).parent / "study_tracker.db")


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS universities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    domain TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);

-- Students
CREATE TABLE IF NOT EXISTS students (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL,
    university_id INTEGER REFERENCES universities(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Per-student calibration coefficients
CREATE TABLE IF NOT EXISTS student_profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL UNIQUE REFERENCES students(id) ON DELETE CASCADE,
    writing_speed REAL NOT NULL DEFAULT 250,
    reading_speed REAL NOT NULL DEFAULT 30,
    problem_solving_speed REAL NOT NULL DEFAULT 5,
    procrastination_factor REAL NOT NULL DEFAULT 1.0,
    peak_hour_start INTEGER NOT NULL DEFAULT 10,
    peak_hour_end INTEGER NOT NULL DEFAULT 14,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Assignments
CREATE TABLE IF NOT EXISTS assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    assignment_type TEXT NOT NULL DEFAULT '',
    course_name TEXT NOT NULL DEFAULT '',
    due_date TEXT NOT NULL,
    estimated_hours REAL,
    actual_hours REAL,
    is_completed INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT NOT NULL DEFAULT '',
    word_count INTEGER,
    problem_count INTEGER,
    page_count INTEGER,
    canvas_url TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_assignments_student ON assignments(student_id);
CREATE INDEX IF NOT EXISTS idx_assignments_due ON assignments(due_date);

-- Time logs from the browser extension
CREATE TABLE IF NOT EXISTS time_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
    assignment_id INTEGER REFERENCES assignments(id) ON DELETE CASCADE,
    session_start TEXT NOT NULL DEFAULT '',
    session_end TEXT NOT NULL DEFAULT '',
    duration_minutes INTEGER,
    url TEXT NOT NULL DEFAULT '',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_time_logs_student ON time_logs(student_id);
CREATE INDEX IF NOT EXISTS idx_time_logs_assignment ON time_logs(assignment_id);
CREATE INDEX IF NOT EXISTS idx_time_logs_active ON time_logs(is_active);

-- Badges
CREATE TABLE IF NOT EXISTS badges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
    badge_type TEXT NOT NULL,
    badge_name TEXT NOT NULL,
    badge_message TEXT NOT NULL DEFAULT '',
    assignment_id INTEGER REFERENCES assignments(id) ON DELETE CASCADE,
    earned_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_badges_student ON badges(student_id, badge_type);
"""


# Versioned migrations: (version, sql)
MIGRATIONS = [
    # Migration 1: Student status tracking for graduation detection
    (1, """
        ALTER TABLE students ADD COLUMN account_status TEXT NOT NULL DEFAULT 'active';
        ALTER TABLE students ADD COLUMN status_confidence INTEGER NOT NULL DEFAULT 100;
        ALTER TABLE students ADD COLUMN last_lms_activity TEXT NOT NULL DEFAULT '';
        ALTER TABLE students ADD COLUMN last_active TEXT NOT NULL DEFAULT '';
        ALTER TABLE students ADD COLUMN graduation_signals TEXT NOT NULL DEFAULT '{}';
        CREATE INDEX IF NOT EXISTS idx_students_status ON students(account_status);
        CREATE INDEX IF NOT EXISTS idx_students_last_active ON students(last_active);
    """),
    # Migration 2: Site and document title on time logs
    (2, """
        ALTER TABLE time_logs ADD COLUMN site_name TEXT NOT NULL DEFAULT '';
        ALTER TABLE time_logs ADD COLUMN assignment_title TEXT NOT NULL DEFAULT '';
        CREATE INDEX IF NOT EXISTS idx_time_logs_student_created ON time_logs(student_id, created_at);
    """),
    # Migration 3: Leaderboard fields
    (3, """
        ALTER TABLE students ADD COLUMN codename TEXT NOT NULL DEFAULT '';
        ALTER TABLE students ADD COLUMN show_on_leaderboard INTEGER NOT NULL DEFAULT 1;
        CREATE INDEX IF NOT EXISTS idx_students_leaderboard ON students(show_on_leaderboard, university_id);
    """),
]


def get_db() -> sqlite3.Connection:
    """Return a DB connection from Flask g, creating if needed."""
    if "db" not in g:
        db_url = current_app.config.get("DATABASE", DEFAULT_DATABASE)
        g.db = sqlite3.connect(db_url)
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA journal_mode=WAL")
        g.db.execute("PRAGMA foreign_keys=ON")
    return g.db


def close_db(e=None) -> None:
    """Teardown handler: close DB connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    Uses file-based locking to prevent race conditions when multiple
    workers start simultaneously.
    """
    db_url = current_app.config.get("DATABASE", DEFAULT_DATABASE)
    lock_file = None

    if db_url != ":memory:":
        lock_path = Path(db_url).with_suffix(".migration.lock")
        try:
            lock_file = open(lock_path, "w")
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        except OSError:
            lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            # ALTER TABLE has no IF NOT EXISTS, so run statements one by one
            for statement in (s.strip() for s in sql.split(";")):
                if not statement:
                    continue
                try:
                    db.execute(statement)
                except sqlite3.OperationalError as e:
                    if "duplicate column" not in str(e).lower():
                        raise
            db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, datetime.now().isoformat()),
            )
            db.commit()
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def init_app(app) -> None:
    """Register teardown and create / migrate the schema."""
    app.teardown_appcontext(close_db)

    with app.app_context():
        init_db()
        run_migrations()
