"""Tests for db_stores.py: students, profiles, assignments, time logs, badges."""

from __future__ import annotations

from datetime import datetime, date, timedelta, timezone

import pytest


class TestStudentStoreDB:
    def test_create_adds_default_profile(self, student):
        from db_stores import ProfileStoreDB
        profile = ProfileStoreDB(student.id).load()
        assert profile.writing_speed == 250
        assert profile.reading_speed == 30
        assert profile.problem_solving_speed == 5
        assert profile.procrastination_factor == 1.0
        assert profile.peak_hours == "10:00 - 14:00"

    def test_get_missing(self, app):
        from db_stores import StudentStoreDB
        from errors import StudentNotFound
        with pytest.raises(StudentNotFound) as exc:
            StudentStoreDB.get(12)
        assert exc.value.student_id == 12

    def test_duplicate_email_rejected(self, student, university):
        import sqlite3
        from db_stores import StudentStoreDB
        with pytest.raises(sqlite3.IntegrityError):
            StudentStoreDB.create("Again", "student@test.edu", university_id=university)

    def test_set_status_override(self, student):
        from db_stores import StudentStoreDB
        StudentStoreDB.set_status(student.id, "graduated_confirmed")
        assert StudentStoreDB.get(student.id).account_status == "graduated_confirmed"

    def test_set_status_rejects_unknown(self, student):
        from db_stores import StudentStoreDB
        with pytest.raises(ValueError):
            StudentStoreDB.set_status(student.id, "expelled")

    def test_to_dict(self, student):
        data = student.to_dict()
        assert data["codename"] == "Falcon"
        assert data["last_lms_activity"] == ""
        assert data["show_on_leaderboard"] is True


class TestProfileStoreDB:
    def test_update(self, student):
        from db_stores import ProfileStoreDB
        store = ProfileStoreDB(student.id)
        store.update(reading_speed=45, procrastination_factor=1.4, writing_speed=None)
        profile = store.load()
        assert profile.reading_speed == 45
        assert profile.procrastination_factor == 1.4
        assert profile.writing_speed == 250

    def test_invalid_speed_not_written(self, student):
        from db_stores import ProfileStoreDB
        from errors import InvalidProfile
        store = ProfileStoreDB(student.id)
        with pytest.raises(InvalidProfile):
            store.update(problem_solving_speed=0)
        assert store.load().problem_solving_speed == 5

    def test_unknown_field(self, student):
        from db_stores import ProfileStoreDB
        with pytest.raises(TypeError):
            ProfileStoreDB(student.id).update(typing_speed=90)

    def test_missing_student(self, app):
        from db_stores import ProfileStoreDB
        from errors import StudentNotFound
        with pytest.raises(StudentNotFound):
            ProfileStoreDB(77).load()


class TestAssignmentStoreDB:
    def test_add_and_get(self, student):
        from db_stores import AssignmentStoreDB
        due = datetime(2026, 4, 1, 23, 59)
        created = AssignmentStoreDB(student.id).add(
            "Lab report", due, assignment_type="essay", word_count=1500,
        )
        loaded = AssignmentStoreDB.get(created.id)
        assert loaded.title == "Lab report"
        assert loaded.due_date == due
        assert loaded.size_metric == 1500
        assert loaded.is_completed is False

    def test_get_missing(self, app):
        from db_stores import AssignmentStoreDB
        from errors import AssignmentNotFound
        with pytest.raises(AssignmentNotFound):
            AssignmentStoreDB.get(5)

    def test_by_canvas_url(self, student):
        from db_stores import AssignmentStoreDB
        store = AssignmentStoreDB(student.id)
        url = "https://school.instructure.com/courses/1/assignments/9"
        added = store.add("Quiz", datetime(2026, 4, 1), canvas_url=url)
        assert store.by_canvas_url(url).id == added.id
        assert store.by_canvas_url("https://elsewhere") is None

    def test_all_ordered_by_due_date(self, student):
        from db_stores import AssignmentStoreDB
        store = AssignmentStoreDB(student.id)
        store.add("Later", datetime(2026, 5, 1))
        store.add("Sooner", datetime(2026, 4, 1))
        assert [a.title for a in store.all()] == ["Sooner", "Later"]

    def test_mark_complete(self, student):
        from db_stores import AssignmentStoreDB
        store = AssignmentStoreDB(student.id)
        added = store.add("Reading", datetime(2026, 4, 1), estimated_hours=2.0)
        done = AssignmentStoreDB.mark_complete(added.id, 1.5)
        assert done.is_completed is True
        assert done.actual_hours == 1.5
        assert done.completed_at is not None
        assert store.completed_count() == 1

    def test_mark_complete_missing(self, app):
        from db_stores import AssignmentStoreDB
        from errors import AssignmentNotFound
        with pytest.raises(AssignmentNotFound):
            AssignmentStoreDB.mark_complete(5, 1.0)


class TestTimeLogStoreDB:
    def test_start_and_finish(self, student):
        from db_stores import TimeLogStoreDB
        logs = TimeLogStoreDB(student.id)
        started = datetime.now() - timedelta(minutes=45)
        record = logs.start(started, site_name="moodle.org", assignment_title="Chapter 4")
        assert record.is_active is True
        assert logs.active()[0].id == record.id

        finished = logs.finish_active(45, datetime.now())
        assert len(finished) == 1
        assert finished[0].duration_minutes == 45
        assert finished[0].is_active is False
        assert logs.active() == []

    def test_finish_closes_every_open_session(self, student):
        from db_stores import TimeLogStoreDB
        logs = TimeLogStoreDB(student.id)
        logs.start(datetime.now())
        logs.start(datetime.now())
        assert len(logs.finish_active(10, datetime.now())) == 2

    def test_finish_with_nothing_open(self, student):
        from db_stores import TimeLogStoreDB
        assert TimeLogStoreDB(student.id).finish_active(10, datetime.now()) == []

    def test_hours_since(self, student):
        from db_stores import TimeLogStoreDB
        logs = TimeLogStoreDB(student.id)
        logs.start(datetime(2026, 3, 10, 9))
        logs.finish_active(90, datetime(2026, 3, 10, 10, 30))
        logs.start(datetime(2026, 3, 1, 9))
        logs.finish_active(60, datetime(2026, 3, 1, 10))
        assert logs.hours_since(datetime(2026, 3, 5)) == 1.5

    def test_aware_start_is_stored_as_local_time(self, student, db):
        from db_stores import TimeLogStoreDB
        aware = datetime(2026, 3, 10, 9, tzinfo=timezone.utc)
        record = TimeLogStoreDB(student.id).start(aware)
        row = db.execute("SELECT session_start FROM time_logs WHERE id = ?", (record.id,)).fetchone()
        assert row["session_start"] == aware.astimezone().replace(tzinfo=None).isoformat()
        assert record.session_start.tzinfo is None

    def test_week_start_is_monday(self):
        from db_stores import week_start
        assert week_start(date(2026, 3, 18)) == date(2026, 3, 16)
        assert week_start(date(2026, 3, 16)) == date(2026, 3, 16)
        assert week_start(date(2026, 3, 22)) == date(2026, 3, 16)


class TestBadgeStoreDB:
    def test_award_and_lookup(self, student):
        from db_stores import AssignmentStoreDB, BadgeStoreDB
        assignment = AssignmentStoreDB(student.id).add("Essay", datetime(2026, 4, 1))
        store = BadgeStoreDB(student.id)
        badge = store.award("early_bird", "Early Bird", "Done early", assignment.id)
        assert badge["badge_type"] == "early_bird"
        assert store.has_for_assignment("early_bird", assignment.id)
        assert store.has_ever("early_bird")
        assert store.has_today("early_bird")
        assert not store.has_ever("night_owl")
        assert len(store.all()) == 1
