"""Tests for tracking.py: extension sessions, stats, progress and completion."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

CANVAS_URL = "https://school.instructure.com/courses/3/assignments/11"


class TestStartSession:
    def test_creates_assignment_from_url(self, student):
        from db_stores import AssignmentStoreDB
        from tracking import start_session
        record = start_session(student.id, site_name="school.instructure.com",
                               assignment_title="Essay 2", url=CANVAS_URL)
        assignment = AssignmentStoreDB(student.id).by_canvas_url(CANVAS_URL)
        assert record.assignment_id == assignment.id
        assert assignment.title == "Essay 2"
        assert assignment.estimated_hours == 5.0
        assert record.is_active is True

    def test_reuses_assignment_for_same_url(self, student):
        from db_stores import AssignmentStoreDB
        from tracking import start_session
        first = start_session(student.id, url=CANVAS_URL)
        second = start_session(student.id, url=CANVAS_URL)
        assert first.assignment_id == second.assignment_id
        assert len(AssignmentStoreDB(student.id).all()) == 1

    def test_lms_site_stamps_lms_activity(self, student):
        from db_stores import StudentStoreDB
        from tracking import start_session
        start_session(student.id, site_name="school.instructure.com")
        assert StudentStoreDB.get(student.id).last_lms_activity is not None

    def test_other_site_leaves_lms_activity(self, student):
        from db_stores import StudentStoreDB
        from tracking import start_session
        start_session(student.id, site_name="docs.google.com")
        assert StudentStoreDB.get(student.id).last_lms_activity is None

    def test_unknown_student(self, app):
        from errors import StudentNotFound
        from tracking import start_session
        with pytest.raises(StudentNotFound):
            start_session(404, site_name="canvas.net")


class TestEndSession:
    def test_nothing_active(self, student):
        from tracking import end_session
        assert end_session(student.id, 30) is None

    def test_closes_and_reports(self, student):
        from tracking import end_session, start_session
        start_session(student.id, site_name="docs.google.com")
        result = end_session(student.id, 30)
        assert result["closed_sessions"] == 1
        assert result["log"]["duration_minutes"] == 30
        assert result["log"]["is_active"] is False

    def test_power_session_badge_once_per_day(self, student):
        from tracking import end_session, start_session
        start_session(student.id)
        first = end_session(student.id, 200)
        start_session(student.id)
        second = end_session(student.id, 200)
        assert "power_session" in [b["badge_type"] for b in first["badges"]]
        assert "power_session" not in [b["badge_type"] for b in second["badges"]]

    def test_short_session_is_distracted(self, student):
        from tracking import end_session, start_session
        start_session(student.id)
        result = end_session(student.id, 5)
        assert "distracted" in [b["badge_type"] for b in result["badges"]]

    def test_badges_disabled(self, app, student):
        from tracking import end_session, start_session
        app.config["FEATURE_FLAGS"]["badges"] = False
        start_session(student.id)
        assert end_session(student.id, 200)["badges"] == []


class TestStats:
    def test_today_and_week(self, student):
        from tracking import end_session, start_session, student_stats
        start_session(student.id)
        end_session(student.id, 90)
        stats = student_stats(student.id)
        assert stats == {"today_hours": 1.5, "week_hours": 1.5}

    def test_empty(self, student):
        from tracking import student_stats
        assert student_stats(student.id) == {"today_hours": 0, "week_hours": 0}


class TestAssignmentProgress:
    def _assignment(self, student_id, due_in_days, estimated=10.0):
        from db_stores import AssignmentStoreDB
        return AssignmentStoreDB(student_id).add(
            "Problem set 4", datetime.now() + timedelta(days=due_in_days),
            assignment_type="problem_set", estimated_hours=estimated,
        )

    def _track(self, student_id, assignment_id, minutes):
        from tracking import end_session, start_session
        start_session(student_id, assignment_id=assignment_id)
        end_session(student_id, minutes)

    def test_behind_when_due_soon(self, student):
        from tracking import assignment_progress
        assignment = self._assignment(student.id, due_in_days=1)
        self._track(student.id, assignment.id, 120)
        progress = assignment_progress(assignment.id)
        assert progress["hours_tracked"] == 2.0
        assert progress["progress_percent"] == 20
        assert progress["hours_remaining"] == 8.0
        assert progress["status"] == "behind"

    def test_on_track_with_time_left(self, student):
        from tracking import assignment_progress
        assignment = self._assignment(student.id, due_in_days=10)
        self._track(student.id, assignment.id, 60)
        assert assignment_progress(assignment.id)["status"] == "on-track"

    def test_progress_caps_at_100(self, student):
        from tracking import assignment_progress
        assignment = self._assignment(student.id, due_in_days=10, estimated=1.0)
        self._track(student.id, assignment.id, 180)
        progress = assignment_progress(assignment.id)
        assert progress["progress_percent"] == 100
        assert progress["hours_remaining"] == 0

    def test_missing_assignment(self, app):
        from errors import AssignmentNotFound
        from tracking import assignment_progress
        with pytest.raises(AssignmentNotFound):
            assignment_progress(999)


class TestCompleteAssignment:
    def test_early_fast_first(self, student):
        from db_stores import AssignmentStoreDB
        from tracking import complete_assignment
        assignment = AssignmentStoreDB(student.id).add(
            "Essay", datetime.now() + timedelta(days=5), estimated_hours=10.0,
        )
        result = complete_assignment(assignment.id, 5.0)
        assert result["accuracy"] == "50% accurate"
        assert result["was_estimate"] == "Took less time than expected"
        assert {b["badge_type"] for b in result["badges"]} == {
            "speed_demon", "early_bird", "first_assignment",
        }
        assert result["assignment"]["is_completed"] is True

    def test_first_assignment_awarded_once(self, student):
        from db_stores import AssignmentStoreDB
        from tracking import complete_assignment
        store = AssignmentStoreDB(student.id)
        a = store.add("One", datetime.now(), estimated_hours=2.0)
        b = store.add("Two", datetime.now(), estimated_hours=2.0)
        complete_assignment(a.id, 2.0)
        result = complete_assignment(b.id, 2.0)
        assert result["badges"] == []
        assert result["was_estimate"] == "Very accurate!"

    def test_missing_assignment(self, app):
        from errors import AssignmentNotFound
        from tracking import complete_assignment
        with pytest.raises(AssignmentNotFound):
            complete_assignment(999, 1.0)


class TestEstimateVerdict:
    @pytest.mark.parametrize("accuracy,verdict", [
        (100, "Very accurate!"),
        (50, "Took less time than expected"),
        (150, "Took more time than expected"),
    ])
    def test_verdicts(self, accuracy, verdict):
        from tracking import estimate_verdict
        assert estimate_verdict(accuracy) == verdict
