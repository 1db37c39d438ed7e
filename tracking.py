"""
Time Tracking: browser-extension sessions, stats and assignment progress.

Functions:
  - start_session(): open a session, find-or-create its assignment, stamp activity.
  - end_session(): close the student's open sessions and check session badges.
  - student_stats(): hours tracked today and this week.
  - assignment_progress(): hours tracked against the estimate, with a status colour.
  - complete_assignment(): mark done, score the estimate, award badges.

All functions need an app context.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from db_stores import AssignmentStoreDB, StudentStoreDB, TimeLogStoreDB
from models import ActivityRecord
from status_detector import StudentStatusDetector
from status_store import StatusStoreDB

logger = logging.getLogger(__name__)

DEFAULT_ESTIMATED_HOURS = 5.0
AUTO_ASSIGNMENT_DUE_DAYS = 7


def _badges_enabled() -> bool:
    return current_app.config.get("FEATURE_FLAGS", {}).get("badges", True)


def start_session(student_id: int, site_name: str | None = None,
                  assignment_title: str | None = None, url: str | None = None,
                  assignment_id: int | None = None,
                  started_at: datetime | None = None) -> ActivityRecord:
    """Open a tracking session. Raises StudentNotFound."""
    StudentStoreDB.get(student_id)
    started_at = started_at or datetime.now()

    if assignment_id is None and url:
        assignments = AssignmentStoreDB(student_id)
        assignment = assignments.by_canvas_url(url)
        if assignment is None:
            assignment = assignments.add(
                title=assignment_title or url,
                due_date=datetime.now() + timedelta(days=AUTO_ASSIGNMENT_DUE_DAYS),
                estimated_hours=DEFAULT_ESTIMATED_HOURS,
                canvas_url=url,
            )
            logger.info("Auto-created assignment %s from %s", assignment.id, url,
                        extra={"student_id": student_id})
        assignment_id = assignment.id

    record = TimeLogStoreDB(student_id).start(
        started_at,
        site_name=site_name or "",
        assignment_title=assignment_title or "",
        url=url or "",
        assignment_id=assignment_id,
    )

    StudentStatusDetector(StatusStoreDB()).record_lms_activity(student_id, site_name)
    return record


def end_session(student_id: int, duration_minutes: int) -> Optional[dict]:
    """Finalize open sessions. Returns None when nothing was being tracked."""
    finished = TimeLogStoreDB(student_id).finish_active(duration_minutes, datetime.now())
    if not finished:
        return None

    record = finished[-1]
    badges = []
    if _badges_enabled():
        from badges import award_session_badges
        badges = award_session_badges(record)

    return {"log": record.to_dict(), "closed_sessions": len(finished), "badges": badges}


def student_stats(student_id: int) -> dict:
    logs = TimeLogStoreDB(student_id)
    return {
        "today_hours": round(logs.hours_today(), 2),
        "week_hours": round(logs.hours_this_week(), 2),
    }


def assignment_progress(assignment_id: int) -> dict:
    """Progress towards the estimate. Raises AssignmentNotFound."""
    assignment = AssignmentStoreDB.get(assignment_id)
    hours_tracked = AssignmentStoreDB.hours_tracked(assignment_id)
    estimated = assignment.estimated_hours or DEFAULT_ESTIMATED_HOURS
    progress = min(hours_tracked / estimated * 100, 100)

    days_until_due = None
    if assignment.due_date is not None:
        days_until_due = math.ceil((assignment.due_date - datetime.now()).total_seconds() / 86400)

    status = "on-track"
    if days_until_due is not None:
        if progress < 50 and days_until_due <= 2:
            status = "behind"
        elif progress < 75 and days_until_due <= 3:
            status = "warning"

    return {
        "assignment_id": assignment.id,
        "assignment_title": assignment.title,
        "hours_tracked": round(hours_tracked, 1),
        "estimated_hours": round(estimated, 1),
        "hours_remaining": round(max(0.0, estimated - hours_tracked), 1),
        "progress_percent": round(progress),
        "days_until_due": days_until_due,
        "due_date": assignment.due_date.isoformat() if assignment.due_date else "",
        "status": status,
    }


def estimate_verdict(accuracy: int) -> str:
    if 90 < accuracy < 110:
        return "Very accurate!"
    if accuracy < 90:
        return "Took less time than expected"
    return "Took more time than expected"


def complete_assignment(assignment_id: int, actual_hours: float) -> dict:
    """Mark an assignment done. Raises AssignmentNotFound."""
    assignment = AssignmentStoreDB.mark_complete(assignment_id, actual_hours)

    accuracy = 0
    if assignment.estimated_hours:
        accuracy = round(actual_hours / assignment.estimated_hours * 100)

    badges = []
    if _badges_enabled():
        from badges import award_assignment_badges
        badges = award_assignment_badges(assignment)

    return {
        "assignment": assignment.to_dict(),
        "accuracy": f"{accuracy}% accurate",
        "was_estimate": estimate_verdict(accuracy),
        "badges": badges,
    }
