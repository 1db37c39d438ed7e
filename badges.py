"""Gamified badges for finished assignments and tracked sessions.

Conditions are pure functions so they can be checked without a database;
the award_* helpers add de-duplication and persistence on top.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from models import ActivityRecord, Assignment

logger = logging.getLogger(__name__)

BADGE_DEFINITIONS = {
    "speed_demon": {
        "name": "Speed Demon",
        "icon": "rocket",
        "message": "Finished way ahead of your estimate. Take the rest of the night off.",
    },
    "early_bird": {
        "name": "Early Bird",
        "icon": "sunrise",
        "message": "Done two days early. Reward yourself.",
    },
    "first_assignment": {
        "name": "First Assignment",
        "icon": "crown",
        "message": "First assignment done. Many more to go.",
    },
    "night_owl": {
        "name": "Night Owl",
        "icon": "owl",
        "message": "It's the middle of the night. Go to bed.",
    },
    "power_session": {
        "name": "Power Session",
        "icon": "bolt",
        "message": "Three hours straight. Go celebrate.",
    },
    "distracted": {
        "name": "Distracted",
        "icon": "tv",
        "message": "Under 12 minutes? Turn off the TV and try again.",
    },
    "touch_grass": {
        "name": "Touch Grass",
        "icon": "seedling",
        "message": "That's enough for today. Touch grass.",
    },
}

SPEED_DEMON_RATIO = 0.7
EARLY_BIRD_DAYS = 2
NIGHT_OWL_HOURS = range(2, 6)   # 02:00 - 05:59
POWER_SESSION_HOURS = 3
DISTRACTED_HOURS = 0.2
TOUCH_GRASS_HOURS = 6

ASSIGNMENT_BADGES = ("speed_demon", "early_bird", "first_assignment")
SESSION_BADGES = ("night_owl", "power_session", "distracted", "touch_grass")


def assignment_badges(assignment: Assignment, completed_count: int,
                      now: Optional[datetime] = None) -> list[str]:
    """Badge ids earned by completing ``assignment``."""
    now = now or assignment.completed_at or datetime.now()
    earned = []

    if (assignment.actual_hours is not None and assignment.estimated_hours
            and assignment.actual_hours < assignment.estimated_hours * SPEED_DEMON_RATIO):
        earned.append("speed_demon")

    if assignment.due_date is not None:
        days_early = (assignment.due_date - now).total_seconds() / 86400
        if days_early >= EARLY_BIRD_DAYS:
            earned.append("early_bird")

    if completed_count == 1:
        earned.append("first_assignment")

    return earned


def session_badges(record: ActivityRecord, hours_today: float) -> list[str]:
    """Badge ids earned by a finished session."""
    earned = []

    if record.session_start is not None and record.session_start.hour in NIGHT_OWL_HOURS:
        earned.append("night_owl")

    if record.duration_minutes is not None:
        hours = record.duration_hours
        if hours >= POWER_SESSION_HOURS:
            earned.append("power_session")
        elif hours < DISTRACTED_HOURS:
            earned.append("distracted")

    if hours_today >= TOUCH_GRASS_HOURS:
        earned.append("touch_grass")

    return earned


def _award(store, badge_id: str, assignment_id: int | None = None) -> dict:
    badge = BADGE_DEFINITIONS[badge_id]
    awarded = store.award(badge_id, badge["name"], badge["message"], assignment_id)
    awarded["icon"] = badge["icon"]
    logger.info("Awarded %s to student %s", badge_id, store.student_id,
                extra={"student_id": store.student_id})
    return awarded


def award_assignment_badges(assignment: Assignment) -> list[dict]:
    """Persist the badges for a just-completed assignment, once each."""
    from db_stores import AssignmentStoreDB, BadgeStoreDB

    store = BadgeStoreDB(assignment.student_id)
    completed = AssignmentStoreDB(assignment.student_id).completed_count()
    awarded = []
    for badge_id in assignment_badges(assignment, completed):
        if badge_id == "first_assignment":
            if store.has_ever(badge_id):
                continue
        elif store.has_for_assignment(badge_id, assignment.id):
            continue
        awarded.append(_award(store, badge_id, assignment.id))
    return awarded


def award_session_badges(record: ActivityRecord) -> list[dict]:
    """Persist the badges for a finished session, at most once per day each."""
    from db_stores import BadgeStoreDB, TimeLogStoreDB

    store = BadgeStoreDB(record.student_id)
    hours_today = TimeLogStoreDB(record.student_id).hours_today()
    awarded = []
    for badge_id in session_badges(record, hours_today):
        if store.has_today(badge_id):
            continue
        awarded.append(_award(store, badge_id))
    return awarded
