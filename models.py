"""
Student, profile, activity and result records.

Plain dataclasses shared by the estimator, the status detector and the
stores. Stores build them from rows; the request layer turns results back
into JSON through ``to_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional

from errors import InvalidProfile

# Account statuses. The detector only moves students between the first
# three; the last two are set by an administrator.
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_GRADUATED_SUSPECTED = "graduated_suspected"
STATUS_GRADUATED_CONFIRMED = "graduated_confirmed"
STATUS_DORMANT = "dormant"

ACCOUNT_STATUSES = (
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    STATUS_GRADUATED_SUSPECTED,
    STATUS_GRADUATED_CONFIRMED,
    STATUS_DORMANT,
)

ASSIGNMENT_TYPES = ("essay", "problem_set", "reading")


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a stored ISO timestamp, returning None for blanks or garbage."""
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    # Everything is compared as naive local time
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def format_timestamp(value: datetime) -> str:
    """Naive local ISO string, so stored values compare lexicographically."""
    return parse_timestamp(value).isoformat()


# ── Student ──────────────────────────────────────────────────────────


@dataclass
class StudentProfile:
    writing_speed: float = 250      # words / hour
    reading_speed: float = 30       # pages / hour
    problem_solving_speed: float = 5  # problems / hour
    procrastination_factor: float = 1.0
    peak_hour_start: int = 10
    peak_hour_end: int = 14
    student_id: Optional[int] = None

    def validate(self) -> None:
        for name in ("writing_speed", "reading_speed", "problem_solving_speed"):
            value = getattr(self, name)
            if value is None or value <= 0:
                raise InvalidProfile(f"{name} must be positive, got {value!r}")

    @property
    def peak_hours(self) -> str:
        return f"{self.peak_hour_start}:00 - {self.peak_hour_end}:00"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Student:
    id: int
    name: str = ""
    email: str = ""
    university_id: Optional[int] = None
    account_status: str = STATUS_ACTIVE
    status_confidence: int = 100
    graduation_signals: dict = field(default_factory=dict)
    last_lms_activity: Optional[datetime] = None
    last_active: Optional[datetime] = None
    codename: str = ""
    show_on_leaderboard: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_lms_activity"] = _iso(self.last_lms_activity)
        data["last_active"] = _iso(self.last_active)
        return data


# ── Activity ─────────────────────────────────────────────────────────


@dataclass
class ActivityRecord:
    """One browser-extension tracking session (a row of time_logs)."""
    student_id: int
    session_start: Optional[datetime] = None
    session_end: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    site_name: Optional[str] = None
    assignment_title: Optional[str] = None
    url: Optional[str] = None
    assignment_id: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        """When the session was recorded; session start, else row creation."""
        return self.session_start or self.created_at

    @property
    def duration_hours(self) -> float:
        return (self.duration_minutes or 0) / 60.0

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("session_start", "session_end", "created_at"):
            data[key] = _iso(getattr(self, key))
        return data


@dataclass
class Assignment:
    id: int
    student_id: int
    title: str = ""
    assignment_type: str = ""
    course_name: str = ""
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    word_count: Optional[int] = None
    problem_count: Optional[int] = None
    page_count: Optional[int] = None
    canvas_url: str = ""
    created_at: Optional[datetime] = None

    @property
    def size_metric(self) -> Optional[int]:
        """The size field that matches this assignment's type."""
        return {
            "essay": self.word_count,
            "problem_set": self.problem_count,
            "reading": self.page_count,
        }.get(self.assignment_type)

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("due_date", "completed_at", "created_at"):
            data[key] = _iso(getattr(self, key))
        return data


# ── Results ──────────────────────────────────────────────────────────


@dataclass
class EstimateResult:
    hours_estimate: float = 0.0
    breakdown: dict = field(default_factory=dict)
    recommendation: str = ""
    procrastination_buffer: str = "0%"
    peak_productivity_hours: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.breakdown

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AnalysisResult:
    student_id: int
    signals: dict
    confidence_score: int
    new_status: str
    previous_status: str = STATUS_ACTIVE

    @property
    def changed(self) -> bool:
        return self.new_status != self.previous_status

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StatusSummary:
    university_id: int
    counts: dict[str, int] = field(default_factory=lambda: {s: 0 for s in ACCOUNT_STATUSES})
    avg_confidence: dict[str, float] = field(default_factory=dict)
    total: int = 0

    def to_dict(self) -> dict:
        data = dict(self.counts)
        data["total"] = self.total
        data["avg_confidence"] = dict(self.avg_confidence)
        data["university_id"] = self.university_id
        return data


@dataclass
class SweepReport:
    analyzed: int = 0
    changed: list[AnalysisResult] = field(default_factory=list)
    failures: list = field(default_factory=list)  # PartialSweepFailure

    def to_dict(self) -> dict:
        return {
            "analyzed": self.analyzed,
            "changed": [r.to_dict() for r in self.changed],
            "failed": [f.to_dict() for f in self.failures],
        }
