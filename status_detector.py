"""Student Status Detection.

Estimates whether a student is still studying from the shape of their
recent tracked activity, and flags accounts that look like they belong to
someone who has graduated.

Scoring starts at 100 and subtracts a fixed weight for every signal that
fires. Signals, weights and thresholds live in ``SIGNAL_RULES`` and the
module constants below. Keyword and domain matching is a plain
case-insensitive substring search with no stemming or locale handling, so
"final" also matches "finally" and "class" matches "classified".

Runs entirely in the background: analyses are triggered by the nightly
sweep (see scheduler.py) and by admin-enqueued sweeps (see tasks.py).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from errors import PartialSweepFailure
from models import (
    ACCOUNT_STATUSES,
    STATUS_ACTIVE,
    STATUS_GRADUATED_SUSPECTED,
    STATUS_INACTIVE,
    ActivityRecord,
    AnalysisResult,
    StatusSummary,
    SweepReport,
)
from status_store import StatusRepository, StatusStoreDB

logger = logging.getLogger(__name__)


ACADEMIC_KEYWORDS = (
    "essay", "assignment", "homework", "exam", "quiz", "midterm", "final",
    "chapter", "reading", "lab report", "problem set", "thesis", "dissertation",
    "lecture", "notes", "study guide", "textbook", "syllabus", "professor",
    "class", "course", "semester", "grade", "gpa", "credit", "major", "minor",
)

WORK_KEYWORDS = (
    "invoice", "meeting", "quarterly", "q1", "q2", "q3", "q4", "client",
    "project plan", "stakeholder", "deliverable", "sprint", "standup",
    "performance review", "pto", "expense", "budget", "vendor", "contract",
    "sales", "revenue", "forecast", "pipeline", "roi", "kpi", "metrics",
)

LMS_DOMAINS = (
    "instructure.com", "blackboard.com", "moodle", "brightspace",
    "schoology.com", "canvas", "d2l.com",
)

STARTING_CONFIDENCE = 100
ACTIVITY_WINDOW_DAYS = 90
LMS_WINDOW_DAYS = 60

# Document titles
MIN_WORK_DOCUMENTS = 3

# Schedule: weekdays in [9, 17) are business hours; weekends, >= 18 and
# < 9 are student hours. 17:00-17:59 on a weekday counts as neither.
BUSINESS_HOURS_START = 9
BUSINESS_HOURS_END = 17
EVENING_START = 18
MIN_SCHEDULE_SAMPLES = 10
BUSINESS_HOURS_RATIO = 0.8

# (inclusive upper bound, status), checked in order. A bare inactivity
# penalty leaves exactly 60, which must read as inactive.
STATUS_THRESHOLDS = (
    (29, STATUS_GRADUATED_SUSPECTED),
    (60, STATUS_INACTIVE),
)


def is_lms_site(site_name: str | None) -> bool:
    site = (site_name or "").lower()
    return any(domain in site for domain in LMS_DOMAINS)


def _mentions(title: str, keywords: Iterable[str]) -> bool:
    return any(kw in title for kw in keywords)


# ── Signals ──────────────────────────────────────────────────────────


def no_lms_activity(records: list[ActivityRecord], now: datetime) -> bool:
    """True when none of the last 60 days' sessions were on an LMS."""
    cutoff = now - timedelta(days=LMS_WINDOW_DAYS)
    for record in records:
        ts = record.timestamp
        if ts is None or ts < cutoff:
            continue
        if is_lms_site(record.site_name):
            return False
    return True


def work_document_patterns(records: list[ActivityRecord], now: datetime) -> bool:
    """True when work-like document titles outnumber academic ones."""
    academic = 0
    work = 0
    for record in records:
        title = (record.assignment_title or "").lower()
        if _mentions(title, ACADEMIC_KEYWORDS):
            academic += 1
        if _mentions(title, WORK_KEYWORDS):
            work += 1
    return work > academic and work >= MIN_WORK_DOCUMENTS


def work_schedule_patterns(records: list[ActivityRecord], now: datetime) -> bool:
    """True when more than 80% of classified sessions fall in 9-5 weekday hours."""
    business = 0
    student = 0
    for record in records:
        ts = record.timestamp
        if ts is None:
            continue
        weekend = ts.weekday() >= 5
        if not weekend and BUSINESS_HOURS_START <= ts.hour < BUSINESS_HOURS_END:
            business += 1
        elif weekend or ts.hour >= EVENING_START or ts.hour < BUSINESS_HOURS_START:
            student += 1

    total = business + student
    if total < MIN_SCHEDULE_SAMPLES:
        return False
    return business / total > BUSINESS_HOURS_RATIO


@dataclass(frozen=True)
class SignalRule:
    name: str
    weight: int
    fires: Callable[[list[ActivityRecord], datetime], bool]


# Evaluated only when the student has activity in the window.
SIGNAL_RULES = (
    SignalRule("no_lms_activity", 25, no_lms_activity),
    SignalRule("work_document_patterns", 20, work_document_patterns),
    SignalRule("work_schedule_patterns", 15, work_schedule_patterns),
)

# Replaces the rules above when the window is empty.
INACTIVITY_RULE_NAME = "extended_inactivity"
INACTIVITY_WEIGHT = 40


def status_for_confidence(confidence: int) -> str:
    for upper, status in STATUS_THRESHOLDS:
        if confidence <= upper:
            return status
    return STATUS_ACTIVE


def score_activity(records: list[ActivityRecord], now: datetime) -> tuple[dict, int]:
    """Evaluate every rule against ``records``; returns (signals, confidence)."""
    signals = {rule.name: False for rule in SIGNAL_RULES}
    signals[INACTIVITY_RULE_NAME] = False
    confidence = STARTING_CONFIDENCE

    if not records:
        signals[INACTIVITY_RULE_NAME] = True
        confidence -= INACTIVITY_WEIGHT
    else:
        for rule in SIGNAL_RULES:
            if rule.fires(records, now):
                signals[rule.name] = True
                confidence -= rule.weight

    confidence = max(0, min(100, confidence))
    signals["confidence_score"] = confidence
    return signals, confidence


# ── Detector ─────────────────────────────────────────────────────────


class StudentStatusDetector:
    """Classifies students as active / inactive / graduated_suspected.

    The repository supplies activity snapshots and persists results; the
    clock is injectable so analyses can be replayed at a fixed time.
    """

    def __init__(self, repository: StatusRepository,
                 clock: Callable[[], datetime] = datetime.now):
        self.repository = repository
        self.clock = clock

    def analyze_student(self, student_id: int) -> AnalysisResult:
        """Score a student's last 90 days of activity and store the verdict.

        Raises StudentNotFound when the repository has no such student.
        """
        now = self.clock()
        previous_status = self.repository.get_student(student_id).account_status
        records = self.repository.fetch_recent_activity(
            student_id, now - timedelta(days=ACTIVITY_WINDOW_DAYS),
        )

        signals, confidence = score_activity(records, now)
        new_status = status_for_confidence(confidence)

        self.repository.update_status(student_id, new_status, confidence, signals, now)

        return AnalysisResult(
            student_id=student_id,
            signals=signals,
            confidence_score=confidence,
            new_status=new_status,
            previous_status=previous_status,
        )

    def sweep(self) -> SweepReport:
        """Analyse every active student; one failure never stops the rest."""
        report = SweepReport()
        student_ids = self.repository.list_by_status(STATUS_ACTIVE)

        for student_id in student_ids:
            try:
                result = self.analyze_student(student_id)
            except Exception as e:
                failure = PartialSweepFailure(student_id, e)
                report.failures.append(failure)
                logger.error(
                    "[StatusDetector] Error analyzing student %s: %s", student_id, e,
                    exc_info=True, extra={"student_id": student_id},
                )
                continue

            report.analyzed += 1
            if result.new_status != STATUS_ACTIVE:
                report.changed.append(result)
                logger.info(
                    "[StatusDetector] Student %s changed to %s (confidence: %d%%)",
                    student_id, result.new_status, result.confidence_score,
                    extra={"student_id": student_id},
                )

        logger.info(
            "[StatusDetector] Analyzed %d students, %d status changes, %d failures",
            report.analyzed, len(report.changed), len(report.failures),
        )
        return report

    def analyze_all_students(self) -> list[AnalysisResult]:
        """Run a sweep and return the students that moved away from active."""
        return self.sweep().changed

    def record_lms_activity(self, student_id: int, site_name: str | None) -> None:
        """Stamp last_active, and last_lms_activity too for LMS sites."""
        self.repository.touch_activity(student_id, self.clock(), lms=is_lms_site(site_name))

    def status_summary(self, university_id: int) -> StatusSummary:
        summary = StatusSummary(university_id=university_id)
        for status, count, avg_confidence in self.repository.count_by_status(university_id):
            # Unknown statuses still count towards the total
            summary.counts[status] = summary.counts.get(status, 0) + count
            summary.total += count
            if avg_confidence is not None:
                summary.avg_confidence[status] = round(avg_confidence, 1)
        for status in ACCOUNT_STATUSES:
            summary.counts.setdefault(status, 0)
        return summary


# ── Background job ───────────────────────────────────────────────────


def run_status_sweep(app) -> dict:
    """Job entry point: sweep every active student inside an app context."""
    with app.app_context():
        if not app.config.get("FEATURE_FLAGS", {}).get("status_detection", True):
            logger.info("Status detection disabled, skipping sweep", extra={"job": "status_sweep"})
            return {"analyzed": 0, "changed": [], "failed": [], "skipped": True}

        report = StudentStatusDetector(StatusStoreDB()).sweep()
        return report.to_dict()
