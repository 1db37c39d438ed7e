"""Personalized Time Estimation.

Turns an assignment's size (words, problems, pages) into an hours estimate
using the student's own speed coefficients, then inflates it by their
procrastination factor.
"""

from __future__ import annotations

import logging

from errors import InsufficientInput
from models import Assignment, EstimateResult, StudentProfile

logger = logging.getLogger(__name__)

RESEARCH_BUFFER = 0.3
EDITING_BUFFER = 0.2
ESSAY_MULTIPLIER = 1.5  # writing + research + editing
MULTI_SESSION_HOURS = 3

MULTI_SESSION_MESSAGE = "Start this assignment TODAY - it will take multiple sessions"
SINGLE_SESSION_MESSAGE = "You can complete this in one focused session"


class TimeEstimator:
    """Stateless estimator; one instance can serve every request."""

    def estimate(self, assignment_type: str, size_metric, profile: StudentProfile) -> EstimateResult:
        """Estimate hours for an assignment of the given type and size.

        A missing or non-positive size metric (or an unsupported type) yields
        a zero estimate with an empty breakdown rather than an error.
        Raises InvalidProfile when a speed coefficient is not positive.
        """
        profile.validate()

        try:
            base_hours, breakdown = self._base_hours(assignment_type, size_metric, profile)
        except InsufficientInput as e:
            logger.debug("Zero estimate: %s", e)
            base_hours, breakdown = 0.0, {}

        final_hours = base_hours * profile.procrastination_factor

        return EstimateResult(
            hours_estimate=round(final_hours, 2),
            breakdown=breakdown,
            recommendation=(
                MULTI_SESSION_MESSAGE if final_hours > MULTI_SESSION_HOURS
                else SINGLE_SESSION_MESSAGE
            ),
            procrastination_buffer=f"{(profile.procrastination_factor - 1) * 100:.0f}%",
            peak_productivity_hours=profile.peak_hours,
        )

    def estimate_assignment(self, assignment: Assignment, profile: StudentProfile) -> EstimateResult:
        return self.estimate(assignment.assignment_type, assignment.size_metric, profile)

    def _base_hours(self, assignment_type: str, size_metric, profile: StudentProfile) -> tuple[float, dict]:
        if not size_metric or size_metric <= 0:
            raise InsufficientInput(f"no size metric for {assignment_type!r}")

        if assignment_type == "essay":
            writing = size_metric / profile.writing_speed
            return writing * ESSAY_MULTIPLIER, {
                "writing": round(writing, 2),
                "research": round(writing * RESEARCH_BUFFER, 2),
                "editing": round(writing * EDITING_BUFFER, 2),
                "writing_speed": profile.writing_speed,
            }

        if assignment_type == "problem_set":
            base = size_metric / profile.problem_solving_speed
            return base, {
                "problems": size_metric,
                "speed": f"{profile.problem_solving_speed:g} problems/hour",
                "base_hours": round(base, 2),
            }

        if assignment_type == "reading":
            base = size_metric / profile.reading_speed
            return base, {
                "pages": size_metric,
                "speed": f"{profile.reading_speed:g} pages/hour",
                "base_hours": round(base, 2),
            }

        raise InsufficientInput(f"unsupported assignment type {assignment_type!r}")


def estimate_for_student(student_id: int, assignment_type: str, size_metric) -> EstimateResult:
    """Estimate using the stored profile. Raises StudentNotFound."""
    from db_stores import ProfileStoreDB

    profile = ProfileStoreDB(student_id).load()
    return TimeEstimator().estimate(assignment_type, size_metric, profile)
