"""Exception types shared by the estimator, detector and stores."""

from __future__ import annotations


class InvalidProfile(ValueError):
    """A profile speed coefficient is zero or negative."""
    pass


class InsufficientInput(ValueError):
    """The size metric for an assignment type is missing or not positive.

    Raised inside the estimator only; callers receive a zero estimate.
    """
    pass


class StudentNotFound(LookupError):
    def __init__(self, student_id: int):
        super().__init__(f"Student {student_id} not found")
        self.student_id = student_id


class AssignmentNotFound(LookupError):
    def __init__(self, assignment_id: int):
        super().__init__(f"Assignment {assignment_id} not found")
        self.assignment_id = assignment_id


class PartialSweepFailure(Exception):
    """One student's analysis failed during a batch sweep."""

    def __init__(self, student_id: int, cause: BaseException):
        super().__init__(f"Analysis failed for student {student_id}: {cause}")
        self.student_id = student_id
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "error": type(self.cause).__name__,
            "message": str(self.cause),
        }
