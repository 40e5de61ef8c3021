"""
Custom Exceptions - Judging Leaderboard Engine
judging/core/exceptions.py

Validation failures carry the full, enumerable list of field errors.
Invariant violations signal programming faults and are not meant to be caught.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from judging.models.validation import ValidationResult


class ScoringEngineException(Exception):
    """Base exception for the scoring engine."""

    pass


class ValidationFailure(ScoringEngineException):
    """Input rejected before any computation ran."""

    def __init__(self, result: "ValidationResult", context: str = "input"):
        self.result = result
        self.context = context
        self.errors = list(result.errors)
        super().__init__(f"Invalid {context}: " + "; ".join(result.messages))


class RubricValidationError(ValidationFailure):
    """Rubric failed validation."""

    def __init__(self, result: "ValidationResult"):
        super().__init__(result, context="rubric")


class ScoreValidationError(ValidationFailure):
    """Score record(s) failed validation against their rubric."""

    def __init__(self, result: "ValidationResult"):
        super().__init__(result, context="score record")


class LeaderboardValidationError(ValidationFailure):
    """Ranking input cannot produce a consistent leaderboard."""

    def __init__(self, result: "ValidationResult"):
        super().__init__(result, context="leaderboard input")


class LeaderboardInvariantError(ScoringEngineException):
    """The ranker produced an inconsistent snapshot. Always a bug."""

    def __init__(self, event_id: str, messages: list):
        self.event_id = event_id
        self.messages = list(messages)
        super().__init__(
            f"Leaderboard for event {event_id} violates invariants: " + "; ".join(self.messages)
        )


class HistoryOrderError(ScoringEngineException):
    """Attempt to append a history entry older than the latest one."""

    def __init__(self, team_id: str, message: str = "History entries may only be appended in time order"):
        self.team_id = team_id
        self.message = message
        super().__init__(f"{message} (team {team_id})")
