"""
Core Package - Judging Leaderboard Engine
judging/core/__init__.py

Core infrastructure: exceptions.
"""

from judging.core.exceptions import (
    HistoryOrderError,
    LeaderboardInvariantError,
    LeaderboardValidationError,
    RubricValidationError,
    ScoreValidationError,
    ScoringEngineException,
    ValidationFailure,
)

__all__ = [
    "HistoryOrderError",
    "LeaderboardInvariantError",
    "LeaderboardValidationError",
    "RubricValidationError",
    "ScoreValidationError",
    "ScoringEngineException",
    "ValidationFailure",
]
