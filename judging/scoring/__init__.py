"""
scoring/ - Judging Leaderboard Engine

Modules:
    utils.py           - Decimal utilities
    aggregator.py      - Multi-judge Score Aggregator
    ranker.py          - Leaderboard Ranker with deterministic tie-breaks
    trend_analyzer.py  - Score history, trend and position history derivation
"""

from judging.scoring.aggregator import ScoreAggregator, aggregate, validate_scores_against_rubric
from judging.scoring.ranker import LeaderboardRanker, rank_individual_leaderboard, rank_leaderboard
from judging.scoring.trend_analyzer import (
    TrendAnalyzer,
    derive_position_history,
    derive_score_history,
    derive_score_trend,
    position_entries_from_snapshots,
)

__all__ = [
    "LeaderboardRanker",
    "ScoreAggregator",
    "TrendAnalyzer",
    "aggregate",
    "derive_position_history",
    "derive_score_history",
    "derive_score_trend",
    "position_entries_from_snapshots",
    "rank_individual_leaderboard",
    "rank_leaderboard",
    "validate_scores_against_rubric",
]
