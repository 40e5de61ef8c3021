"""
Judging Leaderboard Engine

Rubric scoring, multi-judge aggregation, leaderboard ranking and trend
analysis for judged competitions.
"""

__version__ = "1.0.0"
