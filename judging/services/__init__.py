"""
Services module for the Judging Leaderboard Engine.
"""

from judging.services.cache import get_cache
from judging.services.redis_cache import RedisCache
from judging.services.score_store import (
    InMemoryScoreRecordStore,
    LeaderboardSnapshotStore,
    ScoreRecordStore,
    get_score_store,
    get_snapshot_store,
)
from judging.services.leaderboard_service import LeaderboardService, get_leaderboard_service
