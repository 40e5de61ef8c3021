"""
Score Record Store - Judging Leaderboard Engine
judging/services/score_store.py

Storage boundary for score records and leaderboard snapshots.

ScoreRecordStore / LeaderboardSnapshotStore define what the engine needs from
persistence. The in-memory implementations are the reference stores used by
the service and the tests; a database-backed store implements the same
methods.

Records are keyed by (submission_id, judge_id) and always replaced whole, so a
reader never sees half of an update.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from judging.models.leaderboard import Leaderboard
from judging.models.score import ScoreRecord

logger = logging.getLogger(__name__)

RecordKey = Tuple[str, str]


class ScoreRecordStore(ABC):
    """One score record per (submission, judge) pair."""

    @abstractmethod
    def upsert(self, record: ScoreRecord) -> Optional[ScoreRecord]:
        """Store record, replacing any record for the same pair. Returns the replaced record."""

    @abstractmethod
    def get(self, submission_id: str, judge_id: str) -> Optional[ScoreRecord]:
        ...

    @abstractmethod
    def delete(self, submission_id: str, judge_id: str) -> bool:
        ...

    @abstractmethod
    def for_submissions(self, submission_ids: Iterable[str]) -> Dict[str, List[ScoreRecord]]:
        """Point-in-time read of every record for the given submissions."""

    @abstractmethod
    def for_event(self, event_id: str) -> List[ScoreRecord]:
        ...

    def for_submission(self, submission_id: str) -> List[ScoreRecord]:
        return self.for_submissions([submission_id]).get(submission_id, [])


class InMemoryScoreRecordStore(ScoreRecordStore):
    """Thread-safe in-memory store. Writers hold the lock only to swap a record."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[RecordKey, ScoreRecord] = {}

    def upsert(self, record: ScoreRecord) -> Optional[ScoreRecord]:
        key = (record.submission_id, record.judge_id)
        with self._lock:
            previous = self._records.get(key)
            self._records[key] = record
        logger.debug(
            f"Score record {'replaced' if previous is not None else 'stored'}: "
            f"submission={record.submission_id} judge={record.judge_id}"
        )
        return previous

    def get(self, submission_id: str, judge_id: str) -> Optional[ScoreRecord]:
        with self._lock:
            return self._records.get((submission_id, judge_id))

    def delete(self, submission_id: str, judge_id: str) -> bool:
        with self._lock:
            return self._records.pop((submission_id, judge_id), None) is not None

    def for_submissions(self, submission_ids: Iterable[str]) -> Dict[str, List[ScoreRecord]]:
        wanted = set(submission_ids)
        result: Dict[str, List[ScoreRecord]] = {sid: [] for sid in wanted}
        with self._lock:
            snapshot = [r for (sid, _), r in self._records.items() if sid in wanted]
        for record in snapshot:
            result[record.submission_id].append(record)
        for records in result.values():
            records.sort(key=lambda r: r.judge_id)
        return result

    def for_event(self, event_id: str) -> List[ScoreRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.event_id == event_id]
        return sorted(records, key=lambda r: (r.submission_id, r.judge_id))

    def for_judge(self, judge_id: str) -> List[ScoreRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.judge_id == judge_id]
        return sorted(records, key=lambda r: (r.submission_id, r.created_at))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class LeaderboardSnapshotStore:
    """Append-only, per-event list of leaderboard snapshots ordered by calculated_at."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshots: Dict[str, List[Leaderboard]] = defaultdict(list)

    def save(self, leaderboard: Leaderboard) -> None:
        with self._lock:
            snapshots = self._snapshots[leaderboard.event_id]
            snapshots.append(leaderboard)
            snapshots.sort(key=lambda b: (b.calculated_at, b.id))
        logger.info(
            f"Saved leaderboard snapshot {leaderboard.id} for event {leaderboard.event_id} "
            f"({leaderboard.team_count} teams)"
        )

    def latest(self, event_id: str) -> Optional[Leaderboard]:
        with self._lock:
            snapshots = self._snapshots.get(event_id)
            return snapshots[-1] if snapshots else None

    def for_event(self, event_id: str) -> List[Leaderboard]:
        with self._lock:
            return list(self._snapshots.get(event_id, []))

    def latest_per_event(self, event_ids: Optional[Iterable[str]] = None) -> List[Leaderboard]:
        """Most recent snapshot of each event, oldest first."""
        with self._lock:
            keys = list(event_ids) if event_ids is not None else list(self._snapshots)
            boards = [self._snapshots[k][-1] for k in keys if self._snapshots.get(k)]
        return sorted(boards, key=lambda b: (b.calculated_at, b.event_id))


# Singleton
_store: Optional[InMemoryScoreRecordStore] = None
_snapshot_store: Optional[LeaderboardSnapshotStore] = None


def get_score_store() -> InMemoryScoreRecordStore:
    global _store
    if _store is None:
        _store = InMemoryScoreRecordStore()
    return _store


def get_snapshot_store() -> LeaderboardSnapshotStore:
    global _snapshot_store
    if _snapshot_store is None:
        _snapshot_store = LeaderboardSnapshotStore()
    return _snapshot_store
