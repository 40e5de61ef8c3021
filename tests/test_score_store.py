"""
Score Store Tests - Judging Leaderboard Engine
tests/test_score_store.py

Tests for the in-memory score record store and leaderboard snapshot store.
"""
import logging
import threading
from datetime import timedelta

from judging.models.leaderboard import Leaderboard
from judging.services.score_store import InMemoryScoreRecordStore, LeaderboardSnapshotStore


class TestInMemoryScoreRecordStore:
    """Tests for whole-record replacement and point-in-time reads."""

    def test_upsert_and_get(self, score_store, make_record):
        record = make_record("judge-a", {"quality": 80})
        assert score_store.upsert(record) is None
        assert score_store.get("sub-a1", "judge-a") == record
        assert score_store.get("sub-a1", "judge-z") is None

    def test_upsert_replaces_whole_record(self, score_store, make_record):
        first = make_record("judge-a", {"quality": 80, "creativity": 60})
        second = make_record("judge-a", {"quality": 50})
        score_store.upsert(first)
        replaced = score_store.upsert(second)

        assert replaced == first
        assert score_store.get("sub-a1", "judge-a").values.keys() == {"quality"}
        assert len(score_store) == 1

    def test_upsert_logs_message(self, score_store, make_record, caplog):
        with caplog.at_level(logging.DEBUG, logger="judging.services.score_store"):
            score_store.upsert(make_record("judge-a", {"quality": 80}))
            score_store.upsert(make_record("judge-a", {"quality": 90}))
        messages = [r.getMessage() for r in caplog.records if r.name == "judging.services.score_store"]
        assert messages == [
            "Score record stored: submission=sub-a1 judge=judge-a",
            "Score record replaced: submission=sub-a1 judge=judge-a",
        ]

    def test_delete(self, score_store, make_record):
        score_store.upsert(make_record("judge-a", {"quality": 80}))
        assert score_store.delete("sub-a1", "judge-a")
        assert not score_store.delete("sub-a1", "judge-a")
        assert len(score_store) == 0

    def test_for_submissions(self, score_store, make_record):
        score_store.upsert(make_record("judge-b", {"quality": 70}, submission_id="sub-1"))
        score_store.upsert(make_record("judge-a", {"quality": 80}, submission_id="sub-1"))
        score_store.upsert(make_record("judge-a", {"quality": 90}, submission_id="sub-2"))

        result = score_store.for_submissions(["sub-1", "sub-3"])
        assert [r.judge_id for r in result["sub-1"]] == ["judge-a", "judge-b"]
        assert result["sub-3"] == []
        assert "sub-2" not in result
        assert len(score_store.for_submission("sub-2")) == 1

    def test_for_event_and_judge(self, score_store, make_record):
        score_store.upsert(make_record("judge-a", {"quality": 80}, submission_id="sub-2"))
        score_store.upsert(make_record("judge-a", {"quality": 80}, submission_id="sub-1"))
        score_store.upsert(make_record("judge-b", {"quality": 80}, submission_id="sub-1", event_id="evt-other"))

        assert [r.submission_id for r in score_store.for_event("evt-hackathon-2026")] == ["sub-1", "sub-2"]
        assert [r.submission_id for r in score_store.for_judge("judge-a")] == ["sub-1", "sub-2"]

    def test_concurrent_writers(self, make_record):
        store = InMemoryScoreRecordStore()
        records = [make_record(f"judge-{i}", {"quality": i}) for i in range(50)]
        threads = [threading.Thread(target=store.upsert, args=(r,)) for r in records]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store.for_submission("sub-a1")) == 50


class TestLeaderboardSnapshotStore:
    """Tests for snapshot persistence."""

    def test_latest_and_ordering(self, event_id, base_time):
        store = LeaderboardSnapshotStore()
        later = Leaderboard(id="lb-2", event_id=event_id, calculated_at=base_time + timedelta(hours=1))
        earlier = Leaderboard(id="lb-1", event_id=event_id, calculated_at=base_time)
        store.save(later)
        store.save(earlier)

        assert store.latest(event_id).id == "lb-2"
        assert [b.id for b in store.for_event(event_id)] == ["lb-1", "lb-2"]
        assert store.latest("evt-none") is None

    def test_latest_per_event(self, base_time):
        store = LeaderboardSnapshotStore()
        store.save(Leaderboard(id="a1", event_id="e-a", calculated_at=base_time + timedelta(days=2)))
        store.save(Leaderboard(id="b1", event_id="e-b", calculated_at=base_time))
        store.save(Leaderboard(id="b2", event_id="e-b", calculated_at=base_time + timedelta(days=1)))

        assert [b.id for b in store.latest_per_event()] == ["b2", "a1"]
        assert [b.id for b in store.latest_per_event(["e-a", "e-missing"])] == ["a1"]
