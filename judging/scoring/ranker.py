# judging/scoring/ranker.py
"""
Leaderboard Ranker
------------------
Groups aggregated submission scores by team and produces a positioned,
validated Leaderboard snapshot.

Per team:
    average_score     = mean of submission totals
    total_score       = by TeamScorePolicy
                          highest (default): best single submission
                          sum:               Σ submission totals
                          average:           same as average_score
    submission_count  = number of submissions (after exclusions)
    criteria_scores   = per-criterion mean of submission averages

Ordering:
    1. sort field, in the requested direction (scores compared after quantization)
    2. higher submission_count
    3. lexicographically smaller team_id
Steps 2 and 3 do not flip with the sort direction, so the order is total
and identical across runs.

rank_members() ranks submitting members the same way: average_score
descending, total_score = Σ submission totals.
"""
import functools
import structlog
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Set

from judging.config import settings
from judging.core.exceptions import LeaderboardInvariantError, LeaderboardValidationError
from judging.models.enumerations import LeaderboardSortField, TeamScorePolicy
from judging.models.leaderboard import (
    IndividualLeaderboard,
    IndividualLeaderboardEntry,
    Leaderboard,
    LeaderboardEntry,
    LeaderboardFilter,
    LeaderboardSort,
)
from judging.models.score import AggregatedScore
from judging.models.validation import FieldError, ValidationResult
from judging.scoring.utils import ZERO, mean, quantize, to_decimal, to_float

logger = structlog.get_logger(__name__)


@dataclass
class TeamStats:
    """Per-team (or per-member) figures before positions are assigned."""
    team_id: str
    team_name: str
    total_score: Decimal
    average_score: Decimal
    submission_count: int
    criteria_scores: Dict[str, Decimal] = field(default_factory=dict)


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


class LeaderboardRanker:
    """Rank teams (or submitting members) for an event."""

    def __init__(self, policy: Optional[TeamScorePolicy] = None):
        self.policy = policy or TeamScorePolicy(settings.DEFAULT_TEAM_SCORE_POLICY)

    # ------------------------------------------------------------------
    # Input checks
    # ------------------------------------------------------------------

    def validate_input(
        self,
        event_id: str,
        scores_by_team: Mapping[str, Sequence[AggregatedScore]],
        names: Optional[Mapping[str, str]] = None,
        group: str = "team",
    ) -> ValidationResult:
        """
        Check ranking input. group is "team" or "member" and only changes
        field paths and messages.
        """
        errors: List[FieldError] = []
        label = group.capitalize()
        names = names or {}

        if not event_id.strip():
            errors.append(FieldError(field="event_id", message="Event ID is required"))

        owner: Dict[str, str] = {}
        for group_id in sorted(scores_by_team):
            path = f"scores_by_{group}.{group_id}"
            if not group_id.strip():
                errors.append(FieldError(field=f"{group}_id", message=f"{label} ID is required"))

            name = names.get(group_id)
            if name is not None and not name.strip():
                errors.append(FieldError(
                    field=f"{group}_names.{group_id}",
                    message=f"{label} name for {group_id} must not be blank",
                ))

            for score in scores_by_team[group_id]:
                previous = owner.get(score.submission_id)
                if previous is not None and previous != group_id:
                    errors.append(FieldError(
                        field=path,
                        message=f"Submission {score.submission_id} is listed under {group}s {previous} and {group_id}",
                    ))
                elif previous == group_id:
                    errors.append(FieldError(
                        field=path,
                        message=f"Submission {score.submission_id} is listed twice for {group} {group_id}",
                    ))
                owner[score.submission_id] = group_id

                if score.event_id is not None and score.event_id != event_id:
                    errors.append(FieldError(
                        field=path,
                        message=f"Submission {score.submission_id} belongs to event {score.event_id}, not {event_id}",
                    ))

        return ValidationResult.invalid(errors) if errors else ValidationResult.valid()

    # ------------------------------------------------------------------
    # Team statistics
    # ------------------------------------------------------------------

    def team_stats(
        self,
        team_id: str,
        team_name: str,
        scores: Sequence[AggregatedScore],
        policy: Optional[TeamScorePolicy] = None,
    ) -> TeamStats:
        policy = policy or self.policy
        ordered = sorted(scores, key=lambda s: s.submission_id)
        totals = [to_decimal(s.total_score) for s in ordered]

        if not totals:
            return TeamStats(team_id, team_name, ZERO, ZERO, 0)

        average = mean(totals)
        if policy == TeamScorePolicy.SUM:
            total = quantize(sum(totals, ZERO))
        elif policy == TeamScorePolicy.AVERAGE:
            total = average
        else:
            total = max(totals)

        criteria: Dict[str, List[Decimal]] = {}
        for score in ordered:
            for key, value in score.per_criterion_averages.items():
                criteria.setdefault(key, []).append(to_decimal(value))

        return TeamStats(
            team_id=team_id,
            team_name=team_name,
            total_score=total,
            average_score=average,
            submission_count=len(totals),
            criteria_scores={k: mean(v) for k, v in sorted(criteria.items())},
        )

    # ------------------------------------------------------------------
    # Filtering and sorting
    # ------------------------------------------------------------------

    @staticmethod
    def _passes(stats: TeamStats, filter: LeaderboardFilter, team_subset: Optional[Set[str]]) -> bool:
        if filter.min_score is not None and stats.average_score < to_decimal(filter.min_score):
            return False
        if filter.max_score is not None and stats.average_score > to_decimal(filter.max_score):
            return False
        if filter.min_submissions is not None and stats.submission_count < filter.min_submissions:
            return False
        if team_subset is not None and stats.team_id not in team_subset:
            return False
        return True

    @staticmethod
    def _primary(stats: TeamStats, sort_field: LeaderboardSortField):
        if sort_field == LeaderboardSortField.TOTAL_SCORE:
            return stats.total_score
        if sort_field == LeaderboardSortField.SUBMISSION_COUNT:
            return stats.submission_count
        if sort_field == LeaderboardSortField.TEAM_NAME:
            return stats.team_name
        return stats.average_score

    def sort_teams(self, teams: Sequence[TeamStats], sort: LeaderboardSort) -> List[TeamStats]:
        def compare(a: TeamStats, b: TeamStats) -> int:
            primary = _cmp(self._primary(a, sort.field), self._primary(b, sort.field))
            if primary:
                return primary if sort.ascending else -primary
            if a.submission_count != b.submission_count:
                return -_cmp(a.submission_count, b.submission_count)
            return _cmp(a.team_id, b.team_id)

        return sorted(teams, key=functools.cmp_to_key(compare))

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def rank(
        self,
        event_id: str,
        scores_by_team: Mapping[str, Sequence[AggregatedScore]],
        team_names: Optional[Mapping[str, str]] = None,
        filter: Optional[LeaderboardFilter] = None,
        sort: Optional[LeaderboardSort] = None,
        *,
        calculated_at: datetime,
        leaderboard_id: Optional[str] = None,
        policy: Optional[TeamScorePolicy] = None,
    ) -> Leaderboard:
        """
        Args:
            event_id: Event being ranked.
            scores_by_team: team_id → aggregated scores of that team's submissions.
                            A team with no submissions is still ranked, with zeros.
            team_names: team_id → display name (defaults to the team id).
            filter: Optional filters; never alters the scores themselves.
            sort: Sort field and direction (default: average score, descending).
            calculated_at: Snapshot timestamp.

        Raises:
            LeaderboardValidationError: inconsistent input.
            LeaderboardInvariantError: the produced snapshot is inconsistent (a bug).
        """
        self.validate_input(event_id, scores_by_team, team_names).raise_if_invalid(LeaderboardValidationError)

        policy = policy or self.policy
        filter = filter or LeaderboardFilter(exclude_incomplete=settings.EXCLUDE_INCOMPLETE_SUBMISSIONS)
        sort = sort or LeaderboardSort()
        team_names = team_names or {}

        excluded = 0
        teams: List[TeamStats] = []
        for team_id in sorted(scores_by_team):
            scores = list(scores_by_team[team_id])
            if filter.exclude_incomplete:
                kept = [s for s in scores if s.is_complete]
                excluded += len(scores) - len(kept)
                scores = kept
            teams.append(self.team_stats(team_id, team_names.get(team_id, team_id), scores, policy))

        filtered = [t for t in teams if self._passes(t, filter, filter.team_subset)]
        ordered = self.sort_teams(filtered, sort)
        if filter.top_n is not None:
            ordered = ordered[:filter.top_n]

        entries = [
            LeaderboardEntry(
                team_id=t.team_id,
                team_name=t.team_name,
                total_score=to_float(t.total_score),
                average_score=to_float(t.average_score),
                submission_count=t.submission_count,
                position=position,
                criteria_scores={k: to_float(v) for k, v in t.criteria_scores.items()},
            )
            for position, t in enumerate(ordered, start=1)
        ]

        metadata = {
            "total_entries": len(teams),
            "filtered_entries": len(entries),
            "filtered": filter.is_filtering,
            "sorted": True,
            "sort_field": sort.field.value,
            "ascending": sort.ascending,
            "team_score_policy": policy.value,
            "excluded_incomplete_submissions": excluded,
        }

        board_kwargs = {
            "event_id": event_id,
            "entries": entries,
            "calculated_at": calculated_at,
            "metadata": metadata,
        }
        if leaderboard_id is not None:
            board_kwargs["id"] = leaderboard_id
        leaderboard = Leaderboard(**board_kwargs)

        result = leaderboard.validate()
        if not result.is_valid:
            logger.error("leaderboard_invariant_violated", event_id=event_id, errors=result.messages)
            raise LeaderboardInvariantError(event_id, result.messages)

        logger.info(
            "leaderboard_ranked",
            event_id=event_id,
            leaderboard_id=leaderboard.id,
            teams=len(teams),
            ranked=len(entries),
            sort_field=sort.field.value,
            policy=policy.value,
            leader=entries[0].team_id if entries else None,
        )
        return leaderboard

    def rank_members(
        self,
        event_id: str,
        scores_by_member: Mapping[str, Sequence[AggregatedScore]],
        member_names: Optional[Mapping[str, str]] = None,
        *,
        calculated_at: datetime,
        leaderboard_id: Optional[str] = None,
    ) -> IndividualLeaderboard:
        """
        Rank submitting members by the mean of their submission totals.

        total_score is the sum of the member's submission totals. Ties break
        the same way as for teams. Members with no scored submission are
        ranked with zeros; callers normally leave them out.

        Raises:
            LeaderboardValidationError: inconsistent input.
            LeaderboardInvariantError: the produced snapshot is inconsistent (a bug).
        """
        self.validate_input(
            event_id, scores_by_member, member_names, group="member"
        ).raise_if_invalid(LeaderboardValidationError)

        member_names = member_names or {}
        members = [
            self.team_stats(member_id, member_names.get(member_id, member_id),
                            scores_by_member[member_id], TeamScorePolicy.SUM)
            for member_id in sorted(scores_by_member)
        ]
        ordered = self.sort_teams(members, LeaderboardSort(field=LeaderboardSortField.AVERAGE_SCORE))

        entries = [
            IndividualLeaderboardEntry(
                member_id=m.team_id,
                member_name=m.team_name,
                total_score=to_float(m.total_score),
                average_score=to_float(m.average_score),
                submission_count=m.submission_count,
                position=position,
                criteria_scores={k: to_float(v) for k, v in m.criteria_scores.items()},
            )
            for position, m in enumerate(ordered, start=1)
        ]

        board_kwargs = {
            "event_id": event_id,
            "entries": entries,
            "calculated_at": calculated_at,
            "metadata": {
                "total_members": len(members),
                "members_with_scores": sum(1 for m in members if m.submission_count),
                "sort_field": LeaderboardSortField.AVERAGE_SCORE.value,
            },
        }
        if leaderboard_id is not None:
            board_kwargs["id"] = leaderboard_id
        leaderboard = IndividualLeaderboard(**board_kwargs)

        result = leaderboard.validate()
        if not result.is_valid:
            logger.error("individual_leaderboard_invariant_violated", event_id=event_id, errors=result.messages)
            raise LeaderboardInvariantError(event_id, result.messages)

        logger.info(
            "individual_leaderboard_ranked",
            event_id=event_id,
            leaderboard_id=leaderboard.id,
            members=len(entries),
            leader=entries[0].member_id if entries else None,
        )
        return leaderboard


_default_ranker = LeaderboardRanker()


def rank_leaderboard(
    event_id: str,
    scores_by_team: Mapping[str, Sequence[AggregatedScore]],
    team_names: Optional[Mapping[str, str]] = None,
    filter: Optional[LeaderboardFilter] = None,
    sort: Optional[LeaderboardSort] = None,
    *,
    calculated_at: datetime,
    leaderboard_id: Optional[str] = None,
    policy: Optional[TeamScorePolicy] = None,
) -> Leaderboard:
    """Pure entry point; see LeaderboardRanker.rank."""
    return _default_ranker.rank(
        event_id,
        scores_by_team,
        team_names=team_names,
        filter=filter,
        sort=sort,
        calculated_at=calculated_at,
        leaderboard_id=leaderboard_id,
        policy=policy,
    )


def rank_individual_leaderboard(
    event_id: str,
    scores_by_member: Mapping[str, Sequence[AggregatedScore]],
    member_names: Optional[Mapping[str, str]] = None,
    *,
    calculated_at: datetime,
    leaderboard_id: Optional[str] = None,
) -> IndividualLeaderboard:
    """Pure entry point; see LeaderboardRanker.rank_members."""
    return _default_ranker.rank_members(
        event_id,
        scores_by_member,
        member_names,
        calculated_at=calculated_at,
        leaderboard_id=leaderboard_id,
    )
