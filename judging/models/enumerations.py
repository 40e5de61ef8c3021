from enum import Enum

class ScoringType(str, Enum):
    NUMERIC = "numeric"   # 0..max_score
    SCALE = "scale"       # options["min"]..options["max"]
    BOOLEAN = "boolean"   # true/false

class RubricScope(str, Enum):
    EVENT = "event"
    GROUP = "group"
    TEMPLATE = "template"
    UNSCOPED = "unscoped"

class TeamScorePolicy(str, Enum):
    HIGHEST = "highest"   # best single submission
    SUM = "sum"
    AVERAGE = "average"

class LeaderboardSortField(str, Enum):
    AVERAGE_SCORE = "average_score"
    TOTAL_SCORE = "total_score"
    SUBMISSION_COUNT = "submission_count"
    TEAM_NAME = "team_name"

class TrendDirection(str, Enum):
    UPWARD = "upward"
    DOWNWARD = "downward"
    STABLE = "stable"
