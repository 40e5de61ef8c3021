"""
models/ - Judging Leaderboard Engine

Modules:
    enumerations.py  - Scoring types, scopes, policies, sort fields, trend directions
    validation.py    - FieldError / ValidationResult
    values.py        - Tagged-union score values
    rubric.py        - ScoringCriterion / ScoringRubric
    score.py         - ScoreRecord / AggregatedScore / EventScoringStats
    leaderboard.py   - Leaderboard, entries, filter and sort
    history.py       - Score history, trends and position history
"""
