from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np


DEFAULT_CATEGORY = 'General'


@dataclass(frozen=True)
class ContextSnapshot:
    """
    Read-only view of a learner's current metrics at evaluation time.

    Rebuilt for every evaluation; never persisted. Metrics that are not
    named fields (prompt and module triggers) live in ``extras``.
    """

    user_id: Optional[int] = None

    # Performance
    completion_rate: Optional[float] = None
    average_score: Optional[float] = None
    consecutive_failures: Optional[int] = None
    struggling_days: Optional[int] = None

    # Engagement
    focus_score: Optional[float] = None
    session_count: Optional[int] = None
    interaction_rate: Optional[float] = None
    inactivity_days: Optional[int] = None

    # AI interaction
    satisfaction_score: Optional[float] = None
    effectiveness_score: Optional[float] = None
    consecutive_negative_feedback: Optional[int] = None
    personality_mismatch: bool = False

    # Timing
    days_in_module: Optional[int] = None
    days_in_path: Optional[int] = None

    # Learning context
    category: Optional[str] = None
    difficulty: Optional[str] = None
    learning_style: Optional[str] = None

    evaluated_at: datetime = field(default_factory=datetime.now)
    extras: Dict[str, Any] = field(default_factory=dict)

    def metric(self, name: str) -> Any:
        if name in _SNAPSHOT_FIELDS:
            return getattr(self, name)
        return self.extras.get(name)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ('evaluated_at', 'extras')
        }
        data['evaluated_at'] = self.evaluated_at.isoformat()
        data.update(self.extras)
        return data


_SNAPSHOT_FIELDS = frozenset(
    f.name for f in fields(ContextSnapshot) if f.name != 'extras'
)


def difficulty_for_score(average_score: Optional[float]) -> str:
    """Pick the content difficulty a learner should currently be served."""
    score = average_score or 0
    if score > 85:
        return 'advanced'
    if score > 70:
        return 'intermediate'
    return 'beginner'


def build_context_snapshot(
    user=None,
    analytics=None,
    now: Optional[datetime] = None,
    **extras
) -> ContextSnapshot:
    """
    Assemble a snapshot from a user and their latest analytics record.

    Keyword arguments matching a snapshot field override the value taken
    from the records; anything else is kept in ``extras``.
    """
    values: Dict[str, Any] = {'evaluated_at': now or datetime.now()}

    if user is not None:
        values['user_id'] = user.id
        values['learning_style'] = user.learning_style
        values['category'] = user.primary_category or DEFAULT_CATEGORY

    if analytics is not None:
        values.update(
            user_id=values.get('user_id', analytics.user_id),
            completion_rate=analytics.completion_rate,
            average_score=analytics.average_module_score,
            consecutive_failures=analytics.consecutive_failures,
            struggling_days=analytics.struggling_days,
            focus_score=analytics.focus_score,
            session_count=analytics.session_count,
            interaction_rate=analytics.interaction_rate,
            inactivity_days=analytics.inactivity_days,
            satisfaction_score=analytics.satisfaction_score,
            effectiveness_score=analytics.effectiveness_score,
            consecutive_negative_feedback=analytics.consecutive_negative_feedback,
            personality_mismatch=bool(analytics.personality_mismatch),
            days_in_module=analytics.days_in_module,
            days_in_path=analytics.days_in_path,
            difficulty=difficulty_for_score(analytics.average_module_score),
        )
        values.setdefault('category', DEFAULT_CATEGORY)

    extra_values = {}
    for key, value in extras.items():
        if key in _SNAPSHOT_FIELDS:
            values[key] = value
        else:
            extra_values[key] = value
    values['extras'] = extra_values

    return ContextSnapshot(**values)


def aggregate_insights(records: List) -> Dict[str, float]:
    """Summarise a window of analytics records (sums and means)."""
    if not records:
        return {}

    def column(attr):
        return np.array([getattr(r, attr) or 0 for r in records], dtype=float)

    recommendations_generated = column('recommendations_generated').sum()
    recommendations_accepted = column('recommendations_accepted').sum()

    return {
        'periods': len(records),
        'total_session_time': round(float(column('total_session_time').sum()), 2),
        'avg_session_duration': round(float(column('average_session_duration').mean()), 2),
        'total_sessions': int(column('session_count').sum()),
        'avg_completion_rate': round(float(column('completion_rate').mean()), 2),
        'avg_module_score': round(float(column('average_module_score').mean()), 2),
        'total_ai_interactions': int(column('total_interactions').sum()),
        'avg_satisfaction_score': round(float(column('satisfaction_score').mean()), 2),
        'total_recommendations': int(recommendations_generated),
        'accepted_recommendations': int(recommendations_accepted),
    }
