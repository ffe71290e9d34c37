from datetime import datetime, timedelta

from sqlalchemy import event

from adaptlearn import db


class LearningAnalytics(db.Model):
    """
    Periodic analytics record for one learner.

    This is the source of the context snapshots that adaptation rules and
    recommendations are evaluated against.
    """
    __tablename__ = 'learning_analytics'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Period
    period_type = db.Column(db.String(20), nullable=False, default='daily')
    period_start = db.Column(db.DateTime, nullable=False)
    period_end = db.Column(db.DateTime, nullable=False)

    # Engagement
    total_session_time = db.Column(db.Float, default=0)  # minutes
    average_session_duration = db.Column(db.Float, default=0)  # minutes
    session_count = db.Column(db.Integer, default=0)
    interaction_rate = db.Column(db.Float, default=0)  # interactions per minute
    focus_score = db.Column(db.Float, default=0)  # 0-100
    inactivity_days = db.Column(db.Integer, default=0)

    # Progress
    modules_started = db.Column(db.Integer, default=0)
    modules_completed = db.Column(db.Integer, default=0)
    paths_enrolled = db.Column(db.Integer, default=0)
    paths_completed = db.Column(db.Integer, default=0)
    completion_rate = db.Column(db.Float, default=0)  # percentage
    average_module_score = db.Column(db.Float, default=0)
    consecutive_failures = db.Column(db.Integer, default=0)
    struggling_days = db.Column(db.Integer, default=0)
    days_in_module = db.Column(db.Integer, default=0)
    days_in_path = db.Column(db.Integer, default=0)

    # AI interaction
    total_interactions = db.Column(db.Integer, default=0)
    satisfaction_score = db.Column(db.Float, default=0)  # 0-5
    effectiveness_score = db.Column(db.Float, default=0)  # 0-100
    consecutive_negative_feedback = db.Column(db.Integer, default=0)
    personality_mismatch = db.Column(db.Boolean, default=False)

    # Recommendations
    recommendations_generated = db.Column(db.Integer, default=0)
    recommendations_accepted = db.Column(db.Integer, default=0)

    calculated_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = db.relationship('User', back_populates='analytics')

    @property
    def duration_days(self):
        return max(0, (self.period_end - self.period_start).days)

    def learning_velocity(self):
        """Modules completed per week over this period."""
        if not self.duration_days:
            return 0
        return (self.modules_completed or 0) / self.duration_days * 7

    def engagement_trend(self):
        focus_weight = 0.3
        session_weight = 0.4
        interaction_weight = 0.3

        return (
            (self.focus_score or 0) * focus_weight
            + min((self.session_count or 0) / 5, 1) * 100 * session_weight
            + min(self.interaction_rate or 0, 1) * 100 * interaction_weight
        )

    def reconcile_completion_rate(self):
        """Keep completion_rate consistent with the module counters."""
        if self.modules_started:
            calculated = self.modules_completed / self.modules_started * 100
            if abs((self.completion_rate or 0) - calculated) > 5:
                self.completion_rate = calculated

    @classmethod
    def latest_for(cls, user_id):
        return cls.query.filter_by(user_id=user_id).order_by(
            cls.calculated_at.desc(), cls.id.desc()
        ).first()

    @classmethod
    def window_for(cls, user_id, days=30, now=None):
        end = now or datetime.utcnow()
        start = end - timedelta(days=days)
        return cls.query.filter(
            cls.user_id == user_id,
            cls.period_start >= start,
            cls.period_end <= end
        ).order_by(cls.period_start).all()

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'period': {
                'type': self.period_type,
                'start': self.period_start.isoformat() if self.period_start else None,
                'end': self.period_end.isoformat() if self.period_end else None
            },
            'engagement': {
                'total_session_time': self.total_session_time,
                'average_session_duration': self.average_session_duration,
                'session_count': self.session_count,
                'interaction_rate': self.interaction_rate,
                'focus_score': self.focus_score
            },
            'progress': {
                'modules_started': self.modules_started,
                'modules_completed': self.modules_completed,
                'completion_rate': self.completion_rate,
                'average_module_score': self.average_module_score
            },
            'ai_interaction': {
                'total_interactions': self.total_interactions,
                'satisfaction_score': self.satisfaction_score,
                'effectiveness_score': self.effectiveness_score
            },
            'calculated_at': self.calculated_at.isoformat() if self.calculated_at else None
        }


@event.listens_for(LearningAnalytics, 'before_insert')
@event.listens_for(LearningAnalytics, 'before_update')
def _reconcile(mapper, connection, target):
    target.reconcile_completion_rate()
