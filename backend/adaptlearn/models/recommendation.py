import json
import math
from datetime import datetime, timedelta

from sqlalchemy import event
from sqlalchemy.orm import validates

from adaptlearn import db
from adaptlearn.errors import InvalidDataError
from adaptlearn.services.scoring import overall_score

# Days a recommendation stays valid when no explicit validUntil is given
VALIDITY_DAYS = {
    'immediate': 1,
    'today': 2,
    'this_week': 7,
    'next_week': 14,
}
DEFAULT_VALIDITY_DAYS = 30

OPEN_STATUSES = ('pending', 'viewed')

# Inputs of overall_score, in weighting order
SCORE_FIELDS = ('relevance_score', 'confidence_score', 'priority_score')


def default_valid_until(suggested_timing, generated_at):
    days = VALIDITY_DAYS.get(suggested_timing, DEFAULT_VALIDITY_DAYS)
    return generated_at + timedelta(days=days)


class Recommendation(db.Model):
    __tablename__ = 'recommendations'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    rec_type = db.Column('type', db.String(30), nullable=False)
    category = db.Column(db.String(50), nullable=False, default='General')
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(1000), nullable=False)

    # Actionable
    primary_action = db.Column(db.String(100), nullable=False, default='View Details')
    secondary_actions = db.Column(db.Text)  # JSON array
    deep_link = db.Column(db.String(500))

    # Scoring (0-100); overall_score is derived from the other three
    relevance_score = db.Column(db.Float, nullable=False, default=50)
    confidence_score = db.Column(db.Float, nullable=False, default=50)
    priority_score = db.Column(db.Float, nullable=False, default=50)
    overall_score = db.Column(db.Integer, nullable=False, default=50, index=True)

    # Context when generated (JSON)
    context = db.Column(db.Text)

    # Targeting
    target_content_id = db.Column(db.Integer)
    target_content_type = db.Column(db.String(30))  # LearningPath, LearningModule, Assessment
    target_skills = db.Column(db.Text)  # JSON array
    target_difficulty = db.Column(db.String(20))
    learning_style_optimization = db.Column(db.String(20))

    # Generation
    algorithm = db.Column(db.String(30), nullable=False, default='rule_based')
    algorithm_version = db.Column(db.String(20), default='1.0')
    factors = db.Column(db.Text)  # JSON array of {name, weight, value}

    # Lifecycle timing
    generated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    valid_until = db.Column(db.DateTime, nullable=False, index=True)
    suggested_timing = db.Column(db.String(20))
    is_urgent = db.Column(db.Boolean, default=False)

    # User interaction
    status = db.Column(db.String(20), nullable=False, default='pending')
    viewed_at = db.Column(db.DateTime)
    responded_at = db.Column(db.DateTime)
    response = db.Column(db.String(20))
    feedback = db.Column(db.Text)  # JSON, stored verbatim
    action_taken = db.Column(db.Boolean, default=False)
    action_taken_at = db.Column(db.DateTime)

    # Effectiveness
    improved_engagement = db.Column(db.Boolean, default=False)
    improved_performance = db.Column(db.Boolean, default=False)
    completed_suggested_action = db.Column(db.Boolean, default=False)
    engagement_change = db.Column(db.Float)
    performance_change = db.Column(db.Float)
    time_to_complete = db.Column(db.Float)  # days

    # Personalization
    matches_preferences = db.Column(db.Float)
    similar_user_success = db.Column(db.Float)
    personalized_message = db.Column(db.String(300))

    version = db.Column(db.String(20), default='1.0')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = db.relationship('User', back_populates='recommendations')

    __table_args__ = (
        db.Index('ix_recommendations_user_status', 'user_id', 'status', 'generated_at'),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault('relevance_score', 50)
        kwargs.setdefault('confidence_score', 50)
        kwargs.setdefault('priority_score', 50)
        kwargs.setdefault('status', 'pending')
        kwargs.setdefault('category', 'General')
        kwargs.setdefault('algorithm', 'rule_based')
        kwargs.setdefault('generated_at', datetime.utcnow())
        super().__init__(**kwargs)
        self.refresh_derived()

    @validates(*SCORE_FIELDS)
    def validate_score(self, key, value):
        if value is None or not 0 <= value <= 100:
            raise InvalidDataError(f'{key} must be between 0 and 100', {key: value})

        scores = {name: getattr(self, name) for name in SCORE_FIELDS}
        scores[key] = value
        # some scores are still unset while __init__ assigns them
        if None not in scores.values():
            self.overall_score = overall_score(*(scores[name] for name in SCORE_FIELDS))
        return value

    def refresh_derived(self):
        """Recompute overall_score and fill in valid_until when missing."""
        self.overall_score = overall_score(
            self.relevance_score, self.confidence_score, self.priority_score
        )
        if self.valid_until is None:
            self.valid_until = default_valid_until(
                self.suggested_timing, self.generated_at or datetime.utcnow()
            )

    # JSON helpers

    @property
    def context_dict(self):
        return json.loads(self.context) if self.context else {}

    @context_dict.setter
    def context_dict(self, value):
        self.context = json.dumps(value)

    @property
    def feedback_dict(self):
        return json.loads(self.feedback) if self.feedback else None

    @feedback_dict.setter
    def feedback_dict(self, value):
        self.feedback = json.dumps(value) if value is not None else None

    @property
    def secondary_actions_list(self):
        return json.loads(self.secondary_actions) if self.secondary_actions else []

    @secondary_actions_list.setter
    def secondary_actions_list(self, value):
        self.secondary_actions = json.dumps(value or [])

    @property
    def target_skills_list(self):
        return json.loads(self.target_skills) if self.target_skills else []

    @target_skills_list.setter
    def target_skills_list(self, value):
        self.target_skills = json.dumps(value or [])

    @property
    def factors_list(self):
        return json.loads(self.factors) if self.factors else []

    @factors_list.setter
    def factors_list(self, value):
        self.factors = json.dumps(value or [])

    # Timing

    def is_expired(self, now=None):
        return (now or datetime.utcnow()) > self.valid_until

    def time_remaining_days(self, now=None):
        remaining = (self.valid_until - (now or datetime.utcnow())).total_seconds()
        return max(0, math.ceil(remaining / 86400))

    def age_days(self, now=None):
        age = ((now or datetime.utcnow()) - self.generated_at).total_seconds()
        return math.ceil(age / 86400)

    # Queries

    @classmethod
    def open_for_user(cls, user_id, now=None):
        return cls.query.filter(
            cls.user_id == user_id,
            cls.status.in_(OPEN_STATUSES),
            cls.valid_until > (now or datetime.utcnow())
        )

    @classmethod
    def active_for_user(cls, user_id, limit=10, now=None):
        return cls.open_for_user(user_id, now).order_by(
            cls.overall_score.desc(),
            cls.generated_at.desc()
        ).limit(limit).all()

    @classmethod
    def by_type(cls, user_id, rec_type, limit=5, now=None):
        return cls.open_for_user(user_id, now).filter(
            cls.rec_type == rec_type
        ).order_by(cls.overall_score.desc()).limit(limit).all()

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.rec_type,
            'category': self.category,
            'title': self.title,
            'description': self.description,
            'actionable': {
                'primary_action': self.primary_action,
                'secondary_actions': self.secondary_actions_list,
                'deep_link': self.deep_link
            },
            'relevance_score': self.relevance_score,
            'confidence_score': self.confidence_score,
            'priority_score': self.priority_score,
            'overall_score': self.overall_score,
            'context': self.context_dict,
            'targeting': {
                'target_content_id': self.target_content_id,
                'target_content_type': self.target_content_type,
                'target_skills': self.target_skills_list,
                'target_difficulty': self.target_difficulty,
                'learning_style_optimization': self.learning_style_optimization
            },
            'generated_by': {
                'algorithm': self.algorithm,
                'version': self.algorithm_version,
                'factors': self.factors_list
            },
            'timing': {
                'generated_at': self.generated_at.isoformat() if self.generated_at else None,
                'valid_until': self.valid_until.isoformat() if self.valid_until else None,
                'suggested_timing': self.suggested_timing,
                'is_urgent': self.is_urgent,
                'time_remaining': self.time_remaining_days() if self.valid_until else None
            },
            'user_interaction': {
                'status': self.status,
                'viewed_at': self.viewed_at.isoformat() if self.viewed_at else None,
                'responded_at': self.responded_at.isoformat() if self.responded_at else None,
                'response': self.response,
                'feedback': self.feedback_dict,
                'action_taken': self.action_taken,
                'action_taken_at': self.action_taken_at.isoformat() if self.action_taken_at else None
            },
            'effectiveness': {
                'improved_engagement': self.improved_engagement,
                'improved_performance': self.improved_performance,
                'completed_suggested_action': self.completed_suggested_action,
                'impact': {
                    'engagement_change': self.engagement_change,
                    'performance_change': self.performance_change,
                    'time_to_complete': self.time_to_complete
                }
            },
            'personalized_message': self.personalized_message,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


@event.listens_for(Recommendation, 'before_insert')
@event.listens_for(Recommendation, 'before_update')
def _recompute_derived(mapper, connection, target):
    target.refresh_derived()
