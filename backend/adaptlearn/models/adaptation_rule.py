import json
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import validates

from adaptlearn import db
from adaptlearn.schemas import load_action_set, load_condition_set

rule_target_users = db.Table(
    'rule_target_users',
    db.Column('rule_id', db.Integer, db.ForeignKey('adaptation_rules.id'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True)
)


class AdaptationRule(db.Model):
    """
    A named, prioritized mapping from trigger conditions to adaptation actions.

    Trigger conditions and actions are nested documents stored as JSON text;
    they are validated on assignment. Configuration and effectiveness
    counters are plain columns so they can be filtered and updated in place.
    """
    __tablename__ = 'adaptation_rules'

    PRIORITY_MIN = 1
    PRIORITY_MAX = 10

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(500), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    rule_type = db.Column('type', db.String(20), nullable=False, default='trigger')

    _trigger_conditions = db.Column('trigger_conditions', db.Text, nullable=False, default='{}')
    _adaptation_actions = db.Column('adaptation_actions', db.Text, nullable=False, default='{}')

    # Configuration
    priority = db.Column(db.Integer, nullable=False, default=5)
    cooldown_period = db.Column(db.Integer, nullable=False, default=24)  # hours
    max_triggers_per_user = db.Column(db.Integer, nullable=False, default=10)

    # Effectiveness
    total_triggers = db.Column(db.Integer, nullable=False, default=0)
    successful_adaptations = db.Column(db.Integer, nullable=False, default=0)
    success_rate = db.Column(db.Float, nullable=False, default=0.0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_global = db.Column(db.Boolean, nullable=False, default=True)

    # Applicability allow-lists (JSON arrays, empty = unrestricted)
    _applicable_categories = db.Column('applicable_categories', db.Text, nullable=False, default='[]')
    _applicable_difficulties = db.Column('applicable_difficulties', db.Text, nullable=False, default='[]')
    _applicable_learning_styles = db.Column('applicable_learning_styles', db.Text, nullable=False, default='[]')

    created_by = db.Column(db.String(50), default='system')
    version = db.Column(db.String(20), default='1.0')
    last_triggered = db.Column(db.DateTime, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    target_users = db.relationship('User', secondary=rule_target_users, lazy='selectin')
    events = db.relationship('AdaptationEvent', back_populates='rule', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_adaptation_rules_category_active', 'category', 'is_active'),
        db.Index('ix_adaptation_rules_global_active', 'is_global', 'is_active'),
    )

    def __init__(self, **kwargs):
        # column defaults only apply on flush; rules are also evaluated unsaved
        kwargs.setdefault('rule_type', 'trigger')
        kwargs.setdefault('trigger_conditions', {})
        kwargs.setdefault('adaptation_actions', {})
        kwargs.setdefault('priority', 5)
        kwargs.setdefault('cooldown_period', 24)
        kwargs.setdefault('max_triggers_per_user', 10)
        kwargs.setdefault('total_triggers', 0)
        kwargs.setdefault('successful_adaptations', 0)
        kwargs.setdefault('success_rate', 0.0)
        kwargs.setdefault('is_active', True)
        kwargs.setdefault('is_global', True)
        kwargs.setdefault('applicable_contexts', {})
        super().__init__(**kwargs)

    @validates('priority')
    def clamp_priority(self, key, value):
        if value is None:
            return 5
        return max(self.PRIORITY_MIN, min(self.PRIORITY_MAX, int(value)))

    @property
    def trigger_conditions(self):
        return json.loads(self._trigger_conditions) if self._trigger_conditions else {}

    @trigger_conditions.setter
    def trigger_conditions(self, value):
        self._trigger_conditions = json.dumps(load_condition_set(value))

    @property
    def adaptation_actions(self):
        return json.loads(self._adaptation_actions) if self._adaptation_actions else {}

    @adaptation_actions.setter
    def adaptation_actions(self, value):
        self._adaptation_actions = json.dumps(load_action_set(value))

    @property
    def applicable_categories(self):
        return json.loads(self._applicable_categories) if self._applicable_categories else []

    @property
    def applicable_difficulties(self):
        return json.loads(self._applicable_difficulties) if self._applicable_difficulties else []

    @property
    def applicable_learning_styles(self):
        return json.loads(self._applicable_learning_styles) if self._applicable_learning_styles else []

    @property
    def applicable_contexts(self):
        return {
            'categories': self.applicable_categories,
            'difficulties': self.applicable_difficulties,
            'learning_styles': self.applicable_learning_styles
        }

    @applicable_contexts.setter
    def applicable_contexts(self, value):
        value = value or {}
        self._applicable_categories = json.dumps(list(value.get('categories') or []))
        self._applicable_difficulties = json.dumps(list(value.get('difficulties') or []))
        self._applicable_learning_styles = json.dumps(list(value.get('learning_styles') or []))

    @property
    def target_user_ids(self):
        return [user.id for user in self.target_users]

    @property
    def current_success_rate(self):
        """Success rate derived from the counters rather than the stored column."""
        if not self.total_triggers:
            return 0.0
        return self.successful_adaptations / self.total_triggers * 100

    @classmethod
    def active_by_category(cls, category):
        return cls.query.filter_by(
            category=category,
            is_active=True
        ).order_by(cls.priority.desc(), cls.id).all()

    @classmethod
    def candidates_for(cls, user_id):
        """Active rules that are global or target ``user_id``, highest priority first."""
        from adaptlearn.models.user import User

        return cls.query.filter(
            cls.is_active.is_(True),
            or_(
                cls.is_global.is_(True),
                cls.target_users.any(User.id == user_id)
            )
        ).order_by(cls.priority.desc(), cls.id).all()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'type': self.rule_type,
            'trigger_conditions': self.trigger_conditions,
            'adaptation_actions': self.adaptation_actions,
            'configuration': {
                'priority': self.priority,
                'cooldown_period': self.cooldown_period,
                'max_triggers_per_user': self.max_triggers_per_user,
                'effectiveness': {
                    'success_rate': self.success_rate,
                    'total_triggers': self.total_triggers,
                    'successful_adaptations': self.successful_adaptations
                }
            },
            'is_active': self.is_active,
            'is_global': self.is_global,
            'target_user_ids': self.target_user_ids,
            'applicable_contexts': self.applicable_contexts,
            'created_by': self.created_by,
            'version': self.version,
            'last_triggered': self.last_triggered.isoformat() if self.last_triggered else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
