import json
from datetime import datetime

from sqlalchemy import or_

from adaptlearn import db
from adaptlearn.errors import InvalidDataError
from adaptlearn.services.conditions import ConditionValue
from adaptlearn.services.scoring import prompt_overall_performance

CONTEXT_VARIABLE_TYPES = [
    'user_profile', 'learning_progress', 'session_data', 'module_content', 'performance_data'
]
PROMPT_TRIGGERS = [
    'user_struggling', 'user_excelling', 'low_engagement', 'high_engagement',
    'first_session', 'assessment_failed', 'assessment_passed',
    'learning_style_mismatch', 'time_pressure', 'help_requested'
]
PROMPT_MODIFICATIONS = [
    'simplify_language', 'add_examples', 'increase_encouragement',
    'add_challenges', 'provide_hints', 'break_down_steps',
    'add_motivation', 'adjust_tone', 'add_resources'
]

DEFAULT_RESPONSE_CONFIG = {
    'maxTokens': 500,
    'temperature': 0.7,
    'topP': 1,
    'frequencyPenalty': 0,
    'presencePenalty': 0
}


class PromptAdaptation:
    """A sub-rule that appends extra instructions when its trigger fires."""

    def __init__(self, trigger_condition, modification, modification_text,
                 condition_value=None, priority=5):
        if trigger_condition not in PROMPT_TRIGGERS:
            raise InvalidDataError(f'Unknown trigger condition: {trigger_condition}')
        if modification not in PROMPT_MODIFICATIONS:
            raise InvalidDataError(f'Unknown modification: {modification}')
        self.trigger_condition = trigger_condition
        self.condition_value = ConditionValue.of(condition_value)
        self.modification = modification
        self.modification_text = modification_text
        self.priority = 5 if priority is None else max(1, min(10, int(priority)))

    @classmethod
    def from_dict(cls, data):
        return cls(
            trigger_condition=data.get('triggerCondition'),
            modification=data.get('modification'),
            modification_text=data.get('modificationText', ''),
            condition_value=data.get('conditionValue'),
            priority=data.get('priority', 5)
        )

    def to_dict(self):
        return {
            'triggerCondition': self.trigger_condition,
            'conditionValue': self.condition_value.to_json(),
            'modification': self.modification,
            'modificationText': self.modification_text,
            'priority': self.priority
        }


class AIPrompt(db.Model):
    __tablename__ = 'ai_prompts'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False)
    model_type = db.Column(db.String(20), default='openai-gpt4')
    personality = db.Column(db.String(10), nullable=False)  # ARIA, SAGE, COACH
    context_type = db.Column(db.String(30), nullable=False)

    system_prompt = db.Column(db.String(2000), nullable=False)
    user_prompt_template = db.Column(db.String(1000), nullable=False)
    _context_variables = db.Column('context_variables', db.Text, default='[]')
    _response_config = db.Column('response_config', db.Text)
    _adaptation_rules = db.Column('adaptation_rules', db.Text, default='[]')

    # Performance metrics
    use_count = db.Column(db.Integer, nullable=False, default=0)
    average_rating = db.Column(db.Float, nullable=False, default=0)
    rating_count = db.Column(db.Integer, nullable=False, default=0)
    effectiveness_score = db.Column(db.Float, nullable=False, default=0)
    average_response_time = db.Column(db.Float, nullable=False, default=0)  # ms
    success_rate = db.Column(db.Float, nullable=False, default=0)

    version = db.Column(db.String(20), default='1.0.0')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    learning_domains = db.Column(db.Text, default='[]')  # JSON array
    target_difficulty = db.Column(db.String(20), default='any')

    # A/B testing
    test_group = db.Column(db.String(50), default='default')
    test_weight = db.Column(db.Float, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_ai_prompts_lookup', 'personality', 'context_type', 'is_active'),
    )

    def __init__(self, **kwargs):
        kwargs.setdefault('use_count', 0)
        kwargs.setdefault('average_rating', 0)
        kwargs.setdefault('rating_count', 0)
        kwargs.setdefault('effectiveness_score', 0)
        kwargs.setdefault('average_response_time', 0)
        kwargs.setdefault('success_rate', 0)
        kwargs.setdefault('is_active', True)
        kwargs.setdefault('test_weight', 1)
        kwargs.setdefault('target_difficulty', 'any')
        super().__init__(**kwargs)

    @property
    def context_variables(self):
        return json.loads(self._context_variables) if self._context_variables else []

    @context_variables.setter
    def context_variables(self, value):
        for variable in value or []:
            if variable.get('type') not in CONTEXT_VARIABLE_TYPES:
                raise InvalidDataError(f"Unknown context variable type: {variable.get('type')}")
        self._context_variables = json.dumps(value or [])

    @property
    def response_config(self):
        config = dict(DEFAULT_RESPONSE_CONFIG)
        if self._response_config:
            config.update(json.loads(self._response_config))
        return config

    @response_config.setter
    def response_config(self, value):
        self._response_config = json.dumps(value) if value else None

    @property
    def adaptation_rules(self):
        raw = json.loads(self._adaptation_rules) if self._adaptation_rules else []
        return [PromptAdaptation.from_dict(item) for item in raw]

    @adaptation_rules.setter
    def adaptation_rules(self, value):
        rules = [
            item if isinstance(item, PromptAdaptation) else PromptAdaptation.from_dict(item)
            for item in value or []
        ]
        self._adaptation_rules = json.dumps([rule.to_dict() for rule in rules])

    @property
    def learning_domains_list(self):
        return json.loads(self.learning_domains) if self.learning_domains else []

    @learning_domains_list.setter
    def learning_domains_list(self, value):
        self.learning_domains = json.dumps(value or [])

    @property
    def overall_performance(self):
        return prompt_overall_performance(
            self.average_rating, self.effectiveness_score, self.success_rate
        )

    @classmethod
    def candidates(cls, personality, context_type, learning_domain=None, difficulty=None):
        query = cls.query.filter_by(
            personality=personality,
            context_type=context_type,
            is_active=True
        )

        if learning_domain:
            query = query.filter(cls.learning_domains.like(f'%"{learning_domain}"%'))

        if difficulty:
            query = query.filter(or_(
                cls.target_difficulty == 'any',
                cls.target_difficulty == difficulty
            ))

        return query.order_by(
            cls.effectiveness_score.desc(),
            cls.average_rating.desc(),
            cls.id
        ).all()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'model_type': self.model_type,
            'personality': self.personality,
            'context_type': self.context_type,
            'system_prompt': self.system_prompt,
            'user_prompt_template': self.user_prompt_template,
            'context_variables': self.context_variables,
            'response_config': self.response_config,
            'adaptation_rules': [rule.to_dict() for rule in self.adaptation_rules],
            'performance_metrics': {
                'use_count': self.use_count,
                'average_rating': self.average_rating,
                'rating_count': self.rating_count,
                'effectiveness_score': self.effectiveness_score,
                'average_response_time': self.average_response_time,
                'success_rate': self.success_rate,
                'overall_performance': self.overall_performance
            },
            'version': self.version,
            'is_active': self.is_active,
            'is_default': self.is_default,
            'learning_domains': self.learning_domains_list,
            'target_difficulty': self.target_difficulty,
            'test_group': self.test_group,
            'test_weight': self.test_weight
        }
