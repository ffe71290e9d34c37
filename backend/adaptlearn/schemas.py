"""
Marshmallow schemas for write-time validation.

Nested rule documents (condition sets, action sets) are validated here
before they are stored, and API payloads are loaded through the same
schemas.
"""
from marshmallow import ValidationError, fields, validate, validates_schema

from adaptlearn import ma
from adaptlearn.errors import RuleValidationError
from adaptlearn.services.conditions import RANGE_PAIRS

RULE_CATEGORIES = [
    'content_difficulty', 'ai_personality', 'learning_pace', 'intervention',
    'recommendation', 'engagement', 'assessment_timing'
]
RULE_TYPES = ['trigger', 'continuous', 'scheduled', 'manual']
LEARNING_CATEGORIES = [
    'Communication & Leadership', 'Innovation & Creativity', 'Technical Skills',
    'Business Strategy', 'Personal Development', 'Data & Analytics'
]
DIFFICULTIES = ['beginner', 'intermediate', 'advanced', 'expert']
LEARNING_STYLES = ['visual', 'auditory', 'kinesthetic', 'reading']
PERSONALITIES = ['ARIA', 'SAGE', 'COACH']

RECOMMENDATION_TYPES = [
    'next_module', 'learning_path', 'review_content', 'skill_development',
    'schedule_optimization', 'difficulty_adjustment', 'ai_personality',
    'study_break', 'peer_collaboration', 'assessment_timing'
]
RECOMMENDATION_RESPONSES = ['accepted', 'declined', 'maybe_later', 'not_interested']


class Numeric(fields.Field):
    """Int or float, kept exactly as given (no float coercion)."""

    default_error_messages = {'invalid': 'Not a valid number.'}

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self.make_error('invalid')
        return value

    def _serialize(self, value, attr, obj, **kwargs):
        return value


def _number(low, high):
    return Numeric(allow_none=True, validate=validate.Range(min=low, max=high))


def _choice(options):
    return fields.String(allow_none=True, validate=validate.OneOf(options))


class _RangeCheckedSchema(ma.Schema):
    group = None

    @validates_schema
    def check_ranges(self, data, **kwargs):
        for low, high in RANGE_PAIRS.get(self.group, []):
            if data.get(low) is not None and data.get(high) is not None:
                if data[low] >= data[high]:
                    raise ValidationError(f'{low} must be less than {high}', low)


class PerformanceConditionsSchema(_RangeCheckedSchema):
    group = 'performance'

    minCompletionRate = _number(0, 100)
    maxCompletionRate = _number(0, 100)
    minAverageScore = _number(0, 100)
    maxAverageScore = _number(0, 100)
    consecutiveFailures = _number(1, 10)
    strugglingDuration = _number(1, 30)


class EngagementConditionsSchema(_RangeCheckedSchema):
    group = 'engagement'

    minFocusScore = _number(0, 100)
    maxFocusScore = _number(0, 100)
    minSessionsPerWeek = _number(0, 20)
    maxSessionsPerWeek = _number(0, 20)
    inactivityDays = _number(1, 30)
    minInteractionRate = _number(0, 10)


class AIInteractionConditionsSchema(_RangeCheckedSchema):
    group = 'aiInteraction'

    minSatisfactionScore = _number(0, 5)
    maxSatisfactionScore = _number(0, 5)
    minEffectivenessScore = _number(0, 100)
    consecutiveNegativeFeedback = _number(1, 10)
    personalityMismatch = fields.Boolean(allow_none=True)


class TimeOfDaySchema(ma.Schema):
    start = fields.Integer(strict=True, validate=validate.Range(min=0, max=23))
    end = fields.Integer(strict=True, validate=validate.Range(min=0, max=23))


class TimingConditionsSchema(ma.Schema):
    daysInCurrentModule = _number(1, 90)
    daysInCurrentPath = _number(1, 365)
    timeOfDay = fields.Nested(TimeOfDaySchema, allow_none=True)
    dayOfWeek = fields.List(fields.Integer(strict=True, validate=validate.Range(min=0, max=6)))


class ConditionSetSchema(ma.Schema):
    performance = fields.Nested(PerformanceConditionsSchema, allow_none=True)
    engagement = fields.Nested(EngagementConditionsSchema, allow_none=True)
    aiInteraction = fields.Nested(AIInteractionConditionsSchema, allow_none=True)
    timing = fields.Nested(TimingConditionsSchema, allow_none=True)


class ContentActionsSchema(ma.Schema):
    adjustDifficulty = _choice(['increase', 'decrease', 'auto'])
    changeContentFormat = _choice(['visual', 'auditory', 'kinesthetic', 'reading', 'mixed'])
    addSupplementaryResources = fields.Boolean()
    enableHints = fields.Boolean()


class AIPersonalityActionsSchema(ma.Schema):
    switchTo = _choice(PERSONALITIES + ['auto'])
    adjustTone = _choice(['more_encouraging', 'more_direct', 'more_detailed', 'more_concise'])
    increaseSupport = fields.Boolean()


class PaceActionsSchema(ma.Schema):
    suggestBreak = fields.Boolean()
    adjustSessionLength = _choice(['shorter', 'longer', 'adaptive'])
    recommendSchedule = fields.Boolean()


class InterventionActionsSchema(ma.Schema):
    sendNotification = fields.Boolean()
    scheduleCheckin = fields.Boolean()
    offerTutoring = fields.Boolean()
    suggestPeerSupport = fields.Boolean()


class RecommendationActionsSchema(ma.Schema):
    suggestNewPath = fields.Boolean()
    recommendReview = fields.Boolean()
    proposeAlternativeModule = fields.Boolean()


class ActionSetSchema(ma.Schema):
    content = fields.Nested(ContentActionsSchema)
    aiPersonality = fields.Nested(AIPersonalityActionsSchema)
    pace = fields.Nested(PaceActionsSchema)
    intervention = fields.Nested(InterventionActionsSchema)
    recommendations = fields.Nested(RecommendationActionsSchema)


def _first_message(messages):
    if isinstance(messages, dict):
        for value in messages.values():
            return _first_message(value)
    if isinstance(messages, list) and messages:
        return _first_message(messages[0])
    return str(messages)


def _load(schema, raw, label):
    try:
        return schema.load(raw or {})
    except ValidationError as err:
        raise RuleValidationError(
            f'Invalid {label}: {_first_message(err.messages)}',
            details=err.messages
        ) from err


def load_condition_set(raw):
    return _load(ConditionSetSchema(), raw, 'trigger conditions')


def load_action_set(raw):
    return _load(ActionSetSchema(), raw, 'adaptation actions')


# ============== API PAYLOADS ==============

class ApplicableContextsSchema(ma.Schema):
    categories = fields.List(fields.String(validate=validate.OneOf(LEARNING_CATEGORIES)))
    difficulties = fields.List(fields.String(validate=validate.OneOf(DIFFICULTIES)))
    learning_styles = fields.List(fields.String(validate=validate.OneOf(LEARNING_STYLES)))


class RulePayloadSchema(ma.Schema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    description = fields.String(required=True, validate=validate.Length(max=500))
    category = fields.String(required=True, validate=validate.OneOf(RULE_CATEGORIES))
    type = fields.String(validate=validate.OneOf(RULE_TYPES))
    trigger_conditions = fields.Nested(ConditionSetSchema)
    adaptation_actions = fields.Nested(ActionSetSchema)
    # out-of-range priority is clamped by the model, not rejected
    priority = fields.Integer()
    cooldown_period = fields.Integer(validate=validate.Range(min=1, max=168))
    max_triggers_per_user = fields.Integer(validate=validate.Range(min=1, max=100))
    is_active = fields.Boolean()
    is_global = fields.Boolean()
    target_user_ids = fields.List(fields.Integer())
    applicable_contexts = fields.Nested(ApplicableContextsSchema)
    created_by = fields.String()
    version = fields.String()


class FeedbackSchema(ma.Schema):
    helpfulness = fields.Integer(validate=validate.Range(min=1, max=5))
    relevance = fields.Integer(validate=validate.Range(min=1, max=5))
    timing = fields.Integer(validate=validate.Range(min=1, max=5))
    comment = fields.String(validate=validate.Length(max=500))


class RecommendationResponseSchema(ma.Schema):
    response = fields.String(required=True, validate=validate.OneOf(RECOMMENDATION_RESPONSES))
    feedback = fields.Nested(FeedbackSchema, allow_none=True)


class ImpactSchema(ma.Schema):
    engagementChange = Numeric(validate=validate.Range(min=-100, max=100))
    performanceChange = Numeric(validate=validate.Range(min=-100, max=100))
    timeToComplete = Numeric(validate=validate.Range(min=0))


class GenerateRecommendationsSchema(ma.Schema):
    category = fields.String(validate=validate.OneOf(LEARNING_CATEGORIES + ['General']))
    current_module_id = fields.Integer(allow_none=True)
    current_path_id = fields.Integer(allow_none=True)
    current_path_progress = Numeric(validate=validate.Range(min=0, max=100))
    max_recommendations = fields.Integer(validate=validate.Range(min=1, max=20))


class PromptBuildSchema(ma.Schema):
    context = fields.Dict(keys=fields.String())


class PromptUsageSchema(ma.Schema):
    response_time = Numeric(load_default=0)
    rating = fields.Integer(allow_none=True)


MODULE_TRIGGERS = ['struggling', 'excelling', 'time_pressure', 'learning_style_mismatch', 'low_engagement']
MODULE_ADAPTATION_TYPES = [
    'difficulty_adjust', 'content_variation', 'additional_examples',
    'simplified_explanation', 'advanced_content'
]


class ModuleAdaptationSchema(ma.Schema):
    triggerCondition = fields.String(required=True, validate=validate.OneOf(MODULE_TRIGGERS))
    adaptationType = fields.String(required=True, validate=validate.OneOf(MODULE_ADAPTATION_TYPES))
    content = fields.Dict(keys=fields.String())
    priority = fields.Integer(validate=validate.Range(min=1, max=10))
    isActive = fields.Boolean(load_default=True)


class ModulePerformanceSchema(ma.Schema):
    averageScore = Numeric(validate=validate.Range(min=0, max=100))
    engagementScore = Numeric(validate=validate.Range(min=0, max=100))
    timeSpentRatio = Numeric(validate=validate.Range(min=0))


class ModuleAdaptationsPayloadSchema(ma.Schema):
    adaptations = fields.List(fields.Nested(ModuleAdaptationSchema), required=True)
    performance = fields.Nested(ModulePerformanceSchema, load_default=dict)
