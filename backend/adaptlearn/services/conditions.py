"""
Condition evaluation shared by adaptation rules, prompt sub-rules and
learning-module adaptations.

A condition set is compiled into a flat list of ``Bound`` objects, each of
which names a metric and a comparison. Evaluating a list of bounds only
needs a metric-lookup callable, so the same engine serves context
snapshots, nested prompt contexts and plain performance dicts.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

MetricLookup = Callable[[str], Any]

# Comparison kinds
MIN = 'min'          # value >= threshold
MAX = 'max'          # value <= threshold
BELOW = 'below'      # value < threshold
ABOVE = 'above'      # value > threshold
EQUALS = 'equals'    # value == threshold


# Condition field -> (metric name, comparison) per condition group.
CONDITION_FIELDS = {
    'performance': {
        'minCompletionRate': ('completion_rate', MIN),
        'maxCompletionRate': ('completion_rate', MAX),
        'minAverageScore': ('average_score', MIN),
        'maxAverageScore': ('average_score', MAX),
        'consecutiveFailures': ('consecutive_failures', MIN),
        'strugglingDuration': ('struggling_days', MIN),
    },
    'engagement': {
        'minFocusScore': ('focus_score', MIN),
        'maxFocusScore': ('focus_score', MAX),
        'minSessionsPerWeek': ('session_count', MIN),
        'maxSessionsPerWeek': ('session_count', MAX),
        'inactivityDays': ('inactivity_days', MIN),
        'minInteractionRate': ('interaction_rate', MIN),
    },
    'aiInteraction': {
        'minSatisfactionScore': ('satisfaction_score', MIN),
        'maxSatisfactionScore': ('satisfaction_score', MAX),
        'minEffectivenessScore': ('effectiveness_score', MIN),
        'consecutiveNegativeFeedback': ('consecutive_negative_feedback', MIN),
        'personalityMismatch': ('personality_mismatch', EQUALS),
    },
    'timing': {
        'daysInCurrentModule': ('days_in_module', MIN),
        'daysInCurrentPath': ('days_in_path', MIN),
    },
}

# min/max pairs that must be ordered, per group
RANGE_PAIRS = {
    'performance': [
        ('minCompletionRate', 'maxCompletionRate'),
        ('minAverageScore', 'maxAverageScore'),
    ],
    'engagement': [
        ('minFocusScore', 'maxFocusScore'),
        ('minSessionsPerWeek', 'maxSessionsPerWeek'),
    ],
    'aiInteraction': [
        ('minSatisfactionScore', 'maxSatisfactionScore'),
    ],
}


class Bound:
    __slots__ = ('metric', 'kind', 'threshold')

    def __init__(self, metric: str, kind: str, threshold: Any):
        self.metric = metric
        self.kind = kind
        self.threshold = threshold

    def holds(self, value: Any) -> bool:
        if value is None:
            return False
        if self.kind == MIN:
            return value >= self.threshold
        if self.kind == MAX:
            return value <= self.threshold
        if self.kind == BELOW:
            return value < self.threshold
        if self.kind == ABOVE:
            return value > self.threshold
        if self.kind == EQUALS:
            return value == self.threshold
        raise ValueError(f"Unknown comparison: {self.kind}")

    def __repr__(self):
        return f"Bound({self.metric} {self.kind} {self.threshold!r})"


class ConditionValue:
    """Tagged value attached to a named trigger (number, string, boolean or list)."""

    NUMBER = 'number'
    STRING = 'string'
    BOOLEAN = 'boolean'
    LIST = 'list'
    EMPTY = 'empty'

    __slots__ = ('kind', 'value')

    def __init__(self, kind: str, value: Any = None):
        self.kind = kind
        self.value = value

    @classmethod
    def of(cls, raw: Any) -> 'ConditionValue':
        if isinstance(raw, ConditionValue):
            return raw
        if raw is None:
            return cls(cls.EMPTY)
        # bool is a subclass of int, check it first
        if isinstance(raw, bool):
            return cls(cls.BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            return cls(cls.NUMBER, raw)
        if isinstance(raw, str):
            return cls(cls.STRING, raw)
        if isinstance(raw, (list, tuple)):
            return cls(cls.LIST, list(raw))
        raise TypeError(f"Unsupported condition value: {raw!r}")

    def number_or(self, default):
        if self.kind == self.NUMBER:
            return self.value
        return default

    def to_json(self):
        return self.value

    def __eq__(self, other):
        if not isinstance(other, ConditionValue):
            return NotImplemented
        return self.kind == other.kind and self.value == other.value

    def __repr__(self):
        return f"ConditionValue({self.kind}, {self.value!r})"


# Named trigger -> (metric, comparison, default threshold, takes value)
NAMED_TRIGGERS = {
    # AI prompt sub-rules
    'user_struggling': ('average_score', BELOW, 60, True),
    'user_excelling': ('average_score', ABOVE, 90, True),
    'low_engagement': ('engagement_score', BELOW, 50, True),
    'high_engagement': ('engagement_score', ABOVE, 85, True),
    'first_session': ('session_count', EQUALS, 1, False),
    'assessment_failed': ('last_assessment_score', BELOW, 70, True),
    'assessment_passed': ('last_assessment_score', MIN, 70, True),
    'help_requested': ('help_request_count', ABOVE, 0, False),
    # Learning-module adaptations
    'struggling': ('average_score', BELOW, 60, False),
    'excelling': ('average_score', ABOVE, 90, False),
    'time_pressure': ('time_spent_ratio', BELOW, 0.7, False),
}


def compile_conditions(condition_set: Optional[Mapping]) -> List[Bound]:
    """Flatten the threshold groups of a condition set into bounds."""
    bounds = []
    if not condition_set:
        return bounds

    for group, group_fields in CONDITION_FIELDS.items():
        conditions = condition_set.get(group) or {}
        for name, (metric, kind) in group_fields.items():
            threshold = conditions.get(name)
            if threshold is None:
                continue
            if kind == EQUALS and threshold is False:
                # an unset flag does not constrain
                continue
            bounds.append(Bound(metric, kind, threshold))

    return bounds


def named_trigger_bound(trigger: str, condition_value: Any = None) -> Optional[Bound]:
    trigger_def = NAMED_TRIGGERS.get(trigger)
    if trigger_def is None:
        return None

    metric, kind, default, takes_value = trigger_def
    threshold = default
    if takes_value:
        threshold = ConditionValue.of(condition_value).number_or(default)
    return Bound(metric, kind, threshold)


def evaluate(bounds: Iterable[Bound], lookup: MetricLookup) -> bool:
    return all(bound.holds(lookup(bound.metric)) for bound in bounds)


def timing_holds(timing: Optional[Mapping], moment: datetime) -> bool:
    """Check the time-of-day window and day-of-week set against ``moment``."""
    if not timing:
        return True

    time_of_day = timing.get('timeOfDay') or {}
    if time_of_day:
        start = time_of_day.get('start', 0)
        end = time_of_day.get('end', 23)
        hour = moment.hour
        if start <= end:
            in_window = start <= hour <= end
        else:
            # window wraps past midnight
            in_window = hour >= start or hour <= end
        if not in_window:
            return False

    days = timing.get('dayOfWeek') or []
    if days and day_of_week(moment) not in days:
        return False

    return True


def day_of_week(moment: datetime) -> int:
    """Day index with Sunday as 0."""
    return (moment.weekday() + 1) % 7


def matches(condition_set: Optional[Mapping], context, lookup: Optional[MetricLookup] = None) -> bool:
    """
    Decide whether ``context`` satisfies every present condition.

    ``context`` is normally a ContextSnapshot; a custom ``lookup`` can be
    passed for other shapes, in which case ``context`` only needs an
    ``evaluated_at`` attribute for timing checks.
    """
    if not condition_set:
        return True

    lookup = lookup or context.metric
    if not evaluate(compile_conditions(condition_set), lookup):
        return False

    return timing_holds(condition_set.get('timing'), context.evaluated_at)


def mapping_lookup(data: Mapping, paths: Dict[str, str]) -> MetricLookup:
    """
    Build a lookup over nested dicts.

    ``paths`` maps metric names to dotted keys, e.g.
    ``{'average_score': 'performance.averageScore'}``.
    """
    def lookup(metric):
        path = paths.get(metric)
        if path is None:
            return None
        value = data
        for key in path.split('.'):
            if not isinstance(value, Mapping):
                return None
            value = value.get(key)
        return value

    return lookup


# Where prompt-building contexts keep each trigger metric
PROMPT_CONTEXT_PATHS = {
    'average_score': 'performance.averageScore',
    'last_assessment_score': 'performance.lastAssessmentScore',
    'engagement_score': 'session.engagementScore',
    'help_request_count': 'session.helpRequestCount',
    'session_count': 'progress.sessionCount',
}

# Where module adaptation checks find each metric in a performance dict
MODULE_PERFORMANCE_PATHS = {
    'average_score': 'averageScore',
    'engagement_score': 'engagementScore',
    'time_spent_ratio': 'timeSpentRatio',
}


def trigger_matches(trigger: str, condition_value: Any, lookup: MetricLookup) -> bool:
    bound = named_trigger_bound(trigger, condition_value)
    if bound is None:
        return False
    return bound.holds(lookup(bound.metric))


def select_module_adaptations(adaptations: Iterable[Mapping], performance: Mapping) -> List[Mapping]:
    """Active module adaptations whose trigger matches, highest priority first."""
    lookup = mapping_lookup(performance or {}, MODULE_PERFORMANCE_PATHS)
    selected = [
        adaptation for adaptation in adaptations
        if adaptation.get('isActive', True)
        and trigger_matches(adaptation.get('triggerCondition'), None, lookup)
    ]
    selected.sort(key=lambda a: a.get('priority', 5), reverse=True)
    return selected
