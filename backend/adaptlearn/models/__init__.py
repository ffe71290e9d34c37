from .user import User
from .adaptation_rule import AdaptationRule, rule_target_users
from .adaptation_event import AdaptationEvent
from .recommendation import Recommendation
from .ai_prompt import AIPrompt, PromptAdaptation
from .learning_analytics import LearningAnalytics
