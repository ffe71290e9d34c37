from loguru import logger

from adaptlearn import db
from adaptlearn.models import AdaptationRule, AIPrompt

DEFAULT_RULES = [
    {
        'name': 'Low Completion Rate Intervention',
        'description': 'Triggers when user completion rate drops below 30%',
        'category': 'intervention',
        'rule_type': 'trigger',
        'trigger_conditions': {
            'performance': {'maxCompletionRate': 30}
        },
        'adaptation_actions': {
            'aiPersonality': {'switchTo': 'COACH', 'increaseSupport': True},
            'intervention': {'sendNotification': True, 'scheduleCheckin': True}
        },
        'priority': 9,
        'cooldown_period': 48
    },
    {
        'name': 'High Performer Content Boost',
        'description': 'Increases difficulty for high-performing users',
        'category': 'content_difficulty',
        'rule_type': 'trigger',
        'trigger_conditions': {
            'performance': {'minCompletionRate': 85, 'minAverageScore': 90}
        },
        'adaptation_actions': {
            'content': {'adjustDifficulty': 'increase', 'addSupplementaryResources': True}
        },
        'priority': 6,
        'cooldown_period': 72
    },
    {
        'name': 'Low Engagement Recovery',
        'description': 'Adapts to re-engage users with low focus scores',
        'category': 'engagement',
        'rule_type': 'trigger',
        'trigger_conditions': {
            'engagement': {'maxFocusScore': 40, 'minSessionsPerWeek': 1}
        },
        'adaptation_actions': {
            'aiPersonality': {'switchTo': 'ARIA', 'adjustTone': 'more_encouraging'},
            'pace': {'adjustSessionLength': 'shorter'}
        },
        'priority': 8,
        'cooldown_period': 24
    },
    {
        'name': 'AI Personality Mismatch Detection',
        'description': 'Switches AI personality when satisfaction is low',
        'category': 'ai_personality',
        'rule_type': 'trigger',
        'trigger_conditions': {
            'aiInteraction': {'maxSatisfactionScore': 2, 'consecutiveNegativeFeedback': 3}
        },
        'adaptation_actions': {
            'aiPersonality': {'switchTo': 'auto', 'adjustTone': 'more_detailed'}
        },
        'priority': 7,
        'cooldown_period': 48
    },
    {
        'name': 'Struggling Learner Support',
        'description': 'Provides additional support for struggling learners',
        'category': 'content_difficulty',
        'rule_type': 'trigger',
        'trigger_conditions': {
            'performance': {'maxAverageScore': 60, 'consecutiveFailures': 2}
        },
        'adaptation_actions': {
            'content': {
                'adjustDifficulty': 'decrease',
                'addSupplementaryResources': True,
                'enableHints': True
            },
            'aiPersonality': {'switchTo': 'SAGE', 'increaseSupport': True}
        },
        'priority': 9,
        'cooldown_period': 24
    },
]

DEFAULT_PROMPTS = [
    {
        'name': 'ARIA Learning Help',
        'description': 'Encouraging learning assistance from ARIA',
        'personality': 'ARIA',
        'context_type': 'learning_help',
        'system_prompt': (
            "You are ARIA, an encouraging AI learning assistant. You provide helpful, "
            "supportive guidance while adapting to the user's learning style "
            "({{learningStyle}}) and current progress ({{progressPercentage}}%)."
        ),
        'user_prompt_template': (
            "The user needs help with: {{userQuestion}}. Their current module is "
            "'{{moduleTitle}}' and they've been struggling with {{strugglingAreas}}. "
            "Provide encouraging, practical help."
        ),
        'context_variables': [
            {'name': 'learningStyle', 'type': 'user_profile', 'description': "User's learning style"},
            {'name': 'progressPercentage', 'type': 'learning_progress', 'description': 'Current progress percentage'},
            {'name': 'userQuestion', 'type': 'session_data', 'description': "User's question or concern"},
            {'name': 'moduleTitle', 'type': 'module_content', 'description': 'Current module title'},
            {'name': 'strugglingAreas', 'type': 'performance_data', 'description': 'Areas where user is struggling'}
        ],
        'is_default': True
    },
    {
        'name': 'SAGE Progress Review',
        'description': 'Professional progress analysis from SAGE',
        'personality': 'SAGE',
        'context_type': 'progress_review',
        'system_prompt': (
            "You are SAGE, a professional AI learning analyst. Provide detailed, objective "
            "analysis of learning progress for users with {{totalLearningTime}} minutes of "
            "study time."
        ),
        'user_prompt_template': (
            "Analyze the user's progress: {{progressPercentage}}% complete, "
            "{{assessmentScores}} assessment scores, {{engagementLevel}} engagement. "
            "Provide professional insights and recommendations."
        ),
        'context_variables': [
            {'name': 'totalLearningTime', 'type': 'learning_progress', 'description': 'Total learning time'},
            {'name': 'progressPercentage', 'type': 'learning_progress', 'description': 'Overall progress'},
            {'name': 'assessmentScores', 'type': 'performance_data', 'description': 'Recent assessment scores'},
            {'name': 'engagementLevel', 'type': 'session_data', 'description': 'User engagement level'}
        ],
        'is_default': True
    },
]


def seed_rules():
    """Insert or update the default adaptation rules by name."""
    for data in DEFAULT_RULES:
        rule = AdaptationRule.query.filter_by(name=data['name']).first()
        if rule is None:
            db.session.add(AdaptationRule(**data))
        else:
            for key, value in data.items():
                setattr(rule, key, value)
    db.session.commit()
    return len(DEFAULT_RULES)


def seed_prompts():
    """Create each default prompt unless one already exists for its slot."""
    created = 0
    for data in DEFAULT_PROMPTS:
        existing = AIPrompt.query.filter_by(
            personality=data['personality'],
            context_type=data['context_type'],
            is_default=True
        ).first()
        if existing is None:
            db.session.add(AIPrompt(**data))
            created += 1
    db.session.commit()
    return created


def seed_database():
    rules = seed_rules()
    prompts = seed_prompts()
    logger.info(f"Seeded {rules} adaptation rules and {prompts} new prompts")
    return rules, prompts
