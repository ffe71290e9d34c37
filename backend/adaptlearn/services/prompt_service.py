"""
Prompt selection, contextualisation and usage tracking for AI prompts.
"""
import random
from typing import Dict, List, Optional

from flask import current_app
from loguru import logger

from adaptlearn.models import AIPrompt, PromptAdaptation
from adaptlearn.services.conditions import PROMPT_CONTEXT_PATHS, mapping_lookup, trigger_matches
from adaptlearn.services.scoring import select_prompt

# Context variable type -> section of the build context it is read from
CONTEXT_SECTIONS = {
    'user_profile': 'user',
    'learning_progress': 'progress',
    'session_data': 'session',
    'module_content': 'module',
    'performance_data': 'performance',
}


def get_best_prompt(
    personality: str,
    context_type: str,
    learning_domain: Optional[str] = None,
    difficulty: Optional[str] = None,
    enable_ab_testing: Optional[bool] = None,
    rng: Optional[random.Random] = None
) -> AIPrompt:
    if enable_ab_testing is None:
        enable_ab_testing = current_app.config.get('AB_TESTING_ENABLED', True)
    limit = current_app.config.get('PROMPT_CANDIDATE_LIMIT', 5)

    prompts = AIPrompt.candidates(personality, context_type, learning_domain, difficulty)
    prompt = select_prompt(
        prompts,
        enable_ab_testing=enable_ab_testing,
        rng=rng,
        limit=limit,
        description=f'{personality} - {context_type}'
    )
    logger.debug(f"Selected prompt {prompt.id} ({prompt.name}) out of {len(prompts)} candidates")
    return prompt


def context_value(context: Dict, variable: Dict) -> str:
    name = variable.get('name')
    section = CONTEXT_SECTIONS.get(variable.get('type'))
    value = (context.get(section) or {}).get(name) if section else None
    if value is None or value == '':
        return f'[{name}]'
    return str(value)


def applicable_adaptations(prompt: AIPrompt, context: Dict) -> List[PromptAdaptation]:
    lookup = mapping_lookup(context, PROMPT_CONTEXT_PATHS)
    matched = [
        rule for rule in prompt.adaptation_rules
        if trigger_matches(rule.trigger_condition, rule.condition_value, lookup)
    ]
    return sorted(matched, key=lambda rule: rule.priority, reverse=True)


def build_contextualized_prompt(prompt: AIPrompt, context: Optional[Dict] = None) -> Dict:
    """
    Fill a prompt's ``{{variable}}`` placeholders from ``context``.

    ``context`` is split into sections (user, progress, session, module,
    performance); each variable reads from the section its type names.
    Sub-rules whose trigger fires append their text to the system prompt
    as additional instructions.
    """
    context = context or {}
    system_prompt = prompt.system_prompt
    user_prompt = prompt.user_prompt_template

    for variable in prompt.context_variables:
        placeholder = '{{' + variable['name'] + '}}'
        value = context_value(context, variable)
        system_prompt = system_prompt.replace(placeholder, value)
        user_prompt = user_prompt.replace(placeholder, value)

    adaptations = applicable_adaptations(prompt, context)
    if adaptations:
        system_prompt += '\n\nAdditional Instructions:\n' + '\n'.join(
            rule.modification_text for rule in adaptations
        )

    return {
        'system_prompt': system_prompt,
        'user_prompt': user_prompt,
        'config': prompt.response_config,
        'adaptations_applied': [rule.modification for rule in adaptations]
    }


def record_usage(prompt: AIPrompt, response_time: float = 0, rating: Optional[int] = None) -> AIPrompt:
    """Update running averages. Ratings outside 1-5 are ignored."""
    prompt.use_count = (prompt.use_count or 0) + 1

    if response_time and response_time > 0:
        current_total = (prompt.average_response_time or 0) * (prompt.use_count - 1)
        prompt.average_response_time = (current_total + response_time) / prompt.use_count

    if rating is not None and 1 <= rating <= 5:
        current_total = (prompt.average_rating or 0) * (prompt.rating_count or 0)
        prompt.rating_count = (prompt.rating_count or 0) + 1
        prompt.average_rating = (current_total + rating) / prompt.rating_count

    return prompt
