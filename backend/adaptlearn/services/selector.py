from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from adaptlearn.services.conditions import matches
from adaptlearn.services.context import ContextSnapshot


def is_in_cooldown(rule, now: Optional[datetime] = None) -> bool:
    if not rule.last_triggered:
        return False
    now = now or datetime.utcnow()
    return now - rule.last_triggered < timedelta(hours=rule.cooldown_period)


def _allows(allowed: List[str], value: Optional[str]) -> bool:
    # an unknown context value is not filtered on
    return not allowed or value is None or value in allowed


def is_applicable(rule, context: ContextSnapshot, user_id=None) -> bool:
    """Scope and allow-list checks only; conditions and cooldown are separate."""
    if not rule.is_active:
        return False

    if not rule.is_global and user_id not in rule.target_user_ids:
        return False

    return (
        _allows(rule.applicable_categories, context.category)
        and _allows(rule.applicable_difficulties, context.difficulty)
        and _allows(rule.applicable_learning_styles, context.learning_style)
    )


def select_applicable(
    rules: Iterable,
    context: ContextSnapshot,
    user_id=None,
    now: Optional[datetime] = None
) -> List:
    """
    Rules that may fire for ``user_id`` in ``context``, highest priority first.

    Rules in cooldown are dropped outright. Equal priorities keep their input
    order. An empty list is a normal result.
    """
    if user_id is None:
        user_id = context.user_id
    now = now or datetime.utcnow()

    selected = [
        rule for rule in rules
        if is_applicable(rule, context, user_id)
        and not is_in_cooldown(rule, now)
        and matches(rule.trigger_conditions, context)
    ]

    # sorted() is stable, so ties keep input order
    return sorted(selected, key=lambda rule: rule.priority, reverse=True)
