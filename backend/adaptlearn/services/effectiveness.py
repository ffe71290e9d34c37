"""
Outcome tracking for adaptation rules and recommendations.

The plain functions mutate an instance in memory and leave committing to
the caller. ``record_rule_outcome`` and ``expire_stale_recommendations``
write straight to the database with single UPDATE statements so concurrent
triggers and sweeps do not lose updates.
"""
from datetime import datetime
from typing import Dict, Optional

from loguru import logger
from sqlalchemy import update

from adaptlearn import db
from adaptlearn.models import AdaptationRule, Recommendation
from adaptlearn.models.recommendation import OPEN_STATUSES

# Recommendation response -> interaction status; anything else is "dismissed"
RESPONSE_STATUS = {
    'accepted': 'accepted',
    'declined': 'declined',
    'not_interested': 'declined',
}

IMPROVEMENT_THRESHOLD = 5


# ============== RULES ==============

def record_outcome(rule, was_successful: bool, now: Optional[datetime] = None):
    rule.total_triggers = (rule.total_triggers or 0) + 1
    if was_successful:
        rule.successful_adaptations = (rule.successful_adaptations or 0) + 1
    rule.success_rate = rule.successful_adaptations / rule.total_triggers * 100
    rule.last_triggered = now or datetime.utcnow()
    return rule


def record_rule_outcome(rule_id: int, was_successful: bool, now: Optional[datetime] = None):
    """Atomic counterpart of ``record_outcome`` for a persisted rule."""
    now = now or datetime.utcnow()
    increment = 1 if was_successful else 0

    # success_rate goes first: some backends apply SET clauses left to right
    stmt = update(AdaptationRule).where(
        AdaptationRule.id == rule_id
    ).ordered_values(
        (AdaptationRule.success_rate,
         (AdaptationRule.successful_adaptations + increment) * 100.0
         / (AdaptationRule.total_triggers + 1)),
        (AdaptationRule.total_triggers, AdaptationRule.total_triggers + 1),
        (AdaptationRule.successful_adaptations, AdaptationRule.successful_adaptations + increment),
        (AdaptationRule.last_triggered, now),
    ).execution_options(synchronize_session=False)

    result = db.session.execute(stmt)
    db.session.commit()

    if result.rowcount == 0:
        logger.warning(f"Outcome for unknown adaptation rule {rule_id} ignored")
        return None

    rule = db.session.get(AdaptationRule, rule_id)
    db.session.refresh(rule)
    return rule


# ============== RECOMMENDATIONS ==============

def mark_as_viewed(recommendation, now: Optional[datetime] = None) -> bool:
    """Move pending -> viewed. Any other status is left untouched."""
    if recommendation.status != 'pending':
        return False
    recommendation.status = 'viewed'
    recommendation.viewed_at = now or datetime.utcnow()
    return True


def record_response(recommendation, response: str, feedback: Optional[Dict] = None,
                    now: Optional[datetime] = None):
    if recommendation.status == 'expired':
        # accepted, but the client acted on a stale recommendation
        logger.warning(
            f"Response '{response}' recorded for expired recommendation {recommendation.id} "
            f"(user {recommendation.user_id})"
        )

    recommendation.response = response
    recommendation.responded_at = now or datetime.utcnow()
    recommendation.status = RESPONSE_STATUS.get(response, 'dismissed')

    if feedback:
        recommendation.feedback_dict = feedback

    return recommendation


def record_action_taken(recommendation, now: Optional[datetime] = None):
    recommendation.action_taken = True
    recommendation.action_taken_at = now or datetime.utcnow()
    recommendation.completed_suggested_action = True
    return recommendation


def update_effectiveness(recommendation, impact: Dict):
    if 'engagementChange' in impact:
        recommendation.engagement_change = impact['engagementChange']
    if 'performanceChange' in impact:
        recommendation.performance_change = impact['performanceChange']
    if 'timeToComplete' in impact:
        recommendation.time_to_complete = impact['timeToComplete']

    if (impact.get('engagementChange') or 0) > IMPROVEMENT_THRESHOLD:
        recommendation.improved_engagement = True
    if (impact.get('performanceChange') or 0) > IMPROVEMENT_THRESHOLD:
        recommendation.improved_performance = True

    return recommendation


def expire_stale_recommendations(now: Optional[datetime] = None) -> int:
    """Sweep pending/viewed recommendations past valid_until to expired."""
    now = now or datetime.utcnow()

    stmt = update(Recommendation).where(
        Recommendation.valid_until < now,
        Recommendation.status.in_(OPEN_STATUSES)
    ).values(status='expired').execution_options(synchronize_session='fetch')

    result = db.session.execute(stmt)
    db.session.commit()

    if result.rowcount:
        logger.info(f"Expired {result.rowcount} stale recommendations")
    return result.rowcount
