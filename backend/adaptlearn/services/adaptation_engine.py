from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from loguru import logger

from adaptlearn import db
from adaptlearn.models import AdaptationEvent, AdaptationRule, LearningAnalytics, User
from adaptlearn.services.context import build_context_snapshot
from adaptlearn.services.effectiveness import record_rule_outcome
from adaptlearn.services.selector import select_applicable

# Action groups in the order they are applied
ACTION_GROUPS = ['content', 'aiPersonality', 'pace', 'intervention', 'recommendations']


def switched_on(actions: Dict) -> List[Dict]:
    """The action groups with at least one action set, keeping only those actions."""
    applied = []
    for group in ACTION_GROUPS:
        enabled = {
            name: value for name, value in (actions.get(group) or {}).items()
            if value
        }
        if enabled:
            applied.append({'type': group, 'actions': enabled})
    return applied


def local_time(utc_moment: datetime) -> datetime:
    """Convert a naive UTC datetime to naive local time."""
    return utc_moment.replace(tzinfo=timezone.utc).astimezone().replace(tzinfo=None)


class AdaptationEngine:
    """
    Runs adaptation rules against a learner's latest analytics.

    Applying a rule is declarative: the engine records which actions are
    switched on and leaves carrying them out to the consumers of the event
    log.
    """

    def process_user_adaptations(self, user_id: int, now: Optional[datetime] = None) -> Optional[Dict]:
        """
        Evaluate and apply every eligible rule for a learner.

        Returns None when the learner has no analytics yet, otherwise a
        summary of what was applied.
        """
        now = now or datetime.utcnow()

        analytics = LearningAnalytics.latest_for(user_id)
        if not analytics:
            logger.info(f"No analytics data for user {user_id}, skipping adaptations")
            return None

        user = db.session.get(User, user_id)
        # Timing windows use the local clock; cooldowns and logs stay in UTC
        context = build_context_snapshot(user, analytics, now=local_time(now))

        candidates = AdaptationRule.candidates_for(user_id)
        rules = select_applicable(candidates, context, user_id, now)

        applied = []
        for rule in rules:
            result = self.apply_rule(rule, user_id)

            db.session.add(AdaptationEvent(
                user_id=user_id,
                rule_id=rule.id,
                rule_name=rule.name,
                success=result['success'],
                error=result.get('error'),
                created_at=now,
                state_dict=context.to_dict(),
                actions_list=result.get('actions_applied', [])
            ))
            record_rule_outcome(rule.id, result['success'], now)

            if result['success']:
                applied.append(result)

        db.session.commit()

        return {
            'user_id': user_id,
            'adaptations_applied': applied,
            'total_rules_evaluated': len(candidates),
            'analytics': {
                'completion_rate': analytics.completion_rate,
                'engagement_score': analytics.focus_score
            }
        }

    def apply_rule(self, rule: AdaptationRule, user_id: int) -> Dict:
        logger.info(f'Applying adaptation rule "{rule.name}" for user {user_id}')

        try:
            actions_applied = switched_on(rule.adaptation_actions)
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f"Error applying rule {rule.name}: {e}")
            return {'rule_name': rule.name, 'success': False, 'error': str(e)}

        return {
            'rule_name': rule.name,
            'actions_applied': actions_applied,
            'success': True
        }

    def get_adaptation_stats(self, days: int = 7, now: Optional[datetime] = None) -> Dict:
        start = (now or datetime.utcnow()) - timedelta(days=days)

        triggered = AdaptationRule.query.filter(AdaptationRule.last_triggered >= start).all()
        total_triggers = sum(rule.total_triggers for rule in triggered)
        successful = sum(rule.successful_adaptations for rule in triggered)

        return {
            'total_rules': AdaptationRule.query.filter_by(is_active=True).count(),
            'triggered_rules': len(triggered),
            'successful_adaptations': successful,
            'total_triggers': total_triggers,
            'success_rate': round(successful / total_triggers * 100, 1) if total_triggers else 0
        }
