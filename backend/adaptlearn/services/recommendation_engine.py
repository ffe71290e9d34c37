from datetime import datetime, timedelta
from typing import Dict, List, Optional

import numpy as np
from loguru import logger

from adaptlearn import db
from adaptlearn.errors import NotFoundError
from adaptlearn.models import LearningAnalytics, Recommendation, User


class RecommendationEngine:
    """
    Rule-based recommendation generator.

    Each generation rule looks at the learner's latest analytics record and,
    when its threshold is crossed, contributes one recommendation with fixed
    relevance/confidence/priority scores.
    """

    # (analytics attribute, upper bound, recommendation template)
    GENERATION_RULES = [
        ('completion_rate', 50, {
            'rec_type': 'schedule_optimization',
            'title': 'Optimize Your Learning Schedule',
            'description': 'Based on your learning patterns, we recommend adjusting '
                           'your study schedule for better results.',
            'relevance_score': 85,
            'confidence_score': 70,
            'priority_score': 80,
        }),
        ('focus_score', 60, {
            'rec_type': 'difficulty_adjustment',
            'title': 'Content Difficulty Adjustment',
            'description': 'We notice you might benefit from content that better '
                           'matches your current skill level.',
            'relevance_score': 90,
            'confidence_score': 75,
            'priority_score': 85,
        }),
        ('satisfaction_score', 3, {
            'rec_type': 'ai_personality',
            'title': 'Try a Different AI Assistant Style',
            'description': 'Switch to a different AI personality that might better '
                           'match your learning preferences.',
            'relevance_score': 70,
            'confidence_score': 65,
            'priority_score': 60,
        }),
    ]

    def __init__(self, max_recommendations: int = 5):
        self.max_recommendations = max_recommendations

    def generate_recommendations(
        self,
        user_id: int,
        context: Optional[Dict] = None,
        max_recommendations: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[Recommendation]:
        """
        Create and persist recommendations for a learner.

        Args:
            user_id: The learner's ID
            context: Optional request context (category, current_module_id,
                current_path_id, current_path_progress)
            max_recommendations: Cap on how many are created

        Returns:
            The newly created Recommendation objects (possibly empty)
        """
        context = context or {}
        limit = max_recommendations or self.max_recommendations
        now = now or datetime.utcnow()

        user = db.session.get(User, user_id)
        analytics = LearningAnalytics.latest_for(user_id)
        if not user or not analytics:
            raise NotFoundError('User or analytics data not found', {'user_id': user_id})

        templates = [
            template for attribute, upper, template in self.GENERATION_RULES
            if (getattr(analytics, attribute) or 0) < upper
        ]

        created = []
        for template in templates[:limit]:
            rec = Recommendation(
                user_id=user_id,
                category=context.get('category') or 'General',
                primary_action='View Details',
                deep_link=f"/recommendations/{template['rec_type']}",
                algorithm='rule_based',
                algorithm_version='1.0',
                suggested_timing='this_week',
                generated_at=now,
                **template
            )
            rec.context_dict = {
                'current_module_id': context.get('current_module_id'),
                'current_path_id': context.get('current_path_id'),
                'user_progress': {
                    'overall_completion': analytics.completion_rate,
                    'current_path_progress': context.get('current_path_progress') or 0
                }
            }
            db.session.add(rec)
            created.append(rec)

        analytics.recommendations_generated = (analytics.recommendations_generated or 0) + len(created)
        db.session.commit()

        logger.info(f"Generated {len(created)} recommendations for user {user_id}")
        return created

    def effectiveness_stats(self, days: int = 30, now: Optional[datetime] = None) -> List[Dict]:
        """Per-type outcome summary for recommendations the user has seen."""
        start = (now or datetime.utcnow()) - timedelta(days=days)

        rows = Recommendation.query.filter(
            Recommendation.generated_at >= start,
            Recommendation.status != 'pending'
        ).all()

        by_type: Dict[str, List[Recommendation]] = {}
        for rec in rows:
            by_type.setdefault(rec.rec_type, []).append(rec)

        stats = []
        for rec_type, recs in sorted(by_type.items()):
            total = len(recs)
            accepted = sum(1 for r in recs if r.response == 'accepted')
            helpfulness = [
                r.feedback_dict['helpfulness'] for r in recs
                if r.feedback_dict and r.feedback_dict.get('helpfulness') is not None
            ]
            stats.append({
                'type': rec_type,
                'total_recommendations': total,
                'accepted_recommendations': accepted,
                'acceptance_rate': round(accepted / total * 100, 1),
                'average_relevance_score': round(float(np.mean([r.relevance_score for r in recs])), 2),
                'average_confidence_score': round(float(np.mean([r.confidence_score for r in recs])), 2),
                'average_feedback_helpfulness': round(float(np.mean(helpfulness)), 2) if helpfulness else None,
                'improved_engagement': sum(1 for r in recs if r.improved_engagement),
                'improved_performance': sum(1 for r in recs if r.improved_performance),
            })

        return stats

    def user_stats(self, user_id: int, days: int = 30, now: Optional[datetime] = None) -> Dict:
        start = (now or datetime.utcnow()) - timedelta(days=days)

        recs = Recommendation.query.filter(
            Recommendation.user_id == user_id,
            Recommendation.generated_at >= start
        ).all()

        by_status: Dict[str, int] = {}
        for rec in recs:
            by_status[rec.status] = by_status.get(rec.status, 0) + 1

        responded = sum(by_status.get(s, 0) for s in ('accepted', 'declined', 'dismissed'))

        return {
            'user_id': user_id,
            'days': days,
            'total': len(recs),
            'by_status': by_status,
            'acceptance_rate': round(by_status.get('accepted', 0) / responded * 100, 1) if responded else 0,
            'actions_taken': sum(1 for rec in recs if rec.action_taken),
            'average_overall_score': round(float(np.mean([r.overall_score for r in recs])), 2) if recs else 0
        }
