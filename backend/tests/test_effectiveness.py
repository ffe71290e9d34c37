"""
Tests for outcome tracking on rules and recommendation lifecycle updates.
"""
from datetime import datetime, timedelta

from adaptlearn.models import AdaptationRule, Recommendation
from adaptlearn.services.effectiveness import (
    expire_stale_recommendations, mark_as_viewed, record_action_taken, record_outcome,
    record_response, record_rule_outcome, update_effectiveness
)


def recommendation(user, **overrides):
    values = {
        'user_id': user.id,
        'rec_type': 'study_break',
        'title': 'Take a break',
        'description': 'Step away for ten minutes',
        'relevance_score': 60,
        'confidence_score': 60,
        'priority_score': 60,
        'suggested_timing': 'today',
    }
    values.update(overrides)
    return Recommendation(**values)


class TestRuleOutcomes:

    def test_in_memory_counters(self, app):
        rule = AdaptationRule(name='r', description='d', category='engagement')
        now = datetime(2026, 10, 19, 9, 0)

        record_outcome(rule, True, now)
        record_outcome(rule, False, now)
        record_outcome(rule, True, now)

        assert rule.total_triggers == 3
        assert rule.successful_adaptations == 2
        assert round(rule.success_rate, 2) == 66.67
        assert rule.last_triggered == now

    def test_atomic_update(self, make_rule):
        rule = make_rule()
        now = datetime(2026, 10, 19, 9, 0)

        record_rule_outcome(rule.id, True, now)
        updated = record_rule_outcome(rule.id, False, now)

        assert updated.total_triggers == 2
        assert updated.successful_adaptations == 1
        assert updated.success_rate == 50.0
        assert updated.last_triggered == now
        assert updated.successful_adaptations <= updated.total_triggers

    def test_unknown_rule(self, app):
        assert record_rule_outcome(999, True) is None


class TestRecommendationLifecycle:

    def test_mark_as_viewed_is_idempotent(self, db, student):
        rec = recommendation(student)
        db.session.add(rec)
        db.session.commit()

        first = datetime(2026, 10, 19, 9, 0)
        assert mark_as_viewed(rec, first)
        assert not mark_as_viewed(rec, first + timedelta(hours=1))

        assert rec.status == 'viewed'
        assert rec.viewed_at == first

    def test_mark_as_viewed_leaves_answered(self, student):
        rec = recommendation(student, status='accepted')
        assert not mark_as_viewed(rec)
        assert rec.status == 'accepted'

    def test_response_status_mapping(self, student):
        for response, status in [('accepted', 'accepted'), ('declined', 'declined'),
                                 ('not_interested', 'declined'), ('maybe_later', 'dismissed')]:
            rec = recommendation(student)
            record_response(rec, response)
            assert rec.status == status
            assert rec.response == response
            assert rec.responded_at is not None

    def test_feedback_is_stored_verbatim(self, student):
        rec = recommendation(student)
        feedback = {'helpfulness': 4, 'comment': 'Useful'}
        record_response(rec, 'accepted', feedback)
        assert rec.feedback_dict == feedback

    def test_response_to_expired_is_recorded(self, student):
        rec = recommendation(student, status='expired')
        record_response(rec, 'accepted')
        assert rec.status == 'accepted'

    def test_action_taken(self, student):
        rec = recommendation(student)
        record_action_taken(rec)
        assert rec.action_taken
        assert rec.completed_suggested_action
        assert rec.action_taken_at is not None

    def test_effectiveness_threshold(self, student):
        rec = recommendation(student)
        update_effectiveness(rec, {'engagementChange': 12, 'performanceChange': 5})
        assert rec.improved_engagement
        assert not rec.improved_performance
        assert rec.performance_change == 5


class TestExpirationSweep:

    def test_expires_open_recommendations(self, db, student):
        past = datetime.utcnow() - timedelta(days=1)
        viewed = recommendation(student, status='viewed', valid_until=past)
        pending = recommendation(student, valid_until=past)
        accepted = recommendation(student, status='accepted', valid_until=past)
        current = recommendation(student)
        db.session.add_all([viewed, pending, accepted, current])
        db.session.commit()

        assert expire_stale_recommendations() == 2

        assert db.session.get(Recommendation, viewed.id).status == 'expired'
        assert db.session.get(Recommendation, pending.id).status == 'expired'
        assert db.session.get(Recommendation, accepted.id).status == 'accepted'
        assert db.session.get(Recommendation, current.id).status == 'pending'

    def test_sweep_is_idempotent(self, db, student):
        rec = recommendation(student, valid_until=datetime.utcnow() - timedelta(hours=1))
        db.session.add(rec)
        db.session.commit()

        assert expire_stale_recommendations() == 1
        assert expire_stale_recommendations() == 0
