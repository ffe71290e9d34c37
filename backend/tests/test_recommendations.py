"""
Tests for the Recommendation model and the rule-based RecommendationEngine.
"""
from datetime import datetime, timedelta

import pytest

from adaptlearn.errors import InvalidDataError, NotFoundError
from adaptlearn.models import Recommendation
from adaptlearn.services.effectiveness import record_response
from adaptlearn.services.recommendation_engine import RecommendationEngine


def recommendation(user, **overrides):
    values = {
        'user_id': user.id,
        'rec_type': 'review_content',
        'title': 'Review loops',
        'description': 'Go over the loops module again',
    }
    values.update(overrides)
    return Recommendation(**values)


class TestRecommendationModel:

    def test_overall_score_is_derived(self, student):
        rec = recommendation(student, relevance_score=85, confidence_score=70, priority_score=80)
        assert rec.overall_score == 79

    def test_overall_score_follows_updates(self, db, student):
        rec = recommendation(student, relevance_score=85, confidence_score=70, priority_score=80)
        db.session.add(rec)
        db.session.commit()

        rec.relevance_score = 100
        db.session.commit()
        assert rec.overall_score == 85

    def test_overall_score_updates_before_flush(self, student):
        rec = recommendation(student, relevance_score=85, confidence_score=70, priority_score=80)

        rec.relevance_score = 100
        assert rec.overall_score == 85

        rec.priority_score = 20
        rec.confidence_score = 40
        assert rec.overall_score == 58

    def test_score_out_of_range(self, student):
        with pytest.raises(InvalidDataError):
            recommendation(student, relevance_score=120)

    @pytest.mark.parametrize('timing,days', [
        ('immediate', 1), ('today', 2), ('this_week', 7), ('next_week', 14), ('flexible', 30), (None, 30)
    ])
    def test_default_validity(self, student, timing, days):
        generated = datetime(2026, 10, 19, 9, 0)
        rec = recommendation(student, suggested_timing=timing, generated_at=generated)
        assert rec.valid_until == generated + timedelta(days=days)

    def test_explicit_valid_until_is_kept(self, student):
        until = datetime(2027, 1, 1)
        assert recommendation(student, valid_until=until).valid_until == until

    def test_timing_helpers(self, student):
        generated = datetime(2026, 10, 19, 9, 0)
        rec = recommendation(student, suggested_timing='this_week', generated_at=generated)
        assert rec.time_remaining_days(generated + timedelta(days=2)) == 5
        assert not rec.is_expired(generated + timedelta(days=6))
        assert rec.is_expired(generated + timedelta(days=8))

    def test_active_for_user(self, db, student):
        now = datetime.utcnow()
        low = recommendation(student, title='low', relevance_score=20, generated_at=now)
        high = recommendation(student, title='high', relevance_score=95, generated_at=now)
        expired = recommendation(student, title='expired', relevance_score=99,
                                 valid_until=now - timedelta(hours=1))
        answered = recommendation(student, title='answered', relevance_score=99, status='accepted')
        db.session.add_all([low, high, expired, answered])
        db.session.commit()

        active = Recommendation.active_for_user(student.id)
        assert [r.title for r in active] == ['high', 'low']
        assert len(Recommendation.active_for_user(student.id, limit=1)) == 1


class TestRecommendationEngine:

    def test_generates_from_analytics(self, student, make_analytics):
        make_analytics(student, completion_rate=40, focus_score=50, satisfaction_score=4)

        created = RecommendationEngine().generate_recommendations(
            student.id, {'category': 'Technical Skills', 'current_path_progress': 25}
        )

        assert [r.rec_type for r in created] == ['schedule_optimization', 'difficulty_adjustment']
        first = created[0]
        assert first.overall_score == 79
        assert first.suggested_timing == 'this_week'
        assert first.deep_link == '/recommendations/schedule_optimization'
        assert first.category == 'Technical Skills'
        assert first.context_dict['user_progress'] == {
            'overall_completion': 40, 'current_path_progress': 25
        }
        assert first.valid_until - first.generated_at == timedelta(days=7)

    def test_respects_cap(self, student, make_analytics):
        make_analytics(student, completion_rate=10, focus_score=10, satisfaction_score=1)

        created = RecommendationEngine().generate_recommendations(student.id, max_recommendations=2)
        assert len(created) == 2

        all_three = RecommendationEngine().generate_recommendations(student.id)
        assert [r.rec_type for r in all_three][-1] == 'ai_personality'

    def test_no_triggers(self, student, make_analytics):
        make_analytics(student, completion_rate=90, focus_score=90, satisfaction_score=5)
        assert RecommendationEngine().generate_recommendations(student.id) == []

    def test_missing_analytics(self, student):
        with pytest.raises(NotFoundError):
            RecommendationEngine().generate_recommendations(student.id)

    def test_effectiveness_stats(self, db, student):
        accepted = recommendation(student, rec_type='study_break', relevance_score=80)
        declined = recommendation(student, rec_type='study_break', relevance_score=60)
        pending = recommendation(student, rec_type='study_break')
        record_response(accepted, 'accepted', {'helpfulness': 5})
        record_response(declined, 'declined', {'helpfulness': 2})
        accepted.improved_engagement = True
        db.session.add_all([accepted, declined, pending])
        db.session.commit()

        stats = RecommendationEngine().effectiveness_stats(days=30)

        assert len(stats) == 1
        row = stats[0]
        assert row['type'] == 'study_break'
        assert row['total_recommendations'] == 2
        assert row['accepted_recommendations'] == 1
        assert row['acceptance_rate'] == 50.0
        assert row['average_relevance_score'] == 70.0
        assert row['average_feedback_helpfulness'] == 3.5
        assert row['improved_engagement'] == 1

    def test_user_stats(self, db, student):
        accepted = recommendation(student)
        record_response(accepted, 'accepted')
        db.session.add_all([accepted, recommendation(student)])
        db.session.commit()

        stats = RecommendationEngine().user_stats(student.id)
        assert stats['total'] == 2
        assert stats['by_status'] == {'accepted': 1, 'pending': 1}
        assert stats['acceptance_rate'] == 100.0
