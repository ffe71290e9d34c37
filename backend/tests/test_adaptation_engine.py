"""
Integration tests for the AdaptationEngine against seeded default rules.
"""
import time
from datetime import datetime, timedelta

import pytest

from adaptlearn.models import AdaptationEvent, AdaptationRule
from adaptlearn.services.adaptation_engine import AdaptationEngine, local_time, switched_on
from adaptlearn.utils.seed_data import DEFAULT_RULES, seed_rules

LOW_COMPLETION = 'Low Completion Rate Intervention'


class TestSwitchedOn:

    def test_keeps_enabled_actions_only(self):
        actions = {
            'content': {'adjustDifficulty': 'decrease', 'enableHints': False},
            'pace': {'suggestBreak': False},
            'intervention': {'sendNotification': True},
        }
        assert switched_on(actions) == [
            {'type': 'content', 'actions': {'adjustDifficulty': 'decrease'}},
            {'type': 'intervention', 'actions': {'sendNotification': True}},
        ]

    def test_empty(self):
        assert switched_on({}) == []


class TestProcessUserAdaptations:

    def test_without_analytics(self, student):
        assert AdaptationEngine().process_user_adaptations(student.id) is None

    def test_applies_matching_rule(self, db, student, make_analytics):
        seed_rules()
        make_analytics(student, completion_rate=20)
        now = datetime.utcnow()

        result = AdaptationEngine().process_user_adaptations(student.id, now=now)

        assert result['total_rules_evaluated'] == len(DEFAULT_RULES)
        assert [a['rule_name'] for a in result['adaptations_applied']] == [LOW_COMPLETION]
        assert result['adaptations_applied'][0]['actions_applied'] == [
            {'type': 'aiPersonality', 'actions': {'switchTo': 'COACH', 'increaseSupport': True}},
            {'type': 'intervention', 'actions': {'sendNotification': True, 'scheduleCheckin': True}},
        ]

        rule = AdaptationRule.query.filter_by(name=LOW_COMPLETION).one()
        assert rule.total_triggers == 1
        assert rule.successful_adaptations == 1
        assert rule.success_rate == 100.0
        assert rule.last_triggered == now

        event = AdaptationEvent.query.filter_by(user_id=student.id).one()
        assert event.rule_id == rule.id
        assert event.success
        assert event.state_dict['completion_rate'] == 20

    def test_cooldown_blocks_repeat(self, db, student, make_analytics):
        seed_rules()
        make_analytics(student, completion_rate=20)
        engine = AdaptationEngine()
        now = datetime.utcnow()

        engine.process_user_adaptations(student.id, now=now)
        soon = engine.process_user_adaptations(student.id, now=now + timedelta(hours=1))
        later = engine.process_user_adaptations(student.id, now=now + timedelta(hours=49))

        assert soon['adaptations_applied'] == []
        assert [a['rule_name'] for a in later['adaptations_applied']] == [LOW_COMPLETION]
        assert AdaptationRule.query.filter_by(name=LOW_COMPLETION).one().total_triggers == 2

    def test_targeted_rule_only_for_target(self, db, student, admin, make_analytics, make_rule):
        rule = make_rule(is_global=False)
        rule.target_users = [admin]
        db.session.commit()
        make_analytics(student, completion_rate=20)

        result = AdaptationEngine().process_user_adaptations(student.id)
        assert result['adaptations_applied'] == []

    def test_adaptation_stats(self, db, student, make_analytics):
        seed_rules()
        make_analytics(student, completion_rate=20)
        AdaptationEngine().process_user_adaptations(student.id)

        stats = AdaptationEngine().get_adaptation_stats(days=7)
        assert stats == {
            'total_rules': len(DEFAULT_RULES),
            'triggered_rules': 1,
            'successful_adaptations': 1,
            'total_triggers': 1,
            'success_rate': 100.0,
        }


@pytest.fixture
def tokyo_time(monkeypatch):
    """Run the test with the process clock set to Asia/Tokyo (UTC+9)."""
    monkeypatch.setenv('TZ', 'Asia/Tokyo')
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestLocalTimeWindow:

    # 07:00 UTC is 16:00 in Tokyo
    NOW = datetime(2026, 10, 19, 7, 0)

    def test_local_time(self, tokyo_time):
        assert local_time(self.NOW) == datetime(2026, 10, 19, 16, 0)

    def test_window_uses_local_hour(self, db, student, make_analytics, make_rule, tokyo_time):
        make_rule(name='local', trigger_conditions={
            'performance': {'maxCompletionRate': 30},
            'timing': {'timeOfDay': {'start': 16, 'end': 16}},
        })
        make_rule(name='utc', trigger_conditions={
            'performance': {'maxCompletionRate': 30},
            'timing': {'timeOfDay': {'start': 7, 'end': 7}},
        })
        make_analytics(student, completion_rate=20)

        result = AdaptationEngine().process_user_adaptations(student.id, now=self.NOW)

        assert [a['rule_name'] for a in result['adaptations_applied']] == ['local']
        rule = AdaptationRule.query.filter_by(name='local').one()
        assert rule.last_triggered == self.NOW
