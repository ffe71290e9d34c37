"""
Pytest configuration and shared fixtures.

Every test that touches the database gets a fresh in-memory SQLite app
(TestingConfig) with all tables created.
"""
from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from adaptlearn import create_app, db as _db
from adaptlearn.models import AdaptationRule, LearningAnalytics, User


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def student(db):
    user = User(name='Test Student', email='student@example.com', role='student',
                learning_style='visual')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin(db):
    user = User(name='Test Admin', email='admin@example.com', role='admin')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def auth_headers(app):
    """Build an Authorization header for a user."""
    def make(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return make


@pytest.fixture
def make_analytics(db):
    """Persist an analytics record for a user; keyword arguments override columns."""
    def make(user, **overrides):
        now = datetime.utcnow()
        values = {
            'user_id': user.id,
            'period_start': now - timedelta(days=7),
            'period_end': now,
            'completion_rate': 60,
            'average_module_score': 75,
            'focus_score': 70,
            'session_count': 4,
            'satisfaction_score': 4,
            'effectiveness_score': 70,
        }
        values.update(overrides)
        analytics = LearningAnalytics(**values)
        db.session.add(analytics)
        db.session.commit()
        return analytics
    return make


@pytest.fixture
def make_rule(db):
    """Persist an adaptation rule with sensible defaults."""
    counter = {'n': 0}

    def make(**overrides):
        counter['n'] += 1
        values = {
            'name': f"Rule {counter['n']}",
            'description': 'Test rule',
            'category': 'intervention',
            'trigger_conditions': {'performance': {'maxCompletionRate': 30}},
            'adaptation_actions': {'intervention': {'sendNotification': True}},
        }
        values.update(overrides)
        rule = AdaptationRule(**values)
        db.session.add(rule)
        db.session.commit()
        return rule
    return make
