"""
API and CLI tests using the Flask test client and CLI runner.
"""
from datetime import datetime, timedelta

from adaptlearn.models import AdaptationRule, AIPrompt, Recommendation
from adaptlearn.routes import rules as rules_routes

RULE_PAYLOAD = {
    'name': 'Weekend Nudge',
    'description': 'Nudge learners with low completion at the weekend',
    'category': 'intervention',
    'trigger_conditions': {
        'performance': {'maxCompletionRate': 30},
        'timing': {'dayOfWeek': [0, 6]},
    },
    'adaptation_actions': {'intervention': {'sendNotification': True}},
    'priority': 15,
    'cooldown_period': 12,
}


class TestRuleRoutes:

    def test_requires_token(self, client):
        response = client.get('/api/rules')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'authorization_required'

    def test_admin_creates_rule(self, client, admin, auth_headers):
        response = client.post('/api/rules', json=RULE_PAYLOAD, headers=auth_headers(admin))

        assert response.status_code == 201
        rule = response.get_json()['rule']
        assert rule['configuration']['priority'] == 10
        assert rule['configuration']['cooldown_period'] == 12
        assert rule['trigger_conditions']['timing'] == {'dayOfWeek': [0, 6]}

    def test_student_cannot_create(self, client, student, auth_headers):
        response = client.post('/api/rules', json=RULE_PAYLOAD, headers=auth_headers(student))
        assert response.status_code == 403

    def test_invalid_range_is_rejected(self, client, admin, auth_headers):
        payload = dict(RULE_PAYLOAD, trigger_conditions={
            'performance': {'minCompletionRate': 80, 'maxCompletionRate': 20}
        })
        response = client.post('/api/rules', json=payload, headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.get_json()['error'] == 'validation_error'
        assert AdaptationRule.query.count() == 0

    def test_duplicate_name(self, client, admin, auth_headers):
        client.post('/api/rules', json=RULE_PAYLOAD, headers=auth_headers(admin))
        response = client.post('/api/rules', json=RULE_PAYLOAD, headers=auth_headers(admin))
        assert response.status_code == 400

    def test_name_collision_on_commit(self, client, admin, auth_headers, monkeypatch):
        # another request inserts the same name between the check and the commit
        monkeypatch.setattr(rules_routes, '_name_taken', lambda name: False)
        headers = auth_headers(admin)

        client.post('/api/rules', json=RULE_PAYLOAD, headers=headers)
        response = client.post('/api/rules', json=RULE_PAYLOAD, headers=headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'validation_error'
        assert AdaptationRule.query.count() == 1

    def test_update_and_deactivate(self, client, admin, auth_headers, make_rule):
        rule = make_rule()
        headers = auth_headers(admin)

        response = client.put(f'/api/rules/{rule.id}', json={'priority': 2}, headers=headers)
        assert response.get_json()['rule']['configuration']['priority'] == 2

        response = client.delete(f'/api/rules/{rule.id}', headers=headers)
        assert response.status_code == 200

        listed = client.get('/api/rules?active=true', headers=headers).get_json()['rules']
        assert listed == []

    def test_unknown_rule(self, client, student, auth_headers):
        response = client.get('/api/rules/42', headers=auth_headers(student))
        assert response.status_code == 404
        assert response.get_json()['error'] == 'not_found'


class TestRecommendationRoutes:

    def test_generate_and_list(self, client, student, auth_headers, make_analytics):
        make_analytics(student, completion_rate=30, focus_score=90, satisfaction_score=5)
        headers = auth_headers(student)

        response = client.post('/api/recommendations/generate', json={}, headers=headers)
        assert response.status_code == 201

        active = client.get('/api/recommendations', headers=headers).get_json()['recommendations']
        assert [r['type'] for r in active] == ['schedule_optimization']
        assert active[0]['overall_score'] == 79

    def test_generate_without_analytics(self, client, student, auth_headers):
        response = client.post('/api/recommendations/generate', json={}, headers=auth_headers(student))
        assert response.status_code == 404

    def test_get_marks_viewed_and_respond(self, db, client, student, auth_headers):
        rec = Recommendation(user_id=student.id, rec_type='study_break',
                             title='Break', description='Take five')
        db.session.add(rec)
        db.session.commit()
        headers = auth_headers(student)

        body = client.get(f'/api/recommendations/{rec.id}', headers=headers).get_json()
        assert body['recommendation']['user_interaction']['status'] == 'viewed'

        response = client.post(f'/api/recommendations/{rec.id}/respond',
                               json={'response': 'not_interested', 'feedback': {'helpfulness': 2}},
                               headers=headers)
        interaction = response.get_json()['recommendation']['user_interaction']
        assert interaction['status'] == 'declined'
        assert interaction['feedback'] == {'helpfulness': 2}

    def test_invalid_response(self, db, client, student, auth_headers):
        rec = Recommendation(user_id=student.id, rec_type='study_break',
                             title='Break', description='Take five')
        db.session.add(rec)
        db.session.commit()

        response = client.post(f'/api/recommendations/{rec.id}/respond',
                               json={'response': 'love_it'}, headers=auth_headers(student))
        assert response.status_code == 400

    def test_other_users_recommendation(self, db, client, student, admin, auth_headers):
        rec = Recommendation(user_id=admin.id, rec_type='study_break',
                             title='Break', description='Take five')
        db.session.add(rec)
        db.session.commit()

        response = client.get(f'/api/recommendations/{rec.id}', headers=auth_headers(student))
        assert response.status_code == 404

    def test_effectiveness_update(self, db, client, student, auth_headers):
        rec = Recommendation(user_id=student.id, rec_type='study_break',
                             title='Break', description='Take five')
        db.session.add(rec)
        db.session.commit()

        response = client.put(f'/api/recommendations/{rec.id}/effectiveness',
                              json={'performanceChange': 8}, headers=auth_headers(student))
        assert response.get_json()['effectiveness']['improved_performance'] is True


class TestPromptAndAdaptationRoutes:

    def test_best_prompt_after_seed(self, app, client, student, auth_headers):
        app.test_cli_runner().invoke(args=['seed'])
        headers = auth_headers(student)

        response = client.get('/api/prompts/best?personality=SAGE&context_type=progress_review',
                              headers=headers)
        assert response.status_code == 200
        prompt = response.get_json()['prompt']
        assert prompt['name'] == 'SAGE Progress Review'

        built = client.post(f"/api/prompts/{prompt['id']}/build",
                            json={'context': {'progress': {'totalLearningTime': 90}}},
                            headers=headers).get_json()
        assert '90 minutes' in built['system_prompt']

        usage = client.post(f"/api/prompts/{prompt['id']}/usage",
                            json={'response_time': 120, 'rating': 5}, headers=headers)
        assert usage.get_json()['performance_metrics']['average_rating'] == 5

    def test_no_eligible_prompt(self, client, student, auth_headers):
        response = client.get('/api/prompts/best?personality=COACH&context_type=motivation',
                              headers=auth_headers(student))
        assert response.status_code == 404
        assert response.get_json()['error'] == 'no_eligible_prompt'

    def test_process_adaptations(self, client, student, auth_headers, make_analytics, make_rule):
        make_rule()
        headers = auth_headers(student)

        skipped = client.post('/api/adaptations/process', headers=headers).get_json()
        assert skipped['adaptations_applied'] == []

        make_analytics(student, completion_rate=10)
        result = client.post('/api/adaptations/process', headers=headers).get_json()
        assert len(result['adaptations_applied']) == 1

        events = client.get('/api/adaptations/events', headers=headers).get_json()['events']
        assert len(events) == 1

    def test_module_adaptations(self, client, student, auth_headers):
        payload = {
            'adaptations': [
                {'triggerCondition': 'struggling', 'adaptationType': 'simplified_explanation',
                 'priority': 4},
                {'triggerCondition': 'low_engagement', 'adaptationType': 'content_variation',
                 'priority': 7},
                {'triggerCondition': 'excelling', 'adaptationType': 'advanced_content',
                 'priority': 9},
                {'triggerCondition': 'struggling', 'adaptationType': 'additional_examples',
                 'priority': 10, 'isActive': False},
            ],
            'performance': {'averageScore': 45, 'engagementScore': 30},
        }

        response = client.post('/api/adaptations/module', json=payload,
                               headers=auth_headers(student))

        assert response.status_code == 200
        body = response.get_json()
        assert [a['adaptationType'] for a in body['applied_adaptations']] == [
            'content_variation', 'simplified_explanation'
        ]
        assert body['total_evaluated'] == 4

    def test_module_adaptations_unknown_trigger(self, client, student, auth_headers):
        payload = {'adaptations': [{'triggerCondition': 'bored', 'adaptationType': 'difficulty_adjust'}]}
        response = client.post('/api/adaptations/module', json=payload,
                               headers=auth_headers(student))
        assert response.status_code == 400


class TestCommands:

    def test_seed_is_idempotent(self, app):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['seed'])
        runner.invoke(args=['seed'])

        assert 'Database seeded!' in first.output
        assert AdaptationRule.query.count() == 5
        assert AIPrompt.query.count() == 2

    def test_expire_recommendations(self, db, app, student):
        db.session.add(Recommendation(
            user_id=student.id, rec_type='study_break', title='Break', description='Take five',
            valid_until=datetime.utcnow() - timedelta(days=1)
        ))
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['expire-recommendations'])
        assert 'Expired 1 recommendations' in result.output
        assert Recommendation.query.one().status == 'expired'
