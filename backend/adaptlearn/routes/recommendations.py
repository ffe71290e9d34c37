from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required

from adaptlearn import db
from adaptlearn.models import Recommendation
from adaptlearn.routes.auth import admin_required, current_user_id
from adaptlearn.schemas import (
    GenerateRecommendationsSchema, ImpactSchema, RECOMMENDATION_TYPES,
    RecommendationResponseSchema
)
from adaptlearn.errors import InvalidDataError
from adaptlearn.services.effectiveness import (
    mark_as_viewed, record_action_taken, record_response, update_effectiveness
)
from adaptlearn.services.recommendation_engine import RecommendationEngine

recommendations_bp = Blueprint('recommendations', __name__)


def _own_recommendation(recommendation_id):
    return Recommendation.query.filter_by(
        id=recommendation_id,
        user_id=current_user_id()
    ).first_or_404()


@recommendations_bp.route('', methods=['GET'])
@jwt_required()
def get_active_recommendations():
    limit = request.args.get('limit', current_app.config['ACTIVE_RECOMMENDATION_LIMIT'], type=int)

    recommendations = Recommendation.active_for_user(current_user_id(), limit=limit)

    return jsonify({
        'recommendations': [r.to_dict() for r in recommendations]
    }), 200


@recommendations_bp.route('/type/<rec_type>', methods=['GET'])
@jwt_required()
def get_recommendations_by_type(rec_type):
    if rec_type not in RECOMMENDATION_TYPES:
        raise InvalidDataError(f'Unknown recommendation type: {rec_type}')

    limit = request.args.get('limit', 5, type=int)
    recommendations = Recommendation.by_type(current_user_id(), rec_type, limit=limit)

    return jsonify({
        'recommendations': [r.to_dict() for r in recommendations]
    }), 200


@recommendations_bp.route('/generate', methods=['POST'])
@jwt_required()
def generate_recommendations():
    data = GenerateRecommendationsSchema().load(request.get_json() or {})

    engine = RecommendationEngine(current_app.config['MAX_RECOMMENDATIONS'])
    created = engine.generate_recommendations(
        current_user_id(),
        context=data,
        max_recommendations=data.get('max_recommendations')
    )

    return jsonify({
        'message': f'{len(created)} recommendations generated',
        'recommendations': [r.to_dict() for r in created]
    }), 201


@recommendations_bp.route('/stats/user', methods=['GET'])
@jwt_required()
def get_user_stats():
    days = request.args.get('days', current_app.config['EFFECTIVENESS_WINDOW_DAYS'], type=int)
    stats = RecommendationEngine().user_stats(current_user_id(), days)
    return jsonify(stats), 200


@recommendations_bp.route('/stats/effectiveness', methods=['GET'])
@admin_required
def get_effectiveness_stats():
    days = request.args.get('days', current_app.config['EFFECTIVENESS_WINDOW_DAYS'], type=int)
    return jsonify({
        'days': days,
        'stats': RecommendationEngine().effectiveness_stats(days)
    }), 200


@recommendations_bp.route('/<int:recommendation_id>', methods=['GET'])
@jwt_required()
def get_recommendation(recommendation_id):
    recommendation = _own_recommendation(recommendation_id)

    if mark_as_viewed(recommendation):
        db.session.commit()

    return jsonify({'recommendation': recommendation.to_dict()}), 200


@recommendations_bp.route('/<int:recommendation_id>/respond', methods=['POST'])
@jwt_required()
def respond_to_recommendation(recommendation_id):
    recommendation = _own_recommendation(recommendation_id)
    data = RecommendationResponseSchema().load(request.get_json() or {})

    record_response(recommendation, data['response'], data.get('feedback'))
    db.session.commit()

    return jsonify({
        'message': 'Response recorded',
        'recommendation': recommendation.to_dict()
    }), 200


@recommendations_bp.route('/<int:recommendation_id>/action-taken', methods=['POST'])
@jwt_required()
def mark_action_taken(recommendation_id):
    recommendation = _own_recommendation(recommendation_id)

    record_action_taken(recommendation)
    db.session.commit()

    return jsonify({
        'message': 'Action recorded',
        'recommendation': recommendation.to_dict()
    }), 200


@recommendations_bp.route('/<int:recommendation_id>/effectiveness', methods=['PUT'])
@jwt_required()
def record_effectiveness(recommendation_id):
    recommendation = _own_recommendation(recommendation_id)
    impact = ImpactSchema().load(request.get_json() or {})

    update_effectiveness(recommendation, impact)
    db.session.commit()

    return jsonify({
        'message': 'Effectiveness updated',
        'effectiveness': recommendation.to_dict()['effectiveness']
    }), 200
