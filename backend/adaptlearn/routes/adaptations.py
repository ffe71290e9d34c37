from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from adaptlearn.models import AdaptationEvent
from adaptlearn.routes.auth import current_user_id
from adaptlearn.schemas import ModuleAdaptationsPayloadSchema
from adaptlearn.services.adaptation_engine import AdaptationEngine
from adaptlearn.services.conditions import select_module_adaptations

adaptations_bp = Blueprint('adaptations', __name__)


@adaptations_bp.route('/process', methods=['POST'])
@jwt_required()
def process_adaptations():
    user_id = current_user_id()
    result = AdaptationEngine().process_user_adaptations(user_id)

    if result is None:
        return jsonify({
            'message': 'No analytics data yet, adaptations skipped',
            'user_id': user_id,
            'adaptations_applied': []
        }), 200

    return jsonify(result), 200


@adaptations_bp.route('/events', methods=['GET'])
@jwt_required()
def adaptation_events():
    limit = request.args.get('limit', 20, type=int)

    events = AdaptationEvent.query.filter_by(
        user_id=current_user_id()
    ).order_by(
        AdaptationEvent.created_at.desc(), AdaptationEvent.id.desc()
    ).limit(limit).all()

    return jsonify({
        'events': [event.to_dict() for event in events]
    }), 200


@adaptations_bp.route('/module', methods=['POST'])
@jwt_required()
def module_adaptations():
    """Pick the learning-module adaptations that fit the learner's module performance."""
    data = ModuleAdaptationsPayloadSchema().load(request.get_json() or {})
    selected = select_module_adaptations(data['adaptations'], data['performance'])

    return jsonify({
        'user_id': current_user_id(),
        'applied_adaptations': selected,
        'total_evaluated': len(data['adaptations'])
    }), 200
