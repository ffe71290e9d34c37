from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from adaptlearn import db
from adaptlearn.errors import InvalidDataError, NotFoundError
from adaptlearn.models import AIPrompt
from adaptlearn.schemas import PERSONALITIES, PromptBuildSchema, PromptUsageSchema
from adaptlearn.services.prompt_service import (
    build_contextualized_prompt, get_best_prompt, record_usage
)

prompts_bp = Blueprint('prompts', __name__)


def _get_prompt(prompt_id):
    prompt = db.session.get(AIPrompt, prompt_id)
    if prompt is None or not prompt.is_active:
        raise NotFoundError(f'Prompt {prompt_id} not found')
    return prompt


@prompts_bp.route('/best', methods=['GET'])
@jwt_required()
def best_prompt():
    personality = request.args.get('personality')
    context_type = request.args.get('context_type')

    if personality not in PERSONALITIES:
        raise InvalidDataError(f'Unknown personality: {personality}')
    if not context_type:
        raise InvalidDataError('context_type is required')

    prompt = get_best_prompt(
        personality,
        context_type,
        learning_domain=request.args.get('learning_domain'),
        difficulty=request.args.get('difficulty')
    )

    return jsonify({'prompt': prompt.to_dict()}), 200


@prompts_bp.route('/<int:prompt_id>/build', methods=['POST'])
@jwt_required()
def build_prompt(prompt_id):
    prompt = _get_prompt(prompt_id)
    data = PromptBuildSchema().load(request.get_json() or {})

    return jsonify(build_contextualized_prompt(prompt, data.get('context'))), 200


@prompts_bp.route('/<int:prompt_id>/usage', methods=['POST'])
@jwt_required()
def prompt_usage(prompt_id):
    prompt = _get_prompt(prompt_id)
    data = PromptUsageSchema().load(request.get_json() or {})

    record_usage(prompt, data['response_time'], data.get('rating'))
    db.session.commit()

    return jsonify({
        'message': 'Usage recorded',
        'performance_metrics': prompt.to_dict()['performance_metrics']
    }), 200
