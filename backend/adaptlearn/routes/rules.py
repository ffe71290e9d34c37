from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from loguru import logger
from sqlalchemy.exc import IntegrityError

from adaptlearn import db
from adaptlearn.errors import NotFoundError, RuleValidationError
from adaptlearn.models import AdaptationRule, User
from adaptlearn.routes.auth import admin_required
from adaptlearn.schemas import RulePayloadSchema
from adaptlearn.services.adaptation_engine import AdaptationEngine

rules_bp = Blueprint('rules', __name__)


def _get_rule(rule_id):
    rule = db.session.get(AdaptationRule, rule_id)
    if rule is None:
        raise NotFoundError(f'Adaptation rule {rule_id} not found')
    return rule


def _apply_payload(rule, data):
    """Copy loaded payload fields onto a rule."""
    data = dict(data)

    if 'type' in data:
        rule.rule_type = data.pop('type')

    if 'target_user_ids' in data:
        ids = data.pop('target_user_ids')
        users = User.query.filter(User.id.in_(ids)).all() if ids else []
        if len(users) != len(set(ids)):
            raise RuleValidationError('Unknown target user', {'target_user_ids': ids})
        rule.target_users = users

    for key, value in data.items():
        setattr(rule, key, value)

    return rule


def _name_taken(name):
    return AdaptationRule.query.filter_by(name=name).first() is not None


def _commit_rule(rule):
    """Commit, turning a unique-name collision into a validation error."""
    name = rule.name
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning(f"Rule name collision on commit: {name}")
        raise RuleValidationError(f"Rule name already exists: {name}")


@rules_bp.route('', methods=['GET'])
@jwt_required()
def list_rules():
    query = AdaptationRule.query

    category = request.args.get('category')
    if category:
        query = query.filter_by(category=category)

    active = request.args.get('active')
    if active is not None:
        query = query.filter_by(is_active=active.lower() == 'true')

    rules = query.order_by(AdaptationRule.priority.desc(), AdaptationRule.id).all()

    return jsonify({
        'rules': [rule.to_dict() for rule in rules]
    }), 200


@rules_bp.route('', methods=['POST'])
@admin_required
def create_rule():
    data = RulePayloadSchema().load(request.get_json() or {})

    if _name_taken(data['name']):
        raise RuleValidationError(f"Rule name already exists: {data['name']}")

    rule = _apply_payload(AdaptationRule(), data)
    db.session.add(rule)
    _commit_rule(rule)

    logger.info(f"Created adaptation rule {rule.id} ({rule.name})")

    return jsonify({
        'message': 'Rule created',
        'rule': rule.to_dict()
    }), 201


@rules_bp.route('/stats', methods=['GET'])
@admin_required
def rule_stats():
    days = request.args.get('days', current_app.config['ADAPTATION_STATS_DAYS'], type=int)
    return jsonify(AdaptationEngine().get_adaptation_stats(days)), 200


@rules_bp.route('/<int:rule_id>', methods=['GET'])
@jwt_required()
def get_rule(rule_id):
    return jsonify({'rule': _get_rule(rule_id).to_dict()}), 200


@rules_bp.route('/<int:rule_id>', methods=['PUT'])
@admin_required
def update_rule(rule_id):
    rule = _get_rule(rule_id)
    data = RulePayloadSchema(partial=True).load(request.get_json() or {})

    if 'name' in data and data['name'] != rule.name:
        if _name_taken(data['name']):
            raise RuleValidationError(f"Rule name already exists: {data['name']}")

    _apply_payload(rule, data)
    _commit_rule(rule)

    return jsonify({
        'message': 'Rule updated',
        'rule': rule.to_dict()
    }), 200


@rules_bp.route('/<int:rule_id>', methods=['DELETE'])
@admin_required
def deactivate_rule(rule_id):
    rule = _get_rule(rule_id)
    rule.is_active = False
    db.session.commit()

    logger.info(f"Deactivated adaptation rule {rule.id} ({rule.name})")

    return jsonify({
        'message': 'Rule deactivated'
    }), 200
